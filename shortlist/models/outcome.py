"""Per-candidate verdict and outcome models produced by the filtering pipeline."""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Canonical reason strings (the results screen groups rejections by these prefixes)
REASON_BLACKLISTED = "Blacklisted company"
REASON_PAST_CANDIDATE = "Past candidate"
REASON_NOT_RELEVANT = "NotRelevant company"
REASON_NOT_WANTED_COMPANY = "Not in wanted companies list"
REASON_NO_TARGET_MATCH = "No target company match"
REASON_NOT_WANTED_UNIVERSITY = "Not from wanted university"
REASON_NOT_TARGET_COMPANY = "Not from target company"
REASON_ROLE_DURATION = "Insufficient role duration"
REASON_EXPERIENCE = "Insufficient experience"
REASON_MISSING_TERMS = "Missing required terms"
REASON_EXCLUDED_TERMS = "Contains excluded terms"
REASON_EXCLUDED_LOCATION = "Excluded location detected"
REASON_TOP_UNIVERSITY = "Top university requirement not met"

REJECTION_CATEGORIES = {
    "blacklisted": (REASON_BLACKLISTED,),
    "past_candidate": (REASON_PAST_CANDIDATE,),
    "not_relevant": (REASON_NOT_RELEVANT,),
    "wanted_miss": (
        REASON_NOT_WANTED_COMPANY,
        REASON_NOT_TARGET_COMPANY,
        REASON_NO_TARGET_MATCH,
    ),
    "wanted_university": (REASON_NOT_WANTED_UNIVERSITY,),
    "role_duration": (REASON_ROLE_DURATION,),
    "experience": (REASON_EXPERIENCE,),
    "missing_terms": (REASON_MISSING_TERMS,),
    "excluded_terms": (REASON_EXCLUDED_TERMS,),
    "excluded_location": (REASON_EXCLUDED_LOCATION,),
    "top_uni": (REASON_TOP_UNIVERSITY,),
}


class Stage1Result(BaseModel):
    """Outcome of the deterministic list/company gates for one candidate."""

    passed: bool
    filter_reasons: list[str] = Field(default_factory=list)


class AIVerdict(BaseModel):
    """Per-candidate verdict returned by the batch classifier.

    Scores are 0-100 confidence values; out-of-range numbers are clamped and
    non-numeric values are dropped.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    candidate_id: Optional[str] = Field(default=None, alias="candidateId")
    passes_experience_check: bool = True
    passes_role_duration_check: bool = True
    passes_must_have_terms_check: bool = True
    passes_exclude_terms_check: bool = True
    passes_location_exclusion_check: bool = True
    passes_top_university_check: Optional[bool] = None
    experience_score: Optional[int] = None
    role_duration_score: Optional[int] = None
    must_have_terms_score: Optional[int] = None
    exclude_terms_score: Optional[int] = None
    location_exclusion_score: Optional[int] = None
    top_university_score: Optional[int] = None
    reasoning: str = ""
    overall_pass: bool = False

    @field_validator("candidate_id", mode="before")
    @classmethod
    def coerce_candidate_id(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator(
        "experience_score",
        "role_duration_score",
        "must_have_terms_score",
        "exclude_terms_score",
        "location_exclusion_score",
        "top_university_score",
        mode="before",
    )
    @classmethod
    def clamp_score(cls, v: Any) -> Optional[int]:
        """Clamp numeric scores to 0-100; discard anything non-numeric."""
        if v is None or isinstance(v, bool):
            return None
        try:
            score = int(round(float(v)))
        except (TypeError, ValueError):
            return None
        return max(0, min(100, score))

    def scores(self) -> dict[str, int]:
        """Return the scores that were actually provided."""
        fields = (
            "experience_score",
            "role_duration_score",
            "must_have_terms_score",
            "exclude_terms_score",
            "location_exclusion_score",
            "top_university_score",
        )
        return {
            name: getattr(self, name)
            for name in fields
            if getattr(self, name) is not None
        }


class Stage2Result(BaseModel):
    """Final stage-2 decision for one candidate.

    Attributes:
        candidate_id: Candidate the decision belongs to
        passed: Final stage-2 decision after reconciliation
        filter_reasons: Human-readable rejection reasons, in check order
        used_fallback: True when the deterministic fallback produced the verdict
        overrides: Descriptions of deterministic overrides applied to the AI verdict
        scores: AI confidence scores (empty on the fallback path)
    """

    candidate_id: str
    passed: bool
    filter_reasons: list[str] = Field(default_factory=list)
    used_fallback: bool = False
    overrides: list[str] = Field(default_factory=list)
    scores: dict[str, int] = Field(default_factory=dict)


class FilterOutcome(BaseModel):
    """Persisted per-candidate, per-job filtering record."""

    user_id: str
    job_id: str
    candidate_id: str
    stage_1_passed: bool
    stage_2_passed: bool
    filter_reasons: list[str] = Field(default_factory=list)

    @property
    def final_pass(self) -> bool:
        return self.stage_1_passed and self.stage_2_passed


class ProgressEvent(BaseModel):
    """Progress notification emitted by the stage-2 orchestrator after each wave."""

    processed: int
    total: int
    wave_index: int
    total_waves: int
    fallback_batches: int = 0


class RunSummary(BaseModel):
    """Counts reported at the end of a filtering run."""

    user_id: str
    job_id: str
    total_candidates: int = 0
    stage_1_passed: int = 0
    stage_2_passed: int = 0
    final_results: int = 0
    fallback_batches: int = 0
    overrides: int = 0
    cancelled: bool = False
    rejection_breakdown: dict[str, int] = Field(default_factory=dict)
