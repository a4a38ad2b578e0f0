"""Filter rule, list source, synonym and run context models."""

from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RunContext(BaseModel):
    """Explicit (user, job) scope threaded through every pipeline call."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    job_id: str = Field(min_length=1)


class SynonymEntry(BaseModel):
    """One row of the global synonym table (canonical_term <-> variant_term)."""

    model_config = ConfigDict(frozen=True)

    canonical_term: str
    variant_term: str
    category: Literal["title", "skill", "company"] = "skill"


class FilterRules(BaseModel):
    """Active filter rule set for a job.

    Term fields hold free-text boolean expressions ("node AND react",
    "(senior AND backend) OR lead"). Older rule exports store them as
    lists of terms; those are joined with commas, which parse as OR.

    Attributes:
        job_id: Job this rule set belongs to
        name: Display name of the rule set
        version: Monotonic version of the rule set
        use_not_relevant_filter: Enable the not-relevant companies gate
        use_target_companies_filter: Enable the global target companies list
        use_wanted_companies_filter: Enable the user's wanted companies list
        min_months_current_role: Minimum months in the current role (0 = off)
        min_years_experience: Minimum total years of experience (0 = off)
        must_have_terms: Boolean expression of required terms
        exclude_terms: Boolean expression of excluded terms
        required_titles: Boolean expression of required titles (AI prompt only)
        exclude_location_terms: Location terms that exclude a candidate
        require_top_uni: Require a top-university education
    """

    job_id: str = Field(min_length=1)
    name: str = "default"
    version: int = Field(default=1, ge=1)
    use_not_relevant_filter: bool = False
    use_target_companies_filter: bool = False
    use_wanted_companies_filter: bool = False
    min_months_current_role: int = Field(default=0, ge=0)
    min_years_experience: float = Field(default=0, ge=0)
    must_have_terms: str = ""
    exclude_terms: str = ""
    required_titles: str = ""
    exclude_location_terms: list[str] = Field(default_factory=list)
    require_top_uni: bool = False

    @model_validator(mode="before")
    @classmethod
    def drop_null_settings(cls, data: Any) -> Any:
        """Null columns in rule exports fall back to the field defaults."""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("must_have_terms", "exclude_terms", "required_titles", mode="before")
    @classmethod
    def join_term_lists(cls, v: Any) -> str:
        """Accept list-of-terms exports."""
        if isinstance(v, (list, tuple)):
            return ", ".join(str(term).strip() for term in v if str(term).strip())
        return str(v)

    @field_validator("exclude_location_terms", mode="before")
    @classmethod
    def clean_location_terms(cls, v: Any) -> list[str]:
        """Drop blank location terms; accept a comma-separated string."""
        if isinstance(v, str):
            v = v.split(",")
        return [str(term).strip() for term in v if str(term).strip()]


class JobLists(BaseModel):
    """Company, university and name lists consulted by the filters.

    blacklist_companies, wanted_companies, wanted_universities and
    past_candidates are scoped to (user, job); the rest are global lists.
    """

    blacklist_companies: list[str] = Field(default_factory=list)
    wanted_companies: list[str] = Field(default_factory=list)
    wanted_universities: list[str] = Field(default_factory=list)
    past_candidates: list[str] = Field(default_factory=list)
    not_relevant_companies: list[str] = Field(default_factory=list)
    target_companies: list[str] = Field(default_factory=list)
    top_universities: list[str] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def drop_blank_entries(cls, v: Optional[list[str]]) -> list[str]:
        if v is None:
            return []
        return [entry.strip() for entry in v if entry and entry.strip()]
