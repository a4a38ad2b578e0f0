"""Candidate data model and the searchable-text aggregation used by every matcher."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Candidate(BaseModel):
    """Represents one uploaded candidate row for a job.

    Candidates are owned by the upload pipeline and are read-only to the
    filtering engine, so the model is frozen.

    Attributes:
        id: Unique identifier of the uploaded row
        full_name: Candidate's full name
        current_title: Current job title (optional)
        current_company: Current employer (optional)
        previous_company: Previous employer (optional)
        profile_summary: Free-text profile/about section (optional)
        skills: Skills text as exported (optional)
        education: Education text, institution names included (optional)
        degree: Degree text (optional)
        job_description: Current position description (optional)
        years_of_experience: Total years of experience (optional)
        months_in_current_role: Months in the current position (optional)
        linkedin_url: LinkedIn profile URL (optional)
    """

    model_config = ConfigDict(frozen=True)

    id: str
    full_name: str
    current_title: Optional[str] = None
    current_company: Optional[str] = None
    previous_company: Optional[str] = None
    profile_summary: Optional[str] = None
    skills: Optional[str] = None
    education: Optional[str] = None
    degree: Optional[str] = None
    job_description: Optional[str] = None
    years_of_experience: Optional[float] = Field(default=None, ge=0)
    months_in_current_role: Optional[int] = Field(default=None, ge=0)
    linkedin_url: Optional[str] = None


# Fields concatenated (in this order) into the text searched by term matching
SEARCHABLE_FIELDS = (
    "current_title",
    "profile_summary",
    "education",
    "degree",
    "job_description",
    "skills",
    "previous_company",
    "current_company",
)


def aggregate_searchable_text(candidate: Candidate) -> str:
    """Join all searchable candidate fields into one lower-cased string.

    Empty and missing fields are skipped.

    Args:
        candidate: Candidate to aggregate

    Returns:
        Space-joined, lower-cased text of the searchable fields

    Example:
        >>> c = Candidate(id="1", full_name="A", current_title="Backend Engineer",
        ...               profile_summary="Node.js and React")
        >>> aggregate_searchable_text(c)
        'backend engineer node.js and react'
    """
    parts = [getattr(candidate, field) for field in SEARCHABLE_FIELDS]
    return " ".join(part for part in parts if part).lower()


def aggregate_location_text(candidate: Candidate) -> str:
    """Text treated as the candidate's location for location-exclusion checks."""
    parts = [candidate.education, candidate.profile_summary, candidate.current_company]
    return " ".join(part or "" for part in parts).lower()
