"""
Shared test fixtures: candidate factory, rule sets and list sources.
"""

from typing import Any, Callable

import pytest

from shortlist.models.candidate import Candidate
from shortlist.models.rules import FilterRules, JobLists, RunContext, SynonymEntry


@pytest.fixture
def make_candidate() -> Callable[..., Candidate]:
    """Factory for candidates with sensible defaults; keyword args override fields."""

    def _make(**overrides: Any) -> Candidate:
        data: dict[str, Any] = {
            "id": "cand-1",
            "full_name": "Dana Levi",
            "current_title": "Backend Engineer",
            "current_company": "Wix",
            "previous_company": "Monday.com",
            "profile_summary": "Backend engineer building Node.js services",
            "skills": "Node.js, TypeScript, PostgreSQL",
            "education": "B.Sc Computer Science, Tel Aviv University",
            "years_of_experience": 6,
            "months_in_current_role": 24,
        }
        data.update(overrides)
        return Candidate(**data)

    return _make


@pytest.fixture
def run_context() -> RunContext:
    return RunContext(user_id="user-1", job_id="job-1")


@pytest.fixture
def rules() -> FilterRules:
    """Rule set with every optional check disabled."""
    return FilterRules(job_id="job-1")


@pytest.fixture
def lists() -> JobLists:
    return JobLists()


@pytest.fixture
def synonyms() -> list[SynonymEntry]:
    return [
        SynonymEntry(canonical_term="engineer", variant_term="developer", category="title"),
        SynonymEntry(canonical_term="javascript", variant_term="js", category="skill"),
        SynonymEntry(canonical_term="postgresql", variant_term="postgres", category="skill"),
    ]
