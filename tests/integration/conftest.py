"""
Integration Test Configuration

Provides a complete job directory on disk and skips slow tests in CI
(CI=true).
"""

import json
import os

import jsonlines
import pytest


@pytest.fixture
def is_ci_environment() -> bool:
    """
    Detect if tests are running in CI environment.

    Returns:
        True if CI environment variable is set to 'true'
    """
    return os.getenv("CI", "").lower() == "true"


@pytest.fixture(autouse=True)
def skip_slow_tests_in_ci(request, is_ci_environment):
    """Skip tests marked @pytest.mark.slow when running in CI."""
    if is_ci_environment and request.node.get_closest_marker("slow"):
        pytest.skip("Skipping slow test in CI environment")


JOB_CANDIDATES = [
    {
        "id": "c1",
        "full_name": "Dana Levi",
        "current_title": "Senior Backend Engineer",
        "current_company": "Wix",
        "previous_company": "Check Point",
        "profile_summary": "Node.js and React services at scale",
        "education": "B.Sc Computer Science, Technion",
        "years_of_experience": 7,
        "months_in_current_role": 30,
    },
    {
        "id": "c2",
        "full_name": "Noa Cohen",
        "current_title": "Full Stack Developer",
        "current_company": "Playtika",
        "profile_summary": "React and Node",
        "months_in_current_role": 40,
    },
    {
        "id": "c3",
        "full_name": "Yossi Mizrahi",
        "current_title": "PHP Developer",
        "current_company": "Monday.com",
        "profile_summary": "PHP, WordPress and React plugins",
        "education": "Tel Aviv University",
        "months_in_current_role": 18,
    },
    {
        "id": "c4",
        "full_name": "Avi Ben David",
        "current_title": "Backend Engineer",
        "current_company": "Amazon Web Services",
        "profile_summary": "Node.js microservices, React dashboards",
        "education": "Ben-Gurion University",
        "months_in_current_role": 4,
    },
    {
        "id": "c5",
        "full_name": "Maya Golan",
        "current_title": "Data Scientist",
        "current_company": "Google",
        "profile_summary": "Python and machine learning",
        "education": "Hebrew University",
        "months_in_current_role": 20,
    },
    {
        "id": "c6",
        "full_name": "Ron Shalev",
        "current_title": "Backend Engineer",
        "current_company": "Fiverr",
        "profile_summary": "Node and React developer",
        "education": "Reichman University",
        "months_in_current_role": 15,
    },
]


@pytest.fixture
def job_dir(tmp_path):
    """Job directory with rules, lists, synonyms and six candidates."""
    job = tmp_path / "job-1"
    job.mkdir()
    (job / "filter_rules.json").write_text(
        json.dumps(
            {
                "job_id": "job-1",
                "name": "Backend",
                "min_months_current_role": 12,
                "must_have_terms": "node AND react",
                "exclude_terms": "php OR wordpress",
                "use_not_relevant_filter": True,
            }
        )
    )
    (job / "lists.json").write_text(
        json.dumps(
            {
                "blacklist_companies": ["Playtika"],
                "not_relevant_companies": ["Fiverr"],
                "top_universities": ["Technion"],
            }
        )
    )
    (job / "synonyms.json").write_text(
        json.dumps([{"canonical_term": "node", "variant_term": "nodejs", "category": "skill"}])
    )
    with jsonlines.open(job / "candidates.jsonl", mode="w") as writer:
        writer.write_all(JOB_CANDIDATES)
    return job
