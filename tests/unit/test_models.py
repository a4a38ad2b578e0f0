"""
Unit tests for candidate, rule, outcome and configuration models.
"""

import json

import pytest
from pydantic import ValidationError

from shortlist.models.candidate import (
    Candidate,
    aggregate_location_text,
    aggregate_searchable_text,
)
from shortlist.models.config import BatchConfig, SystemParams
from shortlist.models.outcome import AIVerdict
from shortlist.models.rules import FilterRules, JobLists, RunContext


class TestCandidate:
    """Test cases for the Candidate model."""

    def test_candidate_is_frozen(self, make_candidate):
        """Test that candidates cannot be modified."""
        # Arrange
        candidate = make_candidate()

        # Act / Assert
        with pytest.raises(ValidationError):
            candidate.current_company = "Google"

    def test_searchable_text_skips_missing_fields(self):
        """Test that empty fields are left out of the aggregated text."""
        # Arrange
        candidate = Candidate(
            id="1", full_name="A", current_title="Backend Engineer", skills="Go"
        )

        # Act / Assert
        assert aggregate_searchable_text(candidate) == "backend engineer go"

    def test_full_name_is_not_searchable(self, make_candidate):
        """Test that names do not leak into term matching."""
        # Act / Assert
        assert "dana" not in aggregate_searchable_text(make_candidate())

    def test_location_text_fields(self, make_candidate):
        """Test that location text covers education, summary and company."""
        # Arrange
        candidate = make_candidate(
            education="Haifa University", profile_summary="Lives in Netanya", current_company="Wix"
        )

        # Act
        text = aggregate_location_text(candidate)

        # Assert
        assert "haifa" in text
        assert "netanya" in text
        assert "wix" in text


class TestFilterRules:
    """Test cases for the FilterRules model."""

    def test_null_settings_fall_back_to_defaults(self):
        """Test that null columns take the field defaults."""
        # Act
        rules = FilterRules(job_id="job-1", min_months_current_role=None, must_have_terms=None)

        # Assert
        assert rules.min_months_current_role == 0
        assert rules.must_have_terms == ""

    def test_term_lists_are_joined_as_or(self):
        """Test that list-of-terms exports become comma expressions."""
        # Act
        rules = FilterRules(job_id="job-1", must_have_terms=["node", " react ", ""])

        # Assert
        assert rules.must_have_terms == "node, react"

    def test_location_terms_accept_comma_string(self):
        """Test that location terms may be given as one string."""
        # Act
        rules = FilterRules(job_id="job-1", exclude_location_terms="Haifa, , Tel Aviv")

        # Assert
        assert rules.exclude_location_terms == ["Haifa", "Tel Aviv"]

    def test_job_id_is_required(self):
        """Test that an empty job id is rejected."""
        # Act / Assert
        with pytest.raises(ValidationError):
            FilterRules(job_id="")


class TestJobListsAndContext:
    """Test cases for JobLists and RunContext."""

    def test_blank_entries_are_dropped(self):
        """Test that blank list entries are removed."""
        # Act
        lists = JobLists(blacklist_companies=[" Wix ", "", "  "], target_companies=None)

        # Assert
        assert lists.blacklist_companies == ["Wix"]
        assert lists.target_companies == []

    def test_run_context_requires_ids(self):
        """Test that user and job ids must be non-empty."""
        # Act / Assert
        with pytest.raises(ValidationError):
            RunContext(user_id="", job_id="job-1")


class TestAIVerdict:
    """Test cases for the AIVerdict model."""

    def test_scores_are_clamped(self):
        """Test that out-of-range scores are clamped to 0-100."""
        # Act
        verdict = AIVerdict.model_validate(
            {"candidateId": 7, "experience_score": 140, "role_duration_score": -5}
        )

        # Assert
        assert verdict.candidate_id == "7"
        assert verdict.experience_score == 100
        assert verdict.role_duration_score == 0

    def test_non_numeric_scores_are_dropped(self):
        """Test that unusable scores are ignored."""
        # Act
        verdict = AIVerdict.model_validate({"experience_score": "high"})

        # Assert
        assert verdict.experience_score is None
        assert verdict.scores() == {}


class TestSystemParams:
    """Test cases for SystemParams."""

    def test_defaults(self):
        """Test default batching and timeout values."""
        # Act
        params = SystemParams()

        # Assert
        assert params.batch_config.max_batch_size == 15
        assert params.batch_config.batch_divisor == 6
        assert params.batch_config.max_concurrent_batches == 3
        assert params.timeouts.classifier_batch == 20.0

    def test_invalid_log_level(self):
        """Test that unknown log levels are rejected."""
        # Act / Assert
        with pytest.raises(ValidationError, match="Log level must be one of"):
            SystemParams(log_level="LOUD")

    def test_batch_size_bounds(self):
        """Test that batch sizes outside 1-99 are rejected."""
        # Act / Assert
        with pytest.raises(ValidationError):
            BatchConfig(max_batch_size=0)
        with pytest.raises(ValidationError):
            BatchConfig(max_batch_size=100)

    def test_load_from_file(self, tmp_path):
        """Test loading parameters from JSON."""
        # Arrange
        path = tmp_path / "system_params.json"
        path.write_text(json.dumps({"batch_config": {"max_batch_size": 5}, "log_level": "debug"}))

        # Act
        params = SystemParams.load(path)

        # Assert
        assert params.batch_config.max_batch_size == 5
        assert params.log_level == "DEBUG"

    def test_load_missing_file(self, tmp_path):
        """Test that a missing config file raises FileNotFoundError."""
        # Act / Assert
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            SystemParams.load(tmp_path / "system_params.json")
