"""
Unit tests for Job Input Validator Module
"""

import json

import pytest

from shortlist.utils.validator import ConfigurationError, ConfigValidator


@pytest.fixture
def validator():
    """Create a ConfigValidator instance for testing."""
    return ConfigValidator()


@pytest.fixture
def valid_filter_rules():
    """Return a valid filter rules document."""
    return {
        "job_id": "job-1",
        "name": "Backend hiring",
        "version": 3,
        "use_wanted_companies_filter": True,
        "min_months_current_role": 12,
        "must_have_terms": "node AND react",
        "exclude_terms": ["php", "wordpress"],
        "exclude_location_terms": ["Haifa"],
        "require_top_uni": False,
    }


class TestSchemaLoading:
    """Test cases for schema loading."""

    def test_load_schema_success(self, validator):
        """Test that a bundled schema loads."""
        # Act
        schema = validator.load_schema("filter_rules_schema.json")

        # Assert
        assert schema["title"] == "Filter rules"

    def test_load_schema_caching(self, validator):
        """Test that schemas are loaded once."""
        # Act / Assert
        assert validator.load_schema("job_lists_schema.json") is validator.load_schema(
            "job_lists_schema.json"
        )

    def test_load_schema_not_found(self, validator):
        """Test that a missing schema raises ConfigurationError."""
        # Act / Assert
        with pytest.raises(ConfigurationError, match="Schema file not found"):
            validator.load_schema("missing_schema.json")


class TestFilterRulesValidation:
    """Test cases for filter rules documents."""

    def test_valid_filter_rules(self, validator, valid_filter_rules):
        """Test that a valid document passes."""
        # Act / Assert
        validator.validate(valid_filter_rules, "filter_rules_schema.json")

    def test_missing_job_id(self, validator, valid_filter_rules):
        """Test that a missing job id is reported."""
        # Arrange
        del valid_filter_rules["job_id"]

        # Act / Assert
        with pytest.raises(ConfigurationError, match="Missing required field"):
            validator.validate(valid_filter_rules, "filter_rules_schema.json")

    def test_negative_role_duration(self, validator, valid_filter_rules):
        """Test that negative thresholds are rejected."""
        # Arrange
        valid_filter_rules["min_months_current_role"] = -1

        # Act
        errors = validator.collect_errors(valid_filter_rules, "filter_rules_schema.json")

        # Assert
        assert len(errors) == 1
        assert "Value too small" in errors[0]

    def test_null_settings_are_allowed(self, validator):
        """Test that null columns from rule exports validate."""
        # Act
        errors = validator.collect_errors(
            {"job_id": "job-1", "must_have_terms": None, "require_top_uni": None},
            "filter_rules_schema.json",
        )

        # Assert
        assert errors == []


class TestJobListsValidation:
    """Test cases for list source documents."""

    def test_unknown_list_is_rejected(self, validator):
        """Test that unknown list names are reported."""
        # Act / Assert
        with pytest.raises(ConfigurationError, match="Unknown field"):
            validator.validate({"favourite_companies": []}, "job_lists_schema.json")

    def test_type_mismatch(self, validator):
        """Test that non-string list entries are reported."""
        # Act
        errors = validator.collect_errors(
            {"blacklist_companies": ["Wix", 3]}, "job_lists_schema.json"
        )

        # Assert
        assert errors and "Type mismatch" in errors[0]


class TestBatchAnalysisValidation:
    """Test cases for classifier payloads."""

    def test_missing_overall_pass(self, validator):
        """Test that verdicts without overall_pass are rejected."""
        # Act
        errors = validator.collect_errors(
            [
                {
                    "candidateId": "a",
                    "passes_must_have_terms_check": True,
                    "passes_exclude_terms_check": True,
                }
            ],
            "batch_analysis_schema.json",
        )

        # Assert
        assert len(errors) == 1
        assert "overall_pass" in errors[0]


class TestValidateFile:
    """Test cases for validate_file()."""

    def test_validate_file_success(self, validator, valid_filter_rules, tmp_path):
        """Test that a valid file is loaded and returned."""
        # Arrange
        path = tmp_path / "filter_rules.json"
        path.write_text(json.dumps(valid_filter_rules))

        # Act
        data = validator.validate_file(path, "filter_rules_schema.json")

        # Assert
        assert data["job_id"] == "job-1"

    def test_validate_file_not_found(self, validator, tmp_path):
        """Test that a missing file raises ConfigurationError."""
        # Act / Assert
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            validator.validate_file(tmp_path / "nope.json", "filter_rules_schema.json")

    def test_validate_file_invalid_json(self, validator, tmp_path):
        """Test that malformed JSON raises ConfigurationError."""
        # Arrange
        path = tmp_path / "filter_rules.json"
        path.write_text('{"job_id": "job-1",}')

        # Act / Assert
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            validator.validate_file(path, "filter_rules_schema.json")
