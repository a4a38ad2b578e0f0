"""
Job Input Validator Module
Validates job input files and classifier payloads against JSON schemas.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from jsonschema import Draft7Validator, FormatChecker, ValidationError

logger = structlog.get_logger(__name__)

DEFAULT_SCHEMA_DIR = Path(__file__).parent.parent / "schemas"


class ConfigurationError(Exception):
    """Raised when a run cannot start because its configuration is missing or invalid."""

    pass


class ConfigValidator:
    """Validates JSON documents against the bundled schemas."""

    def __init__(self, schema_dir: Optional[Path] = None):
        """
        Initialize validator with schema directory.

        Args:
            schema_dir: Path to directory containing JSON schemas (defaults to shortlist/schemas)
        """
        self.schema_dir = schema_dir or DEFAULT_SCHEMA_DIR
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Load JSON schema from file (cached).

        Args:
            schema_name: Schema filename (e.g., "filter_rules_schema.json")

        Returns:
            Loaded schema dictionary

        Raises:
            ConfigurationError: If schema file not found or invalid
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self.schema_dir / schema_name
        if not schema_path.exists():
            logger.error(
                "schema_not_found",
                schema_name=schema_name,
                schema_path=str(schema_path),
            )
            raise ConfigurationError(f"Schema file not found: {schema_path}")

        try:
            with open(schema_path, "r", encoding="utf-8") as f:
                schema = json.load(f)
        except json.JSONDecodeError as e:
            logger.error("schema_invalid_json", schema_name=schema_name, error=str(e))
            raise ConfigurationError(f"Invalid JSON in schema {schema_name}: {e}")

        self._schemas[schema_name] = schema
        logger.debug("schema_loaded", schema_name=schema_name)
        return schema

    def collect_errors(self, instance: Any, schema_name: str) -> List[str]:
        """
        Validate an instance and return formatted error messages (empty if valid).

        Args:
            instance: Parsed JSON document
            schema_name: Schema filename to validate against
        """
        schema = self.load_schema(schema_name)
        validator = Draft7Validator(schema, format_checker=FormatChecker())
        errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.absolute_path))
        return [self._format_error(error) for error in errors]

    def validate(self, config: Any, schema_name: str) -> None:
        """
        Validate a document against a schema.

        Raises:
            ConfigurationError: If validation fails, with one line per error
        """
        messages = self.collect_errors(config, schema_name)
        if not messages:
            logger.debug("validation_passed", schema_name=schema_name)
            return

        logger.warning(
            "validation_failed", schema_name=schema_name, error_count=len(messages)
        )
        raise ConfigurationError(
            "\n".join([f"Validation failed for {schema_name}:", *messages])
        )

    def validate_file(self, config_path: Path, schema_name: str) -> Any:
        """
        Load and validate a JSON file.

        Args:
            config_path: Path to the JSON file
            schema_name: Schema filename to validate against

        Returns:
            Validated document

        Raises:
            ConfigurationError: If file not found, not JSON, or invalid
        """
        if not config_path.exists():
            logger.error("config_file_not_found", config_path=str(config_path))
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(
                "config_invalid_json", config_path=str(config_path), error=str(e)
            )
            raise ConfigurationError(
                f"Invalid JSON in {config_path.name}: {e}\n"
                f"Check for trailing commas, missing quotes, or invalid syntax."
            )

        self.validate(config, schema_name)
        return config

    @staticmethod
    def _format_error(error: ValidationError) -> str:
        """Format one jsonschema error as a user-facing message."""
        path = " -> ".join(str(p) for p in error.absolute_path) or "(root)"

        if error.validator == "required":
            return f"  * Missing required field at {path}: {error.message}"
        if error.validator == "type":
            return (
                f"  * Type mismatch at '{path}': {error.message} "
                f"(expected {error.validator_value})"
            )
        if error.validator in ("minimum", "minLength"):
            return f"  * Value too small at '{path}': {error.message}"
        if error.validator == "additionalProperties":
            return f"  * Unknown field at '{path}': {error.message}"
        return f"  * Validation error at '{path}': {error.message}"
