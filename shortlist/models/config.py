"""
Configuration Models

Pydantic models for system configuration validation.
"""

import json
from pathlib import Path
from pydantic import BaseModel, Field, field_validator


class BatchConfig(BaseModel):
    """Batching of stage-2 survivors into classifier requests."""

    max_batch_size: int = Field(default=15, gt=0, lt=100)
    batch_divisor: int = Field(default=6, gt=0)
    max_concurrent_batches: int = Field(default=3, gt=0, le=10)

    @field_validator("max_batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        """Validate batch size is within reasonable range."""
        if v <= 0:
            raise ValueError("Batch size must be greater than 0")
        if v >= 100:
            raise ValueError("Batch size must be less than 100")
        return v


class Timeouts(BaseModel):
    """Timeout configuration in seconds."""

    classifier_batch: float = Field(default=20.0, gt=0)
    llm_request: float = Field(default=15.0, gt=0)


class ClassifierConfig(BaseModel):
    """Batch classifier (LLM) settings."""

    max_retries: int = Field(default=1, ge=0, le=5)
    retry_initial_delay: float = Field(default=4.0, ge=0)
    summary_max_chars: int = Field(default=200, gt=0)
    cost_per_1k_tokens: float = Field(default=0.00015, ge=0)


class PersistenceConfig(BaseModel):
    """Outcome store settings."""

    outcomes_dir: str = "outcomes"
    insert_chunk_size: int = Field(default=500, gt=0)
    insert_chunk_delay: float = Field(default=0.1, ge=0)
    cost_ledger_file: str = "outcomes/api_costs.jsonl"


class SystemParams(BaseModel):
    """System parameters configuration model."""

    batch_config: BatchConfig = Field(default_factory=BatchConfig)
    timeouts: Timeouts = Field(default_factory=Timeouts)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @classmethod
    def load(cls, config_path: Path | str | None = None) -> "SystemParams":
        """Load system parameters from config file.

        Args:
            config_path: Path to system_params.json (defaults to config/system_params.json)

        Returns:
            SystemParams: Validated configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config validation fails
        """
        if config_path is None:
            config_path = Path("config/system_params.json")
        else:
            config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}. "
                f"Copy {config_path.stem}.example.json to {config_path.name}"
            )

        with open(config_path, "r", encoding="utf-8") as f:
            config_data = json.load(f)

        return cls(**config_data)
