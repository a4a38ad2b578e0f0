"""
Job Loader Module

Loads the inputs of one filtering run from a job directory:

    <job_dir>/
        filter_rules.json   active rule set (required)
        candidates.jsonl    one candidate per line (required)
        lists.json          company/university/name lists (optional)
        synonyms.json       synonym table rows (optional)
"""

from pathlib import Path
from typing import Union

import jsonlines
from pydantic import BaseModel, Field, ValidationError

from shortlist.models.candidate import Candidate
from shortlist.models.rules import FilterRules, JobLists, SynonymEntry
from shortlist.utils.logger import get_logger
from shortlist.utils.validator import ConfigurationError, ConfigValidator


class JobData(BaseModel):
    """Everything a filtering run reads."""

    rules: FilterRules
    candidates: list[Candidate] = Field(default_factory=list)
    lists: JobLists = Field(default_factory=JobLists)
    synonyms: list[SynonymEntry] = Field(default_factory=list)


def load_candidates(candidates_file: Path) -> list[Candidate]:
    """
    Read candidates from a JSONL file.

    Raises:
        ConfigurationError: If the file is missing, a row is invalid or an id
            repeats
    """
    if not candidates_file.exists():
        raise ConfigurationError(f"Candidates file not found: {candidates_file}")

    candidates: list[Candidate] = []
    seen_ids: dict[str, int] = {}
    with jsonlines.open(candidates_file) as reader:
        for line_number, row in enumerate(reader, start=1):
            if isinstance(row, dict) and row.get("id") is not None:
                row = {**row, "id": str(row["id"])}
            try:
                candidate = Candidate.model_validate(row)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid candidate on line {line_number} of {candidates_file.name}: {e}"
                ) from e

            if candidate.id in seen_ids:
                raise ConfigurationError(
                    f"Duplicate candidate id '{candidate.id}' on line {line_number} "
                    f"of {candidates_file.name} (first seen on line {seen_ids[candidate.id]})"
                )
            seen_ids[candidate.id] = line_number
            candidates.append(candidate)
    return candidates


def load_job_data(
    job_dir: Union[str, Path], validator: ConfigValidator | None = None
) -> JobData:
    """
    Load and validate a job directory.

    Args:
        job_dir: Directory holding the job's input files
        validator: Schema validator (a default one is created if omitted)

    Returns:
        JobData for the run

    Raises:
        ConfigurationError: If required files are missing or any input is invalid
    """
    job_dir = Path(job_dir)
    validator = validator or ConfigValidator()
    logger = get_logger(phase="load", component="job_loader")

    if not job_dir.is_dir():
        raise ConfigurationError(f"Job directory not found: {job_dir}")

    rules_data = validator.validate_file(
        job_dir / "filter_rules.json", "filter_rules_schema.json"
    )
    try:
        rules = FilterRules.model_validate(rules_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid filter rules: {e}") from e

    lists = JobLists()
    lists_file = job_dir / "lists.json"
    if lists_file.exists():
        lists = JobLists.model_validate(
            validator.validate_file(lists_file, "job_lists_schema.json")
        )

    synonyms: list[SynonymEntry] = []
    synonyms_file = job_dir / "synonyms.json"
    if synonyms_file.exists():
        rows = validator.validate_file(synonyms_file, "synonyms_schema.json")
        synonyms = [SynonymEntry.model_validate(row) for row in rows]

    candidates = load_candidates(job_dir / "candidates.jsonl")

    logger.info(
        "Job data loaded",
        job_id=rules.job_id,
        candidates=len(candidates),
        synonyms=len(synonyms),
        rules_version=rules.version,
    )
    return JobData(rules=rules, candidates=candidates, lists=lists, synonyms=synonyms)
