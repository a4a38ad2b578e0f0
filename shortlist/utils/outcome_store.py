"""
Outcome Store Module

JSONL persistence of per-candidate filter outcomes, scoped by (user, job).

Each (user, job) pair owns one file. A run replaces the whole file with
insert-then-swap: the new outcomes are written to a temporary file in chunks
and the temporary file then atomically replaces the old one. If the write
fails, the previous outcomes stay intact.

Example Usage:
    from shortlist.utils.outcome_store import OutcomeStore

    store = OutcomeStore(outcomes_dir="outcomes")
    await store.replace_outcomes(ctx, outcomes)
    rows = store.load_outcomes(ctx)
"""

import asyncio
import json
import os
import re
from pathlib import Path
from typing import Sequence

import jsonlines
import structlog

from shortlist.models.outcome import FilterOutcome
from shortlist.models.rules import RunContext

logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class PersistenceError(IOError):
    """Raised when outcomes cannot be written or read."""

    pass


class OutcomeStore:
    """Stores filter outcomes per (user, job)."""

    def __init__(
        self,
        outcomes_dir: str = "outcomes",
        chunk_size: int = 500,
        chunk_delay: float = 0.1,
    ):
        """
        Initialize OutcomeStore.

        Args:
            outcomes_dir: Directory for outcome files (default: "outcomes")
            chunk_size: Outcomes written per chunk
            chunk_delay: Pause between chunks in seconds
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be greater than 0")
        self.outcomes_dir = Path(outcomes_dir)
        self.outcomes_dir.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay

    def outcome_file(self, ctx: RunContext) -> Path:
        user = _UNSAFE_CHARS.sub("_", ctx.user_id)
        job = _UNSAFE_CHARS.sub("_", ctx.job_id)
        return self.outcomes_dir / f"{user}--{job}.jsonl"

    async def replace_outcomes(
        self, ctx: RunContext, outcomes: Sequence[FilterOutcome]
    ) -> None:
        """
        Replace all stored outcomes of (user, job) with the given ones.

        Raises:
            PersistenceError: If the outcomes cannot be written; the previously
                stored outcomes are left untouched
        """
        target = self.outcome_file(ctx)
        temp_file = target.with_suffix(".jsonl.tmp")
        swapped = False

        try:
            with jsonlines.open(temp_file, mode="w") as writer:
                for start in range(0, len(outcomes), self.chunk_size):
                    chunk = outcomes[start : start + self.chunk_size]
                    writer.write_all(outcome.model_dump() for outcome in chunk)
                    if start + self.chunk_size < len(outcomes) and self.chunk_delay > 0:
                        await asyncio.sleep(self.chunk_delay)
            os.replace(temp_file, target)
            swapped = True
        except OSError as e:
            logger.error(
                "Failed to persist outcomes",
                user_id=ctx.user_id,
                job_id=ctx.job_id,
                error=str(e),
            )
            raise PersistenceError(
                f"Failed to save outcomes for job {ctx.job_id}: {e}"
            ) from e
        finally:
            if not swapped:
                temp_file.unlink(missing_ok=True)

        logger.info(
            "Outcomes persisted",
            user_id=ctx.user_id,
            job_id=ctx.job_id,
            count=len(outcomes),
            outcome_file=str(target),
        )

    def load_outcomes(self, ctx: RunContext) -> list[FilterOutcome]:
        """
        Load stored outcomes of (user, job).

        Returns:
            Stored outcomes, or an empty list if the job has none

        Raises:
            PersistenceError: If the outcome file is corrupted
        """
        outcome_file = self.outcome_file(ctx)
        if not outcome_file.exists():
            return []

        try:
            with jsonlines.open(outcome_file) as reader:
                return [FilterOutcome.model_validate(row) for row in reader]
        except (json.JSONDecodeError, jsonlines.InvalidLineError) as e:
            raise PersistenceError(f"Corrupted outcome file {outcome_file}: {e}") from e
