"""Stage 2: AI-assisted screening of stage-1 survivors.

Survivors are split into batches of ``min(max_batch_size, ceil(n / batch_divisor))``
candidates. Batches are sent to the classifier in waves of at most
``max_concurrent_batches`` concurrent calls; a wave must settle completely
before the next one starts, so results are only ever appended by one wave
at a time.

Per batch (never per candidate), any exception, a timeout, a malformed
payload or the AI_ANALYSIS_FAILED sentinel switches the whole batch to
evaluate_deterministically. Successful verdicts are corrected by the
override reconciler before the final decision.

Cancellation is cooperative: the event is checked before each wave and
after it settles. A wave that finishes after cancellation is discarded.
"""

import asyncio
import math
from typing import Any, Callable, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field, ValidationError

from shortlist.agents.batch_classifier import AI_ANALYSIS_FAILED, BatchClassifier
from shortlist.agents.override_reconciler import (
    Stage2Checks,
    build_stage2_result,
    reconcile_verdict,
)
from shortlist.models.candidate import Candidate, aggregate_location_text
from shortlist.models.config import SystemParams
from shortlist.models.outcome import AIVerdict, ProgressEvent, Stage2Result
from shortlist.models.rules import FilterRules, JobLists, RunContext, SynonymEntry
from shortlist.utils.logger import get_logger
from shortlist.utils.logic_parser import check_terms_with_logic

T = TypeVar("T")


def divide_into_batches(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """
    Divide a list of items into batches of specified size.

    Args:
        items: Items to batch
        batch_size: Number of items per batch

    Returns:
        List of batches, where each batch is a list of items

    Raises:
        ValueError: If batch_size <= 0

    Example:
        >>> divide_into_batches([1, 2, 3, 4, 5, 6, 7], 3)
        [[1, 2, 3], [4, 5, 6], [7]]
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be greater than 0")

    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


def compute_batch_size(
    survivor_count: int, max_batch_size: int = 15, batch_divisor: int = 6
) -> int:
    """Batch size for a run: min(max_batch_size, ceil(survivors / divisor)), at least 1."""
    if survivor_count <= 0:
        return 1
    return max(1, min(max_batch_size, math.ceil(survivor_count / batch_divisor)))


def evaluate_deterministically(
    candidate: Candidate,
    rules: FilterRules,
    lists: JobLists,
    synonyms: Sequence[SynonymEntry],
) -> Stage2Result:
    """Stage-2 verdict without the classifier.

    - Role duration: months in role below the minimum fails (unknown passes)
    - Experience: years below the minimum fails (unknown passes)
    - Must-have / exclude: logic parser over the searchable text
    - Location: plain substring of any excluded location term
    - Top university: any education text counts
    - Target company: same check as the AI path
    """
    checks = Stage2Checks()

    if rules.min_months_current_role > 0 and candidate.months_in_current_role is not None:
        checks.role_duration = (
            candidate.months_in_current_role >= rules.min_months_current_role
        )

    if rules.min_years_experience > 0 and candidate.years_of_experience is not None:
        checks.experience = candidate.years_of_experience >= rules.min_years_experience

    if rules.must_have_terms.strip():
        checks.must_have = check_terms_with_logic(
            candidate, rules.must_have_terms, synonyms
        ).found

    if rules.exclude_terms.strip():
        excluded = check_terms_with_logic(candidate, rules.exclude_terms, synonyms)
        checks.exclude = not excluded.found
        checks.excluded_matches = excluded.matches

    if rules.exclude_location_terms:
        location_text = aggregate_location_text(candidate)
        checks.location = not any(
            term.lower() in location_text for term in rules.exclude_location_terms
        )

    if rules.require_top_uni:
        checks.top_university = bool(candidate.education and candidate.education.strip())

    return build_stage2_result(candidate, rules, lists, checks, used_fallback=True)


class ScreeningReport(BaseModel):
    """Stage-2 results of a run."""

    results: list[Stage2Result] = Field(default_factory=list)
    total_batches: int = 0
    fallback_batches: int = 0
    cancelled: bool = False


class AIScreeningAgent:
    """Drives stage-1 survivors through the batch classifier in waves."""

    def __init__(
        self,
        classifier: BatchClassifier,
        rules: FilterRules,
        lists: JobLists,
        synonyms: Sequence[SynonymEntry],
        ctx: RunContext,
        system_params: Optional[SystemParams] = None,
        correlation_id: Optional[str] = None,
    ):
        self.classifier = classifier
        self.rules = rules
        self.lists = lists
        self.synonyms = list(synonyms)
        self.ctx = ctx
        self.system_params = system_params or SystemParams()
        self.correlation_id = correlation_id
        self.logger = get_logger(
            correlation_id=correlation_id,
            phase="stage_2",
            component="ai_screening",
            job_id=ctx.job_id,
        )

    def _fallback(self, batch: Sequence[Candidate]) -> list[Stage2Result]:
        return [
            evaluate_deterministically(candidate, self.rules, self.lists, self.synonyms)
            for candidate in batch
        ]

    def _parse_verdicts(self, response: Any) -> Optional[list[AIVerdict]]:
        """Turn a classifier response into verdicts, or None if it is unusable."""
        if not isinstance(response, dict):
            self.logger.warning(
                "Classifier returned a non-object response",
                response_type=type(response).__name__,
            )
            return None

        if response.get("error"):
            level = "warning" if response["error"] == AI_ANALYSIS_FAILED else "error"
            getattr(self.logger, level)(
                "Classifier reported failure",
                error=response["error"],
                message=response.get("message", ""),
            )
            return None

        rows = response.get("results")
        if not isinstance(rows, list):
            self.logger.warning("Classifier response has no results array")
            return None

        try:
            return [AIVerdict.model_validate(row) for row in rows]
        except ValidationError as e:
            self.logger.warning(
                "Malformed verdicts in classifier response",
                error_count=e.error_count(),
            )
            return None

    async def classify_batch(
        self, batch: Sequence[Candidate], batch_label: str
    ) -> tuple[list[Stage2Result], bool]:
        """Classify one batch, falling back to deterministic rules on failure.

        Returns:
            (results in batch order, used_fallback)
        """
        timeout = self.system_params.timeouts.classifier_batch
        log = self.logger.bind(batch=batch_label, batch_size=len(batch))

        try:
            response = await asyncio.wait_for(
                self.classifier.analyze_batch(batch, self.rules, self.synonyms, self.ctx),
                timeout=timeout,
            )
        except TimeoutError:
            log.warning("Classifier timed out, using deterministic fallback", timeout=timeout)
            return self._fallback(batch), True
        except Exception as e:
            log.error(
                "Classifier call failed, using deterministic fallback",
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._fallback(batch), True

        verdicts = self._parse_verdicts(response)
        if verdicts is None:
            log.warning("Using deterministic fallback for batch")
            return self._fallback(batch), True

        by_id = {v.candidate_id: v for v in verdicts if v.candidate_id is not None}
        results: list[Stage2Result] = []
        for index, candidate in enumerate(batch):
            verdict = by_id.get(candidate.id)
            if verdict is None and index < len(verdicts) and verdicts[index].candidate_id is None:
                verdict = verdicts[index]
            if verdict is None:
                log.warning("No verdict for candidate, using fallback", candidate_id=candidate.id)
                results.append(
                    evaluate_deterministically(candidate, self.rules, self.lists, self.synonyms)
                )
                continue
            results.append(
                reconcile_verdict(
                    verdict,
                    candidate,
                    self.rules,
                    self.lists,
                    self.synonyms,
                    correlation_id=self.correlation_id,
                )
            )

        log.info(
            "Batch classified",
            passed=sum(1 for r in results if r.passed),
            overrides=sum(len(r.overrides) for r in results),
        )
        return results, False

    async def run(
        self,
        survivors: Sequence[Candidate],
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> ScreeningReport:
        """Screen all survivors.

        Args:
            survivors: Candidates that passed stage 1
            cancel_event: Set to stop dispatching further waves
            on_progress: Called with a ProgressEvent after each recorded wave

        Returns:
            ScreeningReport with results of every recorded wave
        """
        report = ScreeningReport()
        if not survivors:
            self.logger.info("No stage-1 survivors, skipping stage 2")
            return report

        batch_config = self.system_params.batch_config
        batch_size = compute_batch_size(
            len(survivors), batch_config.max_batch_size, batch_config.batch_divisor
        )
        batches = divide_into_batches(survivors, batch_size)
        waves = divide_into_batches(batches, batch_config.max_concurrent_batches)
        report.total_batches = len(batches)

        self.logger.info(
            "Starting stage 2",
            survivors=len(survivors),
            batch_size=batch_size,
            total_batches=len(batches),
            total_waves=len(waves),
        )

        processed = 0
        for wave_index, wave in enumerate(waves, start=1):
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                self.logger.info("Cancellation requested, not dispatching wave", wave=wave_index)
                break

            wave_outcomes = await asyncio.gather(
                *[
                    self.classify_batch(batch, f"{wave_index}.{batch_index}")
                    for batch_index, batch in enumerate(wave, start=1)
                ],
                return_exceptions=True,
            )

            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                self.logger.info(
                    "Cancellation requested, discarding wave results",
                    wave=wave_index,
                    discarded=sum(len(batch) for batch in wave),
                )
                break

            for batch, outcome in zip(wave, wave_outcomes):
                if isinstance(outcome, BaseException):
                    self.logger.error(
                        "Unexpected batch failure, using deterministic fallback",
                        error=str(outcome),
                    )
                    batch_results, used_fallback = self._fallback(batch), True
                else:
                    batch_results, used_fallback = outcome
                report.results.extend(batch_results)
                if used_fallback:
                    report.fallback_batches += 1

            processed += sum(len(batch) for batch in wave)
            self.logger.info(
                "Wave complete",
                wave=wave_index,
                processed=processed,
                total=len(survivors),
            )
            if on_progress is not None:
                on_progress(
                    ProgressEvent(
                        processed=processed,
                        total=len(survivors),
                        wave_index=wave_index,
                        total_waves=len(waves),
                        fallback_batches=report.fallback_batches,
                    )
                )

        return report
