"""Merge stage-1 and stage-2 results into one outcome per candidate."""

from typing import Mapping, Optional, Sequence

from shortlist.models.candidate import Candidate
from shortlist.models.outcome import (
    REJECTION_CATEGORIES,
    FilterOutcome,
    RunSummary,
    Stage1Result,
    Stage2Result,
)
from shortlist.models.rules import RunContext
from shortlist.utils.logger import get_logger


def aggregate_outcomes(
    ctx: RunContext,
    candidates: Sequence[Candidate],
    stage1: Mapping[str, Stage1Result],
    stage2: Mapping[str, Stage2Result],
    correlation_id: Optional[str] = None,
) -> list[FilterOutcome]:
    """
    Build the persisted outcome for every candidate.

    Stage-1 reasons come first, then stage-2 reasons. A candidate that failed
    stage 1 never has stage_2_passed set. A stage-1 survivor without a stage-2
    result (cancelled run) is recorded as not passing stage 2.

    Args:
        ctx: (user, job) scope of the run
        candidates: All candidates of the run, in input order
        stage1: Stage-1 result per candidate id
        stage2: Stage-2 result per candidate id (survivors only)
        correlation_id: Correlation ID for logging

    Returns:
        One FilterOutcome per candidate, in input order
    """
    logger = get_logger(
        correlation_id=correlation_id,
        phase="aggregation",
        component="result_aggregator",
        job_id=ctx.job_id,
    )

    outcomes: list[FilterOutcome] = []
    missing_stage2 = 0

    for candidate in candidates:
        s1 = stage1.get(candidate.id)
        if s1 is None:
            logger.warning("Candidate has no stage-1 result", candidate_id=candidate.id)
            s1 = Stage1Result(passed=False, filter_reasons=[])

        reasons = list(s1.filter_reasons)
        stage_2_passed = False

        if s1.passed:
            s2 = stage2.get(candidate.id)
            if s2 is None:
                missing_stage2 += 1
            else:
                stage_2_passed = s2.passed
                reasons.extend(s2.filter_reasons)

        outcomes.append(
            FilterOutcome(
                user_id=ctx.user_id,
                job_id=ctx.job_id,
                candidate_id=candidate.id,
                stage_1_passed=s1.passed,
                stage_2_passed=stage_2_passed,
                filter_reasons=reasons,
            )
        )

    logger.info(
        "Outcomes aggregated",
        total=len(outcomes),
        final_pass=sum(1 for o in outcomes if o.final_pass),
        missing_stage2=missing_stage2,
    )
    return outcomes


def categorize_reason(reason: str) -> Optional[str]:
    """Map a rejection reason to its category, matching on the reason prefix."""
    for category, prefixes in REJECTION_CATEGORIES.items():
        if any(reason.startswith(prefix) for prefix in prefixes):
            return category
    return None


def summarize(
    ctx: RunContext,
    outcomes: Sequence[FilterOutcome],
    stage2_results: Sequence[Stage2Result] = (),
    fallback_batches: int = 0,
    cancelled: bool = False,
) -> RunSummary:
    """Run counts plus rejections grouped by category (one count per reason)."""
    breakdown: dict[str, int] = {}
    for outcome in outcomes:
        for reason in outcome.filter_reasons:
            category = categorize_reason(reason) or "other"
            breakdown[category] = breakdown.get(category, 0) + 1

    return RunSummary(
        user_id=ctx.user_id,
        job_id=ctx.job_id,
        total_candidates=len(outcomes),
        stage_1_passed=sum(1 for o in outcomes if o.stage_1_passed),
        stage_2_passed=sum(1 for o in outcomes if o.stage_2_passed),
        final_results=sum(1 for o in outcomes if o.final_pass),
        fallback_batches=fallback_batches,
        overrides=sum(len(r.overrides) for r in stage2_results),
        cancelled=cancelled,
        rejection_breakdown=breakdown,
    )
