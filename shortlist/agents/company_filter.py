"""Stage 1: deterministic company, name and university list filtering.

Gates run in a fixed order and stop at the first failure:

1. Blacklisted company (current company only)
2. Past candidate (exact full-name match, case-insensitive)
3. Not-relevant company (current or previous company, if enabled)
4. Wanted / target companies (current or previous company, see
   resolve_accepted_companies)
5. Wanted universities (education, if the list is non-empty)

All functions here are pure; nothing is persisted and no services are called.
"""

from typing import Optional, Sequence

from shortlist.models.candidate import Candidate
from shortlist.models.outcome import (
    REASON_BLACKLISTED,
    REASON_NO_TARGET_MATCH,
    REASON_NOT_RELEVANT,
    REASON_NOT_WANTED_COMPANY,
    REASON_NOT_WANTED_UNIVERSITY,
    REASON_PAST_CANDIDATE,
    Stage1Result,
)
from shortlist.models.rules import FilterRules, JobLists
from shortlist.utils.entity_matcher import is_company_match, is_university_match
from shortlist.utils.logger import get_logger


def resolve_accepted_companies(
    rules: FilterRules, lists: JobLists
) -> Optional[tuple[list[str], str]]:
    """Work out which company list gate 4 accepts.

    - Wanted filter on and wanted list non-empty: the wanted list, extended
      with the target list when the target filter is also on.
    - Otherwise, target filter on and target list non-empty: the target list.
    - Otherwise the gate is disabled.

    Returns:
        (accepted_companies, rejection_reason), or None when the gate is off
    """
    if rules.use_wanted_companies_filter and lists.wanted_companies:
        accepted = list(lists.wanted_companies)
        if rules.use_target_companies_filter:
            accepted.extend(lists.target_companies)
        return accepted, REASON_NOT_WANTED_COMPANY

    if rules.use_target_companies_filter and lists.target_companies:
        return list(lists.target_companies), REASON_NO_TARGET_MATCH

    return None


def _matches_any_company(companies: Sequence[Optional[str]], entries: Sequence[str]) -> Optional[str]:
    """Return the first list entry matching any of the given companies."""
    for company in companies:
        if not company:
            continue
        for entry in entries:
            if is_company_match(company, entry):
                return entry
    return None


def evaluate_stage1(
    candidate: Candidate, rules: FilterRules, lists: JobLists
) -> Stage1Result:
    """Run the stage-1 gates for one candidate.

    Args:
        candidate: Candidate to check
        rules: Active filter rules of the job
        lists: List sources for the job

    Returns:
        Stage1Result; on failure ``filter_reasons`` holds the first failed gate
    """
    reasons: list[str] = []

    if _matches_any_company([candidate.current_company], lists.blacklist_companies):
        reasons.append(REASON_BLACKLISTED)
        return Stage1Result(passed=False, filter_reasons=reasons)

    full_name = (candidate.full_name or "").strip().lower()
    if full_name and any(
        full_name == name.strip().lower() for name in lists.past_candidates
    ):
        reasons.append(REASON_PAST_CANDIDATE)
        return Stage1Result(passed=False, filter_reasons=reasons)

    employers = [candidate.current_company, candidate.previous_company]

    if rules.use_not_relevant_filter and _matches_any_company(
        employers, lists.not_relevant_companies
    ):
        reasons.append(REASON_NOT_RELEVANT)
        return Stage1Result(passed=False, filter_reasons=reasons)

    accepted = resolve_accepted_companies(rules, lists)
    if accepted is not None:
        accepted_companies, reason = accepted
        if not _matches_any_company(employers, accepted_companies):
            reasons.append(reason)
            return Stage1Result(passed=False, filter_reasons=reasons)

    if lists.wanted_universities:
        education = candidate.education or ""
        if not any(
            is_university_match(education, university)
            for university in lists.wanted_universities
        ):
            reasons.append(REASON_NOT_WANTED_UNIVERSITY)
            return Stage1Result(passed=False, filter_reasons=reasons)

    return Stage1Result(passed=True)


def filter_stage1(
    candidates: Sequence[Candidate],
    rules: FilterRules,
    lists: JobLists,
    correlation_id: Optional[str] = None,
) -> dict[str, Stage1Result]:
    """Run stage 1 over all candidates of a job.

    Returns:
        Mapping of candidate id to Stage1Result, in input order
    """
    logger = get_logger(
        correlation_id=correlation_id,
        phase="stage_1",
        component="company_filter",
        job_id=rules.job_id,
    )

    results: dict[str, Stage1Result] = {}
    for candidate in candidates:
        result = evaluate_stage1(candidate, rules, lists)
        results[candidate.id] = result
        if not result.passed:
            logger.debug(
                "Candidate rejected in stage 1",
                candidate_id=candidate.id,
                reasons=result.filter_reasons,
            )

    passed = sum(1 for result in results.values() if result.passed)
    logger.info(
        "Stage 1 complete",
        total_candidates=len(candidates),
        passed=passed,
        rejected=len(candidates) - passed,
    )
    return results
