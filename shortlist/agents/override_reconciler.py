"""Deterministic override of classifier term verdicts and the stage-2 decision.

The classifier judges must-have and exclude terms semantically and is
unreliable on literal keyword presence. Its verdicts are cross-checked with
the logic parser (terms expanded through the synonym table):

Must-have terms (one-directional):
    AI fail + terms found   -> pass (override)
    AI pass + nothing found -> pass (kept, logged)

Exclude terms (both directions):
    AI pass + term found    -> fail (override)
    AI fail + nothing found -> pass (override)

Both checks apply only when the rule expression is non-empty.
"""

from typing import Optional, Sequence

from pydantic import BaseModel, Field

from shortlist.models.candidate import Candidate
from shortlist.models.outcome import (
    REASON_EXCLUDED_LOCATION,
    REASON_EXCLUDED_TERMS,
    REASON_EXPERIENCE,
    REASON_MISSING_TERMS,
    REASON_NOT_TARGET_COMPANY,
    REASON_ROLE_DURATION,
    REASON_TOP_UNIVERSITY,
    AIVerdict,
    Stage2Result,
)
from shortlist.models.rules import FilterRules, JobLists, SynonymEntry
from shortlist.utils.logger import get_logger
from shortlist.utils.logic_parser import check_terms_with_logic


class Stage2Checks(BaseModel):
    """Individual stage-2 check outcomes before they are combined."""

    must_have: bool = True
    exclude: bool = True
    role_duration: bool = True
    experience: bool = True
    location: bool = True
    top_university: bool = True
    excluded_matches: list[str] = Field(default_factory=list)


def passes_target_company_check(
    candidate: Candidate, rules: FilterRules, lists: JobLists
) -> bool:
    """Stage-2 target company check (bidirectional substring, lower-cased).

    Passes when the target filter is off or the target list is empty.
    """
    if not rules.use_target_companies_filter or not lists.target_companies:
        return True

    targets = [target.lower().strip() for target in lists.target_companies]
    for company in (candidate.current_company, candidate.previous_company):
        if not company:
            continue
        company = company.lower().strip()
        if any(target in company or company in target for target in targets if target):
            return True
    return False


def build_stage2_result(
    candidate: Candidate,
    rules: FilterRules,
    lists: JobLists,
    checks: Stage2Checks,
    used_fallback: bool,
    overrides: Optional[list[str]] = None,
    scores: Optional[dict[str, int]] = None,
) -> Stage2Result:
    """Combine individual checks into the final stage-2 decision.

    Final pass = must-have AND exclude AND role duration AND experience AND
    location AND top university AND target company. Reasons are listed in
    that order.
    """
    reasons: list[str] = []

    if not checks.must_have:
        reasons.append(REASON_MISSING_TERMS)
    if not checks.exclude:
        if checks.excluded_matches:
            reasons.append(f"{REASON_EXCLUDED_TERMS}: {', '.join(checks.excluded_matches)}")
        else:
            reasons.append(REASON_EXCLUDED_TERMS)
    if not checks.role_duration:
        reasons.append(
            f"{REASON_ROLE_DURATION} (less than {rules.min_months_current_role} months)"
        )
    if not checks.experience:
        reasons.append(
            f"{REASON_EXPERIENCE} (less than {rules.min_years_experience:g} years)"
        )
    if not checks.location:
        reasons.append(REASON_EXCLUDED_LOCATION)
    if not checks.top_university:
        reasons.append(REASON_TOP_UNIVERSITY)

    target_ok = passes_target_company_check(candidate, rules, lists)
    if not target_ok:
        reasons.append(REASON_NOT_TARGET_COMPANY)

    return Stage2Result(
        candidate_id=candidate.id,
        passed=not reasons,
        filter_reasons=reasons,
        used_fallback=used_fallback,
        overrides=overrides or [],
        scores=scores or {},
    )


def reconcile_verdict(
    verdict: AIVerdict,
    candidate: Candidate,
    rules: FilterRules,
    lists: JobLists,
    synonyms: Sequence[SynonymEntry],
    correlation_id: Optional[str] = None,
) -> Stage2Result:
    """Correct a classifier verdict with deterministic term checks.

    Args:
        verdict: Classifier verdict for the candidate
        candidate: The candidate the verdict belongs to
        rules: Active filter rules
        lists: Job list sources (target companies)
        synonyms: Synonym table used for term expansion
        correlation_id: Correlation ID for logging

    Returns:
        Stage2Result with corrected checks, overrides and AI scores
    """
    logger = get_logger(
        correlation_id=correlation_id,
        phase="stage_2",
        component="override_reconciler",
        job_id=rules.job_id,
    )
    overrides: list[str] = []

    must_have_pass = True
    if rules.must_have_terms.strip():
        must_have_pass = verdict.passes_must_have_terms_check
        must_have = check_terms_with_logic(candidate, rules.must_have_terms, synonyms)
        if not must_have_pass and must_have.found:
            must_have_pass = True
            overrides.append(f"must_have: fail -> pass ({', '.join(must_have.matches)})")
            logger.info(
                "Must-have verdict overridden to pass",
                candidate_id=candidate.id,
                matches=must_have.matches,
            )
        elif must_have_pass and not must_have.found:
            logger.info(
                "Classifier passed must-have terms without a literal match",
                candidate_id=candidate.id,
                expression=rules.must_have_terms,
            )

    exclude_pass = True
    excluded_matches: list[str] = []
    if rules.exclude_terms.strip():
        exclude_pass = verdict.passes_exclude_terms_check
        excluded = check_terms_with_logic(candidate, rules.exclude_terms, synonyms)
        if exclude_pass and excluded.found:
            exclude_pass = False
            excluded_matches = excluded.matches
            overrides.append(f"exclude: pass -> fail ({', '.join(excluded.matches)})")
            logger.info(
                "Exclude verdict overridden to fail",
                candidate_id=candidate.id,
                matches=excluded.matches,
            )
        elif not exclude_pass and not excluded.found:
            exclude_pass = True
            overrides.append("exclude: fail -> pass (no excluded term found)")
            logger.info(
                "Exclude verdict overridden to pass",
                candidate_id=candidate.id,
            )
        elif not exclude_pass:
            excluded_matches = excluded.matches

    checks = Stage2Checks(
        must_have=must_have_pass,
        exclude=exclude_pass,
        role_duration=(
            verdict.passes_role_duration_check
            if rules.min_months_current_role > 0
            else True
        ),
        experience=(
            verdict.passes_experience_check if rules.min_years_experience > 0 else True
        ),
        location=(
            verdict.passes_location_exclusion_check
            if rules.exclude_location_terms
            else True
        ),
        top_university=(
            verdict.passes_top_university_check is not False
            if rules.require_top_uni
            else True
        ),
        excluded_matches=excluded_matches,
    )

    return build_stage2_result(
        candidate,
        rules,
        lists,
        checks,
        used_fallback=False,
        overrides=overrides,
        scores=verdict.scores(),
    )
