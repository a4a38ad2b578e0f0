"""AI batch classifier service.

Analyzes a batch of candidates against the filter rules with one LLM call
and returns per-candidate verdicts. The stage-2 orchestrator talks to it
through the BatchClassifier protocol, so tests and alternative backends can
substitute their own implementation.

Response contract:
    success: {"results": [verdict, ...], "tokens_used": int, "cost_usd": float}
    failure: {"error": "AI_ANALYSIS_FAILED", "fallback": True, "message": str}

Two checks are recomputed deterministically after the LLM answers:
location exclusion (only for terms that are known locations) and the
top-university requirement (against the top universities list).
"""

import json
from typing import Any, Optional, Protocol, Sequence

from shortlist.models.candidate import Candidate, aggregate_location_text
from shortlist.models.config import SystemParams
from shortlist.models.rules import FilterRules, RunContext, SynonymEntry
from shortlist.utils.cost_ledger import CostLedger
from shortlist.utils.llm_helpers import (
    ClassifierResponseError,
    call_llm_with_retry,
    extract_json_array,
)
from shortlist.utils.logger import get_logger
from shortlist.utils.logic_parser import expand_terms_with_logic, normalize_operators
from shortlist.utils.prompt_loader import render_prompt
from shortlist.utils.validator import ConfigValidator

AI_ANALYSIS_FAILED = "AI_ANALYSIS_FAILED"

KNOWN_LOCATIONS = (
    # Major cities (Hebrew)
    "תל אביב", "ירושלים", "חיפה", "באר שבע", "נתניה", "רחובות", "פתח תקווה",
    "אשדוד", "אשקלון", "רמת גן", "בני ברק", "רעננה", "הרצליה", "כפר סבא",
    "ראשון לציון", "הוד השרון", "גבעתיים",
    # Major cities (English)
    "tel aviv", "jerusalem", "haifa", "beer sheva", "netanya", "rehovot",
    "petah tikva", "ashdod", "ashkelon", "ramat gan", "bnei brak", "raanana",
    "herzliya", "kfar saba", "rishon lezion", "hod hasharon", "givatayim",
    # Regions (Hebrew)
    "צפון", "דרום", "מרכז", "שפלה", "גליל", "נגב", "שרון", "יהודה ושומרון",
    # Regions (English)
    "north", "south", "center", "galilee", "negev", "sharon",
)


class BatchClassifier(Protocol):
    """Anything that can analyze a batch of candidates."""

    async def analyze_batch(
        self,
        candidates: Sequence[Candidate],
        rules: FilterRules,
        synonyms: Sequence[SynonymEntry],
        ctx: RunContext,
    ) -> dict[str, Any]: ...


def is_known_location(term: str) -> bool:
    term = term.lower().strip()
    if not term:
        return False
    return any(location in term or term in location for location in KNOWN_LOCATIONS)


def should_exclude_location(candidate: Candidate, exclude_location_terms: Sequence[str]) -> bool:
    """True if an excluded location term that is a known location appears in the candidate's location text."""
    if not exclude_location_terms:
        return False

    location_text = aggregate_location_text(candidate)
    for raw_term in exclude_location_terms:
        term = raw_term.lower().strip()
        if term and is_known_location(term) and term in location_text:
            return True
    return False


def has_top_university(candidate: Candidate, top_universities: Sequence[str]) -> bool:
    """Full-name or significant-word (longer than 3 characters) match in education."""
    if not candidate.education:
        return False

    education = candidate.education.lower()
    for university in top_universities:
        name = university.lower().strip()
        if not name:
            continue
        if name in education:
            return True
        if any(len(word) > 3 and word in education for word in name.split()):
            return True
    return False


def format_logic_terms(expression: str, synonyms: Sequence[SynonymEntry]) -> str:
    """Render a rule expression for the prompt, with its synonym expansion."""
    if not expression or not expression.strip():
        return "None"

    _, expanded = expand_terms_with_logic(expression, synonyms)
    normalized = normalize_operators(expression)
    if " AND " in normalized or " OR " in normalized:
        return f'LOGIC:"{expression}" (expanded: {json.dumps(expanded, ensure_ascii=False)})'
    return json.dumps(expanded, ensure_ascii=False)


class ClaudeBatchClassifier:
    """BatchClassifier backed by the Claude Agent SDK."""

    def __init__(
        self,
        system_params: Optional[SystemParams] = None,
        top_universities: Sequence[str] = (),
        cost_ledger: Optional[CostLedger] = None,
        validator: Optional[ConfigValidator] = None,
        correlation_id: Optional[str] = None,
    ):
        self.system_params = system_params or SystemParams()
        self.top_universities = [u for u in top_universities if u and u.strip()]
        self.cost_ledger = cost_ledger or CostLedger(
            ledger_file=self.system_params.persistence.cost_ledger_file,
            cost_per_1k_tokens=self.system_params.classifier.cost_per_1k_tokens,
        )
        self.validator = validator or ConfigValidator()
        self.correlation_id = correlation_id

    def build_prompts(
        self,
        candidates: Sequence[Candidate],
        rules: FilterRules,
        synonyms: Sequence[SynonymEntry],
    ) -> tuple[str, str]:
        """Render (system_prompt, user_prompt) for a batch."""
        synonym_pairs = [
            f"{s.canonical_term} = {s.variant_term} ({s.category})" for s in synonyms
        ]
        system_prompt = render_prompt(
            "screening/system.j2",
            correlation_id=self.correlation_id,
            synonym_pairs=synonym_pairs,
        )
        user_prompt = render_prompt(
            "screening/batch_analysis.j2",
            correlation_id=self.correlation_id,
            candidates=list(candidates),
            summary_max_chars=self.system_params.classifier.summary_max_chars,
            min_months=rules.min_months_current_role,
            min_years=f"{rules.min_years_experience:g}",
            must_have=format_logic_terms(rules.must_have_terms, synonyms),
            exclude=format_logic_terms(rules.exclude_terms, synonyms),
            exclude_locations=(
                json.dumps(rules.exclude_location_terms, ensure_ascii=False)
                if rules.exclude_location_terms
                else "None"
            ),
            titles=format_logic_terms(rules.required_titles, synonyms),
            top_uni=rules.require_top_uni,
        )
        return system_prompt, user_prompt

    def parse_results(self, response_text: str) -> list[dict[str, Any]]:
        """Parse and schema-check the verdict array.

        Raises:
            ClassifierResponseError: If the payload is not a valid verdict array
        """
        rows = extract_json_array(response_text)
        errors = self.validator.collect_errors(rows, "batch_analysis_schema.json")
        if errors:
            raise ClassifierResponseError(
                "Invalid verdict payload:\n" + "\n".join(errors[:5])
            )
        return rows

    def apply_deterministic_checks(
        self,
        rows: list[dict[str, Any]],
        candidates: Sequence[Candidate],
        rules: FilterRules,
    ) -> None:
        """Recompute location exclusion and top-university verdicts in place."""
        by_id = {candidate.id: candidate for candidate in candidates}

        for index, row in enumerate(rows):
            candidate = by_id.get(str(row.get("candidateId")))
            if candidate is None and index < len(candidates):
                candidate = candidates[index]
            if candidate is None:
                continue

            if rules.exclude_location_terms:
                excluded = should_exclude_location(candidate, rules.exclude_location_terms)
                row["passes_location_exclusion_check"] = not excluded
                row["location_exclusion_score"] = 10 if excluded else 100
                if excluded:
                    row["overall_pass"] = False
                    row["reasoning"] = f"{row.get('reasoning', '')} Location excluded.".strip()
            else:
                row["passes_location_exclusion_check"] = True
                row["location_exclusion_score"] = 100

            if rules.require_top_uni and self.top_universities:
                top_uni = has_top_university(candidate, self.top_universities)
                row["passes_top_university_check"] = top_uni
                row["top_university_score"] = 100 if top_uni else 10
                row["overall_pass"] = bool(row.get("overall_pass")) and top_uni

    async def analyze_batch(
        self,
        candidates: Sequence[Candidate],
        rules: FilterRules,
        synonyms: Sequence[SynonymEntry],
        ctx: RunContext,
    ) -> dict[str, Any]:
        """Analyze one batch of candidates.

        Raises:
            ValueError: If the batch is empty
        """
        if not candidates:
            raise ValueError("Candidates array is required")

        logger = get_logger(
            correlation_id=self.correlation_id,
            phase="stage_2",
            component="batch_classifier",
            job_id=ctx.job_id,
        )

        system_prompt, user_prompt = self.build_prompts(candidates, rules, synonyms)
        logger.info("Sending batch analysis request", batch_size=len(candidates))

        try:
            response = await call_llm_with_retry(
                user_prompt,
                system_prompt=system_prompt,
                max_retries=self.system_params.classifier.max_retries,
                initial_delay=self.system_params.classifier.retry_initial_delay,
                request_timeout=self.system_params.timeouts.llm_request,
                correlation_id=self.correlation_id,
            )
            rows = self.parse_results(response.text)
        except (TimeoutError, ConnectionError, ClassifierResponseError) as e:
            logger.warning(
                "Batch analysis failed, requesting fallback",
                error=str(e),
                error_type=type(e).__name__,
            )
            return {
                "error": AI_ANALYSIS_FAILED,
                "fallback": True,
                "message": f"AI analysis failed, using fallback filtering ({type(e).__name__})",
            }

        self.apply_deterministic_checks(rows, candidates, rules)
        self.cost_ledger.record(ctx, "batch-analyze-candidates", response.tokens_used)

        logger.info(
            "Batch analysis completed",
            batch_size=len(candidates),
            verdicts=len(rows),
            tokens_used=response.tokens_used,
        )
        return {
            "results": rows,
            "tokens_used": response.tokens_used,
            "cost_usd": self.cost_ledger.cost_for(response.tokens_used),
        }
