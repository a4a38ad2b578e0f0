"""
End-to-end tests of the two-stage filtering pipeline.

The LLM transport is replaced by deterministic doubles; everything else
(job loading, stage 1, batching, classifier post-processing, reconciliation,
aggregation and persistence) runs for real.
"""

import json
import re
from unittest.mock import AsyncMock

import pytest

from shortlist.coordinator import FilterCoordinator, main
from shortlist.models.config import SystemParams
from shortlist.models.rules import RunContext
from shortlist.utils.cost_ledger import CostLedger
from shortlist.utils.job_loader import load_job_data
from shortlist.utils.llm_helpers import LLMResponse
from shortlist.utils.outcome_store import OutcomeStore


class SemanticClassifier:
    """Deterministic classifier double that judges role duration honestly
    and passes every term check, the way a lenient semantic reader would."""

    async def analyze_batch(self, candidates, rules, synonyms, ctx):
        return {
            "results": [
                {
                    "candidateId": c.id,
                    "passes_role_duration_check": (c.months_in_current_role or 0)
                    >= rules.min_months_current_role,
                    "passes_must_have_terms_check": True,
                    "passes_exclude_terms_check": True,
                    "passes_location_exclusion_check": True,
                    "overall_pass": True,
                }
                for c in candidates
            ]
        }


async def fake_llm(prompt, system_prompt, **kwargs):
    """LLM double answering the batch prompt with one passing verdict per candidate."""
    ids = re.findall(r"ID:(\S+)", prompt)
    rows = [
        {
            "candidateId": candidate_id,
            "passes_experience_check": True,
            "passes_role_duration_check": True,
            "passes_must_have_terms_check": True,
            "passes_exclude_terms_check": True,
            "passes_location_exclusion_check": True,
            "must_have_terms_score": 75,
            "reasoning": "Looks relevant",
            "overall_pass": True,
        }
        for candidate_id in ids
    ]
    return LLMResponse(text=f"```json\n{json.dumps(rows)}\n```", tokens_used=1000)


def outcome_map(outcomes):
    return {o.candidate_id: o for o in outcomes}


@pytest.mark.integration
class TestFilterPipeline:
    """End-to-end pipeline runs."""

    def test_cli_run_with_unavailable_llm_uses_fallback(self, job_dir, tmp_path, monkeypatch, mocker):
        """Test that every survivor is evaluated deterministically when the LLM is down."""
        # Arrange
        monkeypatch.chdir(tmp_path)
        mocker.patch(
            "shortlist.agents.batch_classifier.call_llm_with_retry",
            AsyncMock(side_effect=ConnectionError("connection refused")),
        )

        # Act
        exit_code = main(
            [
                str(job_dir),
                "--user-id",
                "user-1",
                "--no-progress",
                "--config",
                str(tmp_path / "missing.json"),
                "--log-file",
                str(tmp_path / "logs" / "run.log"),
            ]
        )

        # Assert
        assert exit_code == 0
        store = OutcomeStore(outcomes_dir=str(tmp_path / "outcomes"))
        outcomes = outcome_map(store.load_outcomes(RunContext(user_id="user-1", job_id="job-1")))

        assert outcomes["c1"].final_pass is True
        assert outcomes["c2"].filter_reasons == ["Blacklisted company"]
        assert outcomes["c2"].stage_2_passed is False
        assert outcomes["c3"].filter_reasons == [
            "Missing required terms",
            "Contains excluded terms: php, wordpress",
        ]
        assert outcomes["c4"].filter_reasons == [
            "Insufficient role duration (less than 12 months)"
        ]
        assert outcomes["c5"].filter_reasons == ["Missing required terms"]
        assert outcomes["c6"].filter_reasons == ["NotRelevant company"]

    @pytest.mark.asyncio
    async def test_ai_verdicts_are_reconciled(self, job_dir, tmp_path, run_context):
        """Test the asymmetric overrides on AI verdicts."""
        # Arrange
        job = load_job_data(job_dir)
        coordinator = FilterCoordinator(
            system_params=SystemParams(),
            classifier=SemanticClassifier(),
            outcome_store=OutcomeStore(outcomes_dir=str(tmp_path / "out"), chunk_delay=0),
        )

        # Act
        summary = await coordinator.run(
            run_context, job.rules, job.candidates, job.lists, job.synonyms
        )

        # Assert
        outcomes = outcome_map(coordinator.outcome_store.load_outcomes(run_context))
        # semantic must-have pass is kept even without a literal match
        assert outcomes["c5"].final_pass is True
        # literal excluded terms override the AI pass
        assert outcomes["c3"].filter_reasons == ["Contains excluded terms: php, wordpress"]
        assert outcomes["c4"].final_pass is False
        assert summary.final_results == 2
        assert summary.overrides == 1
        assert summary.fallback_batches == 0

    @pytest.mark.asyncio
    async def test_repeated_runs_are_identical(self, job_dir, tmp_path, run_context):
        """Test that re-running a job with a deterministic classifier gives the same outcomes."""
        # Arrange
        job = load_job_data(job_dir)
        coordinator = FilterCoordinator(
            system_params=SystemParams(),
            classifier=SemanticClassifier(),
            outcome_store=OutcomeStore(outcomes_dir=str(tmp_path / "out"), chunk_delay=0),
        )

        # Act
        await coordinator.run(run_context, job.rules, job.candidates, job.lists, job.synonyms)
        first = [o.model_dump() for o in coordinator.outcome_store.load_outcomes(run_context)]
        await coordinator.run(run_context, job.rules, job.candidates, job.lists, job.synonyms)
        second = [o.model_dump() for o in coordinator.outcome_store.load_outcomes(run_context)]

        # Assert
        assert first == second
        assert len(second) == 6

    @pytest.mark.asyncio
    async def test_claude_classifier_path_records_costs(self, job_dir, tmp_path, run_context, mocker):
        """Test the Claude-backed classifier with a stubbed transport."""
        # Arrange
        mocker.patch("shortlist.agents.batch_classifier.call_llm_with_retry", side_effect=fake_llm)
        params = SystemParams.model_validate(
            {
                "persistence": {
                    "outcomes_dir": str(tmp_path / "out"),
                    "insert_chunk_delay": 0,
                    "cost_ledger_file": str(tmp_path / "out" / "api_costs.jsonl"),
                }
            }
        )
        job = load_job_data(job_dir)
        coordinator = FilterCoordinator(system_params=params)

        # Act
        summary = await coordinator.run(
            run_context, job.rules, job.candidates, job.lists, job.synonyms
        )

        # Assert
        # 4 survivors -> batch size 1 -> 4 classifier calls of 1000 tokens
        ledger = CostLedger(
            ledger_file=params.persistence.cost_ledger_file,
            cost_per_1k_tokens=params.classifier.cost_per_1k_tokens,
        )
        assert ledger.total_cost(run_context) == pytest.approx(4 * 0.00015)
        assert summary.fallback_batches == 0
        assert summary.stage_1_passed == 4
        outcomes = outcome_map(coordinator.outcome_store.load_outcomes(run_context))
        assert outcomes["c1"].final_pass is True
        assert outcomes["c3"].stage_2_passed is False
