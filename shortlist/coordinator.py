"""
Filter Coordinator Module

Runs one filtering job end to end: stage 1 (list/company gates), stage 2
(batched AI screening with deterministic fallback), aggregation and
persistence of the per-candidate outcomes.

Example Usage:
    coordinator = FilterCoordinator(config_path="config/system_params.json")
    summary = await coordinator.run(ctx, rules, candidates, lists, synonyms)
"""

import argparse
import asyncio
import sys
import uuid
from pathlib import Path
from typing import Callable, Optional, Sequence

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from shortlist.agents.ai_screening import AIScreeningAgent
from shortlist.agents.batch_classifier import BatchClassifier, ClaudeBatchClassifier
from shortlist.agents.company_filter import filter_stage1
from shortlist.agents.result_aggregator import aggregate_outcomes, summarize
from shortlist.models.candidate import Candidate
from shortlist.models.config import SystemParams
from shortlist.models.outcome import ProgressEvent, RunSummary
from shortlist.models.rules import FilterRules, JobLists, RunContext, SynonymEntry
from shortlist.utils.cost_ledger import CostLedger
from shortlist.utils.job_loader import load_job_data
from shortlist.utils.logger import configure_logging, get_logger
from shortlist.utils.outcome_store import OutcomeStore, PersistenceError
from shortlist.utils.progress_tracker import ProgressTracker
from shortlist.utils.validator import ConfigurationError


class FilterCoordinator:
    """
    Coordinates a two-stage filtering run for one (user, job).

    The classifier and outcome store can be injected; by default the
    Claude-backed classifier and a JSONL outcome store are built from the
    system parameters.
    """

    def __init__(
        self,
        system_params: Optional[SystemParams] = None,
        config_path: Optional[str] = None,
        classifier: Optional[BatchClassifier] = None,
        outcome_store: Optional[OutcomeStore] = None,
        progress_tracker: Optional[ProgressTracker] = None,
        correlation_id: Optional[str] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            system_params: Configuration (loaded from config_path if omitted)
            config_path: Path to system_params.json, used when system_params is None
            classifier: Batch classifier (Claude-backed if omitted)
            outcome_store: Outcome store (JSONL under persistence.outcomes_dir if omitted)
            progress_tracker: Optional rich progress display for stage 2
            correlation_id: Correlation ID for logging (auto-generated if None)
        """
        if system_params is None:
            system_params = (
                SystemParams.load(config_path) if config_path else SystemParams()
            )
        self.system_params = system_params
        self.classifier = classifier
        self.outcome_store = outcome_store or OutcomeStore(
            outcomes_dir=system_params.persistence.outcomes_dir,
            chunk_size=system_params.persistence.insert_chunk_size,
            chunk_delay=system_params.persistence.insert_chunk_delay,
        )
        self.progress_tracker = progress_tracker
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.logger = get_logger(
            correlation_id=self.correlation_id,
            phase="coordinator",
            component="filter_coordinator",
        )

    @staticmethod
    def validate_run(ctx: Optional[RunContext], rules: Optional[FilterRules]) -> None:
        """
        Check that a run can start.

        Raises:
            ConfigurationError: If the run context or active rules are missing,
                or the rules belong to another job
        """
        if ctx is None:
            raise ConfigurationError("User ID and job ID are required")
        if rules is None:
            raise ConfigurationError(f"No active filter rules found for job {ctx.job_id}")
        if rules.job_id != ctx.job_id:
            raise ConfigurationError(
                f"Filter rules belong to job {rules.job_id}, not {ctx.job_id}"
            )

    @staticmethod
    def validate_candidates(candidates: Sequence[Candidate]) -> None:
        """
        Check that candidate ids are unique within the run.

        Stage results are keyed by candidate id, so a repeated id would let one
        row's verdict stand in for another's.

        Raises:
            ConfigurationError: If a candidate id repeats
        """
        seen: set[str] = set()
        for candidate in candidates:
            if candidate.id in seen:
                raise ConfigurationError(f"Duplicate candidate id: {candidate.id}")
            seen.add(candidate.id)

    def _build_classifier(self, lists: JobLists) -> BatchClassifier:
        if self.classifier is not None:
            return self.classifier
        return ClaudeBatchClassifier(
            system_params=self.system_params,
            top_universities=lists.top_universities,
            cost_ledger=CostLedger(
                ledger_file=self.system_params.persistence.cost_ledger_file,
                cost_per_1k_tokens=self.system_params.classifier.cost_per_1k_tokens,
            ),
            correlation_id=self.correlation_id,
        )

    async def run(
        self,
        ctx: Optional[RunContext],
        rules: Optional[FilterRules],
        candidates: Sequence[Candidate],
        lists: Optional[JobLists] = None,
        synonyms: Sequence[SynonymEntry] = (),
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> RunSummary:
        """
        Run the full filtering pipeline for a job.

        Outcomes are persisted even for a cancelled run: survivors of stage 1
        without a stage-2 result are stored as not passing stage 2, and the
        next run recomputes everything.

        Args:
            ctx: (user, job) scope of the run
            rules: Active filter rules of the job
            candidates: All candidates of the job
            lists: Job list sources
            synonyms: Synonym table
            cancel_event: Set to stop stage 2 at the next wave boundary
            on_progress: Extra subscriber for stage-2 progress events

        Returns:
            RunSummary with counts and rejection breakdown

        Raises:
            ConfigurationError: If the run cannot start or candidate ids repeat
            PersistenceError: If outcomes cannot be stored
        """
        self.validate_run(ctx, rules)
        self.validate_candidates(candidates)
        lists = lists or JobLists()
        log = self.logger.bind(job_id=ctx.job_id)

        log.info(
            "Filtering run started",
            total_candidates=len(candidates),
            rules_version=rules.version,
            synonyms=len(synonyms),
        )

        stage1 = filter_stage1(candidates, rules, lists, correlation_id=self.correlation_id)
        survivors = [c for c in candidates if stage1[c.id].passed]

        agent = AIScreeningAgent(
            classifier=self._build_classifier(lists),
            rules=rules,
            lists=lists,
            synonyms=synonyms,
            ctx=ctx,
            system_params=self.system_params,
            correlation_id=self.correlation_id,
        )

        def emit(event: ProgressEvent) -> None:
            if self.progress_tracker is not None:
                self.progress_tracker.handle_event(event)
            if on_progress is not None:
                on_progress(event)

        if self.progress_tracker is not None and survivors:
            self.progress_tracker.start_phase("Stage 2: AI screening", total_items=len(survivors))
        try:
            report = await agent.run(survivors, cancel_event=cancel_event, on_progress=emit)
        finally:
            if self.progress_tracker is not None:
                self.progress_tracker.complete_phase()

        stage2 = {result.candidate_id: result for result in report.results}
        outcomes = aggregate_outcomes(
            ctx, candidates, stage1, stage2, correlation_id=self.correlation_id
        )
        await self.outcome_store.replace_outcomes(ctx, outcomes)

        summary = summarize(
            ctx,
            outcomes,
            stage2_results=report.results,
            fallback_batches=report.fallback_batches,
            cancelled=report.cancelled,
        )
        log.info("Filtering run complete", **summary.model_dump(exclude={"user_id", "job_id"}))
        return summary


def print_summary(summary: RunSummary, console: Optional[Console] = None) -> None:
    """Render a run summary as a rich table."""
    console = console or Console()
    table = Table(title=f"Filtering results for job {summary.job_id}")
    table.add_column("Metric")
    table.add_column("Count", justify="right")

    table.add_row("Candidates", str(summary.total_candidates))
    table.add_row("Passed stage 1", str(summary.stage_1_passed))
    table.add_row("Passed stage 2", str(summary.stage_2_passed))
    table.add_row("Final results", str(summary.final_results))
    table.add_row("Fallback batches", str(summary.fallback_batches))
    table.add_row("Overrides", str(summary.overrides))
    for category, count in sorted(summary.rejection_breakdown.items()):
        table.add_row(f"Rejected: {category}", str(count))

    console.print(table)
    if summary.cancelled:
        console.print("[yellow]Run was cancelled before all waves completed[/yellow]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shortlist-filter",
        description="Run two-stage candidate filtering for a job directory.",
    )
    parser.add_argument("job_dir", help="Directory with filter_rules.json and candidates.jsonl")
    parser.add_argument("--user-id", required=True, help="User that owns the job")
    parser.add_argument(
        "--config",
        default="config/system_params.json",
        help="Path to system parameters (defaults are used if the file is missing)",
    )
    parser.add_argument("--log-file", default="logs/shortlist.log")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    return parser


async def run_job(args: argparse.Namespace) -> RunSummary:
    config_path = Path(args.config)
    system_params = SystemParams.load(config_path) if config_path.exists() else SystemParams()
    configure_logging(log_file=args.log_file, log_level=system_params.log_level)

    job = load_job_data(args.job_dir)
    ctx = RunContext(user_id=args.user_id, job_id=job.rules.job_id)

    coordinator = FilterCoordinator(
        system_params=system_params,
        progress_tracker=None if args.no_progress else ProgressTracker(),
    )
    return await coordinator.run(ctx, job.rules, job.candidates, job.lists, job.synonyms)


def main(argv: Optional[list[str]] = None) -> int:
    """Console entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        summary = asyncio.run(run_job(args))
    except (ConfigurationError, PersistenceError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1

    print_summary(summary, console)
    return 0


if __name__ == "__main__":
    sys.exit(main())
