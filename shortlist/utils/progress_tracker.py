"""
Progress Tracker Module

Wraps rich progress bars for the stage-2 screening run.

Example Usage:
    from shortlist.utils.progress_tracker import ProgressTracker

    tracker = ProgressTracker()
    tracker.start_phase("Stage 2: AI screening", total_items=120)

    # Pass as the orchestrator's progress callback
    await agent.run(survivors, on_progress=tracker.handle_event)

    tracker.complete_phase()
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from shortlist.models.outcome import ProgressEvent


class ProgressTracker:
    """Progress bar driven by stage-2 ProgressEvents."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self.progress: Optional[Progress] = None
        self.task_id: Optional[TaskID] = None
        self.phase_name: str = ""
        self.total_items: int = 0
        self.completed_items: int = 0

    def start_phase(self, phase_name: str, total_items: int) -> None:
        """
        Initialize progress bar for a phase.

        Args:
            phase_name: Name shown next to the bar
            total_items: Total number of candidates to process
        """
        self.phase_name = phase_name
        self.total_items = total_items
        self.completed_items = 0

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("({task.completed}/{task.total})"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self.progress.start()
        self.task_id = self.progress.add_task(description=phase_name, total=total_items)

    def update(self, completed: int) -> None:
        """Set progress to an absolute completed count."""
        if self.progress is None or self.task_id is None:
            return

        increment = completed - self.completed_items
        self.completed_items = completed
        self.progress.update(self.task_id, advance=increment)

    def handle_event(self, event: ProgressEvent) -> None:
        """Apply a wave-level ProgressEvent from the orchestrator."""
        if self.progress is None or self.task_id is None:
            return

        description = f"{self.phase_name} - Wave {event.wave_index}/{event.total_waves}"
        if event.fallback_batches:
            description += f" ({event.fallback_batches} fallback)"
        self.progress.update(self.task_id, description=description)
        self.update(event.processed)

    def complete_phase(self) -> None:
        """Stop the progress bar and print a completion line."""
        if self.progress is None or self.task_id is None:
            return

        self.progress.stop()
        self.console.print(
            f"[bold green]{self.phase_name} complete:[/bold green] "
            f"{self.completed_items}/{self.total_items} candidates processed"
        )

        self.progress = None
        self.task_id = None
        self.phase_name = ""
        self.total_items = 0
        self.completed_items = 0
