"""API cost ledger.

Each classifier call appends one JSONL row with its token usage and cost.
Recording is best effort: a failed write is logged and never interrupts
filtering.
"""

from datetime import datetime, timezone
from pathlib import Path

import jsonlines
import structlog

from shortlist.models.rules import RunContext

logger = structlog.get_logger(__name__)


class CostLedger:
    """Append-only JSONL ledger of classifier token usage."""

    def __init__(
        self,
        ledger_file: str = "outcomes/api_costs.jsonl",
        cost_per_1k_tokens: float = 0.00015,
    ):
        self.ledger_file = Path(ledger_file)
        self.cost_per_1k_tokens = cost_per_1k_tokens

    def cost_for(self, tokens_used: int) -> float:
        return (tokens_used / 1000) * self.cost_per_1k_tokens

    def record(self, ctx: RunContext, function_name: str, tokens_used: int) -> None:
        """Append a usage row for (user, job)."""
        row = {
            "user_id": ctx.user_id,
            "job_id": ctx.job_id,
            "function_name": function_name,
            "tokens_used": tokens_used,
            "cost_usd": round(self.cost_for(tokens_used), 8),
            "recorded_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.ledger_file.parent.mkdir(parents=True, exist_ok=True)
            with jsonlines.open(self.ledger_file, mode="a") as writer:
                writer.write(row)
        except OSError as e:
            logger.warning(
                "Failed to record API cost",
                ledger_file=str(self.ledger_file),
                error=str(e),
            )
            return

        logger.debug("API cost recorded", **row)

    def total_cost(self, ctx: RunContext) -> float:
        """Sum of recorded costs for (user, job)."""
        if not self.ledger_file.exists():
            return 0.0
        total = 0.0
        with jsonlines.open(self.ledger_file) as reader:
            for row in reader:
                if row.get("user_id") == ctx.user_id and row.get("job_id") == ctx.job_id:
                    total += float(row.get("cost_usd", 0.0))
        return total
