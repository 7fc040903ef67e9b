"""Cost and time forecasts for a description, mirroring actual dispatch granularity."""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ..tokenizer import count_tokens_many
from .pricing import PriceTier, resolve_tier
from .splitter import TaskSplitter

DEFAULT_MODEL = "economy"
DEFAULT_AVERAGE_OUTPUT_TOKENS = 1000


@dataclass(frozen=True)
class CostEstimate:
    model: str
    total_input_tokens: int
    total_output_tokens: int
    input_cost: float
    output_cost: float
    total_cost: float
    sub_task_count: int
    estimated_time: str
    average_output_tokens: int
    currency: str = "JPY"

    def format_details(self) -> str:
        """Markdown breakdown for display."""
        return (
            f"## Cost estimate ({self.model})\n\n"
            f"- **Sub-tasks**: {self.sub_task_count}\n"
            f"- **Input tokens**: {self.total_input_tokens:,}\n"
            f"- **Output tokens (forecast)**: {self.total_output_tokens:,}\n"
            f"  - ({self.average_output_tokens:,} tokens per task)\n\n"
            "---\n"
            f"- **Input cost**: {self.input_cost:.3f} {self.currency}\n"
            f"- **Output cost**: {self.output_cost:.3f} {self.currency}\n"
            f"- **Total forecast**: **{self.total_cost:.3f} {self.currency}**\n"
            "---\n"
            f"- **Estimated time**: {self.estimated_time}\n"
        )


def estimate_cost(
    description: str,
    target_files: Optional[Sequence[str]] = None,
    model: str = DEFAULT_MODEL,
    average_output_tokens: int = DEFAULT_AVERAGE_OUTPUT_TOKENS,
    price_table: Optional[Mapping[str, PriceTier]] = None,
) -> CostEstimate:
    """Forecast token usage and cost for dispatching ``description``.

    Pure: the split is never registered in a task board, and nothing is cached.
    Raises UnknownModelError for an unknown price tier.
    """
    tier = resolve_tier(model, price_table)
    if average_output_tokens < 0:
        raise ValueError("average_output_tokens must be >= 0")

    result = TaskSplitter().split(description, target_files)
    sub_task_count = len(result.tasks)

    total_input_tokens = count_tokens_many(t.instructions for t in result.tasks)
    total_output_tokens = sub_task_count * average_output_tokens
    input_cost = total_input_tokens * tier.input
    output_cost = total_output_tokens * tier.output

    return CostEstimate(
        model=tier.name,
        total_input_tokens=total_input_tokens,
        total_output_tokens=total_output_tokens,
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
        sub_task_count=sub_task_count,
        estimated_time=result.estimated_time,
        average_output_tokens=average_output_tokens,
        currency=tier.currency,
    )
