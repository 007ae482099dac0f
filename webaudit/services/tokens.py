"""
WebAudit — Per-run token accounting.
"""

from webaudit.schemas.audit import TokenUsage


class TokenTracker:
    """Accumulates model usage for one audit run.

    ``add`` has no await inside, so concurrent analyzer tasks on one event loop
    can share an instance without losing updates.
    """

    def __init__(self, input_price: float = 3.0, output_price: float = 15.0):
        # USD per million tokens
        self.input_price = input_price
        self.output_price = output_price
        self.input_tokens = 0
        self.output_tokens = 0

    def add(self, input_tokens: int, output_tokens: int) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens

    def get_usage(self) -> TokenUsage:
        cost = (
            self.input_tokens * self.input_price + self.output_tokens * self.output_price
        ) / 1_000_000
        return TokenUsage(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            total_tokens=self.input_tokens + self.output_tokens,
            estimated_cost=round(cost, 4),
        )
