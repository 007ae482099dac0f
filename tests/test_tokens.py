"""
Tests for per-run token accounting.
"""

from webaudit.services.tokens import TokenTracker


class TestTokenTracker:
    def test_empty(self):
        usage = TokenTracker().get_usage()
        assert usage.total_tokens == 0
        assert usage.estimated_cost == 0.0

    def test_accumulates(self):
        tracker = TokenTracker()
        for _ in range(7):
            tracker.add(100, 50)
        usage = tracker.get_usage()
        assert usage.input_tokens == 700
        assert usage.output_tokens == 350
        assert usage.total_tokens == 150 * 7
        # (700 * 3 + 350 * 15) / 1M
        assert usage.estimated_cost == round((700 * 3 + 350 * 15) / 1_000_000, 4)

    def test_cost_rounded_to_four_places(self):
        tracker = TokenTracker()
        tracker.add(12_345, 6_789)
        assert tracker.get_usage().estimated_cost == 0.1389

    def test_custom_pricing(self):
        tracker = TokenTracker(input_price=1.0, output_price=2.0)
        tracker.add(1_000_000, 1_000_000)
        assert tracker.get_usage().estimated_cost == 3.0

    def test_snapshot_is_detached(self):
        tracker = TokenTracker()
        tracker.add(10, 10)
        first = tracker.get_usage()
        tracker.add(10, 10)
        assert first.total_tokens == 20
        assert tracker.get_usage().total_tokens == 40
