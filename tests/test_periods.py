import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from ticklog.tickdata.models import SearchStrategy, Series, Snapshot
from ticklog.tickdata.periods import (
    calculate_profits,
    calculate_profits_for_file,
    detailed_diagnostic,
    find_reference_equity,
    month_start,
    profit_percent,
    week_start,
)

# Wednesday
NOW = datetime(2025, 5, 28, 12, 0, 0)


def _series(*points):
    ticks = [Snapshot(timestamp=ts, equity=eq, floating_profit=0.0) for ts, eq in points]
    return Series(entity_id="123456", source_path=Path("123456.txt"), ticks=ticks)


class BoundaryTests(unittest.TestCase):
    def test_week_starts_on_preceding_sunday(self):
        self.assertEqual(week_start(NOW), datetime(2025, 5, 25))

    def test_sunday_is_its_own_week_start(self):
        self.assertEqual(week_start(datetime(2025, 6, 1, 23, 59, 59)), datetime(2025, 6, 1))

    def test_saturday(self):
        self.assertEqual(week_start(datetime(2025, 5, 31, 8, 0)), datetime(2025, 5, 25))

    def test_month_start(self):
        self.assertEqual(month_start(NOW), datetime(2025, 5, 1))
        self.assertEqual(month_start(datetime(2025, 1, 1, 0, 0, 1)), datetime(2025, 1, 1))


class ReferenceSearchTests(unittest.TestCase):
    def test_boundary_inside_span_uses_first_at_or_after(self):
        series = _series(
            (datetime(2025, 4, 28, 9), 1000.0),
            (datetime(2025, 5, 10, 9), 1100.0),
            (datetime(2025, 5, 25, 0), 1200.0),
            (datetime(2025, 5, 28, 9), 1320.0),
        )
        outcome = find_reference_equity(series.ticks, datetime(2025, 5, 25))
        self.assertEqual(outcome.strategy, SearchStrategy.AT_OR_AFTER)
        self.assertEqual(outcome.equity, 1200.0)
        self.assertIn("strategy 1", outcome.diagnostic)

        result = calculate_profits(series, NOW)
        self.assertTrue(result.has_weekly_data)
        self.assertTrue(result.has_monthly_data)
        self.assertAlmostEqual(result.weekly_percent, 10.0)
        self.assertAlmostEqual(result.monthly_percent, 20.0)
        self.assertEqual(result.formatted_weekly, "+10.00%")
        self.assertEqual(result.formatted_monthly, "+20.00%")

    def test_all_ticks_before_boundary_use_last_before(self):
        series = _series(
            (datetime(2025, 5, 20, 9), 1000.0),
            (datetime(2025, 5, 22, 9), 1100.0),
        )
        outcome = find_reference_equity(series.ticks, datetime(2025, 5, 25))
        self.assertEqual(outcome.strategy, SearchStrategy.LAST_BEFORE)
        self.assertEqual(outcome.equity, 1100.0)

        result = calculate_profits(series, NOW)
        self.assertAlmostEqual(result.weekly_percent, 0.0)
        self.assertEqual(result.formatted_weekly, "+0.00%")
        # month boundary precedes every tick
        self.assertAlmostEqual(result.monthly_percent, 10.0)

    def test_all_ticks_after_boundary_use_first_tick(self):
        series = _series(
            (datetime(2025, 5, 26, 9), 1000.0),
            (datetime(2025, 5, 27, 9), 950.0),
        )
        outcome = find_reference_equity(series.ticks, datetime(2025, 5, 1))
        self.assertEqual(outcome.strategy, SearchStrategy.FIRST_AVAILABLE)
        self.assertEqual(outcome.equity, 1000.0)

        result = calculate_profits(series, NOW)
        self.assertAlmostEqual(result.weekly_percent, -5.0)
        self.assertAlmostEqual(result.monthly_percent, -5.0)
        self.assertEqual(result.formatted_weekly, "-5.00%")

    def test_empty_tick_list(self):
        outcome = find_reference_equity([], datetime(2025, 5, 1))
        self.assertFalse(outcome.has_data)


class ProfitTests(unittest.TestCase):
    def test_single_tick_has_no_data(self):
        result = calculate_profits(_series((datetime(2025, 5, 27, 9), 1000.0)), NOW)
        self.assertFalse(result.has_weekly_data)
        self.assertFalse(result.has_monthly_data)
        self.assertEqual(result.formatted_weekly, "N/A")
        self.assertEqual(result.formatted_monthly, "N/A")
        self.assertIn("need at least 2", result.diagnostic)

    def test_missing_series(self):
        result = calculate_profits(None, NOW)
        self.assertFalse(result.has_weekly_data)
        self.assertEqual(result.diagnostic, "no tick data")

    def test_zero_reference_only_affects_its_period(self):
        series = _series(
            (datetime(2025, 5, 10, 9), 0.0),
            (datetime(2025, 5, 26, 9), 100.0),
            (datetime(2025, 5, 27, 9), 110.0),
        )
        result = calculate_profits(series, NOW)
        self.assertTrue(result.has_weekly_data)
        self.assertAlmostEqual(result.weekly_percent, 10.0)
        self.assertFalse(result.has_monthly_data)
        self.assertEqual(result.formatted_monthly, "N/A")
        self.assertIn("reference equity is zero", result.diagnostic)

    def test_profit_percent(self):
        self.assertAlmostEqual(profit_percent(1100.0, 1000.0), 10.0)
        self.assertIsNone(profit_percent(1100.0, 0.0))


class FileTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "123456.txt"

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file(self):
        result = calculate_profits_for_file(self.path, "123456", NOW)
        self.assertFalse(result.has_weekly_data)
        self.assertIn("no tick data", result.diagnostic)

    def test_file_and_diagnostic(self):
        self.path.write_text(
            "# Created: 2025-05-01 00:00:00\n"
            "20.05.2025,09:00:00,1000.00,0.00,0.00\n"
            "26.05.2025,09:00:00,1050.00,0.00,0.00\n",
            encoding="utf-8",
        )
        result = calculate_profits_for_file(self.path, "123456", NOW)
        self.assertAlmostEqual(result.weekly_percent, 0.0)
        self.assertAlmostEqual(result.monthly_percent, 5.0)

        text = detailed_diagnostic(self.path, "123456", NOW)
        self.assertIn("Week start: 2025-05-25 00:00:00", text)
        self.assertIn("Month start: 2025-05-01 00:00:00", text)
        self.assertIn("Tick count: 2", text)
        self.assertIn("Current equity: 1050.00", text)
        self.assertIn("weekly=+0.00%, monthly=+5.00%", text)

    def test_diagnostic_without_file(self):
        text = detailed_diagnostic(self.path, "123456", NOW)
        self.assertIn("No tick data available", text)
        self.assertIn("weekly=N/A, monthly=N/A", text)


if __name__ == "__main__":
    unittest.main()
