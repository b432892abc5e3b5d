import os
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from ticklog.tickdata.loader import iter_records, load_full, load_tail, load_window, read_last_record

HEADER = (
    "# Signal Tick Data - Format: Date,Time,Equity,FloatingProfit,Profit\n"
    "# Signal ID: 123456\n"
    "# Created: 2025-05-24 15:13:36\n"
)


class LoaderTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, text, name="123456.txt"):
        path = self.dir / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_missing_file_is_absent(self):
        self.assertIsNone(load_full(self.dir / "nope.txt", "nope"))

    def test_header_only_file_is_absent(self):
        path = self._write(HEADER)
        self.assertIsNone(load_full(path, "123456"))

    def test_unreadable_file_is_absent(self):
        path = self._write(HEADER + "24.05.2025,15:13:36,2000.00,-479.54,0.00\n")
        with patch.object(Path, "open", side_effect=PermissionError("denied")):
            self.assertIsNone(load_full(path, "123456"))

    def test_created_comment_after_data_is_ignored(self):
        path = self._write(
            HEADER
            + "24.05.2025,15:13:36,2000.00,-479.54,0.00\n"
            + "# Created: 2030-01-01 00:00:00\n"
            + "24.05.2025,15:20:00,2001.00,-479.54,0.00\n"
        )
        series = load_full(path, "123456")
        self.assertEqual(series.created_at, datetime(2025, 5, 24, 15, 13, 36))
        self.assertEqual(series.tick_count, 2)

    def test_created_header_and_mixed_formats(self):
        path = self._write(
            HEADER
            + "24.05.2025,15:13:36,2000.00,-479.54\n"
            + "\n"
            + "24.05.2025,15:22:13,53745,30,0,00\n"
            + "24.05.2025,15:30:00,2001.00,-470.00,10.00\n"
        )
        series = load_full(path, "123456")
        self.assertEqual(series.entity_id, "123456")
        self.assertEqual(series.source_path, path)
        self.assertEqual(series.created_at, datetime(2025, 5, 24, 15, 13, 36))
        self.assertEqual(series.tick_count, 3)
        self.assertAlmostEqual(series.ticks[1].equity, 53745.30)
        self.assertEqual(series.latest_tick.profit, 10.0)

    def test_unparseable_created_leaves_none(self):
        path = self._write("# Created: yesterday\n24.05.2025,15:13:36,2000.00,0.00,0.00\n")
        series = load_full(path, "123456")
        self.assertIsNone(series.created_at)
        self.assertEqual(series.tick_count, 1)

    def test_malformed_lines_are_skipped(self):
        path = self._write(
            HEADER
            + "garbage\n"
            + "24.05.2025,15:13:36,2000.00,0.00,0.00\n"
            + "24.05.2025,99:99:99,2000.00,0.00,0.00\n"
            + "25.05.2025,10:00:00,2100.00,0.00,0.00\n"
        )
        series = load_full(path, "123456")
        self.assertEqual([t.equity for t in series.ticks], [2000.0, 2100.0])

    def test_only_malformed_data_lines_give_empty_series(self):
        path = self._write(HEADER + "garbage\n")
        series = load_full(path, "123456")
        self.assertIsNotNone(series)
        self.assertEqual(series.tick_count, 0)
        self.assertIsNone(series.latest_tick)

    def test_order_is_not_resorted(self):
        path = self._write(
            "25.05.2025,10:00:00,3.00,0.00,0.00\n"
            "24.05.2025,10:00:00,1.00,0.00,0.00\n"
            "26.05.2025,10:00:00,2.00,0.00,0.00\n"
        )
        series = load_full(path, "123456")
        self.assertEqual([t.equity for t in series.ticks], [3.0, 1.0, 2.0])

    def test_tail(self):
        lines = "".join(f"24.05.2025,10:00:{i:02d},{i}.00,0.00,0.00\n" for i in range(10))
        path = self._write(HEADER + lines)
        tail = load_tail(path, "123456", 3)
        self.assertEqual([t.equity for t in tail.ticks], [7.0, 8.0, 9.0])
        self.assertEqual(tail.created_at, datetime(2025, 5, 24, 15, 13, 36))
        self.assertEqual(load_tail(path, "123456", 50).tick_count, 10)

    def test_window_is_inclusive(self):
        lines = "".join(f"{d:02d}.05.2025,12:00:00,{d}.00,0.00,0.00\n" for d in range(1, 8))
        path = self._write(lines)
        window = load_window(path, "123456", datetime(2025, 5, 2, 12), datetime(2025, 5, 4, 12))
        self.assertEqual([t.equity for t in window.ticks], [2.0, 3.0, 4.0])
        self.assertIsNone(load_window(self.dir / "x.txt", "x", datetime(2025, 1, 1), datetime(2025, 2, 1)))

    def test_read_last_record_skips_trailing_noise(self):
        path = self._write(
            HEADER
            + "24.05.2025,15:13:36,2000.00,0.00,0.00\n"
            + "25.05.2025,15:13:36,2100.00,1.00,2.00\n"
            + "broken,line\n"
            + "# trailing comment\n"
            + "\n"
        )
        last = read_last_record(path, "123456")
        self.assertEqual(last.equity, 2100.0)
        self.assertEqual(last.profit, 2.0)

    def test_read_last_record_across_block_boundary(self):
        filler = "".join(f"24.05.2025,10:{i // 60:02d}:{i % 60:02d},{i}.00,0.00,0.00\n" for i in range(2000))
        path = self._write(HEADER + filler + "25.05.2025,11:00:00,99999.99,0.00,0.00")
        self.assertGreater(os.path.getsize(path), 8192)
        self.assertEqual(read_last_record(path, "123456").equity, 99999.99)

    def test_read_last_record_absent(self):
        self.assertIsNone(read_last_record(self.dir / "none.txt", "none"))
        self.assertIsNone(read_last_record(self._write(HEADER), "123456"))

    def test_iter_records_line_numbers(self):
        path = self._write(HEADER + "24.05.2025,15:13:36,1.00,0.00,0.00\nbad\n24.05.2025,15:14:36,2.00,0.00,0.00\n")
        self.assertEqual([n for n, _ in iter_records(path)], [4, 6])


if __name__ == "__main__":
    unittest.main()
