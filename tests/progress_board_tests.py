import tempfile
import unittest
from datetime import date, datetime, timedelta
from pathlib import Path

from core.progress_board import ProgressBoard, format_total_duration
from db import WorkoutStore
from models import Category, CategoryColor, HistoryRecord, Workout


NOW = datetime(2026, 10, 14, 12, 0)


def _days_ago(days, hour=8):
    return (NOW - timedelta(days=days)).replace(hour=hour, minute=0)


class ProgressBoardTests(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.store = WorkoutStore(str(Path(self.temp_dir.name) / "test.db"))

        run = Workout(title="Morning Run", category=Category(name="Running", color=CategoryColor.RUN))
        run.history = [
            HistoryRecord(date=_days_ago(100), last_session_duration=50),
            HistoryRecord(date=_days_ago(3), last_session_duration=20, progress_pulse_score=60.0),
            HistoryRecord(
                date=_days_ago(0), last_session_duration=30,
                intensity_score=70.0, progress_pulse_score=80.0, dominant_zone=4,
            ),
        ]
        circuit = Workout(title="Test Circuit")
        circuit.history = [HistoryRecord(date=_days_ago(8), last_session_duration=10)]
        self.store.insert(run)
        self.store.insert(circuit)
        self.board = ProgressBoard(self.store, now=lambda: NOW)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_load_keeps_only_window(self):
        df = self.board.load()
        self.assertEqual(len(df), 3)
        self.assertEqual(list(df['duration_min']), [10, 20, 30])

    def test_summary(self):
        summary = self.board.summary()
        self.assertEqual(summary['total_workouts'], 3)
        self.assertEqual(summary['total_duration_min'], 60.0)
        self.assertEqual(summary['total_duration_formatted'], "1h 0m")
        self.assertEqual(summary['distinct_active_days'], 3)
        self.assertAlmostEqual(summary['avg_workouts_per_week'], 3 / (90 / 7.0))

    def test_weekly_buckets(self):
        weeks = self.board.weekly_buckets()
        self.assertEqual(len(weeks), 12)

        current = weeks.iloc[-1]
        self.assertEqual(current['workouts'], 2)
        self.assertEqual(current['duration_min'], 50.0)
        self.assertEqual(current['avg_pulse'], 70.0)

        previous = weeks.iloc[-2]
        self.assertEqual(previous['workouts'], 1)
        self.assertEqual(previous['duration_min'], 10.0)
        self.assertEqual(previous['avg_pulse'], 0.0)
        self.assertEqual(int(weeks['workouts'].sum()), 3)

    def test_heatmap(self):
        days = self.board.heatmap()
        self.assertEqual(len(days), 90)
        self.assertTrue(days[-1]['is_today'])
        self.assertTrue(days[-1]['did_workout'])
        self.assertEqual(days[-1]['date'], date(2026, 10, 14))

        by_date = {d['date']: d for d in days}
        self.assertTrue(by_date[date(2026, 10, 6)]['is_test_workout'])
        self.assertFalse(by_date[date(2026, 10, 11)]['is_test_workout'])
        self.assertFalse(by_date[date(2026, 10, 10)]['did_workout'])

    def test_latest_metrics_by_category(self):
        latest = self.board.latest_metrics_by_category()
        self.assertEqual(list(latest), ["Running"])
        self.assertEqual(latest["Running"]['progress_pulse_score'], 80.0)
        self.assertEqual(latest["Running"]['dominant_zone'], 4)

    def test_empty_store(self):
        board = ProgressBoard(WorkoutStore(str(Path(self.temp_dir.name) / "empty.db")), now=lambda: NOW)
        self.assertEqual(board.summary()['total_workouts'], 0)
        self.assertEqual(board.summary()['total_duration_formatted'], "0m")
        self.assertEqual(int(board.weekly_buckets()['workouts'].sum()), 0)
        self.assertFalse(any(d['did_workout'] for d in board.heatmap()))
        self.assertEqual(board.latest_metrics_by_category(), {})

    def test_format_total_duration(self):
        self.assertEqual(format_total_duration(45), "45m")
        self.assertEqual(format_total_duration(125), "2h 5m")


if __name__ == "__main__":
    unittest.main()
