import sqlite3
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from db import WorkoutStore
from exceptions import StoreError
from models import (
    Category,
    CategoryColor,
    Exercise,
    HistoryRecord,
    RepeatOption,
    SplitTime,
    UserBiometricProfile,
    Workout,
)


class WorkoutStoreTests(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = str(Path(self.temp_dir.name) / "test.db")
        self.store = WorkoutStore(self.db_path)

    def tearDown(self):
        self.temp_dir.cleanup()

    def _workout_with_history(self):
        squat = Exercise(name="Squat", order=0)
        row = Exercise(name="Row", order=1)
        workout = Workout(
            title="Leg Day",
            exercises=[squat, row],
            category=Category(name="Strength", symbol="dumbbell", color=CategoryColor.STRENGTH),
            repeat_option=RepeatOption.WEEKLY,
        )
        workout.history.append(
            HistoryRecord(
                date=datetime(2026, 10, 14, 9, 0),
                last_session_duration=12.5,
                exercises_completed=[squat, row],
                split_times=[SplitTime(300.0, squat), SplitTime(750.0, row)],
                intensity_score=62.5,
                progress_pulse_score=80.0,
                dominant_zone=3,
            )
        )
        workout.update_personal_best()
        return workout

    def test_history_round_trip(self):
        self.store.insert(self._workout_with_history())
        self.store.save()

        reloaded = WorkoutStore(self.db_path).fetch(Workout)
        self.assertEqual(len(reloaded), 1)
        workout = reloaded[0]
        self.assertEqual(workout.category.color, CategoryColor.STRENGTH)
        self.assertEqual(workout.repeat_option, RepeatOption.WEEKLY)
        self.assertEqual(workout.personal_best, 12.5)

        record = workout.history[0]
        self.assertEqual(record.intensity_score, 62.5)
        self.assertEqual(record.progress_pulse_score, 80.0)
        self.assertEqual(record.dominant_zone, 3)
        self.assertEqual([s.duration_in_seconds for s in record.split_times], [300.0, 750.0])
        self.assertIs(record.exercises_completed[0], workout.exercises[0])
        self.assertIs(record.split_times[1].exercise, workout.exercises[1])

    def test_missing_metrics_stay_none(self):
        workout = Workout(title="Walk")
        workout.history.append(HistoryRecord(date=datetime(2026, 10, 14), last_session_duration=30))
        self.store.insert(workout)
        self.store.save()

        record = WorkoutStore(self.db_path).fetch(HistoryRecord)[0]
        self.assertIsNone(record.intensity_score)
        self.assertIsNone(record.progress_pulse_score)
        self.assertIsNone(record.dominant_zone)
        self.assertFalse(record.has_metrics)

    def test_update_history_notes(self):
        workout = self._workout_with_history()
        self.store.insert(workout)
        self.store.save()
        history_id = workout.history[0].id

        self.assertTrue(self.store.update_history_notes(history_id, "felt strong"))
        self.assertFalse(self.store.update_history_notes("missing", "nope"))

        record = WorkoutStore(self.db_path).fetch(HistoryRecord, lambda h: h.id == history_id)[0]
        self.assertEqual(record.notes, "felt strong")
        self.assertEqual(record.intensity_score, 62.5)

    def test_fetch_with_predicate_and_workout_for(self):
        leg_day = self._workout_with_history()
        self.store.insert(leg_day)
        self.store.insert(Workout(title="Yoga"))

        self.assertEqual(len(self.store.fetch(Workout)), 2)
        self.assertEqual([w.title for w in self.store.fetch(Workout, lambda w: w.title == "Yoga")], ["Yoga"])
        self.assertIs(self.store.workout_for(leg_day.history[0]), leg_day)
        self.assertEqual([c.name for c in self.store.fetch(Category)], ["Strength"])

    def test_delete_removes_workout_and_history(self):
        workout = self._workout_with_history()
        self.store.insert(workout)
        self.store.save()

        self.store.delete(workout)
        self.store.save()

        reopened = WorkoutStore(self.db_path)
        self.assertEqual(reopened.fetch(Workout), [])
        self.assertEqual(reopened.fetch(HistoryRecord), [])

    def test_current_user_round_trip(self):
        self.store.insert(UserBiometricProfile(name="Sam", age=41, resting_heart_rate=55.0))
        self.store.save()

        profile = WorkoutStore(self.db_path).current_user()
        self.assertEqual(profile.name, "Sam")
        self.assertEqual(profile.age, 41)
        self.assertEqual(profile.resting_heart_rate, 55.0)

    def test_settings(self):
        self.assertIsNone(self.store.get_setting("target_workouts_per_week"))
        self.store.set_setting("target_workouts_per_week", 4)
        self.assertEqual(self.store.get_int_setting("target_workouts_per_week", 3), 4)
        self.store.set_setting("target_workouts_per_week", "lots")
        self.assertEqual(self.store.get_int_setting("target_workouts_per_week", 3), 3)

    def test_migrates_history_without_metric_columns(self):
        legacy_path = str(Path(self.temp_dir.name) / "legacy.db")
        conn = sqlite3.connect(legacy_path)
        conn.execute('''
            CREATE TABLE history (
                id TEXT PRIMARY KEY,
                workout_title TEXT NOT NULL,
                date TEXT NOT NULL,
                duration_min REAL,
                notes TEXT,
                json_data TEXT
            )
        ''')
        conn.commit()
        conn.close()

        WorkoutStore(legacy_path)

        conn = sqlite3.connect(legacy_path)
        columns = [info[1] for info in conn.execute("PRAGMA table_info(history)").fetchall()]
        conn.close()
        self.assertIn("intensity_score", columns)
        self.assertIn("progress_pulse_score", columns)
        self.assertIn("dominant_zone", columns)

    def test_unopenable_path_raises_store_error(self):
        with self.assertRaises(StoreError):
            WorkoutStore(self.temp_dir.name)

    def test_insert_rejects_unknown_entities(self):
        with self.assertRaises(TypeError):
            self.store.insert("not an entity")


if __name__ == "__main__":
    unittest.main()
