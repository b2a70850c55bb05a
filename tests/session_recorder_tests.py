import asyncio
import unittest
from datetime import datetime

from exceptions import SessionStateError
from models import Exercise, Workout
from session_recorder import RecorderState, SessionRecorder


START = datetime(2026, 10, 14, 9, 0, 0)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, value=1000.0):
        self.value = value

    def __call__(self):
        return self.value

    def advance(self, seconds):
        self.value += seconds


def _workout(*names):
    return Workout(
        title="Circuit",
        exercises=[Exercise(name=name, order=index) for index, name in enumerate(names)],
    )


class SessionRecorderTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()

    def _recorder(self, workout):
        # A long tick keeps the background loop idle; tests drive tick() directly.
        return SessionRecorder(workout, tick_seconds=3600, clock=self.clock, now=lambda: START)

    async def test_structured_session_records_splits(self):
        workout = _workout("Squat", "Row")
        recorder = self._recorder(workout)
        recorder.start()

        self.assertTrue(recorder.timer_running)
        self.assertEqual(recorder.primary_button_text, "Next Exercise")
        self.assertTrue(recorder.show_secondary_end_button)
        self.assertEqual(recorder.current_exercise.name, "Squat")

        self.clock.advance(300)
        recorder.tick()
        self.assertIsNone(recorder.primary_action())
        self.assertEqual(recorder.current_exercise.name, "Row")
        self.assertEqual(recorder.primary_button_text, "Complete Workout")
        self.assertFalse(recorder.show_secondary_end_button)

        self.clock.advance(600)
        recorder.tick()
        facts = recorder.primary_action()

        self.assertIsNotNone(facts)
        self.assertEqual(facts.duration_seconds, 900)
        self.assertEqual(facts.duration_minutes, 15)
        self.assertEqual(facts.started_at, START)
        self.assertEqual([s.duration_in_seconds for s in facts.split_times], [300, 900])
        self.assertEqual([e.name for e in facts.exercises_completed], ["Squat", "Row"])
        self.assertFalse(recorder.timer_running)
        self.assertEqual(recorder.state, RecorderState.COMPLETED)

    async def test_elapsed_is_frozen_after_completion(self):
        recorder = self._recorder(_workout())
        recorder.start()
        self.clock.advance(60)
        recorder.tick()
        facts = recorder.primary_action()

        self.clock.advance(100)
        recorder.tick()
        self.assertEqual(recorder.elapsed_seconds, 60)
        self.assertEqual(facts.duration_seconds, 60)

    async def test_actions_read_the_clock_before_freezing(self):
        recorder = self._recorder(_workout("Squat", "Row"))
        recorder.start()

        self.clock.advance(45)
        recorder.primary_action()
        self.clock.advance(30)
        facts = recorder.primary_action()

        self.assertEqual([s.duration_in_seconds for s in facts.split_times], [45, 75])
        self.assertEqual(facts.duration_seconds, 75)

    async def test_end_now_reads_the_clock_before_freezing(self):
        recorder = self._recorder(_workout("Squat", "Row"))
        recorder.start()
        self.clock.advance(20)
        facts = recorder.end_now()
        self.assertEqual(facts.duration_seconds, 20)
        self.assertEqual([s.duration_in_seconds for s in facts.split_times], [20])

    async def test_elapsed_never_decreases(self):
        recorder = self._recorder(_workout())
        recorder.start()
        self.clock.advance(30)
        recorder.tick()
        self.clock.advance(-10)
        recorder.tick()
        self.assertEqual(recorder.elapsed_seconds, 30)
        recorder.disappear()

    async def test_empty_workout_times_general_activity(self):
        recorder = self._recorder(_workout())
        recorder.start()
        self.assertEqual(recorder.primary_button_text, "Finish Workout")
        self.assertFalse(recorder.show_secondary_end_button)
        self.assertIsNone(recorder.current_exercise)

        self.clock.advance(60)
        recorder.tick()
        facts = recorder.primary_action()

        self.assertEqual(facts.duration_seconds, 60)
        self.assertEqual(facts.split_times, ())
        self.assertEqual(facts.exercises_completed, ())

    async def test_end_now_keeps_current_split(self):
        recorder = self._recorder(_workout("Squat", "Row", "Plank"))
        recorder.start()
        self.clock.advance(120)
        recorder.tick()
        facts = recorder.end_now()

        self.assertEqual([s.duration_in_seconds for s in facts.split_times], [120])
        self.assertEqual([e.name for e in facts.exercises_completed], ["Squat"])
        self.assertEqual(recorder.state, RecorderState.COMPLETED)

    async def test_disappear_cancels_without_completing(self):
        recorder = self._recorder(_workout("Squat"))
        recorder.start()
        recorder.disappear()

        self.assertFalse(recorder.timer_running)
        self.assertEqual(recorder.state, RecorderState.CANCELLED)
        self.assertIsNone(recorder.facts)
        with self.assertRaises(SessionStateError):
            recorder.primary_action()

    async def test_display_time(self):
        recorder = self._recorder(_workout())
        recorder.start()
        self.clock.advance(61.5)
        recorder.tick()
        self.assertEqual(recorder.display_time, "00:01:01.50")
        recorder.disappear()

    async def test_background_tick_advances_elapsed(self):
        recorder = SessionRecorder(_workout(), tick_seconds=0.01)
        recorder.start()
        await asyncio.sleep(0.05)
        self.assertGreater(recorder.elapsed_seconds, 0)

        facts = recorder.primary_action()
        await asyncio.sleep(0.03)
        self.assertEqual(recorder.elapsed_seconds, facts.duration_seconds)


if __name__ == "__main__":
    unittest.main()
