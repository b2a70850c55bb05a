from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Tuple

from constants import TIMER_TICK_SECONDS
from exceptions import SessionStateError
from models import Exercise, SplitTime, Workout
from time_formatter import format_elapsed


logger = logging.getLogger(__name__)


class RecorderState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SessionFacts:
    """Frozen snapshot of a finished session, consumed by the orchestrator."""
    session_id: str
    workout_title: str
    started_at: datetime
    duration_seconds: float
    exercises_completed: Tuple[Exercise, ...] = ()
    split_times: Tuple[SplitTime, ...] = ()

    @property
    def duration_minutes(self) -> float:
        return self.duration_seconds / 60.0

    @property
    def ended_at(self) -> datetime:
        return self.started_at + timedelta(seconds=self.duration_seconds)


class SessionRecorder:
    """
    Live stopwatch for one workout session.

    ``tick()`` is the only writer of ``elapsed_seconds``; it runs periodically
    and once more at every user action. Completing the session cancels the
    periodic task synchronously, so the returned facts carry the frozen
    duration.
    """

    def __init__(
        self,
        workout: Workout,
        tick_seconds: float = TIMER_TICK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.workout = workout
        self.tick_seconds = max(0.001, float(tick_seconds))
        self._clock = clock
        self._now = now
        self._timer_task: Optional[asyncio.Task] = None
        self._started_mono = 0.0
        self.state = RecorderState.IDLE
        self.session_id = ""
        self.started_at: Optional[datetime] = None
        self.elapsed_seconds = 0.0
        self.current_exercise_index = 0
        self.split_times: List[SplitTime] = []
        self.exercises_completed: List[Exercise] = []
        self._exercises: List[Exercise] = []
        self.facts: Optional[SessionFacts] = None

    # --- timer ---

    @property
    def timer_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """Reset and begin timing. Must be called from a running event loop."""
        self._stop_timer()
        self._exercises = self.workout.sorted_exercises
        self.session_id = str(uuid.uuid4())
        self.started_at = self._now()
        self._started_mono = self._clock()
        self.elapsed_seconds = 0.0
        self.current_exercise_index = 0
        self.split_times = []
        self.exercises_completed = []
        self.facts = None
        self.state = RecorderState.RUNNING
        self._timer_task = asyncio.get_running_loop().create_task(self._tick_loop())
        if self._exercises:
            logger.debug("Session started; exercises: %s", [e.name for e in self._exercises])
        else:
            logger.debug("Session started with no exercises; timing general activity.")

    def tick(self) -> None:
        if self.state is not RecorderState.RUNNING:
            return
        self.elapsed_seconds = max(self.elapsed_seconds, self._clock() - self._started_mono)

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            self.tick()

    def _stop_timer(self) -> bool:
        task, self._timer_task = self._timer_task, None
        if task is None:
            return False
        task.cancel()
        return True

    def disappear(self) -> None:
        """Host view went away: stop timing, never complete."""
        if self._stop_timer():
            logger.debug("Recorder disappeared; timer cancelled at %.2fs.", self.elapsed_seconds)
        if self.state is RecorderState.RUNNING:
            self.state = RecorderState.CANCELLED

    # --- presentation helpers ---

    @property
    def current_exercise(self) -> Optional[Exercise]:
        if 0 <= self.current_exercise_index < len(self._exercises):
            return self._exercises[self.current_exercise_index]
        return None

    @property
    def is_on_last_exercise(self) -> bool:
        return self.current_exercise_index >= len(self._exercises) - 1

    @property
    def primary_button_text(self) -> str:
        if not self._exercises:
            return "Finish Workout"
        if self.is_on_last_exercise:
            return "Complete Workout"
        return "Next Exercise"

    @property
    def show_secondary_end_button(self) -> bool:
        return bool(self._exercises) and not self.is_on_last_exercise

    @property
    def display_time(self) -> str:
        return format_elapsed(self.elapsed_seconds)

    # --- user actions ---

    def _require_running(self) -> None:
        if self.state is not RecorderState.RUNNING:
            raise SessionStateError("Session is {0}, not running.".format(self.state.value))

    def _record_split(self) -> None:
        exercise = self.current_exercise
        if exercise is None:
            return
        self.split_times.append(SplitTime(duration_in_seconds=self.elapsed_seconds, exercise=exercise))
        logger.debug("Split for %s at %.2fs", exercise.name, self.elapsed_seconds)

    def _mark_current_completed(self) -> None:
        exercise = self.current_exercise
        if exercise is not None and all(e.id != exercise.id for e in self.exercises_completed):
            self.exercises_completed.append(exercise)

    def primary_action(self) -> Optional[SessionFacts]:
        """Next exercise, or complete the session. Returns facts on completion."""
        self._require_running()
        # Read the clock now so splits and the frozen duration include time since the last tick.
        self.tick()
        if not self._exercises:
            return self._complete()
        if self.is_on_last_exercise:
            self._record_split()
            self._mark_current_completed()
            return self._complete()

        self._record_split()
        self._mark_current_completed()
        self.current_exercise_index += 1
        logger.debug("Advanced to exercise: %s", self.current_exercise.name)
        return None

    def end_now(self) -> SessionFacts:
        """End the workout early, keeping a split for the current exercise."""
        self._require_running()
        # Read the clock now so splits and the frozen duration include time since the last tick.
        self.tick()
        self._record_split()
        return self._complete()

    def _complete(self) -> SessionFacts:
        self._stop_timer()
        self._mark_current_completed()
        self.state = RecorderState.COMPLETED
        self.facts = SessionFacts(
            session_id=self.session_id,
            workout_title=self.workout.title,
            started_at=self.started_at,
            duration_seconds=self.elapsed_seconds,
            exercises_completed=tuple(self.exercises_completed),
            split_times=tuple(self.split_times),
        )
        logger.info(
            "Session %s complete: %.2fs, exercises %s",
            self.session_id, self.elapsed_seconds, [e.name for e in self.exercises_completed],
        )
        return self.facts
