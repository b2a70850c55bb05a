"""Domain entities: categories, workouts, history records, biometric samples."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from time_formatter import format_duration


logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class CategoryColor(str, Enum):
    CARDIO = "CARDIO"
    CROSSTRAIN = "CROSSTRAIN"
    CYCLING = "CYCLING"
    GRAPPLING = "GRAPPLING"
    HIIT = "HIIT"
    PILATES = "PILATES"
    POWER = "POWER"
    RECOVERY = "RECOVERY"
    SWIMMING = "SWIMMING"
    STRENGTH = "STRENGTH"
    RUN = "RUN"
    YOGA = "YOGA"
    WALK = "WALK"
    STRETCH = "STRETCH"
    TEST = "TEST"

    @property
    def met_value(self) -> float:
        return _MET_VALUES[self]

    @property
    def activity_type(self) -> str:
        return _ACTIVITY_TYPES[self]


_MET_VALUES = {
    CategoryColor.CARDIO: 7.5,
    CategoryColor.CROSSTRAIN: 8.0,
    CategoryColor.CYCLING: 7.5,
    CategoryColor.GRAPPLING: 10.0,
    CategoryColor.HIIT: 8.0,
    CategoryColor.PILATES: 3.0,
    CategoryColor.POWER: 6.0,
    CategoryColor.RECOVERY: 2.0,
    CategoryColor.SWIMMING: 7.0,
    CategoryColor.STRENGTH: 5.0,
    CategoryColor.RUN: 9.8,
    CategoryColor.YOGA: 2.5,
    CategoryColor.WALK: 3.5,
    CategoryColor.STRETCH: 2.0,
    CategoryColor.TEST: 5.0,
}

_ACTIVITY_TYPES = {
    CategoryColor.CARDIO: "mixed_cardio",
    CategoryColor.CROSSTRAIN: "cross_training",
    CategoryColor.CYCLING: "cycling",
    CategoryColor.GRAPPLING: "martial_arts",
    CategoryColor.HIIT: "high_intensity_interval_training",
    CategoryColor.PILATES: "pilates",
    CategoryColor.POWER: "traditional_strength_training",
    CategoryColor.RECOVERY: "flexibility",
    CategoryColor.SWIMMING: "swimming",
    CategoryColor.STRENGTH: "traditional_strength_training",
    CategoryColor.RUN: "running",
    CategoryColor.YOGA: "yoga",
    CategoryColor.WALK: "walking",
    CategoryColor.STRETCH: "flexibility",
    CategoryColor.TEST: "other",
}


class RepeatOption(str, Enum):
    NONE = "None"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


@dataclass
class Category:
    name: str
    symbol: str = "figure.run"
    color: CategoryColor = CategoryColor.STRENGTH


@dataclass
class Exercise:
    name: str
    order: int = 0
    id: str = field(default_factory=_new_id)


@dataclass
class SplitTime:
    """Elapsed session seconds at the moment ``exercise`` was completed."""
    duration_in_seconds: float
    exercise: Optional[Exercise] = None


# --- Biometric samples (closed tagged variant) ---

class SampleType(str, Enum):
    HEART_RATE = "heart_rate"
    ACTIVE_ENERGY = "active_energy"
    RESTING_HEART_RATE = "resting_heart_rate"
    BODY_MASS = "body_mass"
    HEIGHT = "height"


@dataclass(frozen=True)
class HeartRateSample:
    value: float  # bpm
    start: datetime
    end: datetime
    sample_type: SampleType = field(default=SampleType.HEART_RATE, init=False)


@dataclass(frozen=True)
class ActiveEnergySample:
    value: float  # kcal
    start: datetime
    end: datetime
    sample_type: SampleType = field(default=SampleType.ACTIVE_ENERGY, init=False)


@dataclass(frozen=True)
class QuantitySample:
    """Latest-value readings: resting HR, body mass, height."""
    sample_type: SampleType
    value: float
    start: datetime
    end: datetime


BiometricSample = Union[HeartRateSample, ActiveEnergySample]


def describe_sample(sample: BiometricSample) -> str:
    if isinstance(sample, HeartRateSample):
        return "heart rate {0:.0f} bpm @ {1}".format(sample.value, sample.start.isoformat())
    if isinstance(sample, ActiveEnergySample):
        return "active energy {0:.1f} kcal {1} -> {2}".format(
            sample.value, sample.start.isoformat(), sample.end.isoformat()
        )
    raise TypeError("Unsupported biometric sample: {0!r}".format(sample))


# --- Persistent entities ---

@dataclass
class HistoryRecord:
    date: datetime
    last_session_duration: float = 0.0  # minutes
    notes: Optional[str] = None
    exercises_completed: List[Exercise] = field(default_factory=list)
    split_times: List[SplitTime] = field(default_factory=list)
    intensity_score: Optional[float] = None
    progress_pulse_score: Optional[float] = None
    dominant_zone: Optional[int] = None
    id: str = field(default_factory=_new_id)

    @property
    def has_metrics(self) -> bool:
        return (
            self.intensity_score is not None
            or self.progress_pulse_score is not None
            or self.dominant_zone is not None
        )


@dataclass
class Workout:
    title: str
    exercises: List[Exercise] = field(default_factory=list)
    last_session_duration: float = 0.0
    date_created: datetime = field(default_factory=datetime.now)
    date_completed: Optional[datetime] = None
    category: Optional[Category] = None
    history: List[HistoryRecord] = field(default_factory=list)
    personal_best: Optional[float] = None
    summary: Optional[str] = None
    schedule_date: Optional[datetime] = None
    notification_time: Optional[datetime] = None
    repeat_option: Optional[RepeatOption] = None

    @property
    def sorted_exercises(self) -> List[Exercise]:
        return sorted(self.exercises, key=lambda e: e.order)

    @property
    def fastest_duration(self) -> float:
        durations = [h.last_session_duration for h in self.history]
        return min(durations) if durations else 0.0

    def default_duration(self) -> float:
        return self.personal_best if self.personal_best is not None else self.fastest_duration

    def update_personal_best(self) -> Optional[float]:
        """Personal best is the shortest positive duration in history."""
        valid = [h.last_session_duration for h in self.history if h.last_session_duration > 0]
        previous = self.personal_best
        self.personal_best = min(valid) if valid else None
        logger.debug(
            "Personal best for %r: %s -> %s (from %d history entries)",
            self.title, previous, self.personal_best, len(self.history),
        )
        return self.personal_best

    def update_summary(self) -> Optional[str]:
        if not self.history:
            self.summary = None
            return None
        average_minutes = sum(h.last_session_duration for h in self.history) / len(self.history)
        names = ", ".join(e.name for e in self.sorted_exercises)
        self.summary = (
            f"Completed {len(self.history)} session(s) with an average duration of "
            f"{format_duration(average_minutes * 60)}. Exercises: {names}."
        )
        return self.summary


@dataclass
class UserBiometricProfile:
    apple_user_id: Optional[str] = None
    name: Optional[str] = None
    fitness_goal: Optional[str] = "General Fitness"
    biological_sex: Optional[str] = None
    weight: Optional[float] = None  # kg
    height: Optional[float] = None  # m
    age: Optional[int] = None
    resting_heart_rate: Optional[float] = None  # bpm
    max_heart_rate: Optional[float] = None  # bpm, user-entered
    is_onboarding_complete: bool = False
