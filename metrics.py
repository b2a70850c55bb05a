"""
Workout Metrics - pure scoring functions.

Intensity score, progress pulse score, active-energy estimate and the
personal-best / weekly-frequency helpers used by the session orchestrator.
None of these touch I/O.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from constants import (
    DEFAULT_TARGET_WORKOUTS_PER_WEEK,
    MET_KCAL_DIVISOR,
    MET_OXYGEN_FACTOR,
    PULSE_BASE_SCORE,
    PULSE_HIGH_INTENSITY_BONUS,
    PULSE_MODERATE_INTENSITY_BONUS,
    PULSE_PERSONAL_BEST_BONUS,
    PULSE_POINTS_PER_WORKOUT,
)
from hr_zones import normalize_max_hr
from models import ActiveEnergySample


logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def calculate_intensity_score(resting_hr, workout_hr, max_hr) -> Optional[float]:
    """
    Heart-rate-reserve intensity, 0-100.

    (workout - resting) / (max - resting) x 100, clamped. Without a resting
    baseline there is no score: returns None, never a placeholder number.
    """
    try:
        resting = float(resting_hr) if resting_hr is not None else 0.0
    except (TypeError, ValueError):
        resting = 0.0
    if resting <= 0:
        logger.info("Intensity score unavailable: no resting heart rate.")
        return None

    if workout_hr is None:
        logger.info("Intensity score unavailable: no workout heart rate.")
        return None

    max_value = normalize_max_hr(max_hr)
    reserve = max_value - resting
    if reserve <= 0:
        logger.warning(
            "Intensity score unavailable: max HR %.0f not above resting HR %.0f.",
            max_value, resting,
        )
        return None

    score = _clamp((float(workout_hr) - resting) / reserve * 100.0)
    logger.info("Intensity score: %.1f (avg %.0f, rest %.0f, max %.0f)", score, workout_hr, resting, max_value)
    return score


def calculate_progress_pulse_score(
    current_duration: float,
    personal_best: Optional[float] = None,
    workouts_this_week: int = 0,
    target_workouts_per_week: int = DEFAULT_TARGET_WORKOUTS_PER_WEEK,
    dominant_zone: Optional[int] = None,
) -> float:
    """
    Composite 0-100 score.

      base 50
      +15 if current_duration <= personal_best (shortest is best; a missing
          personal best counts as a tie)
      +5 per workout this week, up to the weekly target
      +10 for dominant zone >= 4, +5 for zone 3
    """
    best = current_duration if personal_best is None else personal_best
    score = PULSE_BASE_SCORE

    if current_duration <= best:
        score += PULSE_PERSONAL_BEST_BONUS
        logger.debug("[ProgressPulse] Beat or matched best: current %s, best %s", current_duration, best)

    frequency = max(0, min(int(workouts_this_week or 0), int(target_workouts_per_week or 0)))
    score += PULSE_POINTS_PER_WORKOUT * frequency

    if dominant_zone is not None and dominant_zone >= 4:
        score += PULSE_HIGH_INTENSITY_BONUS
    elif dominant_zone == 3:
        score += PULSE_MODERATE_INTENSITY_BONUS

    final = _clamp(score)
    logger.info("Progress pulse score: %.1f", final)
    return final


def estimate_active_energy_kcal(met_value, weight_kg, duration_seconds) -> Optional[float]:
    """MET x 3.5 x kg / 200 x minutes, or None when an input is missing."""
    if not met_value or not weight_kg or weight_kg <= 0:
        return None
    if duration_seconds is None or duration_seconds <= 0:
        return None
    kcal = (met_value * MET_OXYGEN_FACTOR * weight_kg) / MET_KCAL_DIVISOR * (duration_seconds / 60.0)
    return kcal if kcal > 0 else None


def build_active_energy_sample(
    category,
    weight_kg,
    duration_seconds: float,
    start: datetime,
    end: datetime,
) -> Optional[ActiveEnergySample]:
    """Synthesize an energy sample from the workout category's MET value."""
    if category is None:
        logger.debug("No workout category; skipping active energy sample.")
        return None
    if weight_kg is None or weight_kg <= 0:
        logger.debug("No body weight; skipping active energy sample.")
        return None

    kcal = estimate_active_energy_kcal(category.color.met_value, weight_kg, duration_seconds)
    if kcal is None:
        return None
    logger.info(
        "Active energy estimate: MET %.1f x %.1f kg x %.1f min = %.1f kcal",
        category.color.met_value, weight_kg, duration_seconds / 60.0, kcal,
    )
    return ActiveEnergySample(value=kcal, start=start, end=end)


def start_of_week(now: datetime) -> datetime:
    """Monday 00:00 of the week containing ``now`` (same tz awareness)."""
    ts = pd.Timestamp(now).normalize() - pd.Timedelta(days=now.weekday())
    return ts.to_pydatetime()


def count_workouts_this_week(dates: Iterable[datetime], now: datetime) -> int:
    week_start = start_of_week(now)
    return sum(1 for d in dates if week_start <= d <= now)
