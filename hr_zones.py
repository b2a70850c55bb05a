"""Heart-rate zone thresholds, max-HR resolution, and time-in-zone binning."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from constants import DEFAULT_ADULT_AGE, MAX_HR_AGE_CONSTANT, ZONE_MAX_GAP_SECONDS


logger = logging.getLogger(__name__)

DEFAULT_MAX_HR = float(MAX_HR_AGE_CONSTANT - DEFAULT_ADULT_AGE)

HR_ZONE_ORDER: Tuple[int, ...] = (1, 2, 3, 4, 5)

# Lower bound (fraction of max HR) of each zone. Zone 1 starts at zero.
HR_ZONE_LOWER_BOUNDS: Dict[int, float] = {
    1: 0.0,
    2: 0.60,
    3: 0.70,
    4: 0.80,
    5: 0.90,
}

HR_ZONE_RANGE_LABELS: Dict[int, str] = {
    1: 'Zone 1 (<60%)',
    2: 'Zone 2 (60-70%)',
    3: 'Zone 3 (70-80%)',
    4: 'Zone 4 (80-90%)',
    5: 'Zone 5 (>=90%)',
}

HR_ZONE_DESCRIPTIONS: Dict[int, str] = {
    1: 'Very Light',
    2: 'Light',
    3: 'Moderate',
    4: 'Hard',
    5: 'Maximum',
}


def zone_description(zone: Optional[int]) -> str:
    return HR_ZONE_DESCRIPTIONS.get(zone, 'Unknown')


def normalize_max_hr(max_hr, default: float = DEFAULT_MAX_HR) -> float:
    """Return a valid max-HR value."""
    try:
        value = float(max_hr or 0)
    except (TypeError, ValueError):
        value = 0.0
    if value <= 0 or math.isnan(value):
        return float(default)
    return value


def estimate_max_hr_from_age(age) -> Optional[float]:
    try:
        age_value = int(age)
    except (TypeError, ValueError):
        return None
    if age_value <= 0:
        return None
    return float(MAX_HR_AGE_CONSTANT - age_value)


def resolve_max_heart_rate(profile=None, age=None) -> float:
    """
    Resolve the max heart rate used for zone binning and intensity.

    Fallback order:
      1. user-entered max HR on the profile (if > 0)
      2. 220 - profile age
      3. 220 - ``age`` (e.g. read from the biometric source)
      4. 220 - DEFAULT_ADULT_AGE
    """
    if profile is not None:
        user_max = getattr(profile, 'max_heart_rate', None)
        if user_max is not None and user_max > 0:
            return float(user_max)
        estimate = estimate_max_hr_from_age(getattr(profile, 'age', None))
        if estimate is not None:
            return estimate

    estimate = estimate_max_hr_from_age(age)
    if estimate is not None:
        return estimate
    return DEFAULT_MAX_HR


def get_zone_thresholds(max_hr) -> Dict[int, float]:
    """Return the lower bound in bpm of every zone."""
    max_hr_value = normalize_max_hr(max_hr)
    return {zone: max_hr_value * fraction for zone, fraction in HR_ZONE_LOWER_BOUNDS.items()}


def classify_hr_zone_by_ratio(ratio: float) -> int:
    """Classify by HR/max-HR ratio. Boundaries belong to the upper zone."""
    try:
        ratio = float(ratio)
    except (TypeError, ValueError):
        ratio = 0.0
    if ratio < 0.60:
        return 1
    if ratio < 0.70:
        return 2
    if ratio < 0.80:
        return 3
    if ratio < 0.90:
        return 4
    return 5


def classify_hr_zone(hr_value, max_hr) -> int:
    """Classify a heart-rate value into one of 5 zones."""
    try:
        hr = float(hr_value or 0)
    except (TypeError, ValueError):
        hr = 0.0
    if hr <= 0:
        return 1
    return classify_hr_zone_by_ratio(hr / normalize_max_hr(max_hr))


@dataclass
class ZoneBreakdown:
    seconds: Dict[int, float] = field(default_factory=lambda: {zone: 0.0 for zone in HR_ZONE_ORDER})
    dominant_zone: Optional[int] = None

    @property
    def total_seconds(self) -> float:
        return float(sum(self.seconds.values()))

    def minutes(self, zone: int) -> float:
        return round(self.seconds.get(zone, 0.0) / 60.0, 2)


def _valid_readings(samples) -> List:
    readings = []
    for sample in samples or []:
        try:
            value = float(sample.value)
        except (TypeError, ValueError, AttributeError):
            continue
        if value > 0 and not math.isnan(value):
            readings.append(sample)
    readings.sort(key=lambda s: s.start)
    return readings


def sample_durations_seconds(
    readings: Sequence,
    session_end: Optional[datetime] = None,
    max_gap_seconds: float = ZONE_MAX_GAP_SECONDS,
) -> List[float]:
    """
    Attribute elapsed time to each (sorted) heart-rate reading.

    A reading with its own span (end > start) keeps that span. An
    instantaneous reading lasts until the next reading starts; the final one
    lasts until ``session_end``. Gaps are capped at ``max_gap_seconds``.
    """
    count = len(readings)
    if count == 0:
        return []

    gaps = [
        (readings[i + 1].start - readings[i].start).total_seconds()
        for i in range(count - 1)
    ]
    positive_gaps = [gap for gap in gaps if gap > 0]
    fallback = float(np.median(positive_gaps)) if positive_gaps else 1.0
    fallback = min(fallback, max_gap_seconds)

    durations = []
    for idx, reading in enumerate(readings):
        span = (reading.end - reading.start).total_seconds()
        if span > 0:
            seconds = span
        elif idx < count - 1:
            seconds = max(gaps[idx], 0.0)
        elif session_end is not None and (session_end - reading.start).total_seconds() > 0:
            seconds = (session_end - reading.start).total_seconds()
        else:
            seconds = fallback
        durations.append(min(seconds, max_gap_seconds))
    return durations


def dominant_zone_from_seconds(zone_seconds: Dict[int, float]) -> Optional[int]:
    """Zone with the most time. Ties go to the lower (less intense) zone."""
    best_zone = None
    best_seconds = 0.0
    for zone in HR_ZONE_ORDER:
        seconds = zone_seconds.get(zone, 0.0)
        if seconds > best_seconds:
            best_zone = zone
            best_seconds = seconds
    return best_zone


def calculate_time_in_zones(
    samples,
    max_hr,
    session_end: Optional[datetime] = None,
    max_gap_seconds: float = ZONE_MAX_GAP_SECONDS,
) -> ZoneBreakdown:
    """
    Bin heart-rate samples into the 5 zones and find the dominant one.

    No usable samples means no dominant zone (``None``), not zone 0.
    """
    readings = _valid_readings(samples)
    breakdown = ZoneBreakdown()
    if not readings:
        logger.debug("No heart-rate readings to bin; dominant zone unavailable.")
        return breakdown

    max_hr_value = normalize_max_hr(max_hr)
    durations = sample_durations_seconds(readings, session_end, max_gap_seconds)
    for reading, seconds in zip(readings, durations):
        zone = classify_hr_zone(reading.value, max_hr_value)
        breakdown.seconds[zone] += seconds

    breakdown.dominant_zone = dominant_zone_from_seconds(breakdown.seconds)
    logger.info(
        "Time in zones (min): %s, dominant: %s",
        {HR_ZONE_RANGE_LABELS[zone]: breakdown.minutes(zone) for zone in HR_ZONE_ORDER},
        breakdown.dominant_zone,
    )
    return breakdown


def average_heart_rate(
    samples,
    session_end: Optional[datetime] = None,
    max_gap_seconds: float = ZONE_MAX_GAP_SECONDS,
) -> Optional[float]:
    """Time-weighted mean heart rate of the session, or None without readings."""
    readings = _valid_readings(samples)
    if not readings:
        return None
    weights = np.array(sample_durations_seconds(readings, session_end, max_gap_seconds), dtype=float)
    values = np.array([float(r.value) for r in readings], dtype=float)
    if weights.sum() <= 0:
        return float(np.mean(values))
    return float(np.average(values, weights=weights))
