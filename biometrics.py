"""
Biometric gateway: the narrow interface the metrics engine uses to reach
the health data store (heart-rate samples, latest body metrics, workout
writes), plus an in-process implementation backed by plain lists.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from exceptions import (
    HealthDataUnavailable,
    InvalidDuration,
    NotAuthorized,
    PurchaseRequired,
    WriteFailed,
)
from models import (
    ActiveEnergySample,
    HeartRateSample,
    HistoryRecord,
    SampleType,
    Workout,
    describe_sample,
)


logger = logging.getLogger(__name__)


class BiometricGateway(abc.ABC):
    """Capability consumed by the orchestrator. Implementations own the I/O."""

    @property
    @abc.abstractmethod
    def is_authorized(self) -> bool:
        ...

    @abc.abstractmethod
    async def fetch_samples(self, sample_type: SampleType, start: datetime, end: datetime) -> List:
        """Samples of ``sample_type`` starting within [start, end]."""

    @abc.abstractmethod
    async def fetch_latest(self, sample_type: SampleType):
        """Most recent sample of ``sample_type`` or None."""

    @abc.abstractmethod
    async def fetch_date_of_birth(self) -> Optional[int]:
        """Age in whole years, or None when not recorded."""

    @abc.abstractmethod
    async def save_session(self, workout: Workout, history: HistoryRecord, samples: Sequence) -> bool:
        """
        Persist a completed workout with its samples.

        Raises NotAuthorized, PurchaseRequired, InvalidDuration or WriteFailed.
        """


@dataclass
class SavedSession:
    title: str
    activity_type: str
    start: datetime
    end: datetime
    samples: List = field(default_factory=list)


def age_on(birth_date: date, today: date) -> int:
    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


class InMemoryBiometricGateway(BiometricGateway):
    """List-backed gateway. Failures can be injected for degraded-path runs."""

    def __init__(
        self,
        authorized: bool = False,
        health_data_available: bool = True,
        is_unlocked: Optional[Callable[[], bool]] = None,
        date_of_birth: Optional[date] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._authorized = authorized and health_data_available
        self.health_data_available = health_data_available
        self._is_unlocked = is_unlocked or (lambda: True)
        self.date_of_birth = date_of_birth
        self._today = today or date.today
        self._samples: Dict[SampleType, List] = {sample_type: [] for sample_type in SampleType}
        self.saved_sessions: List[SavedSession] = []
        self.fetch_error: Optional[Exception] = None
        self.write_error_reason: Optional[str] = None

    @property
    def is_authorized(self) -> bool:
        return self._authorized

    async def request_authorization(self) -> bool:
        if not self.health_data_available:
            logger.error("Health data is not available on this device.")
            self._authorized = False
            raise HealthDataUnavailable()
        self._authorized = True
        logger.info("Biometric authorization granted.")
        return True

    def add_sample(self, sample) -> None:
        self._samples[sample.sample_type].append(sample)

    def add_samples(self, samples: Sequence) -> None:
        for sample in samples:
            self.add_sample(sample)

    async def fetch_samples(self, sample_type: SampleType, start: datetime, end: datetime) -> List:
        await asyncio.sleep(0)
        if self.fetch_error is not None:
            raise self.fetch_error
        matches = [s for s in self._samples[sample_type] if start <= s.start <= end]
        matches.sort(key=lambda s: s.start)
        logger.debug("Fetched %d %s samples between %s and %s", len(matches), sample_type.value, start, end)
        return matches

    async def fetch_latest(self, sample_type: SampleType):
        await asyncio.sleep(0)
        if self.fetch_error is not None:
            raise self.fetch_error
        samples = self._samples[sample_type]
        if not samples:
            logger.info("No %s samples found", sample_type.value)
            return None
        return max(samples, key=lambda s: s.end)

    async def fetch_date_of_birth(self) -> Optional[int]:
        await asyncio.sleep(0)
        if not self.health_data_available:
            raise HealthDataUnavailable()
        if self.date_of_birth is None:
            return None
        return age_on(self.date_of_birth, self._today())

    async def save_session(self, workout: Workout, history: HistoryRecord, samples: Sequence) -> bool:
        await asyncio.sleep(0)
        if not self._authorized:
            logger.error("Cannot save workout: not authorized.")
            raise NotAuthorized()
        if not self._is_unlocked():
            logger.error("App purchase required for saving workout.")
            raise PurchaseRequired()
        if history.last_session_duration <= 0:
            logger.error("Invalid workout duration: %s", history.last_session_duration)
            raise InvalidDuration(history.last_session_duration)
        if self.write_error_reason is not None:
            raise WriteFailed(self.write_error_reason)

        activity_type = workout.category.color.activity_type if workout.category else "other"
        start = history.date
        end = start + timedelta(minutes=history.last_session_duration)

        accepted = []
        for sample in samples:
            if isinstance(sample, (HeartRateSample, ActiveEnergySample)):
                logger.debug("-- Sample: %s", describe_sample(sample))
                accepted.append(sample)
            else:
                raise WriteFailed("Unsupported sample {0!r}".format(sample))

        self.saved_sessions.append(
            SavedSession(
                title=workout.title,
                activity_type=activity_type,
                start=start,
                end=end,
                samples=accepted,
            )
        )
        for sample in accepted:
            if isinstance(sample, ActiveEnergySample):
                self.add_sample(sample)
        logger.info("Saved workout %r to biometric store with %d samples", workout.title, len(accepted))
        return True
