"""Refresh the user's biometric profile from the biometric gateway."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from constants import HEIGHT_TOLERANCE_M, WEIGHT_TOLERANCE_KG
from models import SampleType, UserBiometricProfile


logger = logging.getLogger(__name__)


@dataclass
class ProfileRefreshReport:
    skipped_unauthorized: bool = False
    updated_fields: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    saved: bool = False


class ProfileSync:
    """Pulls age, resting HR, weight and height into the stored profile."""

    def __init__(self, store, gateway, user_id: Optional[str] = None):
        self.store = store
        self.gateway = gateway
        self.user_id = user_id

    def _profile(self) -> UserBiometricProfile:
        profile = self.store.current_user(self.user_id)
        if profile is None:
            profile = UserBiometricProfile(apple_user_id=self.user_id)
            self.store.insert(profile)
        return profile

    async def refresh(self) -> ProfileRefreshReport:
        report = ProfileRefreshReport()
        if not self.gateway.is_authorized:
            logger.warning("Cannot refresh profile: biometric source not authorized.")
            report.skipped_unauthorized = True
            return report

        profile = self._profile()

        try:
            age = await self.gateway.fetch_date_of_birth()
            if age is not None and profile.age != age:
                profile.age = age
                report.updated_fields.append('age')
        except Exception as exc:
            logger.error("Failed to fetch age: %s", exc)
            report.errors.append("age: {0}".format(exc))

        resting = await self._latest(SampleType.RESTING_HEART_RATE, report)
        if resting is not None and profile.resting_heart_rate != resting:
            profile.resting_heart_rate = resting
            report.updated_fields.append('resting_heart_rate')

        weight = await self._latest(SampleType.BODY_MASS, report)
        if weight is not None and abs((profile.weight or 0.0) - weight) > WEIGHT_TOLERANCE_KG:
            profile.weight = weight
            report.updated_fields.append('weight')

        height = await self._latest(SampleType.HEIGHT, report)
        if height is not None and abs((profile.height or 0.0) - height) > HEIGHT_TOLERANCE_M:
            profile.height = height
            report.updated_fields.append('height')

        if report.updated_fields:
            await asyncio.to_thread(self.store.save)
            report.saved = True
            logger.info("Profile updated from biometric source: %s", ", ".join(report.updated_fields))
        else:
            logger.debug("Profile already matches biometric source.")
        return report

    async def _latest(self, sample_type: SampleType, report: ProfileRefreshReport) -> Optional[float]:
        try:
            sample = await self.gateway.fetch_latest(sample_type)
        except Exception as exc:
            logger.error("Failed to fetch %s: %s", sample_type.value, exc)
            report.errors.append("{0}: {1}".format(sample_type.value, exc))
            return None
        if sample is None:
            logger.info("No %s data found.", sample_type.value)
            return None
        return float(sample.value)
