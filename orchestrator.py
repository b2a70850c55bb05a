from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from alerts import AlertSeverity, AppAlert, ErrorManager
from biometrics import BiometricGateway
from constants import ALERT_COPY, DEFAULT_TARGET_WORKOUTS_PER_WEEK, SETTING_TARGET_WORKOUTS_PER_WEEK
from db import WorkoutStore
from exceptions import PurchaseRequired, SessionStateError, StoreError, WriteFailed
from hr_zones import average_heart_rate, calculate_time_in_zones, resolve_max_heart_rate
from metrics import (
    build_active_energy_sample,
    calculate_intensity_score,
    calculate_progress_pulse_score,
    count_workouts_this_week,
)
from models import HistoryRecord, SampleType, UserBiometricProfile, Workout
from notifications import WORKOUT_DID_COMPLETE, NotificationCenter
from session_recorder import SessionFacts, SessionRecorder


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    PERSISTED = "persisted"
    SAVE_FAILED = "save_failed"


@dataclass
class BiometricContext:
    resting_heart_rate: Optional[float] = None
    max_heart_rate: Optional[float] = None
    average_heart_rate: Optional[float] = None
    weight: Optional[float] = None
    workouts_this_week: int = 0
    personal_best: Optional[float] = None


@dataclass
class FinalizeReport:
    session_id: str
    workout_title: str
    state: SessionState = SessionState.FINALIZING
    history: Optional[HistoryRecord] = None
    biometrics_authorized: bool = False
    heart_rate_samples: int = 0
    energy_sample_added: bool = False
    synced: bool = False
    sync_error: Optional[str] = None
    persisted: bool = False
    save_error: Optional[str] = None
    alerts: List[AppAlert] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class MetricsOrchestrator:
    """
    Turns a finished session into a persisted history record.

    Biometric steps are best-effort and each one is independently fallible;
    the local store write always runs afterwards and is the only fatal step.
    """

    def __init__(
        self,
        store: WorkoutStore,
        gateway: BiometricGateway,
        error_manager: Optional[ErrorManager] = None,
        notification_center: Optional[NotificationCenter] = None,
        user_id: Optional[str] = None,
        target_workouts_per_week: Optional[int] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.error_manager = error_manager or ErrorManager()
        self.notification_center = notification_center or NotificationCenter()
        self.user_id = user_id
        self._target_override = target_workouts_per_week
        self._now = now
        self._state = SessionState.IDLE
        self._recorder: Optional[SessionRecorder] = None
        self._last_report: Optional[FinalizeReport] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def target_workouts_per_week(self) -> int:
        if self._target_override is not None:
            return int(self._target_override)
        return self.store.get_int_setting(SETTING_TARGET_WORKOUTS_PER_WEEK, DEFAULT_TARGET_WORKOUTS_PER_WEEK)

    # --- recording ---

    def begin_session(self, workout: Workout, **recorder_kwargs) -> SessionRecorder:
        if self._state is SessionState.FINALIZING:
            raise SessionStateError("A session is still finalizing.")
        if self._recorder is not None:
            logger.warning("Starting %r replaces an unfinished session; discarding it.", workout.title)
            self._recorder.disappear()
            self._recorder = None
        recorder = SessionRecorder(workout, **recorder_kwargs)
        recorder.start()
        self._recorder = recorder
        self._state = SessionState.RECORDING
        return recorder

    def cancel_session(self) -> None:
        """Host view disappeared mid-session: stop the timer, persist nothing."""
        if self._recorder is not None:
            self._recorder.disappear()
            self._recorder = None
        if self._state is SessionState.RECORDING:
            self._state = SessionState.IDLE

    async def primary_action(self) -> Optional[FinalizeReport]:
        recorder = self._active_recorder()
        facts = recorder.primary_action()
        if facts is None:
            return None
        return await self.finalize(recorder.workout, facts)

    async def end_now(self) -> FinalizeReport:
        recorder = self._active_recorder()
        facts = recorder.end_now()
        return await self.finalize(recorder.workout, facts)

    def _active_recorder(self) -> SessionRecorder:
        if self._recorder is None or self._state is not SessionState.RECORDING:
            raise SessionStateError("No session is recording.")
        return self._recorder

    # --- finalizing ---

    async def finalize(self, workout: Workout, facts: SessionFacts) -> FinalizeReport:
        existing = self._last_report
        if existing is not None and existing.session_id == facts.session_id:
            logger.warning("Session %s already finalized; ignoring repeat call.", facts.session_id)
            return existing

        self._state = SessionState.FINALIZING
        report = FinalizeReport(session_id=facts.session_id, workout_title=workout.title)
        self._last_report = report

        history = HistoryRecord(
            date=facts.started_at,
            exercises_completed=list(facts.exercises_completed),
            split_times=list(facts.split_times),
            last_session_duration=facts.duration_minutes,
        )
        report.history = history
        workout.date_completed = self._now()
        workout.last_session_duration = facts.duration_minutes

        notices: List[tuple] = []
        report.biometrics_authorized = self.gateway.is_authorized
        if report.biometrics_authorized:
            try:
                notices = await self._enrich_and_sync(workout, facts, history, report)
            except Exception as exc:
                # Enrichment never blocks the local save.
                logger.error("Biometric enrichment failed for %r: %s", workout.title, exc)
                report.errors.append("Biometric enrichment failed: {0}".format(exc))
        else:
            logger.info("Biometric source not authorized; skipping metrics and sync.")

        await self._persist_locally(workout, history, report)
        # Sync notices say the workout is saved on the device, so they only
        # follow a successful local save; a failed save shows the blocking alert.
        if report.persisted:
            for title, message in notices:
                report.alerts.append(self.error_manager.present_alert(title, message))
        self._recorder = None
        return report

    async def _enrich_and_sync(self, workout, facts, history, report) -> List[tuple]:
        profile = self.store.current_user(self.user_id)
        samples: List = []

        heart_rate = await self._fetch_heart_rate(facts, report)
        report.heart_rate_samples = len(heart_rate)
        samples.extend(heart_rate)

        weight = profile.weight if profile is not None and profile.weight else None
        if weight is None:
            weight = await self._fetch_latest_value(SampleType.BODY_MASS, report)
        energy = build_active_energy_sample(
            workout.category, weight, facts.duration_seconds, facts.started_at, facts.ended_at
        )
        if energy is not None:
            samples.append(energy)
            report.energy_sample_added = True

        context = await self._gather_context(workout, facts, profile, heart_rate, report)
        context.weight = weight
        self._compute_metrics(history, facts, heart_rate, context, report)

        try:
            saved = await self.gateway.save_session(workout, history, samples)
            if not saved:
                raise WriteFailed("Biometric gateway reported save failure.")
            report.synced = True
        except PurchaseRequired as exc:
            report.sync_error = str(exc)
            logger.info("Biometric sync requires purchase: %s", exc)
            copy = ALERT_COPY['purchase_required']
            return [(copy['title'], copy['message'])]
        except Exception as exc:
            report.sync_error = str(exc) or type(exc).__name__
            logger.warning("Biometric sync failed for %r: %s", workout.title, exc)
            copy = ALERT_COPY['sync_failed']
            return [(copy['title'], copy['message'].format(error=exc))]
        return []

    async def _fetch_heart_rate(self, facts: SessionFacts, report: FinalizeReport) -> List:
        try:
            return list(await self.gateway.fetch_samples(SampleType.HEART_RATE, facts.started_at, facts.ended_at))
        except Exception as exc:
            logger.warning("Heart-rate fetch failed: %s", exc)
            report.errors.append("Heart-rate fetch failed: {0}".format(exc))
            return []

    async def _fetch_latest_value(self, sample_type: SampleType, report: FinalizeReport) -> Optional[float]:
        try:
            sample = await self.gateway.fetch_latest(sample_type)
            return float(sample.value) if sample is not None else None
        except Exception as exc:
            logger.warning("Fetching latest %s failed: %s", sample_type.value, exc)
            report.errors.append("{0} fetch failed: {1}".format(sample_type.value, exc))
            return None

    async def _fetch_age(self, profile, report: FinalizeReport) -> Optional[int]:
        if profile is not None and profile.age:
            return profile.age
        try:
            return await self.gateway.fetch_date_of_birth()
        except Exception as exc:
            logger.warning("Date of birth fetch failed: %s", exc)
            report.errors.append("Date of birth fetch failed: {0}".format(exc))
            return None

    async def _gather_context(
        self,
        workout: Workout,
        facts: SessionFacts,
        profile: Optional[UserBiometricProfile],
        heart_rate: List,
        report: FinalizeReport,
    ) -> BiometricContext:
        context = BiometricContext()
        context.resting_heart_rate = await self._fetch_latest_value(SampleType.RESTING_HEART_RATE, report)
        if context.resting_heart_rate is None and profile is not None:
            context.resting_heart_rate = profile.resting_heart_rate

        age = await self._fetch_age(profile, report)
        context.max_heart_rate = resolve_max_heart_rate(profile, age)
        context.average_heart_rate = average_heart_rate(heart_rate, session_end=facts.ended_at)
        context.workouts_this_week = count_workouts_this_week(
            [h.date for h in workout.history], self._now()
        )
        context.personal_best = workout.personal_best
        return context

    def _compute_metrics(self, history, facts, heart_rate, context, report) -> None:
        try:
            history.intensity_score = calculate_intensity_score(
                context.resting_heart_rate, context.average_heart_rate, context.max_heart_rate
            )
        except Exception as exc:
            logger.warning("Intensity score failed: %s", exc)
            report.errors.append("Intensity score failed: {0}".format(exc))

        try:
            breakdown = calculate_time_in_zones(heart_rate, context.max_heart_rate, session_end=facts.ended_at)
            history.dominant_zone = breakdown.dominant_zone
        except Exception as exc:
            logger.warning("Zone calculation failed: %s", exc)
            report.errors.append("Zone calculation failed: {0}".format(exc))

        try:
            history.progress_pulse_score = calculate_progress_pulse_score(
                current_duration=history.last_session_duration,
                personal_best=context.personal_best,
                workouts_this_week=context.workouts_this_week,
                target_workouts_per_week=self.target_workouts_per_week,
                dominant_zone=history.dominant_zone,
            )
        except Exception as exc:
            logger.warning("Progress pulse score failed: %s", exc)
            report.errors.append("Progress pulse score failed: {0}".format(exc))

    async def _persist_locally(self, workout: Workout, history: HistoryRecord, report: FinalizeReport) -> None:
        workout.history.append(history)
        workout.update_personal_best()
        workout.update_summary()
        if not self.store.fetch(Workout, lambda w: w is workout):
            self.store.insert(workout)

        try:
            await asyncio.to_thread(self.store.save)
        except StoreError as exc:
            logger.error("CRITICAL - local save failed for %r: %s", workout.title, exc)
            report.save_error = str(exc)
            report.state = SessionState.SAVE_FAILED
            self._state = SessionState.SAVE_FAILED
            copy = ALERT_COPY['save_failed']
            report.alerts.append(
                self.error_manager.present_alert(
                    copy['title'],
                    copy['message'].format(error=exc),
                    severity=AlertSeverity.BLOCKING,
                )
            )
            return

        report.persisted = True
        report.state = SessionState.PERSISTED
        self._state = SessionState.PERSISTED
        logger.info(
            "Workout %r saved locally (metrics: %s, synced: %s)",
            workout.title, history.has_metrics, report.synced,
        )
        self.notification_center.post(WORKOUT_DID_COMPLETE)
