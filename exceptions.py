"""Error taxonomy for the metrics engine."""

from __future__ import annotations

from typing import Optional


class MoveMDError(Exception):
    """Base class for all engine errors."""

    recovery_suggestion: Optional[str] = None

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class BiometricError(MoveMDError):
    """Raised by a BiometricGateway. Never fatal to local persistence."""

    recovery_suggestion = "Please try again or contact support if the issue persists."


class HealthDataUnavailable(BiometricError):
    recovery_suggestion = "Please ensure your device supports Health data."

    def __init__(self, message: str = "Health data is not available on this device.") -> None:
        super().__init__(message)


class NotAuthorized(BiometricError):
    recovery_suggestion = "Please enable Health permissions in the Health app."

    def __init__(self, message: str = "Permission not granted to save workout.") -> None:
        super().__init__(message)


class InvalidDuration(BiometricError):
    def __init__(self, duration: float = 0.0) -> None:
        super().__init__("Invalid workout duration: {0}".format(duration))
        self.duration = duration


class WriteFailed(BiometricError):
    def __init__(self, reason: str) -> None:
        super().__init__("Failed to save workout to Health: {0}".format(reason))
        self.reason = reason


class HeartRateDataUnavailable(BiometricError):
    def __init__(self, message: str = "Heart rate data is not available.") -> None:
        super().__init__(message)


class PurchaseRequired(BiometricError):
    recovery_suggestion = (
        "Please purchase the full app from the settings or purchase screen "
        "to continue saving workouts."
    )

    def __init__(
        self,
        message: str = "Full app purchase required to save workouts to Health after trial.",
    ) -> None:
        super().__init__(message)


class StoreError(MoveMDError):
    """Local store failure. This is the one fatal error of a session."""


class SessionStateError(MoveMDError):
    """Invalid recorder or orchestrator transition."""
