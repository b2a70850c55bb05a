"""User-facing alert state: non-blocking notices vs blocking errors."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from exceptions import MoveMDError


logger = logging.getLogger(__name__)


class AlertSeverity(str, Enum):
    NOTICE = "notice"  # saved locally, something else degraded
    BLOCKING = "blocking"  # the workout itself was not saved


@dataclass
class AppAlert:
    title: str
    message: str
    severity: AlertSeverity = AlertSeverity.NOTICE
    primary_button: str = "OK"
    secondary_button: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class ErrorManager:
    """Holds the alert currently shown to the user plus everything shown so far."""

    def __init__(self) -> None:
        self.current_alert: Optional[AppAlert] = None
        self.history: List[AppAlert] = []

    def present_alert(
        self,
        title: str,
        message: str,
        severity: AlertSeverity = AlertSeverity.NOTICE,
        primary_button: str = "OK",
        secondary_button: Optional[str] = None,
    ) -> AppAlert:
        logger.info("Presenting %s alert: %s - %s", severity.value, title, message)
        alert = AppAlert(
            title=title,
            message=message,
            severity=severity,
            primary_button=primary_button,
            secondary_button=secondary_button,
        )
        self.current_alert = alert
        self.history.append(alert)
        return alert

    def present_error(self, error: Exception, severity: AlertSeverity = AlertSeverity.NOTICE) -> AppAlert:
        title = str(error) or "Error"
        message = getattr(error, 'message', None) or title
        if isinstance(error, MoveMDError) and error.recovery_suggestion:
            message = "{0}\n\n{1}".format(message, error.recovery_suggestion)
        return self.present_alert(title, message, severity=severity)

    def present_unknown_error(self, underlying: Optional[Exception] = None) -> AppAlert:
        message = "An unexpected error occurred. Please try again."
        if underlying is not None:
            message += "\n\nDetails: {0}".format(underlying)
        return self.present_alert("Error", message)

    def dismiss_alert(self) -> None:
        self.current_alert = None
