"""Audit hook for security-relevant events (login, refresh, logout, bulk upload)."""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

AUDIT_LOGGER_NAME = "app.audit"

EVENT_LOGIN = "login"
EVENT_LOGIN_FAILED = "login_failed"
EVENT_REFRESH = "refresh"
EVENT_REFRESH_FAILED = "refresh_failed"
EVENT_LOGOUT = "logout"
EVENT_LOGOUT_ALL = "logout_all"
EVENT_BULK_UPLOAD = "bulk_upload"

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"


@dataclass(frozen=True)
class AuditEvent:
    """What happened, who did it (user id when known), and how it ended."""

    kind: str
    outcome: str
    actor_id: int | None = None
    detail: dict[str, Any] = field(default_factory=dict)


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Writes audit events to the app.audit logger with the fields in `extra`."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def record(self, event: AuditEvent) -> None:
        level = logging.INFO if event.outcome == OUTCOME_SUCCESS else logging.WARNING
        self._logger.log(
            level,
            "audit %s %s",
            event.kind,
            event.outcome,
            extra={
                "audit_kind": event.kind,
                "audit_outcome": event.outcome,
                "actor_id": event.actor_id,
                "audit_detail": event.detail,
            },
        )


class NullAuditSink:
    def record(self, event: AuditEvent) -> None:
        return None


_default_sink = LoggingAuditSink()


def get_audit_sink() -> AuditSink:
    """Dependency returning the process-wide audit sink."""
    return _default_sink


def emit(
    sink: AuditSink | None,
    kind: str,
    outcome: str,
    actor_id: int | None = None,
    **detail: Any,
) -> None:
    """Record an event on `sink`, or on the default sink when none is given."""
    (sink or _default_sink).record(
        AuditEvent(kind=kind, outcome=outcome, actor_id=actor_id, detail=detail)
    )
