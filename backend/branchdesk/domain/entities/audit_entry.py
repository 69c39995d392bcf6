"""Domain entity for the append-only audit trail."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_SEVERITY_BY_ACTION: dict[str, Severity] = {
    "LOGIN_FAILED": Severity.MEDIUM,
    "CSRF_VIOLATION": Severity.HIGH,
    "RATE_LIMIT_EXCEEDED": Severity.MEDIUM,
    "UNAUTHORIZED_ACCESS": Severity.HIGH,
    "SUSPICIOUS_ACTIVITY": Severity.HIGH,
    "LOGIN_SUCCESS": Severity.LOW,
    "LOGOUT": Severity.LOW,
}


def severity_for(action: str) -> Severity:
    """Severity of an audit action; unknown actions are low."""
    return _SEVERITY_BY_ACTION.get(action, Severity.LOW)


@dataclass
class AuditEntry:
    """A structured audit event: who did what to which resource, and when."""

    actor: str
    action: str  # e.g. "CREATE", "BULK_DELETE", "UNAUTHORIZED_ACCESS"
    resource: str  # e.g. "stock/rec123" or a request path
    method: str | None = None
    details: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def severity(self) -> Severity:
        return severity_for(self.action)
