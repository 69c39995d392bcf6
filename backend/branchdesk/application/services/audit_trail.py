"""Append-only audit trail: single entry point for recording who changed what.

Entries are written to the ``audit_logs`` table as a side effect of the
request. A failed write is logged and swallowed: the trail observes the core
path, it never blocks it.
"""

import json
import logging

from branchdesk.application.interfaces import RecordStore
from branchdesk.domain.entities import AuditEntry, CallerIdentity, Record, TableName

logger = logging.getLogger(__name__)


class AuditTrail:
    """Persists AuditEntry values through the record store.

    Usage:
        trail = AuditTrail(store)
        await trail.record_mutation(identity, "UPDATE", TableName.STOCK, "rec123")
    """

    def __init__(self, store: RecordStore, *, enabled: bool = True):
        self._store = store
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def record(self, entry: AuditEntry) -> Record | None:
        """Persist ``entry``. Returns the stored record, or None if skipped or failed."""
        if not self._enabled:
            return None

        fields = {
            "user_id": entry.actor,
            "action": entry.action,
            "resource": entry.resource,
            "timestamp": entry.timestamp.isoformat(),
            "severity": entry.severity.value,
        }
        if entry.method:
            fields["method"] = entry.method
        if entry.details:
            fields["details"] = json.dumps(entry.details, default=str)

        try:
            saved = await self._store.create(TableName.AUDIT_LOGS, fields)
        except Exception as exc:
            logger.warning(
                "Failed to write audit entry %s %s: %s", entry.action, entry.resource, exc
            )
            return None

        logger.info(
            "AUDIT [%s] actor=%s resource=%s severity=%s",
            entry.action,
            entry.actor,
            entry.resource,
            entry.severity.value,
        )
        return saved

    async def record_mutation(
        self,
        identity: CallerIdentity,
        action: str,
        table: TableName,
        record_id: str | None = None,
        details: dict | None = None,
    ) -> Record | None:
        """Convenience method for record create/update/delete events."""
        # Writing the trail must not itself produce trail entries
        if table is TableName.AUDIT_LOGS:
            return None
        resource = f"{table.value}/{record_id}" if record_id else table.value
        return await self.record(
            AuditEntry(
                actor=identity.user_id,
                action=action,
                resource=resource,
                details={"role": identity.role, **(details or {})},
            )
        )
