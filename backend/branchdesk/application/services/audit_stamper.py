"""Stamps creation/modification metadata onto mutating payloads."""

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from branchdesk.domain.entities import CallerIdentity


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditStamper:
    """Pure field augmentation: never touches the store.

    ``clock`` is injectable so tests can pin timestamps.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        self._clock = clock

    def _now(self) -> str:
        return self._clock().isoformat()

    def for_create(
        self,
        identity: CallerIdentity,
        fields: Mapping[str, Any],
        *,
        preserve_existing: bool = False,
    ) -> dict[str, Any]:
        """Stamp a new record.

        Ordinary creations always overwrite the audit keys. A system-level
        bulk import (``preserve_existing``) keeps values the caller supplied.
        """
        now = self._now()
        stamps = {
            "created_at": now,
            "updated_at": now,
            "created_by": identity.user_id,
        }
        stamped = dict(fields)
        for key, value in stamps.items():
            if preserve_existing and stamped.get(key) not in (None, ""):
                continue
            stamped[key] = value
        return stamped

    def for_update(self, identity: CallerIdentity, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Stamp a partial update; creation metadata is never rewritten."""
        stamped = {k: v for k, v in fields.items() if k not in ("created_at", "created_by")}
        stamped["updated_at"] = self._now()
        stamped["updated_by"] = identity.user_id
        return stamped
