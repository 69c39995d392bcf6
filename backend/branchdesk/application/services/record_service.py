"""Application service (use case) for single-record operations on any table."""

import logging
from typing import Any

from branchdesk.application.interfaces import RecordStore, SortSpec
from branchdesk.application.services.access_scope_policy import AccessScopePolicy
from branchdesk.application.services.audit_stamper import AuditStamper
from branchdesk.application.services.audit_trail import AuditTrail
from branchdesk.application.services.field_validation import validate_fields
from branchdesk.domain.entities import CallerIdentity, Record, TableName, resolve_table

logger = logging.getLogger(__name__)


class RecordService:
    """Orchestrates generic CRUD: table check, scoping, stamping, store call, audit.

    Every table name is resolved before anything else, so an unknown table
    fails with InvalidTable without a single store call.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        policy: AccessScopePolicy | None = None,
        stamper: AuditStamper | None = None,
        audit_trail: AuditTrail | None = None,
    ):
        self._store = store
        self._policy = policy or AccessScopePolicy()
        self._stamper = stamper or AuditStamper()
        self._audit_trail = audit_trail

    async def list_records(
        self,
        identity: CallerIdentity,
        table_name: str | TableName,
        *,
        filter_formula: str | None = None,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        table = resolve_table(table_name)
        effective = self._policy.scope_filter(identity, table, filter_formula)
        records = await self._store.find(table, effective, sort)

        visible = [r for r in records if self._policy.is_visible(identity, table, r)]
        if len(visible) != len(records):
            logger.warning(
                "Dropped %d out-of-branch record(s) from %s for user %s",
                len(records) - len(visible),
                table.value,
                identity.user_id,
            )
        if limit is not None:
            visible = visible[:limit]
        return visible

    async def get_record(
        self, identity: CallerIdentity, table_name: str | TableName, record_id: str
    ) -> Record:
        table = resolve_table(table_name)
        record = await self._store.find_by_id(table, record_id)
        self._policy.ensure_visible(identity, table, record)
        return record

    async def create_record(
        self,
        identity: CallerIdentity,
        table_name: str | TableName,
        fields: dict[str, Any],
    ) -> Record:
        table = resolve_table(table_name)
        payload = validate_fields(table, fields)
        payload = self._policy.scope_payload(identity, table, payload)
        payload = self._stamper.for_create(identity, payload)

        record = await self._store.create(table, payload)
        await self._audit("CREATE", identity, table, record.id)
        return record

    async def update_record(
        self,
        identity: CallerIdentity,
        table_name: str | TableName,
        record_id: str,
        fields: dict[str, Any],
    ) -> Record:
        table = resolve_table(table_name)
        payload = validate_fields(table, fields, partial=True)
        payload = self._policy.scope_payload(identity, table, payload, inject=False)

        if self._policy.applies_to(identity, table):
            existing = await self._store.find_by_id(table, record_id)
            self._policy.ensure_visible(identity, table, existing)

        payload = self._stamper.for_update(identity, payload)
        record = await self._store.update(table, record_id, payload)
        await self._audit("UPDATE", identity, table, record_id)
        return record

    async def delete_record(
        self, identity: CallerIdentity, table_name: str | TableName, record_id: str
    ) -> dict[str, Any]:
        table = resolve_table(table_name)

        if self._policy.applies_to(identity, table):
            existing = await self._store.find_by_id(table, record_id)
            self._policy.ensure_visible(identity, table, existing)

        confirmation = await self._store.delete(table, record_id)
        await self._audit("DELETE", identity, table, record_id)
        return confirmation

    async def _audit(
        self, action: str, identity: CallerIdentity, table: TableName, record_id: str
    ) -> None:
        if self._audit_trail is not None:
            await self._audit_trail.record_mutation(identity, action, table, record_id)
