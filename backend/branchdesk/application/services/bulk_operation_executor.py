"""Bulk create/update/delete with per-item success accounting.

The store has no multi-record transactions, so a bulk request is not atomic:
each item is executed and accounted for on its own, and a failure on one item
never stops the next. Results and errors always follow input order.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from branchdesk.application.interfaces import RecordStore
from branchdesk.application.services.access_scope_policy import AccessScopePolicy
from branchdesk.application.services.audit_stamper import AuditStamper
from branchdesk.application.services.audit_trail import AuditTrail
from branchdesk.application.services.field_validation import validate_fields
from branchdesk.domain.entities import (
    BulkItemError,
    BulkOperation,
    BulkResult,
    CallerIdentity,
    TableName,
    resolve_table,
)
from branchdesk.domain.exceptions import BranchDeskError, ValidationFailed

logger = logging.getLogger(__name__)


class BulkOperationExecutor:
    """Runs one operation over many items.

    ``concurrency`` bounds how many store calls are in flight at once; the
    default of 1 issues them strictly one after another, which keeps clear of
    the store's rate limits.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        policy: AccessScopePolicy | None = None,
        stamper: AuditStamper | None = None,
        audit_trail: AuditTrail | None = None,
        concurrency: int = 1,
    ):
        self._store = store
        self._policy = policy or AccessScopePolicy()
        self._stamper = stamper or AuditStamper()
        self._audit_trail = audit_trail
        self._concurrency = max(1, concurrency)

    async def run(
        self,
        identity: CallerIdentity,
        table_name: str | TableName,
        operation: str | BulkOperation,
        items: list[Any],
        *,
        preserve_audit: bool = False,
    ) -> BulkResult:
        """Apply ``operation`` to every item and report per-item outcomes.

        Args:
            identity: The caller; stamps and scoping are derived from it.
            table_name: Store name of the target table.
            operation: "create" (items are field maps), "update" (items are
                ``{"id": ..., "data": {...}}``) or "delete" (items are ids).
            items: The payloads, one per record.
            preserve_audit: System-level import: keep caller-supplied
                created_at / created_by on create.

        Raises:
            InvalidTable / ValidationFailed before any store call when the
            table, the operation, or the shape of ``items`` is wrong.
        """
        table = resolve_table(table_name)
        op = operation if isinstance(operation, BulkOperation) else BulkOperation.parse(operation)
        if not isinstance(items, list):
            raise ValidationFailed("Bulk 'records' must be a list", fields=["records"])

        handlers = {
            BulkOperation.CREATE: self._create_one,
            BulkOperation.UPDATE: self._update_one,
            BulkOperation.DELETE: self._delete_one,
        }
        handler = handlers[op]
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_item(index: int, item: Any) -> tuple[dict[str, Any] | None, BulkItemError | None]:
            async with semaphore:
                try:
                    outcome = await handler(identity, table, item, preserve_audit)
                except BranchDeskError as exc:
                    logger.warning("Bulk %s %s item %d failed: %s", op.value, table.value, index, exc)
                    return None, BulkItemError(index=index, message=str(exc), id=_item_ref(op, item))
                except Exception as exc:
                    logger.exception("Bulk %s %s item %d failed unexpectedly", op.value, table.value, index)
                    return None, BulkItemError(index=index, message=str(exc), id=_item_ref(op, item))
                return outcome, None

        outcomes = await asyncio.gather(*(run_item(i, item) for i, item in enumerate(items)))

        result = BulkResult(
            results=[outcome for outcome, _ in outcomes],
            errors=[error for _, error in outcomes if error is not None],
        )
        logger.info(
            "Bulk %s on %s: %d/%d succeeded",
            op.value,
            table.value,
            result.success_count,
            result.total_count,
        )

        if self._audit_trail is not None and result.success_count:
            await self._audit_trail.record_mutation(
                identity,
                f"BULK_{op.value.upper()}",
                table,
                details={"success_count": result.success_count, "total_count": result.total_count},
            )
        return result

    # ── Per-item handlers ────────────────────────────────────────────

    async def _create_one(
        self, identity: CallerIdentity, table: TableName, item: Any, preserve_audit: bool
    ) -> dict[str, Any]:
        payload = validate_fields(table, item)
        payload = self._policy.scope_payload(identity, table, payload)
        payload = self._stamper.for_create(identity, payload, preserve_existing=preserve_audit)
        record = await self._store.create(table, payload)
        return record.to_flat_dict()

    async def _update_one(
        self, identity: CallerIdentity, table: TableName, item: Any, preserve_audit: bool
    ) -> dict[str, Any]:
        if not isinstance(item, Mapping):
            raise ValidationFailed("Bulk update items must be objects with 'id' and 'data'")
        record_id = item.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise ValidationFailed("Bulk update item is missing 'id'", fields=["id"])

        payload = validate_fields(table, item.get("data"), partial=True)
        payload = self._policy.scope_payload(identity, table, payload, inject=False)
        payload = self._stamper.for_update(identity, payload)
        record = await self._store.update(table, record_id, payload)
        return record.to_flat_dict()

    async def _delete_one(
        self, identity: CallerIdentity, table: TableName, item: Any, preserve_audit: bool
    ) -> dict[str, Any]:
        # Authorization to touch the table is settled by the route's role gate
        if not isinstance(item, str) or not item:
            raise ValidationFailed("Bulk delete items must be record ids")
        return await self._store.delete(table, item)


def _item_ref(op: BulkOperation, item: Any) -> str | None:
    """The record id an item refers to, when it names one."""
    if op is BulkOperation.DELETE and isinstance(item, str):
        return item
    if op is BulkOperation.UPDATE and isinstance(item, Mapping):
        record_id = item.get("id")
        return record_id if isinstance(record_id, str) else None
    return None
