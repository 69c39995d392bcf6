"""In-memory test doubles shared by the unit and integration tests."""

import re
from collections import defaultdict
from typing import Any

from branchdesk.application.interfaces import RecordStore, SortSpec
from branchdesk.application.services.access_scope_policy import branch_matches
from branchdesk.domain.entities import CallerIdentity, Record, TableName
from branchdesk.domain.exceptions import RecordNotFound

_EQUALS_CLAUSE = re.compile(r"\{(\w+)\} = '((?:[^'\\]|\\.)*)'")

BOSS = CallerIdentity(user_id="u-boss", role="boss")
ADMIN = CallerIdentity(user_id="u-admin", role="admin")
MANAGER_A = CallerIdentity(user_id="u-mgr-a", role="manager", branch_id="branchA")
SALES_B = CallerIdentity(user_id="u-sales-b", role="sales", branch_id="branchB")


class FakeRecordStore(RecordStore):
    """Dict-backed store that records every call.

    Understands formulas made of ``{field} = 'value'`` clauses (optionally
    inside AND(...)); every such clause must hold for a record to match.
    """

    def __init__(self) -> None:
        self._tables: dict[TableName, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._next_id = 1
        self._failures: dict[tuple[str, TableName], Exception] = {}
        self.calls: list[tuple[str, TableName]] = []
        self.finds: list[tuple[TableName, str | None, SortSpec | None]] = []

    # ── Test helpers ──

    def seed(self, table: TableName, fields: dict[str, Any], record_id: str | None = None) -> Record:
        record_id = record_id or self._new_id()
        self._tables[table][record_id] = dict(fields)
        return Record(id=record_id, table=table, fields=dict(fields))

    def fail(self, operation: str, table: TableName, error: Exception) -> None:
        self._failures[(operation, table)] = error

    def rows(self, table: TableName) -> dict[str, dict[str, Any]]:
        return self._tables[table]

    def call_count(self, operation: str | None = None) -> int:
        return sum(1 for op, _ in self.calls if operation is None or op == operation)

    def _new_id(self) -> str:
        record_id = f"rec{self._next_id:04d}"
        self._next_id += 1
        return record_id

    def _enter(self, operation: str, table: TableName) -> None:
        self.calls.append((operation, table))
        error = self._failures.get((operation, table))
        if error is not None:
            raise error

    def _record(self, table: TableName, record_id: str) -> Record:
        return Record(id=record_id, table=table, fields=dict(self._tables[table][record_id]))

    # ── RecordStore ──

    async def create(self, table: TableName, fields: dict[str, Any]) -> Record:
        self._enter("create", table)
        record_id = self._new_id()
        self._tables[table][record_id] = dict(fields)
        return self._record(table, record_id)

    async def find(
        self,
        table: TableName,
        filter_formula: str | None = None,
        sort: SortSpec | None = None,
    ) -> list[Record]:
        self._enter("find", table)
        self.finds.append((table, filter_formula, sort))
        clauses = _EQUALS_CLAUSE.findall(filter_formula or "")
        matches = []
        for record_id, fields in self._tables[table].items():
            if all(
                branch_matches(fields.get(name), value.replace("\\'", "'"))
                for name, value in clauses
            ):
                matches.append(self._record(table, record_id))
        return matches

    async def update(self, table: TableName, record_id: str, fields: dict[str, Any]) -> Record:
        self._enter("update", table)
        if record_id not in self._tables[table]:
            raise RecordNotFound("update", table.value, record_id)
        self._tables[table][record_id].update(fields)
        return self._record(table, record_id)

    async def delete(self, table: TableName, record_id: str) -> dict[str, Any]:
        self._enter("delete", table)
        if record_id not in self._tables[table]:
            raise RecordNotFound("delete", table.value, record_id)
        del self._tables[table][record_id]
        return {"id": record_id, "deleted": True}

    async def find_by_id(self, table: TableName, record_id: str) -> Record:
        self._enter("find_by_id", table)
        if record_id not in self._tables[table]:
            raise RecordNotFound("find_by_id", table.value, record_id)
        return self._record(table, record_id)
