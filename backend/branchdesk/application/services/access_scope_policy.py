"""Branch isolation for every read and write against the record store.

The branch boundary is enforced twice: as a formula clause conjoined onto
reads (so the store filters server-side), and as a check on every record or
payload that crosses this layer (so a store-side formula mismatch, e.g. on
linked-record fields, can never leak another branch's rows).
"""

from collections.abc import Mapping
from typing import Any

from branchdesk.domain.entities import CallerIdentity, Record, TableName, rule_for
from branchdesk.domain.exceptions import ScopeViolation

BRANCH_FIELD = "branch_id"


def quote_formula_string(value: str) -> str:
    """Quote a value as a single-quoted formula string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def and_formulas(*clauses: str | None) -> str | None:
    """AND together the non-empty clauses; a single clause is returned as-is."""
    parts = [c.strip() for c in clauses if c and c.strip()]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return f"AND({', '.join(parts)})"


def branch_matches(value: Any, branch_id: str) -> bool:
    """True when a record's branch_id names ``branch_id``.

    Linked-record fields arrive as a list of ids; plain fields as a string.
    """
    if isinstance(value, (list, tuple)):
        return branch_id in value
    return value == branch_id


def _is_blank_branch(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    return value is None or (isinstance(value, (list, tuple)) and not value)


class AccessScopePolicy:
    """Pure policy object: decides what a caller may see and write."""

    def applies_to(self, identity: CallerIdentity, table: TableName) -> bool:
        """Whether ``identity`` is restricted to its branch on ``table``."""
        return rule_for(table).branch_scoped and not identity.is_exempt

    def _require_branch(self, identity: CallerIdentity, table: TableName) -> str:
        if not identity.branch_id:
            raise ScopeViolation(
                table.value,
                f"role '{identity.role}' requires a branch to access this table",
            )
        return identity.branch_id

    def branch_clause(self, branch_id: str) -> str:
        return f"{{{BRANCH_FIELD}}} = {quote_formula_string(branch_id)}"

    def scope_filter(
        self,
        identity: CallerIdentity,
        table: TableName,
        requested_filter: str | None = None,
    ) -> str | None:
        """Return the filter that must be sent for this caller's read."""
        if not self.applies_to(identity, table):
            return requested_filter
        branch_id = self._require_branch(identity, table)
        return and_formulas(requested_filter, self.branch_clause(branch_id))

    def scope_payload(
        self,
        identity: CallerIdentity,
        table: TableName,
        fields: Mapping[str, Any],
        *,
        inject: bool = True,
    ) -> dict[str, Any]:
        """Return a copy of ``fields`` pinned to the caller's branch.

        A missing branch_id is injected (when ``inject``), a blank one is always
        pinned back to the caller's branch, and one naming another branch is
        rejected.
        """
        scoped = dict(fields)
        if not rule_for(table).branch_scoped or identity.is_exempt:
            # Exempt callers may still be branch-bound: fill the gap for them too
            if inject and rule_for(table).branch_scoped and identity.branch_id:
                scoped.setdefault(BRANCH_FIELD, identity.branch_id)
            return scoped

        branch_id = self._require_branch(identity, table)
        if BRANCH_FIELD not in scoped:
            if inject:
                scoped[BRANCH_FIELD] = branch_id
        elif _is_blank_branch(scoped[BRANCH_FIELD]):
            # A branch-bound caller can never unassign a record
            scoped[BRANCH_FIELD] = branch_id
        elif not branch_matches(scoped[BRANCH_FIELD], branch_id):
            raise ScopeViolation(table.value, "cannot write a record for another branch")
        return scoped

    def is_visible(self, identity: CallerIdentity, table: TableName, record: Record) -> bool:
        if not self.applies_to(identity, table):
            return True
        if not identity.branch_id:
            return False
        return branch_matches(record.get(BRANCH_FIELD), identity.branch_id)

    def ensure_visible(self, identity: CallerIdentity, table: TableName, record: Record) -> None:
        """Raise ScopeViolation when ``record`` lies outside the caller's branch."""
        if self.applies_to(identity, table):
            self._require_branch(identity, table)
        if not self.is_visible(identity, table, record):
            raise ScopeViolation(table.value, f"record '{record.id}' belongs to another branch")
