"""Domain entities: the universal Record and the caller identity."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from branchdesk.domain.entities.table import TableName


class Role(str, Enum):
    """Known caller roles."""

    ADMIN = "admin"
    BOSS = "boss"
    MANAGER = "manager"
    HR = "hr"
    LOGISTICS = "logistics"
    SALES = "sales"


# Roles that see and write records across every branch
EXEMPT_ROLES: frozenset[str] = frozenset({Role.BOSS.value, Role.ADMIN.value})


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling, as vouched for by the upstream authentication layer.

    ``branch_id`` is ``None`` only for roles with cross-branch visibility.
    """

    user_id: str
    role: str
    branch_id: str | None = None

    @property
    def is_exempt(self) -> bool:
        return self.role in EXEMPT_ROLES


@dataclass
class Record:
    """A single row from the record store.

    ``fields`` is untyped: each business route reads the keys it expects.
    Audit metadata lives inside ``fields`` in the store and is surfaced
    through the read-only properties below.
    """

    id: str
    table: TableName
    fields: dict[str, Any] = field(default_factory=dict)
    created_time: str | None = None  # assigned by the store

    @property
    def created_at(self) -> str | None:
        return self.fields.get("created_at")

    @property
    def updated_at(self) -> str | None:
        return self.fields.get("updated_at")

    @property
    def created_by(self) -> str | None:
        return self.fields.get("created_by")

    @property
    def updated_by(self) -> str | None:
        return self.fields.get("updated_by")

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def to_flat_dict(self) -> dict[str, Any]:
        """Return ``{"id": ..., **fields}``: the shape the frontend consumes."""
        return {"id": self.id, **self.fields}
