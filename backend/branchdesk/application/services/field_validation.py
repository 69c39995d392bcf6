"""Payload checks run before any record store call."""

from collections.abc import Mapping
from typing import Any

from branchdesk.domain.entities import TableName, rule_for
from branchdesk.domain.exceptions import ValidationFailed

# Keys the store owns; a payload may never set them
_RESERVED_KEYS = frozenset({"id", "createdTime"})


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, dict)) and not value:
        return True
    return False


def validate_fields(table: TableName, fields: Any, *, partial: bool = False) -> dict[str, Any]:
    """Check a create (or, with ``partial``, an update) payload for ``table``.

    Returns the payload as a plain dict. Creates must carry every required
    field of the table; updates may omit them but may not blank them out.
    """
    if not isinstance(fields, Mapping):
        raise ValidationFailed(f"Payload for '{table.value}' must be an object")
    if partial and not fields:
        raise ValidationFailed(f"Update for '{table.value}' has no fields")

    bad_keys = [k for k in fields if not isinstance(k, str) or not k.strip()]
    if bad_keys:
        raise ValidationFailed("Field names must be non-empty strings")

    reserved = sorted(_RESERVED_KEYS.intersection(fields))
    if reserved:
        raise ValidationFailed(
            f"Field(s) {', '.join(reserved)} are assigned by the store", fields=reserved
        )

    required = rule_for(table).required_fields
    if partial:
        missing = sorted(k for k in required if k in fields and _is_blank(fields[k]))
    else:
        missing = sorted(k for k in required if _is_blank(fields.get(k)))
    if missing:
        raise ValidationFailed(
            f"Missing required field(s) for '{table.value}': {', '.join(missing)}",
            fields=missing,
        )
    return dict(fields)
