from .table import TableName, TableRule, TABLE_RULES, resolve_table, rule_for
from .record import EXEMPT_ROLES, CallerIdentity, Record, Role
from .bulk import BulkItemError, BulkOperation, BulkResult
from .aggregation import AggregationResult, PerEntityStat
from .audit_entry import AuditEntry, Severity, severity_for

__all__ = [
    "TableName",
    "TableRule",
    "TABLE_RULES",
    "resolve_table",
    "rule_for",
    "EXEMPT_ROLES",
    "CallerIdentity",
    "Record",
    "Role",
    "BulkItemError",
    "BulkOperation",
    "BulkResult",
    "AggregationResult",
    "PerEntityStat",
    "AuditEntry",
    "Severity",
    "severity_for",
]
