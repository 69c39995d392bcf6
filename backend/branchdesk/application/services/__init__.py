from .access_scope_policy import AccessScopePolicy
from .audit_stamper import AuditStamper
from .audit_trail import AuditTrail
from .record_service import RecordService
from .bulk_operation_executor import BulkOperationExecutor
from .aggregation_engine import AggregationEngine

__all__ = [
    "AccessScopePolicy",
    "AuditStamper",
    "AuditTrail",
    "RecordService",
    "BulkOperationExecutor",
    "AggregationEngine",
]
