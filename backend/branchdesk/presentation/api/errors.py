"""Translation of domain exceptions into HTTP errors."""

import logging

from fastapi import HTTPException, status

from branchdesk.domain.exceptions import (
    BackendRejected,
    BackendUnavailable,
    BranchDeskError,
    InvalidTable,
    RecordNotFound,
    ScopeViolation,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

# Most specific first: RecordNotFound is also a BackendRejected
_STATUS_BY_ERROR: list[tuple[type[BranchDeskError], int]] = [
    (InvalidTable, status.HTTP_400_BAD_REQUEST),
    (ValidationFailed, 422),
    (ScopeViolation, status.HTTP_403_FORBIDDEN),
    (RecordNotFound, status.HTTP_404_NOT_FOUND),
    (BackendUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (BackendRejected, status.HTTP_502_BAD_GATEWAY),
]


def to_http_exception(exc: BranchDeskError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if status_code >= 500:
        logger.error("Request failed: %s", exc)
    return HTTPException(status_code=status_code, detail=str(exc))
