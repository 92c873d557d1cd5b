"""Response conventions for the HTD API.

CONVENTIONS
-----------

1. GET single resource / mutation:
   Return StandardResponse: {"status": "success", "data": {...}, "message": "..."}

2. GET collection (paginated):
   Return: {"status": "success", "data": [...], "total": int, "limit": int, "offset": int}

3. File generation:
   Return the file itself (FileResponse) with a Content-Disposition attachment.

ERRORS
------
All errors use standard FastAPI HTTPException, which returns:
   {"detail": "Human-readable error message"}
ValidationFailed adds the individual messages:
   {"detail": {"message": "Validation failed", "errors": [...]}}

STATUS CODES
------------
- 200: Success
- 201: Created (POST)
- 400: Validation error / unsupported format
- 401: Missing X-User-Id
- 403: Access denied
- 404: Template or scheduled report not found
- 409: Scheduled report already running
- 500: Internal server error
"""

import logging
from typing import Any, Dict, List

from fastapi import HTTPException, status

from src.reporting.errors import (
    AccessDenied, ClaimConflict, ScheduledReportNotFound, TemplateNotFound,
    UnsupportedFormat, ValidationFailed,
)

logger = logging.getLogger(__name__)


def paginated(data: List[Dict], total: int, limit: int, offset: int) -> Dict[str, Any]:
    """Wrap a list result in a standard paginated envelope."""
    return {
        "status": "success",
        "data": data,
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def http_error(error: Exception, context: str) -> HTTPException:
    """Translate a service exception into the matching HTTP error."""
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, (TemplateNotFound, ScheduledReportNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, ValidationFailed):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Validation failed", "errors": error.errors},
        )
    if isinstance(error, UnsupportedFormat):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, AccessDenied):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, ClaimConflict):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))

    logger.exception(f"{context}: {error}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=context)
