"""Translation of domain errors into HTTP responses."""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from garmentflow.core.observability import get_logger
from garmentflow.domain.shared.exceptions import DomainError, ErrorType

logger = get_logger(__name__)

ERROR_STATUS_CODES: dict[ErrorType, int] = {
    ErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorType.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorType.ALREADY_ASSIGNED: status.HTTP_409_CONFLICT,
    ErrorType.ASSIGNMENT_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorType.CONCURRENCY: status.HTTP_409_CONFLICT,
    ErrorType.INVALID_TEMPLATE: 422,
    ErrorType.INVARIANT_VIOLATION: 422,
    ErrorType.INCOMPATIBLE_ASSIGNMENT: 422,
}


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return the error's type, message and details with a matching status code."""
    if not isinstance(exc, DomainError):
        raise exc

    status_code = ERROR_STATUS_CODES.get(exc.error_type, status.HTTP_400_BAD_REQUEST)
    logger.info(
        "domain_error",
        path=request.url.path,
        error_type=exc.error_type.value,
        status_code=status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())
