from typing import Any

from fastapi import HTTPException, status

from ..domain.errors import DomainError


def http_error(exc: DomainError) -> HTTPException:
    detail: Any = exc.message
    if exc.code is not None:
        detail = {"error": exc.message, "code": exc.code}
    return HTTPException(status_code=exc.status_code, detail=detail)


def audit_failed() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
