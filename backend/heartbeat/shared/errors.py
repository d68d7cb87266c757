# heartbeat/shared/errors.py
"""
Taxonomie d'erreurs métier.

Les services lèvent ces erreurs, les routers les traduisent en HTTPException.
DegradedModeWarning n'est jamais levée : c'est la catégorie du warning
renvoyé quand une opération a abouti via le store de secours.
"""
from typing import Optional

from fastapi import HTTPException


class HeartbeatError(Exception):
    status_code: int = 500

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(HeartbeatError, ValueError):
    status_code = 400


class NotFoundError(HeartbeatError, LookupError):
    status_code = 404


class UpstreamTimeout(HeartbeatError):
    status_code = 408


class UpstreamRateLimited(HeartbeatError):
    status_code = 429

    def __init__(self, message: str = "", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(HeartbeatError):
    status_code = 500


class DegradedModeWarning(UserWarning):
    pass


def to_http(error: HeartbeatError) -> HTTPException:
    """Traduction erreur métier → HTTPException (utilisée par les routers)."""
    headers = None
    if isinstance(error, UpstreamRateLimited) and error.retry_after:
        headers = {"Retry-After": str(int(error.retry_after))}
    return HTTPException(
        status_code=error.status_code,
        detail=error.message or "Internal server error",
        headers=headers,
    )
