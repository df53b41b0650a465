"""
Translation of service exceptions into HTTP errors
"""
from fastapi import HTTPException

from app.core.exceptions import (
    AuthError, ConfigError, NotFoundError, OAuthStateError,
    SyncAlreadyRunningError, UpstreamError,
)


def to_http_exception(error: Exception) -> HTTPException:
    if isinstance(error, SyncAlreadyRunningError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, ValueError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, OAuthStateError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConfigError):
        return HTTPException(status_code=412, detail=str(error))
    if isinstance(error, (AuthError, UpstreamError)):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
