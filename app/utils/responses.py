"""
Standardized response utilities
"""

from typing import Any, Optional
from fastapi import status
from fastapi.responses import JSONResponse

from app.core.errors import (
    AuthError,
    NotFoundError,
    RemoteError,
    RsvpError,
    SessionStateError,
    StepError,
    UnknownGuestError,
)
from app.core.i18n import translate
from app.schemas.common import StandardResponse, ErrorResponse

def success_response(
    message: str,
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """Create standardized success response"""
    response = StandardResponse(
        success=True,
        message=message,
        data=data
    )
    return JSONResponse(
        content=response.model_dump(mode="json"),
        status_code=status_code
    )

def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Any = None,
    status_code: int = 400
) -> JSONResponse:
    """Create standardized error response"""
    response = ErrorResponse(
        message=message,
        error_code=error_code,
        details=details
    )
    return JSONResponse(
        content=response.model_dump(mode="json"),
        status_code=status_code
    )

def status_for_error(error: RsvpError) -> int:
    """HTTP status matching an RSVP error"""
    if isinstance(error, AuthError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(error, (UnknownGuestError, NotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, SessionStateError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, (RemoteError, StepError)):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_400_BAD_REQUEST

def rsvp_error_response(
    error: RsvpError,
    language: str = "en",
    details: Any = None
) -> JSONResponse:
    """Render an RSVP error as a localized error envelope"""
    return error_response(
        message=translate(error.code, language, **error.params),
        error_code=error.code,
        details=details if details is not None else error.params or None,
        status_code=status_for_error(error)
    )
