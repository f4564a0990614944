from fastapi import Request
from fastapi.responses import JSONResponse
import logging
from typing import Dict, Any
from app.core.logging import log_request_context

logger = logging.getLogger(__name__)

class APIError(Exception):
    """Base API exception"""

    def __init__(self, message: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class AuthenticationError(APIError):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication required", details: Dict[str, Any] = None):
        super().__init__(message, 401, details)

class AuthorizationError(APIError):
    """Authorization related errors"""

    def __init__(self, message: str = "Access denied", details: Dict[str, Any] = None):
        super().__init__(message, 403, details)

class NotFoundError(APIError):
    """Missing resource errors"""

    def __init__(self, message: str = "Not found", details: Dict[str, Any] = None):
        super().__init__(message, 404, details)

class ValidationError(APIError):
    """Validation related errors"""

    def __init__(self, message: str = "Validation failed", details: Dict[str, Any] = None):
        super().__init__(message, 400, details)

class ConflictError(APIError):
    """Duplicate invite, existing member, existing account"""

    def __init__(self, message: str = "Conflict", details: Dict[str, Any] = None, status_code: int = 400):
        super().__init__(message, status_code, details)

class TokenError(APIError):
    """
    Invitation, onboarding or reset token that cannot be used.

    `status` is the TokenStatus that made it unusable; unknown tokens map
    to 404, expired and already used tokens to 400 unless overridden.
    """

    def __init__(self, status, message: str = None, status_code: int = None):
        self.status = status
        value = getattr(status, "value", status)
        if status_code is None:
            status_code = 404 if value == "NOT_FOUND" else 400
        super().__init__(message or _TOKEN_MESSAGES.get(value, "Invalid token"), status_code, {"status": value})

_TOKEN_MESSAGES = {
    "NOT_FOUND": "Invalid or unknown link",
    "EXPIRED": "This link has expired",
    "ALREADY_USED": "This link has already been used or cancelled",
}

class DatabaseError(APIError):
    """Database operation errors"""

    def __init__(self, message: str = "Database operation failed", details: Dict[str, Any] = None):
        super().__init__(message, 500, details)

class EmailDeliveryError(APIError):
    """Transactional email could not be sent"""

    def __init__(self, message: str = "Failed to send email", details: Dict[str, Any] = None):
        super().__init__(message, 500, details)

class PaymentError(APIError):
    """Payment provider errors"""

    def __init__(self, message: str = "Payment failed", details: Dict[str, Any] = None, status_code: int = 402):
        super().__init__(message, status_code, details)

def _request_user_id(request: Request):
    session = getattr(request.state, 'session_context', None)
    return getattr(session, 'user_id', None) if session else None

async def api_exception_handler(request: Request, exc: APIError):
    """Handle custom API exceptions with logging"""

    context = log_request_context(_request_user_id(request))
    context.update({
        "error_type": exc.__class__.__name__,
        "status_code": exc.status_code,
        "path": str(request.url.path),
        "method": request.method
    })

    if exc.status_code >= 500:
        logger.error(f"API Error: {exc.message}", extra={"context": context})
    else:
        logger.warning(f"API Error: {exc.message}", extra={"context": context})

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "message": exc.message,
            "details": exc.details,
            "timestamp": context["timestamp"]
        }
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""

    context = log_request_context(_request_user_id(request))
    context.update({
        "error_type": exc.__class__.__name__,
        "path": str(request.url.path),
        "method": request.method
    })

    logger.error(f"Unexpected error: {str(exc)}", extra={"context": context}, exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": True,
            "message": "Internal server error",
            "timestamp": context["timestamp"]
        }
    )
