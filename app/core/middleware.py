import logging
import time
from typing import Optional, Dict, Any
from fastapi import Request

logger = logging.getLogger(__name__)

class SessionContext:
    """Session context object"""
    def __init__(self, session_data: Optional[Dict[str, Any]] = None):
        if session_data:
            self.session_id = session_data['session_id']
            self.user_id = session_data['user_id']
            self.email = session_data['email']
            self.name = session_data['name']
            self.role = session_data['role']
            self.organization_id = session_data['organization_id']
            self.member_id = session_data['member_id']
            self.org_role = session_data['org_role']
            self.expires_at = session_data['expires_at']
            self.is_valid = True
        else:
            self.session_id = None
            self.user_id = None
            self.email = None
            self.name = None
            self.role = None
            self.organization_id = None
            self.member_id = None
            self.org_role = None
            self.expires_at = None
            self.is_valid = False

    @property
    def is_platform_admin(self) -> bool:
        return self.is_valid and self.role == 'ADMIN'

PUBLIC_ENDPOINTS = [
    '/docs', '/redoc', '/openapi.json', '/health',
    '/auth/login', '/auth/forgot-password', '/auth/reset-password',
    '/waitlist', '/onboarding', '/billing/webhook',
]

async def session_validation_middleware(request: Request, call_next):
    """
    Middleware to resolve the session cookie for protected endpoints.
    Sets request.state.session_context; authorization is left to the
    route dependencies.
    """
    path = request.url.path

    if path == '/' or any(path.startswith(endpoint) for endpoint in PUBLIC_ENDPOINTS):
        request.state.session_context = SessionContext()
        return await call_next(request)

    from app.core.security import get_session_from_request
    try:
        session_data = await get_session_from_request(request)
        request.state.session_context = SessionContext(session_data)
    except Exception as e:
        logger.warning(f"Session validation error for path {path}: {e}")
        request.state.session_context = SessionContext()

    return await call_next(request)

def get_session_context(request: Request) -> SessionContext:
    """Helper function to get session context from request"""
    return getattr(request.state, 'session_context', SessionContext())

async def request_logging_middleware(request: Request, call_next):
    """Simple request logging middleware"""
    start_time = time.time()

    response = await call_next(request)

    duration = round((time.time() - start_time) * 1000, 2)
    logger.info(f"{request.method} {request.url.path} | {response.status_code} | {duration}ms")

    return response
