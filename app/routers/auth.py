from fastapi import APIRouter, Depends, Query, Request, Response
import logging

from app.core.dependencies import AuthenticatedUser, get_authenticated_user
from app.core.exceptions import AuthenticationError
from app.core.security import (
    clear_session_cookie, create_session, end_session, get_session_token,
    set_session_cookie, verify_password
)
from app.database import get_db_connection
from app.models.auth import AuthResponse, ForgotPasswordRequest, LoginRequest, ResetPasswordRequest
from app.services import password_reset_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, response: Response):
    """
    Password login.

    Creates a session and sets the session cookie.
    """
    email = data.email.lower()

    async with get_db_connection() as conn:
        user = await conn.fetchrow(
            "SELECT id, name, email, password_hash FROM users WHERE lower(email) = $1",
            email
        )

        if not user or not verify_password(data.password, user['password_hash']):
            logger.warning(f"Failed login attempt for {email}")
            raise AuthenticationError("Invalid email or password")

        session_token = await create_session(conn, user['id'])

    set_session_cookie(response, session_token)
    logger.info(f"User logged in: {email}")

    return AuthResponse(
        success=True,
        message="Login successful",
        user_id=str(user['id']),
        email=user['email'],
        name=user['name']
    )


@router.post("/logout")
async def logout(request: Request, response: Response):
    """End the current session and clear the cookie"""
    session_token = get_session_token(request)
    if session_token:
        await end_session(session_token)

    clear_session_cookie(response)
    return {"success": True, "message": "Logged out"}


@router.get("/me")
async def get_me(user: AuthenticatedUser = Depends(get_authenticated_user)):
    """Current user with platform role and organization membership"""
    organization = None
    if user.organization_id:
        async with get_db_connection(use_transaction=False) as conn:
            organization = await conn.fetchrow(
                "SELECT id, name, slug FROM organizations WHERE id = $1",
                user.organization_id
            )

    return {
        "id": user.user_id,
        "email": user.email,
        "name": user.name,
        "role": user.session.role,
        "is_admin": user.is_platform_admin,
        "organization": {
            "id": str(organization['id']),
            "name": organization['name'],
            "slug": organization['slug'],
        } if organization else None,
        "org_role": user.org_role,
    }


@router.post("/forgot-password")
async def forgot_password(data: ForgotPasswordRequest):
    """
    Request a password reset link.
    Always answers with the same message.
    """
    return await password_reset_service.request_password_reset(data.email)


@router.get("/reset-password/verify")
async def verify_reset_token(token: str = Query(..., min_length=1)):
    return await password_reset_service.verify_reset_token(token)


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest):
    return await password_reset_service.reset_password(data.token, data.password)
