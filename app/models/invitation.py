"""
Invitation models for organization team invitations
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from app.models.team import OrgRole


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class InvitationCreate(BaseModel):
    """Request to send an invitation"""
    email: EmailStr
    role: OrgRole = OrgRole.MEMBER


class InvitationResponse(BaseModel):
    """Invitation as listed for the organization"""
    id: str
    email: str
    role: OrgRole
    status: InvitationStatus
    expires_at: datetime
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    invited_by_name: Optional[str] = None
    invited_by_email: Optional[str] = None


class InvitationAccept(BaseModel):
    """
    Accept invitation request.
    name and password are only required when the invited email has no account yet.
    """
    name: Optional[str] = Field(None, max_length=200)
    password: Optional[str] = None
