"""
Organization membership models
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class OrgRole(str, Enum):
    """Roles inside an organization"""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class MemberStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class TeamMember(BaseModel):
    """Member of an organization"""
    id: str
    user_id: str
    name: Optional[str] = None
    email: str
    role: OrgRole
    status: MemberStatus
    joined_at: Optional[datetime] = None


class MemberRoleUpdate(BaseModel):
    """Change the role of a member"""
    role: OrgRole


class OrganizationSetup(BaseModel):
    """Create an organization for a user who has none"""
    organization_name: str = Field(..., max_length=200)
