from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import datetime
from typing import List, Optional


class SendEmailRequest(BaseModel):
    """Ad-hoc email sent by a platform admin"""
    to: List[EmailStr] = Field(..., min_length=1)
    subject: str = Field(..., min_length=1, max_length=300)
    html: Optional[str] = None
    text: Optional[str] = None

    @model_validator(mode="after")
    def require_body(self):
        if not self.html and not self.text:
            raise ValueError("html or text is required")
        return self


class PlatformStats(BaseModel):
    total_users: int = 0
    total_organizations: int = 0
    total_team_members: int = 0
    total_waitlist: int = 0
    pending_waitlist: int = 0
    total_invitations: int = 0
    pending_invitations: int = 0
    active_subscriptions: int = 0


class OrganizationSummary(BaseModel):
    id: str
    name: str
    slug: str
    created_at: Optional[datetime] = None
    user_count: int = 0
    team_member_count: int = 0


class OrganizationListing(BaseModel):
    organizations: List[OrganizationSummary]


class AdminUser(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    role: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubscriptionSummary(BaseModel):
    plan: str
    status: str
    current_period_end: Optional[datetime] = None


class OrganizationUsers(OrganizationSummary):
    """Organization with its users and subscription, for the admin user directory"""
    users: List[AdminUser] = []
    subscription: Optional[SubscriptionSummary] = None


class UserDirectory(BaseModel):
    organizations: List[OrganizationUsers]
    users_without_organization: List[AdminUser]
    total_organizations: int = 0
    total_users: int = 0
