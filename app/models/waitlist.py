from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


class WaitlistStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class WaitlistJoin(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    company: Optional[str] = Field(None, max_length=200)
    message: Optional[str] = Field(None, max_length=2000)


class WaitlistEntry(BaseModel):
    id: str
    email: str
    name: str
    company: Optional[str] = None
    message: Optional[str] = None
    status: WaitlistStatus
    token_expires_at: Optional[datetime] = None
    token_consumed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class WaitlistStatusUpdate(BaseModel):
    status: WaitlistStatus


class WaitlistStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class WaitlistListing(BaseModel):
    waitlist: List[WaitlistEntry]
    stats: WaitlistStats
