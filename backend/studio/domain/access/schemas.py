"""Pydantic schemas for member management and the caller's own profile."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from studio.domain.access.memberships import DEFAULT_MEMBERSHIP_TYPE
from studio.domain.access.models import MemberProfile, MembershipGrant


class MemberCreateRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=40)


class MemberOut(BaseModel):
    id: str
    full_name: str
    role: str
    phone: Optional[str] = None
    created_at: dt.datetime

    @classmethod
    def from_model(cls, profile: MemberProfile) -> "MemberOut":
        return cls(**profile.to_row())


class MemberList(BaseModel):
    items: List[MemberOut]


class MembershipGrantRequest(BaseModel):
    type: str = Field(default=DEFAULT_MEMBERSHIP_TYPE, max_length=80)
    start_date: dt.date
    end_date: Optional[dt.date] = Field(default=None, description="Overrides months when set")
    months: int = Field(default=1, ge=1, le=36)


class MembershipOut(BaseModel):
    id: str
    user_id: str
    type: str
    start_date: dt.date
    end_date: dt.date
    status: str
    created_at: dt.datetime

    @classmethod
    def from_model(cls, grant: MembershipGrant) -> "MembershipOut":
        return cls(**grant.to_row())


class MembershipList(BaseModel):
    items: List[MembershipOut]


class MeOut(BaseModel):
    user_id: str
    role: Optional[str] = None
    home: str
    profile: Optional[MemberOut] = None
