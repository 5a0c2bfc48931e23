# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


# -- Requests --------------------------------------------------------------


class LoginRequest(BaseModel):
    username: str
    password: str


# -- Responses -------------------------------------------------------------


class UserInfo(BaseModel):
    id: int
    username: str
    tenant_id: Optional[int] = None
    is_superuser: bool

    model_config = {"from_attributes": True}


class TenantInfo(BaseModel):
    id: int
    name: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LoginData(BaseModel):
    access_token: str
    token_type: str  # always "bearer"
    expires_at: datetime
    is_superuser: bool
    user: UserInfo
    tenant: Optional[TenantInfo] = None


class SessionInfo(BaseModel):
    user: UserInfo
    tenant: Optional[TenantInfo] = None
    is_superuser: bool
    unlocked: bool
    expires_at: Optional[datetime] = None
