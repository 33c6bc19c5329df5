"""Pydantic schemas for account resources."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class GitHubLogin(BaseModel):
    """Exchange a GitHub access token for a session token."""

    access_token: str = Field(..., min_length=1, description="GitHub OAuth access token")


class AccountRead(BaseModel):
    id: UUID
    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    plan: str
    is_pro: bool
    is_admin: bool = False
    survey_completed: bool = False
    api_calls_used: int = 0
    api_calls_limit: int = 0
    api_calls_reset_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SessionRead(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountRead
