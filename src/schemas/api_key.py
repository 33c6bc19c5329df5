"""Pydantic schemas for API keys. The secret is never part of a read model."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ApiKeyCreate(BaseModel):
    name: str = Field(default="Default", min_length=1, max_length=100)


class ApiKeyRead(BaseModel):
    id: UUID
    name: str
    key_prefix: str
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreated(ApiKeyRead):
    key: str = Field(..., description="Plaintext key, shown once")
