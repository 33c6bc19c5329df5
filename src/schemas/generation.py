"""Pydantic schemas for generation requests and follow-up actions."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.core.plans import DocType, PostAction


class GenerationCreate(BaseModel):
    """Schema for requesting one document."""

    doc_type: DocType = Field(..., description="Kind of document to generate")
    repo_url: str = Field(..., min_length=1, description="GitHub repository URL")
    file_path: Optional[str] = Field(
        default=None, description="Source file, required for comments"
    )
    license_id: str = Field(default="MIT", max_length=64)


class GenerationRead(BaseModel):
    content: str
    generation_id: int
    duration_ms: int
    usage: Dict[str, Any]


class TrackActionCreate(BaseModel):
    """Which generation an action applies to.

    ``generation_id`` is preferred; ``target_ref`` with ``doc_type`` picks
    the account's most recent matching generation.
    """

    action: PostAction
    generation_id: Optional[int] = None
    target_ref: Optional[str] = None
    doc_type: Optional[DocType] = None


class TrackActionRead(BaseModel):
    tracked: bool
    generation_id: Optional[int] = None
    reason: Optional[str] = None


class PullRequestCreate(BaseModel):
    repo_url: str = Field(..., min_length=1)
    doc_type: DocType
    content: str = Field(..., min_length=1)
    generation_id: Optional[int] = None
    path: Optional[str] = Field(default=None, description="Override the target file path")
