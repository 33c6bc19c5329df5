"""Pydantic schema for the onboarding survey."""
from typing import List, Optional

from pydantic import BaseModel, Field


class SurveyCreate(BaseModel):
    role: str = Field(..., min_length=1, max_length=100)
    team_size: str = Field(..., min_length=1, max_length=50)
    doc_frequency: str = Field(..., min_length=1, max_length=50)
    important_docs: List[str] = Field(default_factory=list, max_length=20)
    would_pay: str = Field(..., min_length=1, max_length=50)
    feedback: Optional[str] = Field(default=None, max_length=500)
    email: Optional[str] = Field(default=None, max_length=255)
