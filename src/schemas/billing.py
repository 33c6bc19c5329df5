"""Pydantic schemas for checkout and webhook acknowledgements."""
from typing import Optional

from pydantic import BaseModel

from src.core.plans import PlanId


class CheckoutCreate(BaseModel):
    plan: PlanId


class CheckoutRead(BaseModel):
    url: str
    session_id: str


class WebhookAck(BaseModel):
    received: bool = True
    status: str
    plan: Optional[str] = None
