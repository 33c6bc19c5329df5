"""Database models package exports."""

from src.db.models.account import Account
from src.db.models.api_key import ApiKey
from src.db.models.checkout_session import CheckoutSession
from src.db.models.generation import GenerationEvent
from src.db.models.survey_response import SurveyResponse

__all__ = [
    "Account",
    "ApiKey",
    "CheckoutSession",
    "GenerationEvent",
    "SurveyResponse",
]
