"""Repository layer package."""

from src.repositories.account_repo import AccountRepo, IdentityProfile
from src.repositories.api_key_repo import ApiKeyRepo
from src.repositories.generation_repo import GenerationRepo
from src.repositories.metrics_repo import MetricsRepo
from src.repositories.survey_repo import SurveyRepo
from src.repositories.usage_repo import UsageRepo

__all__ = [
    "AccountRepo",
    "ApiKeyRepo",
    "GenerationRepo",
    "IdentityProfile",
    "MetricsRepo",
    "SurveyRepo",
    "UsageRepo",
]
