"""Version 1 API router."""
from fastapi import APIRouter

from src.api.v1.endpoints import (
    admin,
    auth,
    billing,
    external,
    generations,
    keys,
    pull_requests,
    survey,
    users,
)

api_router = APIRouter()

for module in (
    auth,
    users,
    generations,
    pull_requests,
    keys,
    external,
    billing,
    survey,
    admin,
):
    api_router.include_router(module.router)
