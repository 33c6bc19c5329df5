"""Plan, channel and document-type vocabularies shared across layers."""
from __future__ import annotations

from enum import Enum
from typing import Dict, Mapping

from pydantic import BaseModel, Field

UNLIMITED = -1


class PlanId(str, Enum):
    """Closed set of plans an account can be on."""

    FREE = "free"
    WEB_UNLIMITED = "web_unlimited"
    API_METERED = "api_metered"
    BUNDLE = "bundle"


class Channel(str, Enum):
    """Access path of a generation request."""

    WEB = "web"
    API = "api"


class DocType(str, Enum):
    README = "readme"
    CHANGELOG = "changelog"
    CONTRIBUTING = "contributing"
    LICENSE = "license"
    CODE_OF_CONDUCT = "codeofconduct"
    COMMENTS = "comments"
    CLASS_DIAGRAM = "class_diagram"


class PostAction(str, Enum):
    """Follow-up actions a user can take on a generated document."""

    COPY = "copy"
    DOWNLOAD = "download"
    PR = "pr"

    @property
    def flag(self) -> str:
        return _ACTION_FLAGS[self]


_ACTION_FLAGS = {
    PostAction.COPY: "copied",
    PostAction.DOWNLOAD: "downloaded",
    PostAction.PR: "pr_created",
}


class PlanLimits(BaseModel):
    """Per-channel limits and flags granted by a plan.

    ``-1`` means unlimited and ``0`` means the plan does not include the
    channel at all. The API limit is copied onto the account row as
    ``api_calls_limit``, which is never unlimited.
    """

    web_limit: int = Field(..., ge=UNLIMITED)
    api_limit: int = Field(..., ge=0)
    is_pro: bool = False

    def limit_for(self, channel: Channel) -> int:
        if channel is Channel.WEB:
            return self.web_limit
        return self.api_limit


PlanTable = Mapping[PlanId, PlanLimits]

DEFAULT_PLAN_TABLE: Dict[PlanId, PlanLimits] = {
    PlanId.FREE: PlanLimits(web_limit=1, api_limit=0, is_pro=False),
    PlanId.WEB_UNLIMITED: PlanLimits(web_limit=UNLIMITED, api_limit=0, is_pro=True),
    PlanId.API_METERED: PlanLimits(web_limit=1, api_limit=100, is_pro=True),
    PlanId.BUNDLE: PlanLimits(web_limit=UNLIMITED, api_limit=100, is_pro=True),
}
