"""Coordinates entitlement, generation and usage recording for one request."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import status

from src.core.exceptions import AppError, EntitlementDenied, GenerationFailed, TransientStorageFailure
from src.core.plans import Channel
from src.services.documents import DocumentGenerator, GenerationRequest
from src.services.entitlements import Entitlement, EntitlementEvaluator
from src.services.usage_recorder import UsageRecorder

logger = logging.getLogger(__name__)

DENIAL_STATUS = {
    Channel.WEB: status.HTTP_402_PAYMENT_REQUIRED,
    Channel.API: status.HTTP_429_TOO_MANY_REQUESTS,
}


@dataclass(frozen=True)
class GenerationOutcome:
    content: str
    generation_id: int
    duration_ms: int
    entitlement: Entitlement


class GenerationOrchestrator:
    """evaluate -> generate -> record.

    Nothing is recorded unless the generator returned; a denial stops
    before any external call.

    Evaluation and recording are separate statements, so the limit is soft
    under concurrency: requests that are evaluated together at ``limit - 1``
    can all succeed and push usage past the limit. The counter itself stays
    exact; the overshoot is bounded by the number of in-flight requests.
    """

    def __init__(
        self,
        evaluator: EntitlementEvaluator,
        recorder: UsageRecorder,
        generator: DocumentGenerator,
        *,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.evaluator = evaluator
        self.recorder = recorder
        self.generator = generator
        self.timeout_seconds = timeout_seconds

    async def run(
        self, account_id: UUID, channel: Channel, request: GenerationRequest
    ) -> GenerationOutcome:
        entitlement = await self.evaluator.evaluate(account_id, channel)
        if not entitlement.allowed:
            if entitlement.unavailable:
                raise TransientStorageFailure()
            raise EntitlementDenied(
                entitlement,
                _denial_message(entitlement),
                status_code=DENIAL_STATUS[channel],
            )

        started = time.monotonic()
        try:
            content = await asyncio.wait_for(
                self.generator.generate(request), timeout=self.timeout_seconds
            )
        except AppError:
            raise
        except Exception as exc:
            logger.exception(
                "Generation of %s for %s failed", request.doc_type.value, request.target_ref
            )
            raise GenerationFailed() from exc
        duration_ms = int((time.monotonic() - started) * 1000)

        event = await self.recorder.record_generation(
            account_id, request.doc_type, request.target_ref, channel, duration_ms
        )
        return GenerationOutcome(
            content=content,
            generation_id=event.id,
            duration_ms=duration_ms,
            entitlement=entitlement.after_one_more(),
        )


def _denial_message(entitlement: Entitlement) -> str:
    if entitlement.limit == 0:
        if entitlement.channel is Channel.API:
            return "API access requires the API Metered or Bundle plan."
        return "Your plan does not include web generations."
    if entitlement.channel is Channel.API:
        return f"API limit reached ({entitlement.usage}/{entitlement.limit})."
    return (
        f"Monthly generation limit reached ({entitlement.usage}/{entitlement.limit}). "
        "Upgrade your plan."
    )
