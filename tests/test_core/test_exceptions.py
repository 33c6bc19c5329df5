from __future__ import annotations

import pytest
from fastapi import status

from src.core.exceptions import (
    AuthenticationFailure,
    GenerationFailed,
    TransientStorageFailure,
    UnmappedPlanIdentifier,
    WebhookVerificationFailure,
)


@pytest.mark.parametrize(
    "error_cls, expected",
    [
        (AuthenticationFailure, status.HTTP_401_UNAUTHORIZED),
        (WebhookVerificationFailure, status.HTTP_400_BAD_REQUEST),
        (UnmappedPlanIdentifier, status.HTTP_422_UNPROCESSABLE_CONTENT),
        (TransientStorageFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
        (GenerationFailed, status.HTTP_502_BAD_GATEWAY),
    ],
)
def test_error_status_codes(error_cls, expected):
    assert error_cls.status_code == expected


def test_payload_carries_code_and_extra():
    error = UnmappedPlanIdentifier("Unknown price identifier: 'price_x'", extra={"price": "price_x"})

    assert error.to_payload() == {
        "message": "Unknown price identifier: 'price_x'",
        "code": "unmapped_plan",
        "price": "price_x",
    }
