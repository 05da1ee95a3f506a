"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Input errors raised before any provider call (6xxxx)
    UNSUPPORTED_CURRENCY = 60010
    INVALID_AMOUNT = 60011

    # Provider/Network errors
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001

    # Receipt dispatch
    RECEIPT_NOT_ELIGIBLE = 61000
    RECEIPT_DELIVERY_FAILED = 61001


# Provider→internal status mapping
PROVIDER_STATUS_TO_INTERNAL = {
    "stripe": {
        "requires_payment_method": "awaiting_payment",
        "requires_confirmation": "awaiting_payment",
        "requires_action": "pending",
        "processing": "pending",
        "requires_capture": "pending",
        "succeeded": "succeeded",
        "canceled": "canceled",
    },
}
