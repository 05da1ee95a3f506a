"""
Receipt delivery ports: document rendering, mail relay and the delivery
strategy the dispatcher is configured with.
"""
from __future__ import annotations

from typing import Protocol

from application.dtos.payments import OutboundEmail, ReceiptDelivery
from domain.payment.receipt import Receipt, ReceiptAudience


class ReceiptRenderer(Protocol):
    content_type: str
    extension: str

    def render(self, receipt: Receipt, audience: ReceiptAudience) -> bytes: ...

    def render_html(self, receipt: Receipt, audience: ReceiptAudience) -> str: ...


class ReceiptMailer(Protocol):
    async def send(self, message: OutboundEmail) -> str: ...

    async def aclose(self) -> None: ...


class ReceiptStrategy(Protocol):
    """One way of producing and delivering a receipt (chosen once at startup)."""

    name: str

    async def deliver(self, receipt: Receipt) -> ReceiptDelivery: ...


__all__ = ["ReceiptRenderer", "ReceiptMailer", "ReceiptStrategy"]
