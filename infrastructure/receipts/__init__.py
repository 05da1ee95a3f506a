"""Receipt delivery strategy assembly."""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import PaymentGateway
from application.ports.receipts import ReceiptMailer, ReceiptRenderer, ReceiptStrategy
from application.services.receipt_service import (
    EmailedDocumentReceiptStrategy,
    InvoiceReceiptStrategy,
)
from core.settings import payment_settings

from .pdf import ReportLabReceiptRenderer


def build_receipt_strategy(
    gateway: PaymentGateway,
    mailer: Optional[ReceiptMailer] = None,
    renderer: Optional[ReceiptRenderer] = None,
    strategy: Optional[str] = None,
) -> ReceiptStrategy:
    cfg = payment_settings.receipts
    kind = (strategy or cfg.strategy).lower()
    if kind == "invoice":
        return InvoiceReceiptStrategy(gateway, days_until_due=cfg.days_until_due)
    if kind == "document":
        if mailer is None:
            raise RuntimeError("document receipts require a mail relay")
        return EmailedDocumentReceiptStrategy(
            renderer or ReportLabReceiptRenderer(brand_name=cfg.brand_name),
            mailer,
            send_payer_copy=cfg.send_payer_copy,
            brand_name=cfg.brand_name,
            reply_to=payment_settings.email.reply_to,
        )
    raise ValueError(f"Unsupported receipt strategy: {kind}")


__all__ = ["ReportLabReceiptRenderer", "build_receipt_strategy"]
