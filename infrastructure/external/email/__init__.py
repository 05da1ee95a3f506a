"""Mail relay factory."""
from __future__ import annotations

from application.ports.receipts import ReceiptMailer
from core.settings import payment_settings


def get_receipt_mailer() -> ReceiptMailer:
    from .resend_client import ResendMailer

    cfg = payment_settings.email
    return ResendMailer(
        api_key=cfg.api_key or "",
        from_email=cfg.from_email or "",
        base_url=cfg.base_url,
        timeout=cfg.timeout,
        reply_to=cfg.reply_to,
    )


__all__ = ["get_receipt_mailer"]
