"""
Resend transactional email relay adapter (``POST /emails``) over httpx.

One AsyncClient is created per mailer and reused until ``aclose``; the
relay call is made once per message with no retry.
"""
from __future__ import annotations

import base64
from typing import Optional

import httpx

from application.dtos.payments import OutboundEmail
from application.ports.receipts import ReceiptMailer
from core.logging_config import get_logger
from domain.common.exceptions import ReceiptDeliveryError


logger = get_logger(__name__)

CHANNEL = "email"


class ResendMailer(ReceiptMailer):
    def __init__(
        self,
        *,
        api_key: str,
        from_email: str,
        base_url: str = "https://api.resend.com",
        timeout: float = 15.0,
        reply_to: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("EMAIL__API_KEY not configured")
        if not from_email:
            raise RuntimeError("EMAIL__FROM_EMAIL not configured")
        self.from_email = from_email
        self.reply_to = reply_to
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            transport=transport,
        )

    def _payload(self, message: OutboundEmail) -> dict:
        payload: dict = {
            "from": self.from_email,
            "to": list(message.to),
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text
        reply_to = message.reply_to or self.reply_to
        if reply_to:
            payload["reply_to"] = [reply_to]
        if message.tags:
            payload["tags"] = message.tags
        if message.attachments:
            payload["attachments"] = [
                {
                    "filename": a.filename,
                    "content": base64.b64encode(a.content).decode("ascii"),
                    "content_type": a.content_type,
                }
                for a in message.attachments
            ]
        return payload

    async def send(self, message: OutboundEmail) -> str:  # type: ignore[override]
        try:
            resp = await self._client.post("/emails", json=self._payload(message))
        except httpx.HTTPError as exc:
            logger.error("email_relay_request_failed", to=message.to, error=str(exc))
            raise ReceiptDeliveryError(
                f"Email relay request failed: {exc}", channel=CHANNEL, details={"to": message.to}
            ) from exc

        if resp.status_code >= 400:
            try:
                data = resp.json()
            except ValueError:
                data = {"message": resp.text}
            error = data.get("message") or data.get("error") or resp.reason_phrase
            logger.error("email_relay_api_error", status_code=resp.status_code, to=message.to, error=error)
            raise ReceiptDeliveryError(
                f"Email relay rejected message: {error}",
                channel=CHANNEL,
                details={"to": message.to, "status_code": resp.status_code},
            )

        try:
            message_id = str(resp.json().get("id") or "")
        except ValueError:
            message_id = ""
        logger.info("email_sent", to=message.to, message_id=message_id, attachments=len(message.attachments))
        return message_id

    async def aclose(self) -> None:  # type: ignore[override]
        await self._client.aclose()
