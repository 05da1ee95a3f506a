"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so processor, commission, receipt and
mail-relay knobs can be overridden as one group, e.g. ``STRIPE__SECRET_KEY``,
``RECEIPTS__STRATEGY=document`` or ``EMAIL__API_KEY``.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field

from domain.payment.commission import DEFAULT_COMMISSION_RATE, SUPPORTED_CURRENCY


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None
    # API version pinned for ephemeral keys issued to the mobile SDK
    ephemeral_key_api_version: str = "2022-11-15"
    # 0 disables SDK-level retries: each dispatch is a single pass
    max_network_retries: int = 0


class CommissionSettings(BaseModel):
    rate: Decimal = Field(default=DEFAULT_COMMISSION_RATE, ge=0, le=1)
    supported_currency: str = SUPPORTED_CURRENCY


class ReceiptSettings(BaseModel):
    strategy: Literal["invoice", "document"] = "invoice"
    days_until_due: int = Field(default=1, ge=0)
    send_payer_copy: bool = False
    brand_name: str = "Marketplace"


class EmailSettings(BaseModel):
    api_key: Optional[str] = None
    from_email: Optional[str] = None
    reply_to: Optional[str] = None
    base_url: str = "https://api.resend.com"
    timeout: float = 15.0


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="stripe", validation_alias="PAYMENT__DEFAULT_PROVIDER")

    stripe: StripeSettings = Field(default_factory=StripeSettings)
    commission: CommissionSettings = Field(default_factory=CommissionSettings)
    receipts: ReceiptSettings = Field(default_factory=ReceiptSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
