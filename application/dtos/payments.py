"""
Payment DTOs (Pydantic v2) used at application boundaries.

HTTP-facing models accept and emit camelCase keys (``payerEmail``) while
Python code uses snake_case attributes.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict, EmailStr, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----- HTTP boundary -----

class CreateIntentRequest(CamelModel):
    amount: Decimal = Field(..., ge=0, description="Service amount in major currency units")
    currency: str = Field(..., min_length=1)
    payer_email: EmailStr
    provider_email: EmailStr
    service_description: str = Field(..., min_length=1, max_length=500)
    payment_method: Optional[str] = None
    booking_id: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("amount must be a finite number")
        return v


class IntentResponse(CamelModel):
    client_secret: Optional[str]
    ephemeral_key: str
    customer_id: str
    payment_id: str
    provider_email: str
    payment_method: str
    payment_date: str
    currency: str
    status: str
    commission_rate: str
    original_amount: Decimal
    commission_amount: Decimal
    total_amount: Decimal


class ReceiptRequest(CamelModel):
    """Manual dispatch (``paymentId``) or booking-status event (``bookingId``)."""

    payment_id: Optional[str] = None
    booking_id: Optional[str] = None
    type: Optional[Literal["bookingStatusChange"]] = None

    @model_validator(mode="after")
    def _require_reference(self):
        if self.booking_id and self.type == "bookingStatusChange":
            return self
        if not self.payment_id:
            raise ValueError("Payment ID is required")
        return self

    @property
    def is_booking_event(self) -> bool:
        return bool(self.booking_id) and self.type == "bookingStatusChange"


class PaymentDetails(CamelModel):
    original_amount: Decimal
    commission_amount: Decimal
    total_amount: Decimal
    commission_rate: str
    service_description: str
    payment_date: str


class ReceiptResult(CamelModel):
    message: str
    payment_id: Optional[str] = None
    booking_id: Optional[str] = None
    skipped: bool = False
    strategy: Optional[str] = None
    reference: Optional[str] = None
    hosted_url: Optional[str] = None
    sent_to: list[str] = Field(default_factory=list)
    # False for the invoice strategy: the processor mails the payer only
    provider_notified: Optional[bool] = None
    payment_details: Optional[PaymentDetails] = None


# ----- Gateway boundary -----

class PayerIdentity(BaseModel):
    customer_id: str
    email: str


class EphemeralCredential(BaseModel):
    secret: str
    expires_at: Optional[datetime] = None


class CreatePaymentIntent(BaseModel):
    amount_minor: int = Field(..., ge=0)
    currency: str
    customer_id: str
    metadata: dict[str, str] = Field(default_factory=dict)
    payment_method: Optional[str] = None


class PaymentRecord(BaseModel):
    payment_id: str
    status: str
    state: Optional[str] = None
    amount_minor: int
    currency: str
    customer_id: Optional[str] = None
    client_secret: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)


class InvoiceField(BaseModel):
    name: str
    value: str


class CreateInvoice(BaseModel):
    customer_id: str
    recipient_email: str
    description: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    custom_fields: list[InvoiceField] = Field(default_factory=list)
    days_until_due: int = 1


class InvoiceRecord(BaseModel):
    invoice_id: str
    status: str
    hosted_invoice_url: Optional[str] = None
    customer_email: Optional[str] = None


# ----- Receipt delivery -----

class EmailAttachment(BaseModel):
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class OutboundEmail(BaseModel):
    to: list[str]
    subject: str
    html: str
    text: Optional[str] = None
    reply_to: Optional[str] = None
    attachments: list[EmailAttachment] = Field(default_factory=list)
    tags: Optional[list[dict[str, Any]]] = None


class ReceiptDelivery(BaseModel):
    strategy: str
    reference: str
    recipients: list[str]
    provider_notified: bool = False
    hosted_url: Optional[str] = None
