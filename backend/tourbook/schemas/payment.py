"""
Pydantic schemas for payment initialization and IremboPay webhooks.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from tourbook.schemas.base import CamelModel


class PaymentInitializeRequest(CamelModel):
    booking_id: str = Field(..., min_length=1)


class PaymentInitializeResponse(CamelModel):
    invoice_id: str
    payment_url: str


class WebhookPaymentData(CamelModel):
    """The ``data`` object of an IremboPay payment notification."""

    invoice_number: str = ""
    transaction_id: str = ""
    payment_status: str = ""
    paid_at: Optional[datetime] = None
    amount: Optional[float] = None
    currency: Optional[str] = None

    @field_validator("invoice_number", "transaction_id", "payment_status", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("paid_at", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        return None if value == "" else value

    @property
    def normalized_status(self) -> str:
        return self.payment_status.strip().upper()


class WebhookPayload(CamelModel):
    data: WebhookPaymentData


class WebhookAck(CamelModel):
    received: bool = True
