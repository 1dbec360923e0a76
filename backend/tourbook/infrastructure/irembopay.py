"""
IremboPay hosted-invoice client.

Only invoice creation is needed: the customer pays on IremboPay's hosted
checkout and the outcome arrives later through the signed webhook.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

import httpx

from tourbook.core.config import Settings, get_settings
from tourbook.core.exceptions import UpstreamError
from tourbook.core.logging import get_logger
from tourbook.core.metrics import provider_latency

logger = get_logger(__name__)

INVOICE_PATH = "/payments/invoices"


@dataclass(frozen=True)
class InvoiceRequest:
    transaction_id: str  # our booking id, echoed back by the provider
    product_code: str
    amount: Decimal
    currency: str
    customer_name: str
    customer_email: str
    customer_phone: str
    description: str
    expires_at: datetime
    callback_url: Optional[str] = None  # where IremboPay posts the payment notification
    return_url: Optional[str] = None  # where the customer lands after checkout
    language: str = "EN"


@dataclass(frozen=True)
class Invoice:
    invoice_number: str
    payment_url: str
    transaction_id: Optional[str]


class IremboPayClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "irembopay-secretKey": self.settings.IREMBO_SECRET_KEY,
            "X-API-Version": self.settings.IREMBO_API_VERSION,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _payload(self, request: InvoiceRequest) -> dict:
        customer = {"email": request.customer_email, "name": request.customer_name}
        if request.customer_phone:
            customer["phoneNumber"] = request.customer_phone
        payload = {
            "transactionId": request.transaction_id,
            "paymentAccountIdentifier": self.settings.IREMBO_PAYMENT_ACCOUNT,
            "customer": customer,
            "paymentItems": [
                {
                    "code": request.product_code,
                    "quantity": 1,
                    "unitAmount": float(request.amount),
                }
            ],
            "description": request.description,
            "expiryAt": request.expires_at.isoformat(),
            "language": request.language,
            "currency": request.currency,
        }
        if request.callback_url:
            payload["callbackUrl"] = request.callback_url
        if request.return_url:
            payload["returnUrl"] = request.return_url
        return payload

    async def create_invoice(self, request: InvoiceRequest) -> Invoice:
        url = self.settings.IREMBO_API_URL.rstrip("/") + INVOICE_PATH
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.IREMBO_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=self._payload(request), headers=self._headers())
        except httpx.TimeoutException as e:
            logger.error("irembopay_timeout", transaction_id=request.transaction_id, error=str(e))
            raise UpstreamError("Payment provider timed out", retryable=True) from e
        except httpx.HTTPError as e:
            logger.error("irembopay_network_error", transaction_id=request.transaction_id, error=str(e))
            raise UpstreamError("Payment provider unreachable", retryable=True) from e
        finally:
            provider_latency.observe(time.perf_counter() - start)

        if response.status_code >= 400:
            logger.error(
                "irembopay_error_response",
                transaction_id=request.transaction_id,
                provider_status=response.status_code,
                body=response.text[:500],
            )
            raise UpstreamError(
                f"Payment provider returned HTTP {response.status_code}",
                provider_status=response.status_code,
                retryable=response.status_code >= 500,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(
                "Payment provider returned a malformed response",
                provider_status=response.status_code,
            ) from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            logger.error(
                "irembopay_unexpected_response",
                transaction_id=request.transaction_id,
                body=response.text[:500],
            )
            raise UpstreamError(
                "Payment provider returned a malformed response",
                provider_status=response.status_code,
            )

        invoice_number = data.get("invoiceNumber")
        payment_url = data.get("paymentLinkUrl")
        if not invoice_number or not payment_url:
            raise UpstreamError(
                "Payment provider response is missing the invoice number",
                provider_status=response.status_code,
            )

        logger.info(
            "irembopay_invoice_created",
            transaction_id=request.transaction_id,
            invoice_number=invoice_number,
        )
        return Invoice(
            invoice_number=invoice_number,
            payment_url=payment_url,
            transaction_id=data.get("transactionId"),
        )


def get_irembopay_client() -> IremboPayClient:
    return IremboPayClient(get_settings())
