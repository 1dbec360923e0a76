"""
Payment endpoints: deposit initialization and the IremboPay webhook.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.db.session import get_db
from tourbook.schemas.payment import PaymentInitializeRequest, PaymentInitializeResponse, WebhookAck
from tourbook.services.payment_service import initialize_payment
from tourbook.services.webhook_service import SIGNATURE_HEADER, reconcile
from tourbook.services.catalog_factory import get_product_catalog
from tourbook.services.interfaces.product_catalog import ProductCatalog
from tourbook.infrastructure.irembopay import IremboPayClient, get_irembopay_client
from tourbook.infrastructure.email import EmailClient, get_email_client
from tourbook.core.config import Settings, get_settings
from tourbook.core.exceptions import AppError
from tourbook.core.metrics import record_webhook
from tourbook.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/initialize", response_model=PaymentInitializeResponse)
async def initialize_payment_endpoint(
    payload: PaymentInitializeRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    catalog: ProductCatalog = Depends(get_product_catalog),
    provider: IremboPayClient = Depends(get_irembopay_client),
):
    """
    Create a 50% deposit invoice on IremboPay and return its checkout URL.
    The booking moves to PROCESSING until the webhook or a reset settles it.
    """
    invoice = await initialize_payment(db, payload.booking_id, settings, catalog, provider)
    return PaymentInitializeResponse(
        invoice_id=invoice.invoice_number,
        payment_url=invoice.payment_url,
    )


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook_endpoint(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email: EmailClient = Depends(get_email_client),
):
    """
    IremboPay payment notification. No user auth: the request is
    authenticated by its HMAC signature over the raw body.
    """
    # Signature covers the exact bytes sent, so read before any parsing
    body = await request.body()
    try:
        await reconcile(
            db,
            body,
            request.headers.get(SIGNATURE_HEADER),
            settings.IREMBO_SECRET_KEY,
            email=email,
        )
    except AppError:
        raise
    except Exception as e:
        record_webhook("error")
        logger.exception("webhook_processing_failed", error=str(e))
        raise AppError("Webhook processing failed") from e
    return WebhookAck(received=True)
