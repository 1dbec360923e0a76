"""
Deposit payment initialization.

Builds a 50% deposit invoice on IremboPay for a booking and moves the booking
to PROCESSING. The booking row is only written after the provider has
accepted the invoice, so any failure along the way leaves it untouched.
"""

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.models.booking import Booking, PaymentStatus
from tourbook.core.config import Settings
from tourbook.core.exceptions import (
    AppError, ConfigurationError, NotFoundError, ProductMappingError, StateConflictError,
)
from tourbook.core.metrics import record_payment_initialization, record_transition
from tourbook.core.logging import get_logger
from tourbook.infrastructure.irembopay import IremboPayClient, Invoice, InvoiceRequest
from tourbook.services.audit_service import AuditAction, record_audit_log
from tourbook.services.booking_service import get_booking
from tourbook.services.interfaces.product_catalog import ProductCatalog

logger = get_logger(__name__)

# Fixed business rule: half the total is collected at booking time.
DEPOSIT_RATE = Decimal("0.5")
INVOICE_TTL = timedelta(hours=24)

# A fresh invoice may only be created when no other attempt is live.
INITIALIZABLE_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)


def calculate_deposit(total_amount) -> Decimal:
    """Deposit due now: exactly half the total, at currency precision."""
    return (Decimal(str(total_amount)) * DEPOSIT_RATE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def normalize_phone(phone) -> str:
    """Keep digits and a single leading '+'."""
    if not phone:
        return ""
    stripped = phone.strip()
    digits = re.sub(r"\D", "", stripped)
    if stripped.startswith("+") and digits:
        return "+" + digits
    return digits


def _format_amount(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def build_description(tour_title: str, total_amount: Decimal, deposit: Decimal) -> str:
    return (
        f"50% Deposit for tour booking: {tour_title} "
        f"(Total: {_format_amount(total_amount)}, Deposit: {_format_amount(deposit)})"
    )


def _check_configuration(settings: Settings) -> None:
    missing = [
        name for name in ("IREMBO_SECRET_KEY", "APP_URL")
        if not getattr(settings, name)
    ]
    if missing:
        raise ConfigurationError(
            "Payment provider is not configured",
            details={"missing": missing},
        )


async def initialize_payment(
    db: AsyncSession,
    booking_id: str,
    settings: Settings,
    catalog: ProductCatalog,
    provider: IremboPayClient,
) -> Invoice:
    """
    Create a deposit invoice for a booking and mark it PROCESSING.

    Raises ConfigurationError, NotFoundError, ProductMappingError,
    StateConflictError or UpstreamError; in every case the booking's
    payment status is left as it was.
    """
    try:
        invoice = await _initialize(db, booking_id, settings, catalog, provider)
    except AppError as e:
        record_payment_initialization(type(e).__name__)
        raise
    record_payment_initialization("success")
    return invoice


async def _initialize(
    db: AsyncSession,
    booking_id: str,
    settings: Settings,
    catalog: ProductCatalog,
    provider: IremboPayClient,
) -> Invoice:
    _check_configuration(settings)

    booking = await get_booking(db, booking_id)
    tour = booking.tour_package
    if tour is None:
        raise NotFoundError("Tour package not found for booking")

    if booking.payment_status not in INITIALIZABLE_STATUSES:
        raise StateConflictError(
            "Booking payment cannot be initialized",
            details={"currentStatus": booking.payment_status},
        )

    total_amount = Decimal(str(booking.total_amount))
    deposit = calculate_deposit(total_amount)

    product_code = await catalog.resolve(tour.id)
    if not product_code:
        logger.error("product_mapping_missing", booking_id=booking.id, tour_id=tour.id, tour=tour.title)
        raise ProductMappingError(
            f"No IremboPay product mapping for tour '{tour.title}'",
            details={"tourId": tour.id},
        )

    expires_at = datetime.now(timezone.utc) + INVOICE_TTL
    base_url = settings.APP_URL.rstrip("/")
    invoice = await provider.create_invoice(
        InvoiceRequest(
            transaction_id=booking.id,
            product_code=product_code,
            amount=deposit,
            currency=settings.PAYMENT_CURRENCY,
            customer_name=booking.customer_name,
            customer_email=booking.customer_email,
            customer_phone=normalize_phone(booking.phone),
            description=build_description(tour.title, total_amount, deposit),
            expires_at=expires_at,
            callback_url=f"{base_url}/api/v1/payments/webhook",
            return_url=f"{base_url}/bookings/{booking.id}/success",
        )
    )

    result = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking.id,
            Booking.payment_status.in_(INITIALIZABLE_STATUSES),
        )
        .values(
            payment_intent_id=invoice.invoice_number,
            payment_status=PaymentStatus.PROCESSING.value,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount == 0:
        # Another request moved the booking on while we were talking to the provider;
        # the invoice we just created is left to expire unpaid.
        logger.warning(
            "payment_initialize_lost_race",
            booking_id=booking.id,
            orphaned_invoice=invoice.invoice_number,
        )
        raise StateConflictError("Booking payment status changed during initialization")

    record_transition("initialize", PaymentStatus.PROCESSING.value)
    logger.info(
        "payment_initialized",
        booking_id=booking.id,
        invoice_id=invoice.invoice_number,
        deposit_amount=str(deposit),
        currency=settings.PAYMENT_CURRENCY,
    )

    await record_audit_log(
        db,
        AuditAction.PAYMENT_INITIALIZED,
        {
            "bookingId": booking.id,
            "totalAmount": str(total_amount),
            "depositAmount": str(deposit),
            "customerEmail": booking.customer_email,
            "invoiceId": invoice.invoice_number,
            "transactionId": invoice.transaction_id,
        },
        booking_id=booking.id,
    )
    return invoice
