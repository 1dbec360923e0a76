"""
IremboPay webhook reconciliation.

Request handling is split in three steps:

1. verify_signature()   - authenticate the raw body, fail closed
2. apply_payment_outcome() - the core transition, one atomic UPDATE, committed
3. _record_observability() - payment event, audit log and confirmation email;
   every failure here is logged and counted but never returned to IremboPay,
   otherwise the provider would retry a webhook whose transition already
   happened.

Replays are safe: a PAID update only matches bookings that are still unpaid
(PENDING, PROCESSING or FAILED), so a second delivery changes nothing and
sends no second email, and a refunded booking is never flipped back to PAID.
The only visible trace of a replay is an extra payment event / audit row.
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.models.booking import Booking, BookingStatus, PaymentStatus
from tourbook.schemas.payment import WebhookPayload, WebhookPaymentData
from tourbook.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from tourbook.core.metrics import record_observability_failure, record_transition, record_webhook
from tourbook.core.logging import get_logger
from tourbook.infrastructure.email import EmailClient, EmailDeliveryError
from tourbook.services.audit_service import AuditAction, record_audit_log, record_payment_event

logger = get_logger(__name__)

SIGNATURE_HEADER = "irembopay-signature"
SIGNATURE_TOLERANCE_SECONDS = 300

PROVIDER_PAID = "PAID"
PROVIDER_FAILED = "FAILED"

# Statuses a provider outcome may overwrite; a paid or refunded booking is never changed back.
PAYABLE_STATUSES = (
    PaymentStatus.PENDING.value,
    PaymentStatus.PROCESSING.value,
    PaymentStatus.FAILED.value,
)
FAILABLE_STATUSES = (
    PaymentStatus.PENDING.value,
    PaymentStatus.PROCESSING.value,
)


@dataclass(frozen=True)
class ReconcileResult:
    booking_id: str
    provider_status: str
    applied: bool  # False when the delivery did not change the booking's status


def _parse_signature_header(header: str) -> tuple[str, str]:
    timestamp = signature = None
    for element in header.split(","):
        prefix, _, value = element.strip().partition("=")
        if prefix == "t":
            timestamp = value
        elif prefix == "s":
            signature = value
    if not timestamp or not signature:
        raise ValueError("incomplete signature header")
    return timestamp, signature


def verify_signature(
    body: bytes,
    signature_header: Optional[str],
    secret: str,
    now_ms: Optional[int] = None,
) -> bool:
    """
    Check an ``irembopay-signature: t=<unix-ms>,s=<hex>`` header against the raw body.

    The signed message is ``"<t>#<body>"`` under HMAC-SHA256 with the shared
    secret. Any malformed input counts as a failed verification.
    """
    if not secret or not signature_header:
        return False

    try:
        timestamp, signature = _parse_signature_header(signature_header)

        signed_payload = timestamp.encode() + b"#" + body
        expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).digest()
        received = bytes.fromhex(signature)

        if len(received) != len(expected):
            return False
        signature_ok = hmac.compare_digest(expected, received)

        current_ms = int(time.time() * 1000) if now_ms is None else now_ms
        fresh = abs(current_ms - int(timestamp)) <= SIGNATURE_TOLERANCE_SECONDS * 1000

        return signature_ok and fresh
    except (ValueError, TypeError):
        return False


def parse_payload(body: bytes) -> WebhookPaymentData:
    try:
        raw = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid JSON payload") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("data"), dict):
        raise ValidationError("Invalid webhook data structure")

    try:
        payment = WebhookPayload.model_validate(raw).data
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid webhook data structure",
            details=e.errors(include_url=False, include_context=False),
        ) from e

    if not payment.invoice_number and not payment.transaction_id:
        raise ValidationError("Webhook payload has no invoiceNumber or transactionId")
    return payment


async def find_booking(db: AsyncSession, invoice_number: str, transaction_id: str) -> Optional[Booking]:
    """
    Locate the booking a notification refers to, in order of preference:
    intent == invoiceNumber, intent == transactionId, id == invoiceNumber,
    id == transactionId. Some sandboxes echo our booking id as the reference,
    hence the fallback to the primary key.
    """
    candidates = []
    if invoice_number:
        candidates.append(Booking.payment_intent_id == invoice_number)
    if transaction_id:
        candidates.append(Booking.payment_intent_id == transaction_id)
    if invoice_number:
        candidates.append(Booking.id == invoice_number)
    if transaction_id:
        candidates.append(Booking.id == transaction_id)

    preference = case(
        *[(condition, rank) for rank, condition in enumerate(candidates)],
        else_=len(candidates),
    )
    result = await db.execute(
        select(Booking).where(or_(*candidates)).order_by(preference).limit(1)
    )
    return result.scalar_one_or_none()


async def apply_payment_outcome(db: AsyncSession, booking: Booking, payment: WebhookPaymentData) -> bool:
    """
    Write the provider outcome onto the booking in a single UPDATE and commit.
    Returns True when the booking's payment status actually changed.
    """
    provider_status = payment.normalized_status
    intent_id = payment.invoice_number or payment.transaction_id
    now = datetime.now(timezone.utc)

    stmt = update(Booking).where(Booking.id == booking.id)

    if provider_status == PROVIDER_PAID:
        stmt = stmt.where(Booking.payment_status.in_(PAYABLE_STATUSES)).values(
            payment_intent_id=intent_id,
            payment_status=PaymentStatus.PAID.value,
            status=BookingStatus.CONFIRMED.value,
            paid_at=payment.paid_at or now,
            confirmed_at=now,
        )
    elif provider_status == PROVIDER_FAILED:
        stmt = stmt.where(Booking.payment_status.in_(FAILABLE_STATUSES)).values(
            payment_intent_id=intent_id,
            payment_status=PaymentStatus.FAILED.value,
        )
    else:
        stmt = stmt.values(payment_intent_id=intent_id)

    result = await db.execute(stmt.execution_options(synchronize_session=False))
    await db.commit()

    changed = result.rowcount > 0 and provider_status in (PROVIDER_PAID, PROVIDER_FAILED)
    if changed:
        record_transition("webhook", provider_status)
    return changed


def _event_name(provider_status: str) -> str:
    if provider_status == PROVIDER_PAID:
        return "PAYMENT_SUCCESS"
    if provider_status == PROVIDER_FAILED:
        return "PAYMENT_FAILED"
    return "PAYMENT_PENDING"


async def reconcile(
    db: AsyncSession,
    body: bytes,
    signature_header: Optional[str],
    secret: str,
    email: Optional[EmailClient] = None,
) -> ReconcileResult:
    """Authenticate, parse and apply one IremboPay notification."""
    if not verify_signature(body, signature_header, secret):
        record_webhook("rejected_signature")
        logger.warning("webhook_signature_rejected", has_header=bool(signature_header))
        raise AuthenticationError("Invalid webhook signature")

    try:
        payment = parse_payload(body)
    except ValidationError:
        record_webhook("invalid_payload")
        raise

    booking = await find_booking(db, payment.invoice_number, payment.transaction_id)
    if booking is None:
        record_webhook("not_found")
        logger.warning(
            "webhook_booking_not_found",
            invoice_number=payment.invoice_number,
            transaction_id=payment.transaction_id,
        )
        raise NotFoundError("Booking not found")

    applied = await apply_payment_outcome(db, booking, payment)
    result = ReconcileResult(
        booking_id=booking.id,
        provider_status=payment.normalized_status,
        applied=applied,
    )
    if applied:
        record_webhook("applied")
    elif result.provider_status in (PROVIDER_PAID, PROVIDER_FAILED):
        record_webhook("duplicate")
    else:
        record_webhook("informational")
    logger.info(
        "webhook_reconciled",
        booking_id=booking.id,
        provider_status=result.provider_status,
        applied=applied,
    )

    await _record_observability(db, booking, payment, result, email)
    return result


async def _record_observability(
    db: AsyncSession,
    booking: Booking,
    payment: WebhookPaymentData,
    result: ReconcileResult,
    email: Optional[EmailClient],
) -> None:
    # Plain values only: the booking instance may be expired by a failed write below
    booking_id = booking.id
    customer_email = booking.customer_email
    customer_name = booking.customer_name
    tour_title = booking.tour_package.title if booking.tour_package else "your tour"

    await record_payment_event(
        db,
        booking_id,
        _event_name(result.provider_status),
        {
            "invoiceNumber": payment.invoice_number,
            "transactionId": payment.transaction_id,
            "amount": payment.amount or 0,
            "paymentStatus": payment.payment_status,
            "currency": payment.currency or "",
            "applied": result.applied,
        },
        provider_transaction_id=payment.transaction_id or None,
    )
    await record_audit_log(
        db,
        AuditAction.PAYMENT_COMPLETED,
        {
            "invoiceNumber": payment.invoice_number,
            "transactionId": payment.transaction_id,
            "paymentStatus": result.provider_status,
            "applied": result.applied,
            "verifiedAt": datetime.now(timezone.utc).isoformat(),
        },
        booking_id=booking_id,
    )

    if email is not None and result.applied and result.provider_status == PROVIDER_PAID:
        try:
            await email.send(
                to=customer_email,
                subject="Your tour booking is confirmed",
                html=(
                    f"<p>Hi {customer_name},</p>"
                    f"<p>We received your deposit for <strong>{tour_title}</strong>. "
                    f"Your booking reference is <code>{booking_id}</code>.</p>"
                ),
            )
        except EmailDeliveryError as e:
            record_observability_failure("email")
            logger.error("confirmation_email_failed", booking_id=booking_id, error=str(e))
