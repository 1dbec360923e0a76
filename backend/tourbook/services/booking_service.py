"""
Booking service: creation, lookup and the payment reset path.

CONCURRENCY STRATEGY: Conditional UPDATE (compare-and-set)
==========================================================

Problem:
  The customer can dismiss the payment widget (-> reset) at the same moment
  IremboPay delivers the "paid" webhook. A read-then-write reset could read
  PROCESSING, lose the CPU to the webhook (which writes PAID), and then
  overwrite PAID with PENDING. The money is taken, the booking looks unpaid.

Solution:
  The status check lives in the WHERE clause of the write itself:

    UPDATE bookings SET payment_status='PENDING', payment_intent_id=NULL
    WHERE id = :id AND payment_status = 'PROCESSING'

  rows_affected == 1 -> we won; rows_affected == 0 -> the webhook (or another
  reset) got there first and we leave the booking alone. The same pattern is
  used by the initializer and the webhook reconciler, so every payment status
  change is a single atomic statement and no explicit row locks are needed.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.models.booking import Booking, BookingStatus, PaymentStatus
from tourbook.models.tour import TourPackage
from tourbook.schemas.booking import BookingCreate
from tourbook.core.exceptions import NotFoundError, StateConflictError, ValidationError
from tourbook.core.metrics import record_reset, record_transition
from tourbook.core.logging import get_logger
from tourbook.services.audit_service import AuditAction, record_audit_log

logger = get_logger(__name__)

RESET_REASON = "Payment cancelled or dismissed by user"
SEARCH_LIMIT = 10


async def get_booking(db: AsyncSession, booking_id: str) -> Booking:
    """Get a single booking (with its tour) by ID."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()

    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def list_bookings(db: AsyncSession) -> list[Booking]:
    """All bookings, newest first."""
    result = await db.execute(select(Booking).order_by(Booking.created_at.desc()))
    return list(result.scalars().all())


async def search_bookings(db: AsyncSession, email: Optional[str]) -> list[Booking]:
    """
    A customer's most recent bookings, matched on email case-insensitively.
    Used to find a booking whose payment needs to be retried.
    """
    email = (email or "").strip()
    if not email:
        raise ValidationError("Email parameter is required")

    result = await db.execute(
        select(Booking)
        .where(func.lower(Booking.customer_email) == email.lower())
        .order_by(Booking.created_at.desc())
        .limit(SEARCH_LIMIT)
    )
    return list(result.scalars().all())


async def create_booking(db: AsyncSession, booking_data: BookingCreate) -> Booking:
    """
    Create a PENDING booking priced from the tour.
    totalAmount = tour price x participants.
    """
    result = await db.execute(select(TourPackage).where(TourPackage.id == booking_data.tour_id))
    tour = result.scalar_one_or_none()
    if not tour:
        raise NotFoundError("Tour not found")

    total_amount = (Decimal(tour.price) * booking_data.participants).quantize(Decimal("0.01"))

    booking = Booking(
        tour_package_id=tour.id,
        tour_package=tour,
        customer_name=booking_data.customer_name,
        customer_email=booking_data.customer_email,
        phone=booking_data.phone,
        country=booking_data.country,
        participants=booking_data.participants,
        start_date=booking_data.start_date,
        total_amount=total_amount,
        status=BookingStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
    )
    db.add(booking)
    await db.commit()

    logger.info(
        "booking_created",
        booking_id=booking.id,
        tour_id=tour.id,
        participants=booking.participants,
        total_amount=str(total_amount),
    )

    await record_audit_log(
        db,
        AuditAction.BOOKING_CREATED,
        {
            "bookingId": booking.id,
            "tourId": tour.id,
            "participants": booking.participants,
            "totalAmount": str(total_amount),
            "customerEmail": booking.customer_email,
        },
        booking_id=booking.id,
    )

    # Reload with server defaults and the tour relationship populated
    await db.refresh(booking)
    return booking


async def reset_payment_status(db: AsyncSession, booking_id: str) -> tuple[bool, Booking]:
    """
    Revert a PROCESSING booking to PENDING and drop its invoice.

    Returns (reset_applied, booking). Raises NotFoundError if the booking does
    not exist and StateConflictError if it is not PROCESSING. Losing the race
    against a concurrent webhook is not an error: reset_applied is False and
    the booking is returned in whatever state the webhook left it.
    """
    booking = await get_booking(db, booking_id)

    if booking.payment_status != PaymentStatus.PROCESSING.value:
        record_reset("conflict")
        raise StateConflictError(
            "Booking payment status cannot be reset",
            details={"currentStatus": booking.payment_status},
        )

    previous_intent = booking.payment_intent_id
    result = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.payment_status == PaymentStatus.PROCESSING.value,
        )
        .values(
            payment_status=PaymentStatus.PENDING.value,
            payment_intent_id=None,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount == 0:
        await db.refresh(booking)
        record_reset("lost_race")
        logger.info(
            "payment_reset_skipped",
            booking_id=booking_id,
            reason="status_changed_concurrently",
            payment_status=booking.payment_status,
        )
        return False, booking

    record_reset("reset")
    record_transition("reset", PaymentStatus.PENDING.value)
    logger.info("payment_reset", booking_id=booking_id, previous_invoice=previous_intent)

    await record_audit_log(
        db,
        AuditAction.PAYMENT_RESET,
        {
            "bookingId": booking_id,
            "previousPaymentStatus": PaymentStatus.PROCESSING.value,
            "newPaymentStatus": PaymentStatus.PENDING.value,
            "previousInvoiceId": previous_intent,
            "customerEmail": booking.customer_email,
            "reason": RESET_REASON,
        },
        booking_id=booking_id,
    )

    await db.refresh(booking)
    return True, booking
