"""
Booking endpoints: creation, lookup and payment reset.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.db.session import get_db
from tourbook.schemas.booking import (
    BookingCreate, BookingResponse, BookingSearchResponse, PaymentResetResponse,
)
from tourbook.services.booking_service import (
    create_booking, get_booking, list_bookings, reset_payment_status, search_bookings,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a PENDING booking; the total is the tour price times participants."""
    return await create_booking(db, booking_data)


@router.get("", response_model=list[BookingResponse])
async def list_bookings_endpoint(db: AsyncSession = Depends(get_db)):
    """All bookings, newest first."""
    return await list_bookings(db)


@router.get("/search", response_model=BookingSearchResponse)
async def search_bookings_endpoint(
    email: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """A customer's ten most recent bookings by email (case-insensitive)."""
    bookings = await search_bookings(db, email)
    return BookingSearchResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        count=len(bookings),
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(booking_id: str, db: AsyncSession = Depends(get_db)):
    return await get_booking(db, booking_id)


@router.post("/{booking_id}/reset-payment", response_model=PaymentResetResponse)
async def reset_payment_endpoint(booking_id: str, db: AsyncSession = Depends(get_db)):
    """
    Put a PROCESSING booking back to PENDING so the customer can retry.

    Called by the client when the payment widget is dismissed, when its
    30-second watchdog expires without a callback, or on an explicit retry.
    If the webhook settled the payment first, nothing is changed and
    `success` is false.
    """
    applied, booking = await reset_payment_status(db, booking_id)
    if applied:
        message = "Booking payment status reset successfully"
    else:
        message = "Booking payment was settled before the reset was applied"
    return PaymentResetResponse(
        success=applied,
        message=message,
        payment_status=booking.payment_status,
    )
