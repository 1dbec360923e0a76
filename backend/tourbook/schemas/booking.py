"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import EmailStr, Field

from tourbook.schemas.base import CamelModel
from tourbook.schemas.tour import TourResponse


class BookingCreate(CamelModel):
    tour_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr
    participants: int = Field(..., ge=1, le=100)
    start_date: datetime
    phone: Optional[str] = Field(None, max_length=50)
    country: Optional[str] = Field(None, max_length=100)


class BookingResponse(CamelModel):
    id: str
    tour_package_id: str
    customer_name: str
    customer_email: str
    phone: Optional[str]
    country: Optional[str]
    participants: int
    start_date: datetime
    total_amount: Decimal
    status: str
    payment_status: str
    payment_intent_id: Optional[str]
    paid_at: Optional[datetime]
    confirmed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    tour_package: Optional[TourResponse] = None


class PaymentResetResponse(CamelModel):
    success: bool
    message: str
    payment_status: str


class BookingSearchResponse(CamelModel):
    success: bool = True
    bookings: list[BookingResponse]
    count: int
