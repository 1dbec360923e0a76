"""
Booking model: one customer's reservation attempt for a tour.

Payment lifecycle (per invoice attempt):

    PENDING --initialize--> PROCESSING --webhook(paid)--> PAID (+ status CONFIRMED)
                                 \\--webhook(failed)----> FAILED
                                 \\--reset--------------> PENDING

`payment_intent_id` holds the IremboPay invoice number of the current attempt
and is cleared when the attempt is reset. Status columns are only ever
changed through conditional UPDATE statements in the payment services.
"""

import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, ForeignKey, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship

from tourbook.db.base import Base, TimestampMixin, generate_id


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


def _in_list(column: str, values: type[enum.Enum]) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(32), primary_key=True, default=generate_id)
    tour_package_id = Column(String(32), ForeignKey("tour_packages.id"), nullable=False, index=True)

    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    country = Column(String(100), nullable=True)
    participants = Column(Integer, nullable=False, default=1)
    start_date = Column(DateTime(timezone=True), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_intent_id = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)

    tour_package = relationship("TourPackage", back_populates="bookings", lazy="selectin")

    __table_args__ = (
        CheckConstraint("participants > 0", name="check_booking_participants_positive"),
        CheckConstraint(_in_list("status", BookingStatus), name="check_booking_status"),
        CheckConstraint(_in_list("payment_status", PaymentStatus), name="check_booking_payment_status"),
        # Webhook lookups go through the invoice number
        Index("ix_bookings_payment_intent_id", "payment_intent_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, tour={self.tour_package_id}, "
            f"status={self.status}, payment_status={self.payment_status})>"
        )
