"""
Append-only record of a webhook-driven payment outcome.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, func

from tourbook.db.base import Base, generate_id


class PaymentEvent(Base):
    __tablename__ = "payment_events"

    id = Column(String(32), primary_key=True, default=generate_id)
    booking_id = Column(String(32), ForeignKey("bookings.id"), nullable=False, index=True)
    event = Column(String(50), nullable=False)  # PAYMENT_SUCCESS, PAYMENT_FAILED, PAYMENT_PENDING
    provider_transaction_id = Column(String(100), nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return f"<PaymentEvent(id={self.id}, booking={self.booking_id}, event={self.event})>"
