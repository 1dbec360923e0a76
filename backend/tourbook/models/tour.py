"""
Tour package model. Tours are managed by the admin dashboard; the booking
service only reads them to price bookings and describe invoices.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, CheckConstraint
from sqlalchemy.orm import relationship

from tourbook.db.base import Base, TimestampMixin, generate_id


class TourPackage(Base, TimestampMixin):
    __tablename__ = "tour_packages"

    id = Column(String(32), primary_key=True, default=generate_id)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Price per participant
    price = Column(Numeric(10, 2), nullable=False)
    duration = Column(Integer, nullable=False, default=1)
    location = Column(String(255), nullable=True)
    # Only read by the database-backed product catalog
    irembo_product_code = Column(String(64), nullable=True)

    bookings = relationship("Booking", back_populates="tour_package")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_tour_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<TourPackage(id={self.id}, slug={self.slug}, price={self.price})>"
