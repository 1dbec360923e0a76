"""
General-purpose append-only audit trail.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, func

from tourbook.db.base import Base, generate_id


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(32), primary_key=True, default=generate_id)
    action = Column(String(50), nullable=False, index=True)
    booking_id = Column(String(32), ForeignKey("bookings.id"), nullable=True, index=True)
    log_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, booking={self.booking_id})>"
