"""
Declarative base and shared column mixins.
"""

import uuid

from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import DeclarativeBase


def generate_id() -> str:
    """Opaque string identifier for bookings and log rows."""
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
