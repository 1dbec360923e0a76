"""
Pydantic schemas for tour package responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from tourbook.schemas.base import CamelModel


class TourResponse(CamelModel):
    id: str
    slug: str
    title: str
    description: Optional[str]
    price: Decimal
    duration: int
    location: Optional[str]
    created_at: datetime


class TourListResponse(CamelModel):
    tours: list[TourResponse]
    total: int
    cached: bool = False
