"""
Read-only tour queries.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.models.tour import TourPackage
from tourbook.core.exceptions import NotFoundError


async def list_tours(db: AsyncSession) -> list[TourPackage]:
    result = await db.execute(select(TourPackage).order_by(TourPackage.title.asc()))
    return list(result.scalars().all())


async def get_tour_by_slug(db: AsyncSession, slug: str) -> TourPackage:
    result = await db.execute(select(TourPackage).where(TourPackage.slug == slug))
    tour = result.scalar_one_or_none()

    if not tour:
        raise NotFoundError(f"Tour '{slug}' not found")
    return tour
