"""
Tour browsing endpoints with Redis caching on the listing.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.db.session import get_db
from tourbook.schemas.tour import TourResponse, TourListResponse
from tourbook.services.tour_service import list_tours, get_tour_by_slug
from tourbook.services.cache_service import get_cached_tours, set_cached_tours
from tourbook.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/tours", tags=["Tours"])


@router.get("", response_model=TourListResponse)
async def list_tours_endpoint(db: AsyncSession = Depends(get_db)):
    """
    List all tour packages.
    Served from Redis when cached; falls back to the database otherwise.
    """
    cached = await get_cached_tours()
    if cached:
        logger.info("tours_list_cache_hit")
        cached["cached"] = True
        return TourListResponse.model_validate(cached)

    tours = await list_tours(db)
    response = TourListResponse(
        tours=[TourResponse.model_validate(t) for t in tours],
        total=len(tours),
        cached=False,
    )

    await set_cached_tours(response.model_dump(mode="json", by_alias=True))
    return response


@router.get("/{slug}", response_model=TourResponse)
async def get_tour_endpoint(slug: str, db: AsyncSession = Depends(get_db)):
    """Get a single tour package by slug."""
    return await get_tour_by_slug(db, slug)
