"""
Database-backed product catalog: reads the product code stored on the tour
row, so renaming or re-pricing a tour can never leave the mapping stale.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.models.tour import TourPackage
from tourbook.services.interfaces.product_catalog import ProductCatalog


class DatabaseProductCatalog(ProductCatalog):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, tour_id: str) -> Optional[str]:
        result = await self.db.execute(
            select(TourPackage.irembo_product_code).where(TourPackage.id == tour_id)
        )
        code = result.scalar_one_or_none()
        if code and code.strip():
            return code.strip()
        return None
