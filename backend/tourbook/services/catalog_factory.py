"""
Product catalog factory.
Configures which product code source the payment initializer uses.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core.config import get_settings
from tourbook.db.session import get_db
from tourbook.services.interfaces.product_catalog import ProductCatalog
from tourbook.services.interfaces.static_catalog import StaticProductCatalog
from tourbook.services.catalog_service import DatabaseProductCatalog


def get_product_catalog(db: AsyncSession = Depends(get_db)) -> ProductCatalog:
    """
    Get configured product catalog.

    Selected by the PRODUCT_CATALOG setting:
    - static (default): IREMBO_PRODUCT_CODES mapping
    - database: tour_packages.irembo_product_code
    """
    settings = get_settings()

    if settings.PRODUCT_CATALOG == "database":
        return DatabaseProductCatalog(db)
    return StaticProductCatalog(settings.IREMBO_PRODUCT_CODES)
