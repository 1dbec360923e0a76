"""
Configuration-backed product catalog.
"""

from typing import Mapping, Optional

from tourbook.services.interfaces.product_catalog import ProductCatalog


class StaticProductCatalog(ProductCatalog):
    """
    Product codes from IREMBO_PRODUCT_CODES (JSON object in the environment).
    Updating the mapping needs a config change, not a deploy.
    """

    def __init__(self, mapping: Mapping[str, str]):
        # Codes pasted from the dashboard sometimes carry stray whitespace
        self._mapping = {
            tour_id: code.strip()
            for tour_id, code in mapping.items()
            if code and code.strip()
        }

    async def resolve(self, tour_id: str) -> Optional[str]:
        return self._mapping.get(tour_id)
