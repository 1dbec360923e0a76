"""
Product catalog interface.
IremboPay invoices reference a dashboard product code per tour; this is the
single lookup the payment initializer depends on.
"""

from abc import ABC, abstractmethod
from typing import Optional


class ProductCatalog(ABC):
    """
    Maps tour package ids to IremboPay product codes.

    Implementations:
    - StaticProductCatalog: mapping held in configuration
    - DatabaseProductCatalog: code stored on the tour_packages row
    """

    @abstractmethod
    async def resolve(self, tour_id: str) -> Optional[str]:
        """
        Look up the product code for a tour.

        Args:
            tour_id: Tour package id

        Returns:
            The product code, or None when the tour is not mapped
        """
        pass
