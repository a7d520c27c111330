"""
Menu service - product listing and lookups for the cart
"""
import sqlite3
from typing import Dict, Any, Optional

import structlog

from models.product import Product
from database.repository import ProductRepository, LocationRepository

log = structlog.get_logger()


class MenuService:
    # Menu browsing and product checks

    def __init__(self, product_repository: ProductRepository, location_repository: LocationRepository):
        self.product_repo = product_repository
        self.location_repo = location_repository

    def get_menu(self) -> Dict[str, Any]:
        # Available products, their categories and the default location
        try:
            products = self.product_repo.get_menu_products()
            location = self.location_repo.get_default_location()
        except sqlite3.Error as e:
            log.error("menu_load_failed", error=str(e))
            return {"success": False, "error": "Could not load the menu"}

        categories = []
        for product in products:
            if product.category_slug not in categories:
                categories.append(product.category_slug)

        return {
            "success": True,
            "categories": categories,
            "products": [product.to_dict() for product in products],
            "location": location.to_dict() if location else None,
            "meta": {
                "total_products": len(products),
                "total_categories": len(categories)
            }
        }

    def get_orderable_product(self, product_id: str) -> Dict[str, Any]:
        """Look up a product a customer wants to add to the cart.

        Returns {"success": True, "product": Product} or an error dict when the
        product is unknown or currently unavailable.
        """
        try:
            product: Optional[Product] = self.product_repo.get_product_by_id(product_id)
        except sqlite3.Error as e:
            log.error("product_lookup_failed", product_id=product_id, error=str(e))
            return {"success": False, "error": "Could not load the product"}

        if not product:
            return {"success": False, "error": "Product not found"}
        if not product.is_available:
            return {"success": False, "error": "Product is not available"}

        return {"success": True, "product": product}
