"""
Menu product data models
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any


@dataclass
class Product:
    """Menu product data model"""
    product_id: str
    product_name: str
    category_slug: str
    price: float
    description: Optional[str] = None
    is_available: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "category_slug": self.category_slug,
            "price": self.price,
            "description": self.description,
            "is_available": self.is_available
        }
