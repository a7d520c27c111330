"""
Promo code data models
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any


@dataclass
class PromoCodeRecord:
    """Promo code row as stored in the database"""
    code: str
    discount_type: str
    discount_value: Optional[float] = None
    free_product_id: Optional[str] = None
    is_active: bool = True
    valid_from: Optional[str] = None
    valid_until: Optional[str] = None
    min_order_value: Optional[float] = None
    max_uses: Optional[int] = None
    uses_count: int = 0
    first_order_only: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "code": self.code,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "free_product_id": self.free_product_id,
            "is_active": self.is_active,
            "valid_from": self.valid_from,
            "valid_until": self.valid_until,
            "min_order_value": self.min_order_value,
            "max_uses": self.max_uses,
            "uses_count": self.uses_count,
            "first_order_only": self.first_order_only
        }
