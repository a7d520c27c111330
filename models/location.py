"""
Restaurant location data models
"""
from dataclasses import dataclass
from typing import Dict, Any

from config import DEFAULT_MIN_ORDER_VALUE, DEFAULT_DELIVERY_FEE, DEFAULT_PAY_ON_PICKUP_FEE


@dataclass
class Location:
    """Restaurant location data model"""
    location_id: str
    name: str
    min_order_value: float
    delivery_fee: float
    pay_on_pickup_fee: float = DEFAULT_PAY_ON_PICKUP_FEE
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "location_id": self.location_id,
            "name": self.name,
            "min_order_value": self.min_order_value,
            "delivery_fee": self.delivery_fee,
            "pay_on_pickup_fee": self.pay_on_pickup_fee,
            "is_active": self.is_active
        }


@dataclass
class LocationConfig:
    """Pricing settings a location pushes into the cart"""
    min_order_value: float = DEFAULT_MIN_ORDER_VALUE
    delivery_fee: float = DEFAULT_DELIVERY_FEE
    pay_on_pickup_fee: float = DEFAULT_PAY_ON_PICKUP_FEE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_order_value": self.min_order_value,
            "delivery_fee": self.delivery_fee,
            "pay_on_pickup_fee": self.pay_on_pickup_fee
        }
