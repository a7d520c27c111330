"""
Cart related data models
"""
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any

from config import DEFAULT_MIN_ORDER_VALUE, DEFAULT_DELIVERY_FEE, DEFAULT_PAY_ON_PICKUP_FEE


class DeliveryType(Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentType(Enum):
    ONLINE = "online"
    PAY_ON_PICKUP = "pay_on_pickup"


class DiscountType(Enum):
    PERCENT = "percent"
    FIXED = "fixed"
    FREE_DELIVERY = "free_delivery"


class CouponType(Enum):
    FREE_DELIVERY = "free_delivery"
    DISCOUNT = "discount"
    FREE_PRODUCT = "free_product"


@dataclass
class CartAddon:
    """Paid addon attached to a cart line"""
    id: str
    name: str
    price: float

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": self.price}


@dataclass
class CartLineItem:
    """Cart line item data model"""
    id: str
    product_id: str
    name: str
    price: float
    quantity: int
    addons: List[CartAddon] = field(default_factory=list)
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    variant_price: Optional[float] = None
    spice_level: Optional[int] = None
    notes: Optional[str] = None
    image: Optional[str] = None

    def merge_key(self) -> tuple:
        """Identity of a product configuration (lines with equal keys are merged)"""
        return (self.product_id, self.variant_id, self.spice_level, serialize_addons(self.addons))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "addons": [addon.to_dict() for addon in self.addons],
            "variant_id": self.variant_id,
            "variant_name": self.variant_name,
            "variant_price": self.variant_price,
            "spice_level": self.spice_level,
            "notes": self.notes,
            "image": self.image
        }


def serialize_addons(addons: List[CartAddon]) -> str:
    # Stable text form of an addon list, order preserved
    return json.dumps(
        [{"id": addon.id, "name": addon.name, "price": float(addon.price)} for addon in addons],
        separators=(",", ":")
    )


def generate_line_id(product_id: str, variant_id: Optional[str], spice_level: Optional[int],
                     addons: List[CartAddon]) -> str:
    # product-variant-spice-addons-timestamp
    return "{}-{}-{}-{}-{}".format(
        product_id,
        variant_id or "base",
        spice_level or 0,
        serialize_addons(addons),
        int(time.time() * 1000)
    )


@dataclass
class PromoCode:
    """Validated promo code applied to the cart"""
    code: str
    discount_value: float
    discount_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "discount_value": self.discount_value,
            "discount_type": self.discount_type
        }


@dataclass
class LoyaltyCoupon:
    """Loyalty reward coupon applied to the cart"""
    id: str
    code: str
    coupon_type: str
    discount_value: Optional[float] = None
    free_product_name: Optional[str] = None
    expires_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "coupon_type": self.coupon_type,
            "discount_value": self.discount_value,
            "free_product_name": self.free_product_name,
            "expires_at": self.expires_at
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoyaltyCoupon":
        discount_value = data.get("discount_value")
        return cls(
            id=str(data["id"]),
            code=data["code"],
            coupon_type=data["coupon_type"],
            discount_value=float(discount_value) if discount_value is not None else None,
            free_product_name=data.get("free_product_name"),
            expires_at=data.get("expires_at")
        )


@dataclass
class CartState:
    """Cart aggregate: items plus delivery, payment and promotion settings"""
    items: List[CartLineItem] = field(default_factory=list)
    location_id: Optional[str] = None
    delivery_type: str = DeliveryType.DELIVERY.value
    payment_type: str = PaymentType.ONLINE.value
    pay_on_pickup_fee: float = DEFAULT_PAY_ON_PICKUP_FEE
    promo_code: Optional[PromoCode] = None
    loyalty_coupon: Optional[LoyaltyCoupon] = None
    tip: float = 0
    min_order_value: float = DEFAULT_MIN_ORDER_VALUE
    base_delivery_fee: float = DEFAULT_DELIVERY_FEE


@dataclass
class CheckoutEligibility:
    """Result of the checkout gate"""
    allowed: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"allowed": self.allowed, "reason": self.reason}
