"""
Order related data models
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from enum import Enum


class OrderStatus(Enum):
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    PAY_ON_PICKUP = "pay_on_pickup"


@dataclass
class OrderItem:
    """Order item data model"""
    order_item_id: str
    order_id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    variant_name: Optional[str] = None
    addons: List[Dict[str, Any]] = field(default_factory=list)
    spice_level: Optional[int] = None
    notes: str = ""
    line_total: float = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "order_item_id": self.order_item_id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "variant_name": self.variant_name,
            "addons": self.addons,
            "spice_level": self.spice_level,
            "notes": self.notes,
            "line_total": self.line_total
        }


@dataclass
class CustomerInfo:
    """Customer contact information"""
    name: str = ""
    phone: str = ""
    email: str = ""


@dataclass
class Order:
    """Order data model with the full price breakdown"""
    order_id: str
    session_id: str
    customer_id: Optional[str]
    location_id: Optional[str]
    delivery_type: str
    payment_type: str
    status: OrderStatus
    payment_status: PaymentStatus
    subtotal: float
    discount: float
    delivery_fee: float
    payment_fee: float
    tip: float
    total_amount: float
    promo_code: Optional[str] = None
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    created_at: str = ""
    items: List[OrderItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "order_id": self.order_id,
            "session_id": self.session_id,
            "customer_id": self.customer_id,
            "location_id": self.location_id,
            "delivery_type": self.delivery_type,
            "payment_type": self.payment_type,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "delivery_fee": self.delivery_fee,
            "payment_fee": self.payment_fee,
            "tip": self.tip,
            "total_amount": self.total_amount,
            "promo_code": self.promo_code,
            "customer_name": self.customer.name,
            "customer_phone": self.customer.phone,
            "customer_email": self.customer.email,
            "created_at": self.created_at,
            "items": [item.to_dict() for item in self.items]
        }
