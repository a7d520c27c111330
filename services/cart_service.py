"""
Cart pricing engine - owns one cart's state and derives its prices
"""
import sqlite3
from dataclasses import replace
from typing import Dict, Any, Optional

import structlog

from models.cart import (
    CartState, CartLineItem, CheckoutEligibility, PromoCode, LoyaltyCoupon,
    DeliveryType, PaymentType, generate_line_id
)
from database.repository import CartRepository
from . import cart_selectors as selectors
from .cart_persistence import serialize_cart_state, rehydrate_cart_state

log = structlog.get_logger()


class CartPricingEngine:
    # State container for one session's cart; getters delegate to cart_selectors

    def __init__(self, state: Optional[CartState] = None,
                 cart_repository: Optional[CartRepository] = None,
                 session_id: Optional[str] = None):
        # Without a repository the engine is purely in-memory
        self.state = state if state is not None else CartState()
        self.cart_repo = cart_repository
        self.session_id = session_id

    @classmethod
    def load(cls, cart_repository: CartRepository, session_id: str) -> "CartPricingEngine":
        # Read the persisted snapshot once and revalidate it
        try:
            snapshot = cart_repository.load_cart(session_id)
        except sqlite3.Error as e:
            log.error("cart_load_failed", session_id=session_id, error=str(e))
            snapshot = None

        state = rehydrate_cart_state(snapshot)
        log.debug("cart_loaded", session_id=session_id, items=len(state.items))
        return cls(state, cart_repository, session_id)

    def _persist(self):
        # Write-through after every mutation; storage failures never reach the caller
        if self.cart_repo is None or self.session_id is None:
            return
        try:
            self.cart_repo.save_cart(self.session_id, serialize_cart_state(self.state))
        except sqlite3.Error as e:
            log.error("cart_save_failed", session_id=self.session_id, error=str(e))

    # === Item mutators ===
    def add_item(self, item: CartLineItem) -> CartLineItem:
        # Identical configurations merge into one line; anything else is a new line
        quantity = max(1, int(item.quantity))
        key = item.merge_key()

        for existing in self.state.items:
            if existing.merge_key() == key:
                existing.quantity += quantity
                self._persist()
                return existing

        line = replace(
            item,
            id=generate_line_id(item.product_id, item.variant_id, item.spice_level, item.addons),
            quantity=quantity,
            addons=list(item.addons)
        )
        self.state.items.append(line)
        self._persist()
        return line

    def update_quantity(self, item_id: str, quantity: int):
        if quantity <= 0:
            self.remove_item(item_id)
            return

        for item in self.state.items:
            if item.id == item_id:
                item.quantity = int(quantity)
                self._persist()
                return

    def remove_item(self, item_id: str):
        remaining = [item for item in self.state.items if item.id != item_id]
        if len(remaining) != len(self.state.items):
            self.state.items = remaining
            self._persist()

    def clear_cart(self):
        # Location and delivery type survive a clear
        self.state.items = []
        self.state.payment_type = PaymentType.ONLINE.value
        self.state.promo_code = None
        self.state.loyalty_coupon = None
        self.state.tip = 0
        self._persist()

    # === Promotion mutators ===
    def set_promo_code(self, code: str, discount_value: float, discount_type: str):
        # Caller has already validated the code; a promo code replaces any loyalty coupon
        self.state.promo_code = PromoCode(
            code=code.strip().upper(),
            discount_value=discount_value,
            discount_type=discount_type
        )
        self.state.loyalty_coupon = None
        self._persist()

    def clear_promo_code(self):
        self.state.promo_code = None
        self._persist()

    def set_loyalty_coupon(self, coupon: LoyaltyCoupon):
        # A loyalty coupon replaces any promo code
        self.state.loyalty_coupon = coupon
        self.state.promo_code = None
        self._persist()

    def clear_loyalty_coupon(self):
        self.state.loyalty_coupon = None
        self._persist()

    # === Checkout settings ===
    def set_tip(self, amount: float):
        self.state.tip = selectors.clamp_tip(amount)
        self._persist()

    def set_location(self, location_id: Optional[str]):
        self.state.location_id = location_id
        self._persist()

    def set_location_config(self, min_order: float, delivery_fee: float):
        self.state.min_order_value = min_order
        self.state.base_delivery_fee = delivery_fee
        self._persist()

    def set_delivery_type(self, delivery_type: str):
        self.state.delivery_type = DeliveryType(delivery_type).value
        self._persist()

    def set_payment_type(self, payment_type: str):
        self.state.payment_type = PaymentType(payment_type).value
        self._persist()

    def set_pay_on_pickup_fee(self, fee: float):
        self.state.pay_on_pickup_fee = max(0, fee)
        self._persist()

    # === Derived values ===
    def get_item_count(self) -> int:
        return selectors.select_item_count(self.state)

    def get_subtotal(self) -> float:
        return selectors.select_subtotal(self.state)

    def get_delivery_fee(self) -> float:
        return selectors.select_delivery_fee(self.state)

    def get_payment_fee(self) -> float:
        return selectors.select_payment_fee(self.state)

    def get_discount(self) -> float:
        return selectors.select_discount(self.state)

    def get_total(self) -> float:
        return selectors.select_total(self.state)

    def can_checkout(self) -> CheckoutEligibility:
        return selectors.select_can_checkout(self.state)

    def get_summary(self) -> Dict[str, Any]:
        return selectors.select_summary(self.state)

    def to_dict(self) -> Dict[str, Any]:
        # Full cart view: items, settings, active promotion and derived prices
        return {
            "items": [item.to_dict() for item in self.state.items],
            "location_id": self.state.location_id,
            "delivery_type": self.state.delivery_type,
            "payment_type": self.state.payment_type,
            "promo_code": self.state.promo_code.to_dict() if self.state.promo_code else None,
            "loyalty_coupon": self.state.loyalty_coupon.to_dict() if self.state.loyalty_coupon else None,
            "min_order_value": self.state.min_order_value,
            "summary": self.get_summary()
        }
