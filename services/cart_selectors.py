"""
Pure price selectors over a CartState

Each selector takes the state explicitly so views can read derived values
without going through a CartPricingEngine.
"""
from typing import Dict, Any

from config import MAX_TIP
from models.cart import (
    CartState, CartLineItem, CheckoutEligibility,
    DeliveryType, PaymentType, DiscountType, CouponType
)


def clamp_tip(amount) -> float:
    """Clamp a tip into [0, MAX_TIP]; non-numeric input becomes 0."""
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        return 0
    if amount != amount:  # NaN
        return 0
    return max(0, min(MAX_TIP, amount))


def unit_price(item: CartLineItem) -> float:
    # Base price plus variant delta plus one set of addons
    addons_price = sum(addon.price for addon in item.addons)
    return item.price + (item.variant_price or 0) + addons_price


def line_total(item: CartLineItem) -> float:
    return unit_price(item) * item.quantity


def select_item_count(state: CartState) -> int:
    return sum(item.quantity for item in state.items)


def select_subtotal(state: CartState) -> float:
    return sum(line_total(item) for item in state.items)


def select_delivery_fee(state: CartState) -> float:
    if state.delivery_type == DeliveryType.PICKUP.value:
        return 0
    if state.promo_code and state.promo_code.discount_type == DiscountType.FREE_DELIVERY.value:
        return 0
    if state.loyalty_coupon and state.loyalty_coupon.coupon_type == CouponType.FREE_DELIVERY.value:
        return 0
    return state.base_delivery_fee


def select_payment_fee(state: CartState) -> float:
    if state.payment_type == PaymentType.PAY_ON_PICKUP.value:
        return state.pay_on_pickup_fee
    return 0


def select_discount(state: CartState) -> float:
    """Monetary discount from the active promo code, else the loyalty coupon.

    Free delivery never shows up here; it is realized by select_delivery_fee.
    The promo code is checked first even though set_promo_code and
    set_loyalty_coupon keep the two mutually exclusive.
    """
    promo = state.promo_code
    if promo:
        if not promo.discount_value:
            return 0
        if promo.discount_type == DiscountType.PERCENT.value:
            return select_subtotal(state) * (promo.discount_value / 100)
        if promo.discount_type == DiscountType.FIXED.value:
            return promo.discount_value
        return 0

    coupon = state.loyalty_coupon
    if coupon:
        if coupon.coupon_type == CouponType.DISCOUNT.value and coupon.discount_value is not None:
            return coupon.discount_value
        if coupon.coupon_type == CouponType.FREE_PRODUCT.value:
            return coupon.discount_value or 0
        return 0

    return 0


def select_total(state: CartState) -> float:
    subtotal = select_subtotal(state)
    total = (subtotal - select_discount(state) + select_delivery_fee(state)
             + select_payment_fee(state) + state.tip)
    return max(0, total)


def select_can_checkout(state: CartState) -> CheckoutEligibility:
    if not state.items:
        return CheckoutEligibility(allowed=False, reason="Cart is empty")

    subtotal = select_subtotal(state)
    if subtotal < state.min_order_value:
        missing = state.min_order_value - subtotal
        return CheckoutEligibility(
            allowed=False,
            reason=f"Minimum order value is {state.min_order_value:.2f}. Short by {missing:.2f}."
        )

    return CheckoutEligibility(allowed=True)


def select_summary(state: CartState) -> Dict[str, Any]:
    # Every derived value in one dict for display and order placement
    return {
        "item_count": select_item_count(state),
        "subtotal": select_subtotal(state),
        "discount": select_discount(state),
        "delivery_fee": select_delivery_fee(state),
        "payment_fee": select_payment_fee(state),
        "tip": state.tip,
        "total": select_total(state),
        "checkout": select_can_checkout(state).to_dict()
    }
