"""
Models package for the storefront
Contains data models and type definitions
"""

from .product import Product
from .cart import (
    CartAddon, CartLineItem, CartState, CheckoutEligibility,
    PromoCode, LoyaltyCoupon,
    DeliveryType, PaymentType, DiscountType, CouponType
)
from .promo import PromoCodeRecord
from .location import Location, LocationConfig
from .loyalty import LoyaltyReward, LoyaltyCustomer, CouponStatus
from .order import Order, OrderItem, OrderStatus, PaymentStatus, CustomerInfo

__all__ = [
    'Product',
    'CartAddon', 'CartLineItem', 'CartState', 'CheckoutEligibility',
    'PromoCode', 'LoyaltyCoupon',
    'DeliveryType', 'PaymentType', 'DiscountType', 'CouponType',
    'PromoCodeRecord',
    'Location', 'LocationConfig',
    'LoyaltyReward', 'LoyaltyCustomer', 'CouponStatus',
    'Order', 'OrderItem', 'OrderStatus', 'PaymentStatus', 'CustomerInfo'
]
