"""
Services package for the storefront
Contains the cart pricing engine and business logic services
"""

from .cart_service import CartPricingEngine
from .menu_service import MenuService
from .promo_service import PromoService
from .loyalty_service import LoyaltyService
from .location_service import LocationService
from .payment_service import PaymentService
from .order_service import OrderService
from .settings_service import SettingsService

__all__ = [
    'CartPricingEngine', 'MenuService', 'PromoService', 'LoyaltyService',
    'LocationService', 'PaymentService', 'OrderService', 'SettingsService'
]
