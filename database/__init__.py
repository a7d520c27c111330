"""
Database package for the storefront
Contains database connection and repository classes
"""

from .connection import DatabaseConnection
from .repository import (
    CartRepository, ProductRepository, LocationRepository,
    PromoCodeRepository, LoyaltyRepository, OrderRepository
)

__all__ = [
    'DatabaseConnection',
    'CartRepository', 'ProductRepository', 'LocationRepository',
    'PromoCodeRepository', 'LoyaltyRepository', 'OrderRepository'
]
