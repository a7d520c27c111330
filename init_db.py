#!/usr/bin/env python3
"""
Database initialization script
Creates the tables and seeds demo locations, menu products, promo codes and rewards.
"""
import sys

from config import DATABASE_PATH
from database.connection import DatabaseConnection
from database.repository import (
    ProductRepository, LocationRepository, PromoCodeRepository, LoyaltyRepository
)
from models.product import Product
from models.location import Location
from models.promo import PromoCodeRecord
from models.loyalty import LoyaltyReward

LOCATIONS = [
    Location("loc-centrum", "Centrum", min_order_value=35, delivery_fee=7.99, pay_on_pickup_fee=2),
    Location("loc-zablocie", "Zabłocie", min_order_value=45, delivery_fee=9.99, pay_on_pickup_fee=2),
]

PRODUCTS = [
    Product("ramen-1", "Spicy Miso Ramen", "ramen", 36),
    Product("ramen-2", "Tonkotsu Ramen", "ramen", 38),
    Product("gyoza-1", "Gyoza (6 pcs)", "gyoza", 22.9),
    Product("gyoza-2", "Vegan Gyoza (6 pcs)", "gyoza", 21.9),
    Product("drink-1", "Ramune", "drinks", 12),
]

PROMO_CODES = [
    PromoCodeRecord("FIRSTRAMEN", "percent", 15, first_order_only=True),
    PromoCodeRecord("CLUB10", "percent", 10, min_order_value=50),
    PromoCodeRecord("FREEDELIVERY", "free_delivery", None),
    PromoCodeRecord("MINUS20", "fixed", 20, max_uses=100),
]

REWARDS = [
    LoyaltyReward("reward-delivery", "Free delivery", "free_delivery", points_cost=100),
    LoyaltyReward("reward-10", "10 off your order", "discount", points_cost=200, discount_value=10),
    LoyaltyReward("reward-gyoza", "Free gyoza", "free_product", points_cost=300, min_tier="silver"),
]


def init_database(db_path: str = DATABASE_PATH) -> bool:
    """Create tables and insert the demo data (existing rows are kept)"""
    db = DatabaseConnection(db_path)
    products = ProductRepository(db)
    locations = LocationRepository(db)
    promos = PromoCodeRepository(db)
    loyalty = LoyaltyRepository(db)

    added = 0
    added += sum(locations.add_location(location) for location in LOCATIONS)
    added += sum(products.add_product(product) for product in PRODUCTS)
    added += sum(promos.add_promo_code(promo) for promo in PROMO_CODES)
    added += sum(loyalty.add_reward(reward) for reward in REWARDS)

    print(f"Seeded {added} rows into {db_path}")
    return True


if __name__ == "__main__":
    print("=== Storefront database initialization ===")
    path = sys.argv[1] if len(sys.argv) > 1 else DATABASE_PATH
    if init_database(path):
        print("\nYou can now run app.py")
