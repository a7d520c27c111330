"""
Location service - resolves per-location pricing and pushes it into carts
"""
import sqlite3
from typing import Optional

import structlog

from models.location import LocationConfig
from database.repository import LocationRepository
from .cart_service import CartPricingEngine

log = structlog.get_logger()


class LocationService:
    # Location pricing lookup

    def __init__(self, location_repository: LocationRepository):
        self.location_repo = location_repository

    def get_location_config(self, location_id: Optional[str]) -> LocationConfig:
        # Unknown locations fall back to the default pricing
        if not location_id:
            return LocationConfig()

        try:
            location = self.location_repo.get_location(location_id)
        except sqlite3.Error as e:
            log.error("location_lookup_failed", location_id=location_id, error=str(e))
            return LocationConfig()

        if not location:
            log.warning("location_not_found", location_id=location_id)
            return LocationConfig()

        return LocationConfig(
            min_order_value=location.min_order_value,
            delivery_fee=location.delivery_fee,
            pay_on_pickup_fee=location.pay_on_pickup_fee
        )

    def apply_location(self, engine: CartPricingEngine, location_id: Optional[str]) -> LocationConfig:
        # Select the location on the cart and load its pricing
        config = self.get_location_config(location_id)
        engine.set_location(location_id)
        engine.set_location_config(config.min_order_value, config.delivery_fee)
        engine.set_pay_on_pickup_fee(config.pay_on_pickup_fee)
        return config
