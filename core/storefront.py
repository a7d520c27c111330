"""
Storefront - wires repositories and services and keeps recently used cart engines per session
"""
from collections import OrderedDict
from typing import Dict, Any, Optional

import structlog

from config import DATABASE_PATH, MAX_CACHED_CARTS
from database.connection import DatabaseConnection
from database.repository import (
    CartRepository, ProductRepository, LocationRepository,
    PromoCodeRepository, LoyaltyRepository, OrderRepository
)
from services.cart_service import CartPricingEngine
from services.cart_persistence import parse_line_item
from services.menu_service import MenuService
from services.promo_service import PromoService
from services.loyalty_service import LoyaltyService
from services.location_service import LocationService
from services.payment_service import PaymentService
from services.order_service import OrderService
from services.settings_service import SettingsService

log = structlog.get_logger()


class Storefront:
    # Central coordinator for the menu, carts, promotions, loyalty, orders and kitchen settings

    def __init__(self, db_path: str = DATABASE_PATH, payment_service: Optional[PaymentService] = None,
                 max_cached_carts: int = MAX_CACHED_CARTS):
        self.db_connection = DatabaseConnection(db_path)

        # Repository layer
        self.cart_repo = CartRepository(self.db_connection)
        self.product_repo = ProductRepository(self.db_connection)
        self.location_repo = LocationRepository(self.db_connection)
        self.promo_repo = PromoCodeRepository(self.db_connection)
        self.loyalty_repo = LoyaltyRepository(self.db_connection)
        self.order_repo = OrderRepository(self.db_connection)

        # Service layer
        self.payment_service = payment_service or PaymentService()
        self.menu_service = MenuService(self.product_repo, self.location_repo)
        self.location_service = LocationService(self.location_repo)
        self.promo_service = PromoService(self.promo_repo, self.order_repo)
        self.loyalty_service = LoyaltyService(self.loyalty_repo, self.product_repo, self.order_repo)
        self.order_service = OrderService(
            self.order_repo, self.promo_service, self.loyalty_service, self.payment_service
        )
        self.settings_service = SettingsService(self.location_repo, self.promo_repo, self.loyalty_repo)

        # Least recently used engine first
        self._engines: "OrderedDict[str, CartPricingEngine]" = OrderedDict()
        self.max_cached_carts = max_cached_carts

    def get_cart(self, session_id: str) -> CartPricingEngine:
        # Session engine, rehydrated from storage when it is not cached
        engine = self._engines.get(session_id)
        if engine is not None:
            self._engines.move_to_end(session_id)
            return engine

        engine = CartPricingEngine.load(self.cart_repo, session_id)
        if engine.state.location_id:
            self.location_service.apply_location(engine, engine.state.location_id)
        self._engines[session_id] = engine

        while len(self._engines) > self.max_cached_carts:
            evicted, _ = self._engines.popitem(last=False)
            log.debug("cart_engine_evicted", session_id=evicted)
        return engine

    def forget_session(self, session_id: str):
        # The persisted snapshot stays; the next get_cart reloads it
        self._engines.pop(session_id, None)

    # === Menu ===
    def get_menu(self) -> Dict[str, Any]:
        return self.menu_service.get_menu()

    # === Cart ===
    def get_cart_details(self, session_id: str) -> Dict[str, Any]:
        engine = self.get_cart(session_id)
        details = engine.to_dict()
        details["success"] = True
        details["message"] = (
            f"Your cart has {engine.get_item_count()} item(s)." if engine.state.items else "Your cart is empty."
        )
        return details

    def add_to_cart(self, session_id: str, item_data: Dict[str, Any]) -> Dict[str, Any]:
        # Product must be on the menu and available; its base price comes from the menu
        product_id = item_data.get("product_id")
        if not isinstance(product_id, str) or not product_id:
            return {"success": False, "error": "Invalid cart item"}

        lookup = self.menu_service.get_orderable_product(product_id)
        if not lookup["success"]:
            return lookup

        product = lookup["product"]
        item = parse_line_item(dict(
            item_data,
            price=product.price,
            name=item_data.get("name") or product.product_name
        ))
        if item is None:
            return {"success": False, "error": "Invalid cart item"}

        line = self.get_cart(session_id).add_item(item)
        return {
            "success": True,
            "item": line.to_dict(),
            "message": f"{line.name} added to cart."
        }

    def update_cart_item(self, session_id: str, item_id: str, quantity: int) -> Dict[str, Any]:
        engine = self.get_cart(session_id)
        if not any(item.id == item_id for item in engine.state.items):
            return {"success": False, "error": "Item not found in cart"}

        engine.update_quantity(item_id, quantity)
        return {"success": True, "summary": engine.get_summary()}

    def remove_cart_item(self, session_id: str, item_id: str) -> Dict[str, Any]:
        engine = self.get_cart(session_id)
        before = len(engine.state.items)
        engine.remove_item(item_id)
        if len(engine.state.items) == before:
            return {"success": False, "error": "Item not found in cart"}
        return {"success": True, "summary": engine.get_summary()}

    def clear_cart(self, session_id: str) -> Dict[str, Any]:
        self.get_cart(session_id).clear_cart()
        return {"success": True, "message": "Cart cleared."}

    def update_settings(self, session_id: str, delivery_type: Optional[str] = None,
                        payment_type: Optional[str] = None, tip: Optional[float] = None,
                        location_id: Optional[str] = None) -> Dict[str, Any]:
        # Delivery mode, payment type, tip and location in one call
        engine = self.get_cart(session_id)
        try:
            if delivery_type is not None:
                engine.set_delivery_type(delivery_type)
            if payment_type is not None:
                engine.set_payment_type(payment_type)
        except ValueError as e:
            return {"success": False, "error": str(e)}

        if tip is not None:
            engine.set_tip(tip)
        if location_id is not None:
            self.location_service.apply_location(engine, location_id)

        return {"success": True, "summary": engine.get_summary()}

    # === Promotions ===
    def apply_promo_code(self, session_id: str, code: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        return self.promo_service.apply_promo_code(self.get_cart(session_id), code, user_id)

    def clear_promo_code(self, session_id: str) -> Dict[str, Any]:
        engine = self.get_cart(session_id)
        engine.clear_promo_code()
        return {"success": True, "summary": engine.get_summary()}

    def activate_coupon(self, user_id: Optional[str], reward_id: Optional[str]) -> Dict[str, Any]:
        return self.loyalty_service.activate_coupon(user_id, reward_id)

    def get_active_coupon(self, user_id: Optional[str]) -> Dict[str, Any]:
        coupon = self.loyalty_service.get_active_coupon(user_id)
        return {"coupon": coupon.to_dict() if coupon else None}

    def apply_loyalty_coupon(self, session_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        # Put the user's active coupon on the cart, replacing any promo code
        coupon = self.loyalty_service.get_active_coupon(user_id)
        if not coupon:
            return {"success": False, "error": "No active coupon"}

        engine = self.get_cart(session_id)
        engine.set_loyalty_coupon(coupon)
        log.info("loyalty_coupon_applied", session_id=session_id, code=coupon.code)
        return {"success": True, "coupon": coupon.to_dict(), "summary": engine.get_summary()}

    def deactivate_coupon(self, session_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        result = self.loyalty_service.deactivate_coupon(user_id)
        if result["success"]:
            self.get_cart(session_id).clear_loyalty_coupon()
        return result

    # === Orders ===
    def checkout(self, session_id: str, customer_info: Optional[Dict[str, str]] = None,
                 user_id: Optional[str] = None, url_return: str = "",
                 url_status: str = "") -> Dict[str, Any]:
        result = self.order_service.place_order(
            session_id, self.get_cart(session_id), customer_info, user_id, url_return, url_status
        )
        if result["success"]:
            # The emptied cart is persisted; no need to keep its engine around
            self.forget_session(session_id)
        return result

    def register_payment(self, order_id: str, user_id: Optional[str] = None,
                         url_return: str = "", url_status: str = "") -> Dict[str, Any]:
        return self.order_service.register_payment(order_id, user_id, url_return, url_status)

    def get_order_details(self, order_id: str) -> Dict[str, Any]:
        return self.order_service.get_order_details(order_id)

    def get_order_history(self, user_id: Optional[str]) -> Dict[str, Any]:
        return self.order_service.get_customer_orders(user_id)

    def handle_payment_notification(self, notification: Dict[str, Any]) -> Dict[str, Any]:
        return self.order_service.handle_payment_notification(notification)

    # === Kitchen operator ===
    def list_operator_orders(self, location_id: Optional[str] = None) -> Dict[str, Any]:
        return self.order_service.list_active_orders(location_id)

    def update_order_status(self, order_id: Optional[str], status: Optional[str]) -> Dict[str, Any]:
        return self.order_service.update_order_status(order_id, status)

    def get_location_settings(self, location_id: Optional[str] = None) -> Dict[str, Any]:
        return self.settings_service.get_location(location_id)

    def update_location_settings(self, fields: Dict[str, Any],
                                 location_id: Optional[str] = None) -> Dict[str, Any]:
        result = self.settings_service.update_location(fields, location_id)
        if result["success"]:
            # Cached carts at this location pick up the new pricing
            updated_id = result["location"]["location_id"]
            for engine in self._engines.values():
                if engine.state.location_id == updated_id:
                    self.location_service.apply_location(engine, updated_id)
        return result

    def list_promo_codes(self) -> Dict[str, Any]:
        return self.settings_service.list_promo_codes()

    def create_promo_code(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.settings_service.create_promo_code(data)

    def deactivate_promo_code(self, code: Optional[str]) -> Dict[str, Any]:
        return self.settings_service.deactivate_promo_code(code)

    def list_rewards(self) -> Dict[str, Any]:
        return self.settings_service.list_rewards()

    def create_reward(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.settings_service.create_reward(data)
