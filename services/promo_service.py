"""
Promo code service - validates codes against the database and applies them to a cart
"""
import sqlite3
from datetime import datetime, timezone
from typing import Dict, Any, Optional

import structlog

from models.cart import DiscountType
from database.repository import PromoCodeRepository, OrderRepository
from .cart_service import CartPricingEngine

log = structlog.get_logger()


def parse_timestamp(value: str) -> datetime:
    # Naive timestamps are treated as UTC
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class PromoService:
    # Promo code validation rules

    def __init__(self, promo_repository: PromoCodeRepository, order_repository: OrderRepository):
        self.promo_repo = promo_repository
        self.order_repo = order_repository

    def validate_promo_code(self, code: str, subtotal: float,
                            user_id: Optional[str] = None,
                            now: Optional[datetime] = None) -> Dict[str, Any]:
        # Check a code for the given subtotal; rejections carry a reason
        if not code or not isinstance(code, str) or not code.strip():
            return {"valid": False, "error": "Promo code is required"}

        if isinstance(subtotal, bool) or not isinstance(subtotal, (int, float)) or subtotal < 0:
            return {"valid": False, "error": "Invalid order value"}

        now = now or datetime.now(timezone.utc)

        try:
            promo = self.promo_repo.find_by_code(code.strip())
            if not promo:
                return {"valid": False, "error": "Promo code does not exist"}

            if not promo.is_active:
                return {"valid": False, "error": "Promo code is inactive"}

            if promo.valid_until and parse_timestamp(promo.valid_until) < now:
                return {"valid": False, "error": "Promo code has expired"}

            if promo.valid_from and parse_timestamp(promo.valid_from) > now:
                return {"valid": False, "error": "Promo code is not active yet"}

            if promo.min_order_value and subtotal < float(promo.min_order_value):
                return {
                    "valid": False,
                    "error": f"Minimum order value for this code is {float(promo.min_order_value):.2f}"
                }

            if promo.max_uses is not None and promo.uses_count >= promo.max_uses:
                return {"valid": False, "error": "Promo code has reached its usage limit"}

            if promo.first_order_only:
                if not user_id:
                    return {"valid": False, "error": "You must be logged in to use this code"}
                if self.order_repo.count_customer_orders(user_id) > 0:
                    return {"valid": False, "error": "This code is only valid on your first order"}

        except sqlite3.Error as e:
            log.error("promo_validation_failed", code=code, error=str(e))
            return {"valid": False, "error": "Could not validate promo code"}

        return {
            "valid": True,
            "discount_type": promo.discount_type,
            "discount_value": float(promo.discount_value) if promo.discount_value else None,
            "free_product_id": promo.free_product_id,
            "code": promo.code
        }

    def apply_promo_code(self, engine: CartPricingEngine, code: str,
                         user_id: Optional[str] = None) -> Dict[str, Any]:
        # Validate against the cart's subtotal and install the code on success
        result = self.validate_promo_code(code, engine.get_subtotal(), user_id)
        if not result["valid"]:
            log.info("promo_code_rejected", code=code, reason=result["error"])
            return result

        if result["discount_type"] not in {dt.value for dt in DiscountType}:
            log.warning("promo_code_unsupported_type", code=code, discount_type=result["discount_type"])
            return {"valid": False, "error": "Promo code type is not supported"}

        engine.set_promo_code(result["code"], result["discount_value"] or 0, result["discount_type"])
        log.info("promo_code_applied", code=result["code"], discount_type=result["discount_type"])
        return {**result, "summary": engine.get_summary()}

    def record_use(self, code: str) -> bool:
        # Count one redemption of a code
        try:
            return self.promo_repo.increment_uses(code)
        except sqlite3.Error as e:
            log.error("promo_use_record_failed", code=code, error=str(e))
            return False
