"""
Settings service - operator edits to location pricing, promo codes and loyalty rewards
"""
import sqlite3
from typing import Dict, Any, Optional

import structlog

from models.cart import DiscountType, CouponType
from models.promo import PromoCodeRecord
from models.loyalty import LoyaltyReward, TIER_ORDER
from database.repository import LocationRepository, PromoCodeRepository, LoyaltyRepository

log = structlog.get_logger()

PRICE_FIELDS = ("min_order_value", "delivery_fee", "pay_on_pickup_fee")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value


class SettingsService:
    # Operator-facing configuration of the storefront

    def __init__(self, location_repository: LocationRepository,
                 promo_repository: PromoCodeRepository, loyalty_repository: LoyaltyRepository):
        self.location_repo = location_repository
        self.promo_repo = promo_repository
        self.loyalty_repo = loyalty_repository

    # === Location ===
    def get_location(self, location_id: Optional[str] = None) -> Dict[str, Any]:
        if location_id:
            location = self.location_repo.get_location(location_id)
        else:
            location = self.location_repo.get_default_location()
        if not location:
            return {"success": False, "error": "Location not found", "error_code": "not_found"}
        return {"success": True, "location": location.to_dict()}

    def update_location(self, fields: Dict[str, Any], location_id: Optional[str] = None) -> Dict[str, Any]:
        """Change a location's name or pricing (the default location when no id is given)."""
        updates = {}
        for name in PRICE_FIELDS:
            if name in fields:
                if not _is_number(fields[name]) or fields[name] < 0:
                    return {"success": False, "error": f"{name} must be a non-negative number",
                            "error_code": "bad_request"}
                updates[name] = fields[name]
        if "name" in fields:
            if not isinstance(fields["name"], str) or not fields["name"].strip():
                return {"success": False, "error": "name must be a non-empty string",
                        "error_code": "bad_request"}
            updates["name"] = fields["name"].strip()

        if not updates:
            return {"success": False, "error": "No valid fields to update", "error_code": "bad_request"}

        current = self.get_location(location_id)
        if not current["success"]:
            return current

        target_id = current["location"]["location_id"]
        try:
            self.location_repo.update_location(target_id, updates)
        except sqlite3.Error as e:
            log.error("location_update_failed", location_id=target_id, error=str(e))
            return {"success": False, "error": "Could not update the location", "error_code": "server_error"}

        log.info("location_updated", location_id=target_id, fields=sorted(updates))
        return self.get_location(target_id)

    # === Promo codes ===
    def list_promo_codes(self) -> Dict[str, Any]:
        try:
            promos = self.promo_repo.list_promo_codes()
        except sqlite3.Error as e:
            log.error("promo_code_list_failed", error=str(e))
            return {"success": False, "error": "Could not load promo codes", "error_code": "server_error"}
        return {"success": True, "promo_codes": [p.to_dict() for p in promos]}

    def create_promo_code(self, data: Dict[str, Any]) -> Dict[str, Any]:
        # Codes are stored upper-case; lookups are case-insensitive anyway
        code = data.get("code")
        discount_type = data.get("discount_type")
        if not isinstance(code, str) or not code.strip() or not discount_type:
            return {"success": False, "error": "Missing required fields: code, discount_type",
                    "error_code": "bad_request"}

        valid_types = [t.value for t in DiscountType]
        if discount_type not in valid_types:
            return {"success": False,
                    "error": f"Invalid discount_type. Must be one of: {', '.join(valid_types)}",
                    "error_code": "bad_request"}

        discount_value = data.get("discount_value")
        if discount_type == DiscountType.FREE_DELIVERY.value:
            discount_value = 0
        elif not _is_number(discount_value) or discount_value <= 0:
            return {"success": False, "error": "discount_value must be a positive number",
                    "error_code": "bad_request"}
        elif discount_type == DiscountType.PERCENT.value and discount_value > 100:
            return {"success": False, "error": "A percent discount cannot exceed 100",
                    "error_code": "bad_request"}

        for name in ("min_order_value", "max_uses"):
            if data.get(name) is not None and (not _is_number(data[name]) or data[name] < 0):
                return {"success": False, "error": f"{name} must be a non-negative number",
                        "error_code": "bad_request"}

        promo = PromoCodeRecord(
            code=code.strip().upper(),
            discount_type=discount_type,
            discount_value=discount_value,
            free_product_id=data.get("free_product_id"),
            is_active=bool(data.get("is_active", True)),
            valid_from=data.get("valid_from"),
            valid_until=data.get("valid_until"),
            min_order_value=data.get("min_order_value"),
            max_uses=data.get("max_uses"),
            first_order_only=bool(data.get("first_order_only", False))
        )

        if not self.promo_repo.add_promo_code(promo):
            return {"success": False, "error": "Promo code already exists", "error_code": "conflict"}

        log.info("promo_code_created", code=promo.code, discount_type=discount_type)
        return {"success": True, "promo_code": promo.to_dict()}

    def deactivate_promo_code(self, code: Optional[str]) -> Dict[str, Any]:
        # Soft delete: the row stays for order history
        if not code:
            return {"success": False, "error": "Missing required field: code", "error_code": "bad_request"}
        if not self.promo_repo.set_active(code, False):
            return {"success": False, "error": "Promo code not found", "error_code": "not_found"}

        log.info("promo_code_deactivated", code=code)
        return {"success": True}

    # === Loyalty rewards ===
    def list_rewards(self) -> Dict[str, Any]:
        try:
            rewards = self.loyalty_repo.list_rewards()
        except sqlite3.Error as e:
            log.error("reward_list_failed", error=str(e))
            return {"success": False, "error": "Could not load rewards", "error_code": "server_error"}
        return {"success": True, "rewards": [r.to_dict() for r in rewards]}

    def create_reward(self, data: Dict[str, Any]) -> Dict[str, Any]:
        reward_id = data.get("reward_id")
        name = data.get("name")
        reward_type = data.get("reward_type")
        points_cost = data.get("points_cost")

        if not reward_id or not isinstance(name, str) or not name.strip():
            return {"success": False, "error": "Missing required fields: reward_id, name",
                    "error_code": "bad_request"}

        valid_types = [t.value for t in CouponType]
        if reward_type not in valid_types:
            return {"success": False,
                    "error": f"Invalid reward_type. Must be one of: {', '.join(valid_types)}",
                    "error_code": "bad_request"}
        if not isinstance(points_cost, int) or isinstance(points_cost, bool) or points_cost <= 0:
            return {"success": False, "error": "points_cost must be a positive integer",
                    "error_code": "bad_request"}

        discount_value = data.get("discount_value")
        if reward_type == CouponType.DISCOUNT.value and (not _is_number(discount_value) or discount_value <= 0):
            return {"success": False, "error": "A discount reward needs a positive discount_value",
                    "error_code": "bad_request"}

        min_tier = data.get("min_tier") or "bronze"
        if min_tier not in TIER_ORDER:
            return {"success": False, "error": f"min_tier must be one of: {', '.join(TIER_ORDER)}",
                    "error_code": "bad_request"}

        reward = LoyaltyReward(
            reward_id=str(reward_id),
            name=name.strip(),
            reward_type=reward_type,
            points_cost=points_cost,
            discount_value=discount_value if reward_type == CouponType.DISCOUNT.value else None,
            min_tier=min_tier,
            is_active=bool(data.get("is_active", True))
        )

        if not self.loyalty_repo.add_reward(reward):
            return {"success": False, "error": "Reward already exists", "error_code": "conflict"}

        log.info("loyalty_reward_created", reward_id=reward.reward_id, reward_type=reward_type)
        return {"success": True, "reward": reward.to_dict()}
