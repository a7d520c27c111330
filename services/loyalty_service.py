"""
Loyalty service - turns rewards into coupons and tracks their lifecycle
"""
import secrets
import sqlite3
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import structlog

from config import COUPON_TTL_HOURS
from models.cart import CouponType, LoyaltyCoupon
from models.loyalty import CouponStatus, tier_rank
from database.repository import LoyaltyRepository, ProductRepository, OrderRepository

log = structlog.get_logger()

COUPON_CODE_PREFIX = "MESO-"
COUPON_CODE_ALPHABET = string.ascii_uppercase + string.digits
COUPON_CODE_ATTEMPTS = 5


def generate_coupon_code() -> str:
    return COUPON_CODE_PREFIX + "".join(secrets.choice(COUPON_CODE_ALPHABET) for _ in range(5))


class LoyaltyService:
    # Coupon activation, lookup and cancellation for loyalty customers

    def __init__(self, loyalty_repository: LoyaltyRepository,
                 product_repository: ProductRepository,
                 order_repository: OrderRepository):
        self.loyalty_repo = loyalty_repository
        self.product_repo = product_repository
        self.order_repo = order_repository

    def _unique_code(self) -> str:
        code = generate_coupon_code()
        for _ in range(COUPON_CODE_ATTEMPTS):
            if not self.loyalty_repo.code_exists(code):
                break
            code = generate_coupon_code()
        return code

    def _free_product_value(self, reward_name: str) -> Optional[float]:
        # Price of the cheapest product in the category named by the reward
        name = reward_name.lower()
        for slug in self.product_repo.get_category_slugs():
            if slug and slug in name:
                cheapest = self.product_repo.find_cheapest_in_category(slug)
                return cheapest.price if cheapest else None
        return None

    def activate_coupon(self, user_id: Optional[str], reward_id: Optional[str],
                        now: Optional[datetime] = None) -> Dict[str, Any]:
        """Redeem a reward for a coupon.

        Points are deducted before the coupon row is written; if the insert
        fails the previous balance is restored.
        """
        if not user_id:
            return {"success": False, "error": "You must be logged in", "error_code": "unauthorized"}
        if not reward_id:
            return {"success": False, "error": "reward_id is required", "error_code": "bad_request"}

        now = now or datetime.now(timezone.utc)

        try:
            self.loyalty_repo.expire_stale_coupons(user_id, now.isoformat())
            if self.loyalty_repo.has_active_coupon(user_id):
                return {
                    "success": False,
                    "error": "You already have an active coupon. Use it or wait until it expires.",
                    "error_code": "conflict"
                }

            reward = self.loyalty_repo.get_reward(reward_id)
            if not reward:
                return {"success": False, "error": "Reward does not exist", "error_code": "not_found"}

            customer = self.loyalty_repo.get_customer(user_id)
            if not customer:
                return {"success": False, "error": "Customer not found", "error_code": "not_found"}

            if customer.loyalty_points < reward.points_cost:
                return {
                    "success": False,
                    "error": f"You need {reward.points_cost} points, you have {customer.loyalty_points}",
                    "error_code": "bad_request"
                }

            if tier_rank(customer.loyalty_tier) < tier_rank(reward.min_tier):
                return {
                    "success": False,
                    "error": f"This reward requires the {reward.min_tier} tier",
                    "error_code": "forbidden"
                }

            code = self._unique_code()
            expires_at = (now + timedelta(hours=COUPON_TTL_HOURS)).isoformat()

            discount_value = reward.discount_value
            if reward.reward_type == CouponType.FREE_PRODUCT.value and not discount_value:
                discount_value = self._free_product_value(reward.name)

            if not self.loyalty_repo.set_points(user_id, customer.loyalty_points - reward.points_cost):
                return {"success": False, "error": "Could not deduct points", "error_code": "server_error"}

            coupon = {
                "id": str(uuid.uuid4()),
                "customer_id": user_id,
                "code": code,
                "coupon_type": reward.reward_type,
                "discount_value": discount_value,
                "free_product_name": reward.name if reward.reward_type == CouponType.FREE_PRODUCT.value else None,
                "points_spent": reward.points_cost,
                "source": "reward",
                "expires_at": expires_at
            }

            if not self.loyalty_repo.insert_coupon(coupon):
                self.loyalty_repo.set_points(user_id, customer.loyalty_points)
                log.error("coupon_insert_failed", user_id=user_id, reward_id=reward_id)
                return {"success": False, "error": "Could not create coupon", "error_code": "server_error"}

            self.loyalty_repo.add_transaction(
                user_id, f"Coupon: {reward.name}", -reward.points_cost, "spent"
            )

        except sqlite3.Error as e:
            log.error("coupon_activation_failed", user_id=user_id, reward_id=reward_id, error=str(e))
            return {"success": False, "error": "Server error", "error_code": "server_error"}

        log.info("coupon_activated", user_id=user_id, reward_id=reward_id, code=code)
        return {
            "success": True,
            "coupon": {
                "id": coupon["id"],
                "code": coupon["code"],
                "coupon_type": coupon["coupon_type"],
                "discount_value": coupon["discount_value"],
                "free_product_name": coupon["free_product_name"],
                "expires_at": coupon["expires_at"]
            }
        }

    def get_active_coupon(self, user_id: Optional[str],
                          now: Optional[datetime] = None) -> Optional[LoyaltyCoupon]:
        # Expire stale coupons and retire ones already spent on a settled order first
        if not user_id:
            return None

        now_iso = (now or datetime.now(timezone.utc)).isoformat()
        try:
            self.loyalty_repo.expire_stale_coupons(user_id, now_iso)

            for coupon in self.loyalty_repo.get_active_coupons(user_id, now_iso):
                order_id = self.order_repo.find_settled_order_with_code(user_id, coupon["code"])
                if order_id:
                    self.loyalty_repo.update_coupon_status(coupon["id"], CouponStatus.USED, order_id)

            active = self.loyalty_repo.get_active_coupons(user_id, now_iso)
        except sqlite3.Error as e:
            log.error("active_coupon_lookup_failed", user_id=user_id, error=str(e))
            return None

        return LoyaltyCoupon.from_dict(active[0]) if active else None

    def deactivate_coupon(self, user_id: Optional[str],
                          now: Optional[datetime] = None) -> Dict[str, Any]:
        # Cancel the active coupon; spent points are not refunded
        if not user_id:
            return {"success": False, "error": "You must be logged in", "error_code": "unauthorized"}

        coupon = self.get_active_coupon(user_id, now)
        if not coupon:
            return {"success": False, "error": "No active coupon", "error_code": "not_found"}

        try:
            self.loyalty_repo.update_coupon_status(coupon.id, CouponStatus.CANCELLED)
        except sqlite3.Error as e:
            log.error("coupon_deactivation_failed", user_id=user_id, error=str(e))
            return {"success": False, "error": "Server error", "error_code": "server_error"}

        log.info("coupon_deactivated", user_id=user_id, code=coupon.code)
        return {"success": True}

    def mark_coupon_used(self, coupon_id: str, order_id: str) -> bool:
        try:
            return self.loyalty_repo.update_coupon_status(coupon_id, CouponStatus.USED, order_id)
        except sqlite3.Error as e:
            log.error("coupon_mark_used_failed", coupon_id=coupon_id, error=str(e))
            return False
