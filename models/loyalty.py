"""
Loyalty programme data models
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any


class CouponStatus(Enum):
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


TIER_ORDER = ["bronze", "silver", "gold"]


@dataclass
class LoyaltyReward:
    """Reward that can be redeemed for a coupon"""
    reward_id: str
    name: str
    reward_type: str  # free_delivery, discount, free_product
    points_cost: int
    discount_value: Optional[float] = None
    min_tier: str = "bronze"
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reward_id": self.reward_id,
            "name": self.name,
            "reward_type": self.reward_type,
            "points_cost": self.points_cost,
            "discount_value": self.discount_value,
            "min_tier": self.min_tier,
            "is_active": self.is_active
        }


@dataclass
class LoyaltyCustomer:
    """Customer points balance and tier"""
    customer_id: str
    loyalty_points: int = 0
    loyalty_tier: str = "bronze"


def tier_rank(tier: Optional[str]) -> int:
    # Unknown tiers rank like bronze
    tier = tier or "bronze"
    return TIER_ORDER.index(tier) if tier in TIER_ORDER else 0
