"""
Tests for operator settings: location pricing, promo codes and loyalty rewards
"""
import os
import tempfile
import unittest

from database.connection import DatabaseConnection
from database.repository import LocationRepository, PromoCodeRepository, LoyaltyRepository
from models.location import Location
from models.loyalty import LoyaltyReward
from models.promo import PromoCodeRecord
from services.settings_service import SettingsService


class TestSettingsService(unittest.TestCase):

    def setUp(self):
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        db = DatabaseConnection(self.test_db.name)
        self.location_repo = LocationRepository(db)
        self.promo_repo = PromoCodeRepository(db)
        self.loyalty_repo = LoyaltyRepository(db)
        self.service = SettingsService(self.location_repo, self.promo_repo, self.loyalty_repo)

        self.location_repo.add_location(Location("loc-closed", "Old Town", 30, 5, is_active=False))
        self.location_repo.add_location(Location("loc-1", "Centrum", 35, 7.99, 2))
        self.location_repo.add_location(Location("loc-2", "Mokotow", 40, 9.99, 2))
        self.promo_repo.add_promo_code(PromoCodeRecord("CLUB10", "percent", 10))
        self.loyalty_repo.add_reward(LoyaltyReward("r-10", "10 off", "discount", 200, discount_value=10))

    def tearDown(self):
        os.unlink(self.test_db.name)

    # === Location ===
    def test_default_location_is_first_active(self):
        result = self.service.get_location()
        self.assertTrue(result["success"])
        self.assertEqual(result["location"]["location_id"], "loc-1")

        self.assertEqual(self.service.get_location("loc-2")["location"]["name"], "Mokotow")
        missing = self.service.get_location("loc-x")
        self.assertEqual(missing["error_code"], "not_found")

    def test_update_location(self):
        result = self.service.update_location({"min_order_value": 45, "name": "  Centrum Plaza "})
        self.assertTrue(result["success"])
        self.assertEqual(result["location"]["min_order_value"], 45)
        self.assertEqual(result["location"]["name"], "Centrum Plaza")

        # Other locations keep their pricing
        self.assertEqual(self.location_repo.get_location("loc-2").min_order_value, 40)

        result = self.service.update_location({"delivery_fee": 0}, "loc-2")
        self.assertEqual(result["location"]["delivery_fee"], 0)

    def test_update_location_validation(self):
        for fields in [{"delivery_fee": -1}, {"min_order_value": "40"}, {"pay_on_pickup_fee": True},
                       {"name": "   "}, {"city": "Krakow"}, {}]:
            result = self.service.update_location(fields)
            self.assertFalse(result["success"], fields)
            self.assertEqual(result["error_code"], "bad_request")

        self.assertEqual(self.service.update_location({"delivery_fee": 1}, "loc-x")["error_code"], "not_found")
        self.assertEqual(self.location_repo.get_location("loc-1").delivery_fee, 7.99)

    # === Promo codes ===
    def test_create_promo_code(self):
        result = self.service.create_promo_code({
            "code": " summer5 ", "discount_type": "fixed", "discount_value": 5, "min_order_value": 50
        })
        self.assertTrue(result["success"])
        self.assertEqual(result["promo_code"]["code"], "SUMMER5")

        stored = self.promo_repo.find_by_code("summer5")
        self.assertEqual(stored.min_order_value, 50)
        self.assertTrue(stored.is_active)

        codes = [promo["code"] for promo in self.service.list_promo_codes()["promo_codes"]]
        self.assertEqual(codes, ["SUMMER5", "CLUB10"])

    def test_free_delivery_promo_ignores_value(self):
        result = self.service.create_promo_code({"code": "SHIP", "discount_type": "free_delivery",
                                                 "discount_value": 99})
        self.assertEqual(result["promo_code"]["discount_value"], 0)

    def test_promo_code_validation(self):
        for data in [
            {"discount_type": "fixed", "discount_value": 5},
            {"code": "X", "discount_type": "bogo", "discount_value": 5},
            {"code": "X", "discount_type": "fixed"},
            {"code": "X", "discount_type": "fixed", "discount_value": 0},
            {"code": "X", "discount_type": "percent", "discount_value": 120},
            {"code": "X", "discount_type": "fixed", "discount_value": 5, "max_uses": -1},
        ]:
            result = self.service.create_promo_code(data)
            self.assertFalse(result["success"], data)
            self.assertEqual(result["error_code"], "bad_request")

        self.assertIsNone(self.promo_repo.find_by_code("X"))

    def test_duplicate_promo_code(self):
        result = self.service.create_promo_code({"code": "CLUB10", "discount_type": "fixed", "discount_value": 5})
        self.assertEqual(result["error_code"], "conflict")

    def test_deactivate_promo_code(self):
        self.assertTrue(self.service.deactivate_promo_code("club10")["success"])
        self.assertFalse(self.promo_repo.find_by_code("CLUB10").is_active)

        self.assertEqual(self.service.deactivate_promo_code("NOPE")["error_code"], "not_found")
        self.assertEqual(self.service.deactivate_promo_code(None)["error_code"], "bad_request")

    # === Loyalty rewards ===
    def test_create_reward(self):
        result = self.service.create_reward({
            "reward_id": "r-ship", "name": "Free delivery", "reward_type": "free_delivery",
            "points_cost": 100, "discount_value": 15, "min_tier": "silver"
        })
        self.assertTrue(result["success"])
        self.assertIsNone(result["reward"]["discount_value"])

        stored = self.loyalty_repo.get_reward("r-ship")
        self.assertEqual(stored.min_tier, "silver")

        rewards = [reward["reward_id"] for reward in self.service.list_rewards()["rewards"]]
        self.assertEqual(rewards, ["r-ship", "r-10"])

    def test_reward_validation(self):
        for data in [
            {"name": "No id", "reward_type": "discount", "points_cost": 100, "discount_value": 5},
            {"reward_id": "r-x", "name": "Mystery", "reward_type": "mystery", "points_cost": 100},
            {"reward_id": "r-x", "name": "Free", "reward_type": "free_delivery", "points_cost": 0},
            {"reward_id": "r-x", "name": "Free", "reward_type": "free_delivery", "points_cost": 10.5},
            {"reward_id": "r-x", "name": "Off", "reward_type": "discount", "points_cost": 100},
            {"reward_id": "r-x", "name": "Free", "reward_type": "free_delivery", "points_cost": 100,
             "min_tier": "platinum"},
        ]:
            result = self.service.create_reward(data)
            self.assertFalse(result["success"], data)
            self.assertEqual(result["error_code"], "bad_request")

        self.assertIsNone(self.loyalty_repo.get_reward("r-x"))

    def test_duplicate_reward(self):
        result = self.service.create_reward({
            "reward_id": "r-10", "name": "Again", "reward_type": "discount", "points_cost": 50, "discount_value": 5
        })
        self.assertEqual(result["error_code"], "conflict")


if __name__ == '__main__':
    unittest.main()
