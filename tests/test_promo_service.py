"""
Tests for promo code validation and application
"""
import os
import tempfile
import unittest
from datetime import datetime, timezone

from database.connection import DatabaseConnection
from database.repository import PromoCodeRepository, OrderRepository
from models.cart import CartLineItem, LoyaltyCoupon
from models.order import Order, OrderStatus, PaymentStatus
from models.promo import PromoCodeRecord
from services.cart_service import CartPricingEngine
from services.promo_service import PromoService

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestPromoService(unittest.TestCase):

    def setUp(self):
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        db = DatabaseConnection(self.test_db.name)
        self.promo_repo = PromoCodeRepository(db)
        self.order_repo = OrderRepository(db)
        self.service = PromoService(self.promo_repo, self.order_repo)

        for promo in [
            PromoCodeRecord("CLUB10", "percent", 10),
            PromoCodeRecord("OFF", "fixed", 5, is_active=False),
            PromoCodeRecord("OLD", "fixed", 5, valid_until="2026-01-01T00:00:00+00:00"),
            PromoCodeRecord("SOON", "fixed", 5, valid_from="2026-12-01T00:00:00"),
            PromoCodeRecord("BIG", "fixed", 20, min_order_value=100),
            PromoCodeRecord("USEDUP", "fixed", 5, max_uses=3, uses_count=3),
            PromoCodeRecord("FIRST", "percent", 15, first_order_only=True),
            PromoCodeRecord("FREEDELIVERY", "free_delivery", None),
        ]:
            self.promo_repo.add_promo_code(promo)

    def tearDown(self):
        os.unlink(self.test_db.name)

    def validate(self, code, subtotal=50, user_id=None):
        return self.service.validate_promo_code(code, subtotal, user_id, now=NOW)

    def test_valid_code_is_case_insensitive(self):
        result = self.validate("  club10 ")
        self.assertTrue(result["valid"])
        self.assertEqual(result["code"], "CLUB10")
        self.assertEqual(result["discount_type"], "percent")
        self.assertEqual(result["discount_value"], 10)

    def test_input_validation(self):
        self.assertEqual(self.validate("")["error"], "Promo code is required")
        self.assertEqual(self.validate("CLUB10", subtotal=-1)["error"], "Invalid order value")
        self.assertEqual(self.validate("CLUB10", subtotal="50")["error"], "Invalid order value")

    def test_rejection_reasons(self):
        self.assertEqual(self.validate("NOPE")["error"], "Promo code does not exist")
        self.assertEqual(self.validate("OFF")["error"], "Promo code is inactive")
        self.assertEqual(self.validate("OLD")["error"], "Promo code has expired")
        self.assertEqual(self.validate("SOON")["error"], "Promo code is not active yet")
        self.assertIn("100.00", self.validate("BIG")["error"])
        self.assertTrue(self.validate("BIG", subtotal=120)["valid"])
        self.assertEqual(self.validate("USEDUP")["error"], "Promo code has reached its usage limit")

    def test_first_order_only(self):
        self.assertEqual(self.validate("FIRST")["error"], "You must be logged in to use this code")
        self.assertTrue(self.validate("FIRST", user_id="user-1")["valid"])

        self.order_repo.create_order_with_items(Order(
            order_id="ORD_1", session_id="s", customer_id="user-1", location_id=None,
            delivery_type="pickup", payment_type="online", status=OrderStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID, subtotal=40, discount=0, delivery_fee=0,
            payment_fee=0, tip=0, total_amount=40
        ))
        self.assertEqual(self.validate("FIRST", user_id="user-1")["error"],
                         "This code is only valid on your first order")

    def test_free_delivery_code_has_no_value(self):
        result = self.validate("FREEDELIVERY")
        self.assertTrue(result["valid"])
        self.assertIsNone(result["discount_value"])

    def test_apply_promo_code_installs_and_replaces_coupon(self):
        engine = CartPricingEngine()
        engine.add_item(CartLineItem(id="", product_id="ramen-1", name="Ramen", price=36, quantity=2))
        engine.set_loyalty_coupon(LoyaltyCoupon(id="c1", code="MESO-1", coupon_type="discount",
                                                discount_value=10))

        result = self.service.apply_promo_code(engine, "club10")

        self.assertTrue(result["valid"])
        self.assertEqual(engine.state.promo_code.code, "CLUB10")
        self.assertIsNone(engine.state.loyalty_coupon)
        self.assertAlmostEqual(result["summary"]["discount"], 7.2)

    def test_apply_rejected_code_leaves_cart_untouched(self):
        engine = CartPricingEngine()
        result = self.service.apply_promo_code(engine, "NOPE")
        self.assertFalse(result["valid"])
        self.assertIsNone(engine.state.promo_code)

    def test_record_use(self):
        self.assertTrue(self.service.record_use("club10"))
        self.assertEqual(self.promo_repo.find_by_code("CLUB10").uses_count, 1)


if __name__ == '__main__':
    unittest.main()
