"""
Tests for order placement, payment and the kitchen queue
"""
import json
import os
import sqlite3
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

import httpx

from core.storefront import Storefront
from models.loyalty import LoyaltyReward, LoyaltyCustomer
from models.location import Location
from models.order import Order, OrderStatus, PaymentStatus
from models.product import Product
from models.promo import PromoCodeRecord
from services.payment_service import PaymentService

RAMEN = {"product_id": "ramen-1", "name": "Spicy Miso Ramen", "price": 36, "quantity": 2}


class TestOrderService(unittest.TestCase):

    def setUp(self):
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.gateway_requests = []
        self.payments = PaymentService(
            merchant_id=1234, pos_id=1234, crc_key="crc-secret", api_key="api-key",
            client=httpx.Client(transport=httpx.MockTransport(self.gateway))
        )
        self.store = Storefront(self.test_db.name, payment_service=self.payments)
        self.session_id = "test_session"

        self.store.product_repo.add_product(Product("ramen-1", "Spicy Miso Ramen", "ramen", 36))
        self.store.product_repo.add_product(Product("gyoza-1", "Gyoza (6 pcs)", "gyoza", 20))
        self.store.location_repo.add_location(Location("loc-1", "Centrum", 35, 7.99, 2))
        self.store.promo_repo.add_promo_code(PromoCodeRecord("CLUB10", "percent", 10))
        self.store.loyalty_repo.add_customer(LoyaltyCustomer("user-1", loyalty_points=500))
        self.store.loyalty_repo.add_reward(LoyaltyReward("r-10", "10 off", "discount", 200, discount_value=10))

    def tearDown(self):
        os.unlink(self.test_db.name)

    def gateway(self, request: httpx.Request) -> httpx.Response:
        self.gateway_requests.append(request)
        if request.url.path == "/api/v1/transaction/register":
            return httpx.Response(200, json={"data": {"token": "TOKEN-1"}})
        return httpx.Response(200, json={"data": {"status": "success"}})

    def order_rows(self):
        with self.store.db_connection.get_connection() as conn:
            orders = conn.execute("SELECT order_id FROM Orders").fetchall()
            items = conn.execute("SELECT order_item_id FROM Order_Items").fetchall()
        return orders, items

    def place_pickup_order(self, user_id=None):
        self.store.add_to_cart(self.session_id, RAMEN)
        self.store.update_settings(self.session_id, delivery_type="pickup")
        return self.store.checkout(self.session_id, user_id=user_id)["order_id"]

    def test_empty_cart_is_refused(self):
        result = self.store.checkout(self.session_id)
        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Cart is empty")

    def test_below_minimum_is_refused(self):
        self.store.add_to_cart(self.session_id, {"product_id": "gyoza-1", "name": "Gyoza", "price": 20})
        result = self.store.checkout(self.session_id)
        self.assertFalse(result["success"])
        self.assertIn("15.00", result["error"])
        self.assertEqual(len(self.store.get_cart(self.session_id).state.items), 1)

    def test_online_order_records_breakdown_and_registers_payment(self):
        self.store.add_to_cart(self.session_id, RAMEN)
        self.store.update_settings(self.session_id, delivery_type="delivery", tip=5, location_id="loc-1")
        self.store.apply_promo_code(self.session_id, "CLUB10")

        result = self.store.checkout(self.session_id, {"name": "Ada", "email": "ada@example.com"}, "user-1")

        self.assertTrue(result["success"])
        order = self.store.get_order_details(result["order_id"])["order_info"]
        self.assertEqual(order["status"], "pending_payment")
        self.assertEqual(order["payment_status"], "pending")
        self.assertEqual(order["subtotal"], 72)
        self.assertAlmostEqual(order["discount"], 7.2)
        self.assertAlmostEqual(order["delivery_fee"], 7.99)
        self.assertEqual(order["tip"], 5)
        self.assertAlmostEqual(order["total_amount"], 72 - 7.2 + 7.99 + 5)
        self.assertEqual(order["promo_code"], "CLUB10")
        self.assertEqual(self.store.promo_repo.find_by_code("CLUB10").uses_count, 1)

        self.assertEqual(result["payment"]["token"], "TOKEN-1")
        self.assertEqual(result["payment"]["url"], "https://sandbox.przelewy24.pl/trnRequest/TOKEN-1")
        registration = json.loads(self.gateway_requests[0].content)
        self.assertEqual(registration["amount"], 7779)
        self.assertEqual(registration["sessionId"], result["order_id"])
        self.assertEqual(registration["email"], "ada@example.com")

        engine = self.store.get_cart(self.session_id)
        self.assertEqual(engine.state.items, [])
        self.assertIsNone(engine.state.promo_code)
        self.assertEqual(engine.state.tip, 0)
        self.assertEqual(engine.state.location_id, "loc-1")

    def test_gateway_failure_keeps_the_order(self):
        self.payments._client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )
        self.store.add_to_cart(self.session_id, RAMEN)

        result = self.store.checkout(self.session_id)

        self.assertTrue(result["success"])
        self.assertNotIn("payment", result)
        self.assertIn("Payment registration failed", result["payment_error"])
        self.assertEqual(self.store.get_order_details(result["order_id"])["order_info"]["status"],
                         "pending_payment")

    def test_failed_item_insert_leaves_no_order(self):
        self.store.add_to_cart(self.session_id, RAMEN)
        self.store.add_to_cart(self.session_id, {"product_id": "gyoza-1", "name": "Gyoza"})

        with mock.patch.object(self.store.order_repo, "_insert_order_item",
                               side_effect=sqlite3.IntegrityError("duplicate item")):
            result = self.store.checkout(self.session_id)

        self.assertFalse(result["success"])
        self.assertEqual(self.order_rows(), ([], []))
        self.assertEqual(len(self.store.get_cart(self.session_id).state.items), 2)

    def test_unit_price_includes_addons(self):
        self.store.add_to_cart(self.session_id, dict(
            RAMEN, variant_price=8, addons=[{"id": "egg", "name": "Egg", "price": 5}]
        ))
        self.store.update_settings(self.session_id, delivery_type="pickup")

        order_id = self.store.checkout(self.session_id)["order_id"]

        item = self.store.get_order_details(order_id)["order_items"][0]
        self.assertEqual(item["unit_price"], 49)
        self.assertEqual(item["line_total"], 98)
        self.assertEqual(item["unit_price"] * item["quantity"], item["line_total"])

    def test_pay_on_pickup_order_with_coupon(self):
        self.store.activate_coupon("user-1", "r-10")
        self.store.add_to_cart(self.session_id, RAMEN)
        self.store.update_settings(self.session_id, delivery_type="pickup", payment_type="pay_on_pickup")
        self.store.apply_loyalty_coupon(self.session_id, "user-1")

        result = self.store.checkout(self.session_id, user_id="user-1")

        self.assertTrue(result["success"])
        self.assertNotIn("payment", result)
        self.assertEqual(self.gateway_requests, [])
        order = self.store.get_order_details(result["order_id"])
        self.assertEqual(order["order_info"]["status"], "confirmed")
        self.assertEqual(order["order_info"]["payment_status"], "pay_on_pickup")
        self.assertEqual(order["order_info"]["total_amount"], 64)
        self.assertEqual(len(order["order_items"]), 1)
        self.assertEqual(order["order_items"][0]["line_total"], 72)

        self.assertIsNone(self.store.loyalty_service.get_active_coupon("user-1"))

    def test_register_payment_for_existing_order(self):
        order_id = self.place_pickup_order(user_id="user-1")

        self.assertEqual(self.store.register_payment(order_id, "user-2")["error_code"], "forbidden")
        self.assertEqual(self.store.register_payment("ORD_missing", "user-1")["error_code"], "not_found")

        result = self.store.register_payment(order_id, "user-1")
        self.assertTrue(result["success"])
        self.assertEqual(result["token"], "TOKEN-1")

        self.store.order_service.mark_order_paid(order_id)
        self.assertEqual(self.store.register_payment(order_id, "user-1")["error_code"], "bad_request")

    def test_payment_notification_marks_order_paid(self):
        order_id = self.place_pickup_order()

        notification = {
            "sessionId": order_id, "orderId": 99, "amount": 7200, "currency": "PLN",
            "sign": self.payments.notification_sign(order_id, 99, 7200, "PLN")
        }
        self.assertTrue(self.store.handle_payment_notification(notification)["success"])
        self.assertEqual(self.gateway_requests[-1].method, "PUT")

        order = self.store.get_order_details(order_id)["order_info"]
        self.assertEqual(order["payment_status"], "paid")
        self.assertEqual(order["status"], "confirmed")

    def test_forged_notification_is_rejected(self):
        order_id = self.place_pickup_order()

        notification = {"sessionId": order_id, "orderId": 99, "amount": 7200,
                        "currency": "PLN", "sign": "0" * 96}
        self.assertFalse(self.store.handle_payment_notification(notification)["success"])

        wrong_amount = {"sessionId": order_id, "orderId": 99, "amount": 100, "currency": "PLN",
                        "sign": self.payments.notification_sign(order_id, 99, 100, "PLN")}
        self.assertEqual(self.store.handle_payment_notification(wrong_amount)["error"], "Amount mismatch")

    def test_unverified_transaction_is_not_settled(self):
        order_id = self.place_pickup_order()
        self.payments._client = httpx.Client(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"data": {"status": "failed"}})
        ))

        notification = {"sessionId": order_id, "orderId": 99, "amount": 7200, "currency": "PLN",
                        "sign": self.payments.notification_sign(order_id, 99, 7200, "PLN")}
        self.assertFalse(self.store.handle_payment_notification(notification)["success"])
        self.assertEqual(self.store.get_order_details(order_id)["order_info"]["payment_status"], "pending")

    def test_mark_order_paid_unknown_order(self):
        self.assertFalse(self.store.order_service.mark_order_paid("ORD_missing")["success"])

    def test_unknown_order(self):
        self.assertFalse(self.store.get_order_details("ORD_missing")["success"])

    def test_order_history(self):
        self.assertEqual(self.store.get_order_history(None)["error_code"], "unauthorized")

        first = self.place_pickup_order(user_id="user-1")
        second = self.place_pickup_order(user_id="user-1")
        self.place_pickup_order(user_id="user-2")

        orders = self.store.get_order_history("user-1")["orders"]
        self.assertEqual({order["order_id"] for order in orders}, {first, second})
        self.assertEqual(len(orders[0]["items"]), 1)


class TestKitchenQueue(unittest.TestCase):
    """Operator order listing and status changes"""

    NOW = datetime(2026, 6, 1, 18, 0, tzinfo=timezone.utc)

    def setUp(self):
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.store = Storefront(self.test_db.name)
        self.service = self.store.order_service

    def tearDown(self):
        os.unlink(self.test_db.name)

    def add_order(self, order_id, status, created_at, location_id="loc-1"):
        self.store.order_repo.create_order_with_items(Order(
            order_id=order_id, session_id="s", customer_id=None, location_id=location_id,
            delivery_type="pickup", payment_type="pay_on_pickup", status=status,
            payment_status=PaymentStatus.PAY_ON_PICKUP, subtotal=40, discount=0, delivery_fee=0,
            payment_fee=2, tip=0, total_amount=42, created_at=created_at.isoformat()
        ))

    def test_queue_holds_active_and_todays_completed_orders(self):
        self.add_order("ORD_late", OrderStatus.PREPARING, self.NOW - timedelta(minutes=5))
        self.add_order("ORD_early", OrderStatus.CONFIRMED, self.NOW - timedelta(minutes=30))
        self.add_order("ORD_done_today", OrderStatus.COMPLETED, self.NOW - timedelta(hours=2))
        self.add_order("ORD_done_yesterday", OrderStatus.COMPLETED, self.NOW - timedelta(days=1))
        self.add_order("ORD_unpaid", OrderStatus.PENDING_PAYMENT, self.NOW - timedelta(minutes=1))
        self.add_order("ORD_cancelled", OrderStatus.CANCELLED, self.NOW - timedelta(minutes=1))
        self.add_order("ORD_other", OrderStatus.READY, self.NOW - timedelta(minutes=1), location_id="loc-2")

        orders = self.service.list_active_orders("loc-1", now=self.NOW)["orders"]
        self.assertEqual([order["order_id"] for order in orders],
                         ["ORD_done_today", "ORD_early", "ORD_late"])

        everywhere = self.service.list_active_orders(now=self.NOW)["orders"]
        self.assertIn("ORD_other", [order["order_id"] for order in everywhere])

    def test_status_transitions(self):
        self.add_order("ORD_1", OrderStatus.CONFIRMED, self.NOW)

        for status in ("preparing", "ready", "completed"):
            result = self.service.update_order_status("ORD_1", status)
            self.assertTrue(result["success"])
            info = self.store.get_order_details("ORD_1")["order_info"]
            self.assertEqual(info["status"], status)
            self.assertEqual(info["payment_status"], "pay_on_pickup")

    def test_invalid_status_changes(self):
        self.add_order("ORD_1", OrderStatus.CONFIRMED, self.NOW)

        self.assertEqual(self.service.update_order_status("ORD_1", "eaten")["error_code"], "bad_request")
        self.assertEqual(self.service.update_order_status("ORD_1", "pending_payment")["error_code"],
                         "bad_request")
        self.assertEqual(self.service.update_order_status(None, "ready")["error_code"], "bad_request")
        self.assertEqual(self.service.update_order_status("ORD_missing", "ready")["error_code"], "not_found")


if __name__ == '__main__':
    unittest.main()
