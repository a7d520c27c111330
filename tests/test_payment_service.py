"""
Tests for the payment gateway client
"""
import hashlib
import json
import unittest

import httpx

from services.payment_service import PaymentService, PaymentGatewayError, to_minor_units


def gateway_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestPaymentService(unittest.TestCase):

    def setUp(self):
        self.requests = []
        self.payments = PaymentService(merchant_id=1234, pos_id=5678, crc_key="crc-secret",
                                       currency="PLN", api_key="api-key",
                                       client=gateway_client(self.gateway))

    def gateway(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/v1/transaction/register":
            return httpx.Response(200, json={"data": {"token": "TOKEN-123"}})
        if request.url.path == "/api/v1/transaction/verify":
            return httpx.Response(200, json={"data": {"status": "success"}})
        return httpx.Response(404)

    def test_minor_units(self):
        self.assertEqual(to_minor_units(79.99), 7999)
        self.assertEqual(to_minor_units(62), 6200)

    def test_registration_sign_matches_gateway_format(self):
        text = '{"sessionId":"ORD_1","merchantId":1234,"amount":6200,"currency":"PLN","crc":"crc-secret"}'
        expected = hashlib.sha384(text.encode("utf-8")).hexdigest()
        self.assertEqual(self.payments.registration_sign("ORD_1", 6200), expected)

    def test_registration_payload(self):
        payload = self.payments.build_registration_payload(
            "ORD_1", 62, "Order ORD_1", "ada@example.com", "https://shop/return", "https://shop/status"
        )
        self.assertEqual(payload["amount"], 6200)
        self.assertEqual(payload["posId"], 5678)
        self.assertEqual(payload["sign"], self.payments.registration_sign("ORD_1", 6200))

    def test_register_transaction_returns_token(self):
        token = self.payments.register_transaction(
            "ORD_1", 62, "Order ORD_1", "ada@example.com", "https://shop/return", "https://shop/status"
        )

        self.assertEqual(token, "TOKEN-123")
        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.host, "sandbox.przelewy24.pl")
        self.assertTrue(request.headers["Authorization"].startswith("Basic "))
        body = json.loads(request.content)
        self.assertEqual(body["amount"], 6200)
        self.assertEqual(body["sessionId"], "ORD_1")

    def test_payment_link(self):
        self.assertEqual(self.payments.get_payment_link("TOKEN-123"),
                         "https://sandbox.przelewy24.pl/trnRequest/TOKEN-123")

        production = PaymentService(merchant_id=1, crc_key="c", api_key="k", mode="production")
        self.assertEqual(production.get_payment_link("T"), "https://secure.przelewy24.pl/trnRequest/T")

    def test_register_transaction_errors(self):
        refusing = PaymentService(merchant_id=1234, pos_id=5678, crc_key="crc-secret", api_key="api-key",
                                  client=gateway_client(lambda request: httpx.Response(400, json={"error": "bad"})))
        with self.assertRaises(PaymentGatewayError):
            refusing.register_transaction("ORD_1", 62, "Order", "", "", "")

        tokenless = PaymentService(merchant_id=1234, pos_id=5678, crc_key="crc-secret", api_key="api-key",
                                   client=gateway_client(lambda request: httpx.Response(200, json={"data": {}})))
        with self.assertRaises(PaymentGatewayError):
            tokenless.register_transaction("ORD_1", 62, "Order", "", "", "")

    def test_verify_notification(self):
        notification = {
            "sessionId": "ORD_1", "orderId": 42, "amount": 6200, "currency": "PLN",
            "sign": self.payments.notification_sign("ORD_1", 42, 6200, "PLN")
        }
        self.assertTrue(self.payments.verify_notification(notification))

        tampered = dict(notification, amount=1)
        self.assertFalse(self.payments.verify_notification(tampered))

    def test_incomplete_notification(self):
        self.assertFalse(self.payments.verify_notification({"sessionId": "ORD_1"}))
        self.assertFalse(self.payments.verify_notification({
            "sessionId": "ORD_1", "orderId": 42, "amount": 6200, "currency": "PLN", "sign": None
        }))

    def test_verify_transaction(self):
        notification = {"sessionId": "ORD_1", "orderId": 42, "amount": 6200, "currency": "PLN"}
        self.assertTrue(self.payments.verify_transaction(notification))
        self.assertEqual(self.requests[0].method, "PUT")

        down = PaymentService(merchant_id=1234, pos_id=5678, crc_key="crc-secret", api_key="api-key",
                              client=gateway_client(lambda request: httpx.Response(503)))
        self.assertFalse(down.verify_transaction(notification))

    def test_is_configured(self):
        self.assertTrue(self.payments.is_configured)
        self.assertFalse(PaymentService(merchant_id=0, crc_key="", api_key="").is_configured)


if __name__ == '__main__':
    unittest.main()
