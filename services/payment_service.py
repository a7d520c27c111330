"""
Payment gateway client (Przelewy24-style sha384 signatures over a JSON document)

Registers transactions, builds the hosted-checkout redirect link and
verifies inbound status notifications.
"""
import hashlib
import hmac
import json
from typing import Dict, Any, Optional

import httpx
import structlog

from config import (
    P24_MERCHANT_ID, P24_POS_ID, P24_CRC_KEY, P24_API_KEY, P24_MODE, P24_CURRENCY, P24_TIMEOUT
)

log = structlog.get_logger()

GATEWAY_URLS = {
    "production": "https://secure.przelewy24.pl",
    "sandbox": "https://sandbox.przelewy24.pl"
}


class PaymentGatewayError(Exception):
    """The gateway refused a request or could not be reached"""


def to_minor_units(amount: float) -> int:
    # 12.34 -> 1234
    return int(round(amount * 100))


def _sign(document: Dict[str, Any]) -> str:
    # Key order is part of the signed text
    text = json.dumps(document, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha384(text.encode("utf-8")).hexdigest()


class PaymentService:
    # Signed requests to the gateway and verification of its notifications

    def __init__(self, merchant_id: int = P24_MERCHANT_ID, pos_id: int = P24_POS_ID,
                 crc_key: str = P24_CRC_KEY, currency: str = P24_CURRENCY,
                 api_key: str = P24_API_KEY, mode: str = P24_MODE,
                 client: Optional[httpx.Client] = None):
        self.merchant_id = merchant_id
        self.pos_id = pos_id
        self.crc_key = crc_key
        self.currency = currency
        self.api_key = api_key
        self.base_url = GATEWAY_URLS.get(mode, GATEWAY_URLS["sandbox"])
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.merchant_id and self.crc_key and self.api_key)

    def registration_sign(self, session_id: str, amount: int) -> str:
        return _sign({
            "sessionId": session_id,
            "merchantId": self.merchant_id,
            "amount": amount,
            "currency": self.currency,
            "crc": self.crc_key
        })

    def notification_sign(self, session_id: str, order_id: int, amount: int, currency: str) -> str:
        return _sign({
            "sessionId": session_id,
            "orderId": order_id,
            "amount": amount,
            "currency": currency,
            "crc": self.crc_key
        })

    def build_registration_payload(self, session_id: str, total: float, description: str,
                                   email: str, url_return: str, url_status: str) -> Dict[str, Any]:
        # Transaction registration body; amount goes out in minor units
        amount = to_minor_units(total)
        return {
            "merchantId": self.merchant_id,
            "posId": self.pos_id,
            "sessionId": session_id,
            "amount": amount,
            "currency": self.currency,
            "description": description,
            "email": email,
            "urlReturn": url_return,
            "urlStatus": url_status,
            "sign": self.registration_sign(session_id, amount),
            "encoding": "UTF-8",
            "country": "PL",
            "language": "pl"
        }

    def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        # Basic auth is posId:apiKey; a client created here is closed after the call
        client = self._client or httpx.Client(timeout=P24_TIMEOUT)
        try:
            resp = client.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                auth=(str(self.pos_id), self.api_key)
            )
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as e:
            log.error("payment_gateway_request_failed", path=path, error=str(e))
            raise PaymentGatewayError(str(e)) from e
        except ValueError as e:
            log.error("payment_gateway_bad_response", path=path, error=str(e))
            raise PaymentGatewayError("Unreadable gateway response") from e
        finally:
            if self._client is None:
                client.close()

    def register_transaction(self, session_id: str, total: float, description: str,
                             email: str, url_return: str, url_status: str) -> str:
        """Register a transaction and return the gateway's redirect token.

        Raises PaymentGatewayError when the gateway rejects the request or
        answers without a token.
        """
        payload = self.build_registration_payload(
            session_id, total, description, email, url_return, url_status
        )
        data = self._request("POST", "/api/v1/transaction/register", payload)

        token = (data.get("data") or {}).get("token") if isinstance(data, dict) else None
        if not token:
            raise PaymentGatewayError("Gateway did not return a token")

        log.info("payment_registered", session_id=session_id, amount=payload["amount"])
        return token

    def get_payment_link(self, token: str) -> str:
        return f"{self.base_url}/trnRequest/{token}"

    def verify_notification(self, notification: Dict[str, Any]) -> bool:
        """Check an inbound status notification's signature."""
        try:
            expected = self.notification_sign(
                notification["sessionId"],
                notification["orderId"],
                notification["amount"],
                notification["currency"]
            )
            sign = notification["sign"]
        except (KeyError, TypeError):
            return False

        if not isinstance(sign, str):
            return False
        return hmac.compare_digest(expected, sign)

    def verify_transaction(self, notification: Dict[str, Any]) -> bool:
        # Confirm a notified payment with the gateway before the order is settled
        payload = {
            "merchantId": self.merchant_id,
            "posId": self.pos_id,
            "sessionId": notification["sessionId"],
            "amount": notification["amount"],
            "currency": notification["currency"],
            "orderId": notification["orderId"],
            "sign": self.notification_sign(
                notification["sessionId"], notification["orderId"],
                notification["amount"], notification["currency"]
            )
        }
        try:
            data = self._request("PUT", "/api/v1/transaction/verify", payload)
        except PaymentGatewayError:
            return False

        status = (data.get("data") or {}).get("status") if isinstance(data, dict) else None
        return status == "success"
