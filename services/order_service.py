"""
Order service - turns a checked-out cart into an order
"""
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Any

import structlog

from models.cart import PaymentType
from models.order import Order, OrderItem, OrderStatus, PaymentStatus, CustomerInfo
from database.repository import OrderRepository
from .cart_service import CartPricingEngine
from .cart_selectors import line_total, unit_price
from .promo_service import PromoService
from .loyalty_service import LoyaltyService
from .payment_service import PaymentService, PaymentGatewayError, to_minor_units

log = structlog.get_logger()

# Orders the kitchen is working on
ACTIVE_STATUSES = [
    OrderStatus.CONFIRMED.value,
    OrderStatus.PREPARING.value,
    OrderStatus.READY.value
]

# Statuses an operator may set
OPERATOR_STATUSES = ACTIVE_STATUSES + [OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value]


class OrderService:
    # Order placement, lookup, kitchen status changes and payment settlement

    def __init__(self, order_repository: OrderRepository, promo_service: PromoService,
                 loyalty_service: LoyaltyService, payment_service: Optional[PaymentService] = None):
        self.order_repo = order_repository
        self.promo_service = promo_service
        self.loyalty_service = loyalty_service
        self.payment_service = payment_service

    def _build_order(self, order_id: str, session_id: str, engine: CartPricingEngine,
                     customer: CustomerInfo, user_id: Optional[str]) -> Order:
        state = engine.state
        summary = engine.get_summary()
        pay_on_pickup = state.payment_type == PaymentType.PAY_ON_PICKUP.value

        applied_code = None
        if state.promo_code:
            applied_code = state.promo_code.code
        elif state.loyalty_coupon:
            applied_code = state.loyalty_coupon.code

        items = [
            OrderItem(
                order_item_id=str(uuid.uuid4()),
                order_id=order_id,
                product_id=item.product_id,
                product_name=item.name,
                quantity=item.quantity,
                unit_price=unit_price(item),
                variant_name=item.variant_name,
                addons=[addon.to_dict() for addon in item.addons],
                spice_level=item.spice_level,
                notes=item.notes or "",
                line_total=line_total(item)
            )
            for item in state.items
        ]

        return Order(
            order_id=order_id,
            session_id=session_id,
            customer_id=user_id,
            location_id=state.location_id,
            delivery_type=state.delivery_type,
            payment_type=state.payment_type,
            status=OrderStatus.CONFIRMED if pay_on_pickup else OrderStatus.PENDING_PAYMENT,
            payment_status=PaymentStatus.PAY_ON_PICKUP if pay_on_pickup else PaymentStatus.PENDING,
            subtotal=summary["subtotal"],
            discount=summary["discount"],
            delivery_fee=summary["delivery_fee"],
            payment_fee=summary["payment_fee"],
            tip=summary["tip"],
            total_amount=summary["total"],
            promo_code=applied_code,
            customer=customer,
            created_at=datetime.now(timezone.utc).isoformat(),
            items=items
        )

    def place_order(self, session_id: str, engine: CartPricingEngine,
                    customer_info: Optional[Dict[str, str]] = None,
                    user_id: Optional[str] = None,
                    url_return: str = "", url_status: str = "") -> Dict[str, Any]:
        # Place an order from the cart; the cart is cleared once the order is stored
        eligibility = engine.can_checkout()
        if not eligibility.allowed:
            return {"success": False, "error": eligibility.reason}

        order_id = f"ORD_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"

        customer = CustomerInfo(
            name=customer_info.get("name", "") if customer_info else "",
            phone=customer_info.get("phone", "") if customer_info else "",
            email=customer_info.get("email", "") if customer_info else ""
        )

        order = self._build_order(order_id, session_id, engine, customer, user_id)
        state = engine.state

        try:
            if not self.order_repo.create_order_with_items(order):
                return {"success": False, "error": "Could not create the order"}
        except sqlite3.Error as e:
            log.error("order_placement_failed", order_id=order_id, error=str(e))
            return {"success": False, "error": "Could not create the order"}

        if state.promo_code:
            self.promo_service.record_use(state.promo_code.code)
        elif state.loyalty_coupon:
            self.loyalty_service.mark_coupon_used(state.loyalty_coupon.id, order_id)

        engine.clear_cart()
        log.info("order_placed", order_id=order_id, total=order.total_amount,
                 payment_type=order.payment_type)

        result = {
            "success": True,
            "order_id": order_id,
            "status": order.status.value,
            "total_amount": order.total_amount,
            "order": order.to_dict(),
            "message": f"Order placed. Order number: {order_id}"
        }

        if (self.payment_service and self.payment_service.is_configured
                and order.payment_type == PaymentType.ONLINE.value):
            # The order stands even when registration fails; the client retries via register_payment
            payment = self.register_payment(order_id, user_id, url_return, url_status)
            if payment["success"]:
                result["payment"] = {"token": payment["token"], "url": payment["url"]}
            else:
                result["payment_error"] = payment["error"]

        return result

    def register_payment(self, order_id: str, user_id: Optional[str] = None,
                         url_return: str = "", url_status: str = "") -> Dict[str, Any]:
        """Register an unpaid online order with the gateway.

        Returns the redirect token and the hosted checkout URL.
        """
        if not self.payment_service or not self.payment_service.is_configured:
            return {"success": False, "error": "Payment gateway is not configured",
                    "error_code": "server_error"}

        details = self.get_order_details(order_id)
        if not details["success"]:
            return dict(details, error_code="not_found")

        order_info = details["order_info"]
        if order_info["customer_id"] and order_info["customer_id"] != user_id:
            return {"success": False, "error": "This order belongs to another customer",
                    "error_code": "forbidden"}
        if (order_info["payment_type"] != PaymentType.ONLINE.value
                or order_info["payment_status"] != PaymentStatus.PENDING.value):
            return {"success": False, "error": "Order is not awaiting online payment",
                    "error_code": "bad_request"}

        try:
            token = self.payment_service.register_transaction(
                session_id=order_id,
                total=order_info["total_amount"],
                description=f"Order {order_id}",
                email=order_info["customer_email"] or "",
                url_return=url_return,
                url_status=url_status
            )
        except PaymentGatewayError as e:
            return {"success": False, "error": f"Payment registration failed: {e}",
                    "error_code": "gateway_error"}

        return {"success": True, "token": token, "url": self.payment_service.get_payment_link(token)}

    def get_order_details(self, order_id: str) -> Dict[str, Any]:
        # Order header and items
        try:
            order_details = self.order_repo.get_order_details(order_id)
        except sqlite3.Error as e:
            log.error("order_lookup_failed", order_id=order_id, error=str(e))
            return {"success": False, "error": "Could not load the order"}

        if not order_details:
            return {"success": False, "error": "Order not found"}

        return {
            "success": True,
            "order_info": order_details["order_info"],
            "order_items": order_details["order_items"]
        }

    def get_customer_orders(self, user_id: Optional[str]) -> Dict[str, Any]:
        # Order history, newest first
        if not user_id:
            return {"success": False, "error": "You must be logged in", "error_code": "unauthorized"}

        try:
            orders = self.order_repo.list_customer_orders(user_id)
        except sqlite3.Error as e:
            log.error("order_history_failed", user_id=user_id, error=str(e))
            return {"success": False, "error": "Could not load orders", "error_code": "server_error"}

        return {"success": True, "orders": orders}

    def list_active_orders(self, location_id: Optional[str] = None,
                           now: Optional[datetime] = None) -> Dict[str, Any]:
        """Kitchen queue: orders being worked on plus today's completed ones."""
        now = now or datetime.now(timezone.utc)
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        try:
            orders = self.order_repo.list_orders(
                ACTIVE_STATUSES,
                finished_statuses=[OrderStatus.COMPLETED.value],
                finished_since=start_of_day.isoformat(),
                location_id=location_id
            )
        except sqlite3.Error as e:
            log.error("order_queue_failed", error=str(e))
            return {"success": False, "error": "Could not load orders", "error_code": "server_error"}

        return {"success": True, "orders": orders}

    def update_order_status(self, order_id: Optional[str], status: Optional[str]) -> Dict[str, Any]:
        # Operator status change; payment status is untouched
        if not order_id or not status:
            return {"success": False, "error": "Missing order_id or status", "error_code": "bad_request"}
        if status not in OPERATOR_STATUSES:
            return {"success": False, "error": "Invalid status", "error_code": "bad_request"}

        try:
            updated = self.order_repo.update_order_status(order_id, status)
        except sqlite3.Error as e:
            log.error("order_status_update_failed", order_id=order_id, error=str(e))
            return {"success": False, "error": "Could not update the order", "error_code": "server_error"}

        if not updated:
            return {"success": False, "error": "Order not found", "error_code": "not_found"}

        log.info("order_status_changed", order_id=order_id, status=status)
        return {"success": True, "order_id": order_id, "status": status}

    def mark_order_paid(self, order_id: str) -> Dict[str, Any]:
        # Settle an online order: confirmed and paid
        try:
            updated = self.order_repo.update_order_status(
                order_id, OrderStatus.CONFIRMED.value, PaymentStatus.PAID.value
            )
        except sqlite3.Error as e:
            log.error("payment_status_update_failed", order_id=order_id, error=str(e))
            return {"success": False, "error": "Could not update the order"}

        if not updated:
            return {"success": False, "error": "Order not found"}

        log.info("order_paid", order_id=order_id)
        return {"success": True, "order_id": order_id}

    def handle_payment_notification(self, notification: Dict[str, Any]) -> Dict[str, Any]:
        """Process the gateway's status notification.

        The signature is checked locally, the amount against the stored
        total, and the transaction is confirmed with the gateway before the
        order is marked paid.
        """
        if not self.payment_service or not self.payment_service.is_configured:
            return {"success": False, "error": "Payment gateway is not configured"}

        if not self.payment_service.verify_notification(notification):
            log.warning("payment_notification_rejected", session_id=notification.get("sessionId"))
            return {"success": False, "error": "Invalid signature"}

        order_id = notification["sessionId"]
        details = self.get_order_details(order_id)
        if not details["success"]:
            return details

        if to_minor_units(details["order_info"]["total_amount"]) != notification["amount"]:
            log.warning("payment_amount_mismatch", order_id=order_id, amount=notification["amount"])
            return {"success": False, "error": "Amount mismatch"}

        if not self.payment_service.verify_transaction(notification):
            log.warning("payment_verification_failed", order_id=order_id)
            return {"success": False, "error": "Payment could not be verified"}

        return self.mark_order_paid(order_id)
