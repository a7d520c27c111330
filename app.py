from flask import Flask, request, jsonify, session
import hmac
import uuid

import structlog
from werkzeug.exceptions import HTTPException

from config import SECRET_KEY, PORT, DEBUG, OPERATOR_PIN, configure_logging
from core.storefront import Storefront

configure_logging()
log = structlog.get_logger()

ERROR_STATUS = {
    "bad_request": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "server_error": 500,
    "gateway_error": 502
}


def _session_id() -> str:
    # Get or create the cart session id
    if 'session_id' not in session:
        session['session_id'] = str(uuid.uuid4())
    return session['session_id']


def _user_id():
    # Authentication happens upstream; the user id arrives as a header
    return request.headers.get('X-User-Id') or None


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _operator_authorized() -> bool:
    # Kitchen dashboard requests carry the operator PIN
    pin = request.headers.get('X-Operator-Pin', '')
    return hmac.compare_digest(pin.encode(), OPERATOR_PIN.encode())


def _error_response(result: dict):
    return jsonify({'error': result["error"]}), ERROR_STATUS.get(result.get("error_code"), 400)


def create_app(storefront: Storefront = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = SECRET_KEY
    store = storefront or Storefront()

    @app.route('/api/cart', methods=['GET'])
    def get_cart():
        """Current cart with derived prices"""
        return jsonify(store.get_cart_details(_session_id()))

    @app.route('/api/cart/items', methods=['POST'])
    def add_item():
        """Add a product configuration to the cart"""
        result = store.add_to_cart(_session_id(), _json_body())
        return jsonify(result), (200 if result["success"] else 400)

    @app.route('/api/cart/items/<item_id>', methods=['PATCH'])
    def update_item(item_id):
        """Change a line's quantity (0 or less removes it)"""
        quantity = _json_body().get('quantity')
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            return jsonify({'success': False, 'error': 'quantity must be an integer'}), 400
        result = store.update_cart_item(_session_id(), item_id, quantity)
        return jsonify(result), (200 if result["success"] else 404)

    @app.route('/api/cart/items/<item_id>', methods=['DELETE'])
    def remove_item(item_id):
        result = store.remove_cart_item(_session_id(), item_id)
        return jsonify(result), (200 if result["success"] else 404)

    @app.route('/api/cart/clear', methods=['POST'])
    def clear_cart():
        return jsonify(store.clear_cart(_session_id()))

    @app.route('/api/cart/settings', methods=['POST'])
    def update_settings():
        """Delivery type, payment type, tip and location"""
        data = _json_body()
        tip = data.get('tip')
        if tip is not None and (isinstance(tip, bool) or not isinstance(tip, (int, float))):
            return jsonify({'success': False, 'error': 'tip must be a number'}), 400
        result = store.update_settings(
            _session_id(),
            delivery_type=data.get('delivery_type'),
            payment_type=data.get('payment_type'),
            tip=tip,
            location_id=data.get('location_id')
        )
        return jsonify(result), (200 if result["success"] else 400)

    @app.route('/api/promo-codes/validate', methods=['POST'])
    def validate_promo_code():
        """Validate a promo code and apply it to the cart"""
        code = _json_body().get('code')
        if not code or not isinstance(code, str):
            return jsonify({'valid': False, 'error': 'Promo code is required'}), 400
        return jsonify(store.apply_promo_code(_session_id(), code, _user_id()))

    @app.route('/api/promo-codes', methods=['DELETE'])
    def clear_promo_code():
        return jsonify(store.clear_promo_code(_session_id()))

    @app.route('/api/loyalty/activate-coupon', methods=['POST'])
    def activate_coupon():
        result = store.activate_coupon(_user_id(), _json_body().get('reward_id'))
        if not result["success"]:
            return jsonify({'error': result["error"]}), ERROR_STATUS.get(result.get("error_code"), 400)
        return jsonify({'coupon': result["coupon"]})

    @app.route('/api/loyalty/active-coupon', methods=['GET'])
    def active_coupon():
        return jsonify(store.get_active_coupon(_user_id()))

    @app.route('/api/loyalty/apply-coupon', methods=['POST'])
    def apply_coupon():
        if not _user_id():
            return jsonify({'success': False, 'error': 'You must be logged in'}), 401
        result = store.apply_loyalty_coupon(_session_id(), _user_id())
        return jsonify(result), (200 if result["success"] else 404)

    @app.route('/api/loyalty/deactivate-coupon', methods=['POST'])
    def deactivate_coupon():
        result = store.deactivate_coupon(_session_id(), _user_id())
        if not result["success"]:
            return jsonify({'error': result["error"]}), ERROR_STATUS.get(result.get("error_code"), 400)
        return jsonify({'success': True})

    @app.route('/api/checkout', methods=['POST'])
    def checkout():
        """Place an order from the cart"""
        data = _json_body()
        result = store.checkout(
            _session_id(),
            customer_info=data.get('customer') if isinstance(data.get('customer'), dict) else None,
            user_id=_user_id(),
            url_return=data.get('url_return', ''),
            url_status=data.get('url_status', '')
        )
        return jsonify(result), (200 if result["success"] else 400)

    @app.route('/api/orders/<order_id>', methods=['GET'])
    def get_order(order_id):
        result = store.get_order_details(order_id)
        return jsonify(result), (200 if result["success"] else 404)

    @app.route('/api/payments/register', methods=['POST'])
    def register_payment():
        """Register an unpaid online order with the payment gateway"""
        data = _json_body()
        order_id = data.get('order_id')
        if not order_id or not isinstance(order_id, str):
            return jsonify({'error': 'order_id is required'}), 400
        result = store.register_payment(
            order_id, _user_id(), data.get('url_return', ''), data.get('url_status', '')
        )
        if not result["success"]:
            return _error_response(result)
        return jsonify({'token': result["token"], 'url': result["url"]})

    @app.route('/api/payments/status', methods=['POST'])
    def payment_status():
        """Payment gateway notification"""
        result = store.handle_payment_notification(_json_body())
        return jsonify(result), (200 if result["success"] else 400)

    @app.route('/api/menu', methods=['GET'])
    def get_menu():
        result = store.get_menu()
        return jsonify(result), (200 if result["success"] else 500)

    @app.route('/api/orders', methods=['GET'])
    def order_history():
        """Signed-in customer's orders, newest first"""
        result = store.get_order_history(_user_id())
        if not result["success"]:
            return _error_response(result)
        return jsonify({'orders': result["orders"]})

    # === Kitchen operator ===
    @app.route('/api/operator/orders', methods=['GET'])
    def operator_orders():
        """Kitchen queue, or a single order with ?order_id="""
        if not _operator_authorized():
            return jsonify({'error': 'Unauthorized'}), 401

        order_id = request.args.get('order_id')
        if order_id:
            result = store.get_order_details(order_id)
            if not result["success"]:
                return jsonify({'error': result["error"]}), 404
            return jsonify({'order': dict(result["order_info"], items=result["order_items"])})

        result = store.list_operator_orders(request.args.get('location_id'))
        if not result["success"]:
            return _error_response(result)
        return jsonify({'orders': result["orders"]})

    @app.route('/api/operator/orders', methods=['PATCH'])
    def operator_update_order():
        if not _operator_authorized():
            return jsonify({'error': 'Unauthorized'}), 401
        data = _json_body()
        result = store.update_order_status(data.get('order_id'), data.get('status'))
        if not result["success"]:
            return _error_response(result)
        return jsonify({'success': True, 'status': result["status"]})

    @app.route('/api/operator/settings/location', methods=['GET', 'PATCH'])
    def operator_location():
        if not _operator_authorized():
            return jsonify({'error': 'Unauthorized'}), 401
        location_id = request.args.get('location_id')
        if request.method == 'PATCH':
            result = store.update_location_settings(_json_body(), location_id)
        else:
            result = store.get_location_settings(location_id)
        if not result["success"]:
            return _error_response(result)
        return jsonify({'location': result["location"]})

    @app.route('/api/operator/settings/promo-codes', methods=['GET', 'POST', 'DELETE'])
    def operator_promo_codes():
        if not _operator_authorized():
            return jsonify({'error': 'Unauthorized'}), 401

        if request.method == 'POST':
            result = store.create_promo_code(_json_body())
            if not result["success"]:
                return _error_response(result)
            return jsonify({'promo_code': result["promo_code"]}), 201

        if request.method == 'DELETE':
            result = store.deactivate_promo_code(_json_body().get('code'))
            if not result["success"]:
                return _error_response(result)
            return jsonify({'success': True})

        result = store.list_promo_codes()
        if not result["success"]:
            return _error_response(result)
        return jsonify({'promo_codes': result["promo_codes"]})

    @app.route('/api/operator/settings/loyalty-rewards', methods=['GET', 'POST'])
    def operator_rewards():
        if not _operator_authorized():
            return jsonify({'error': 'Unauthorized'}), 401

        if request.method == 'POST':
            result = store.create_reward(_json_body())
            if not result["success"]:
                return _error_response(result)
            return jsonify({'reward': result["reward"]}), 201

        result = store.list_rewards()
        if not result["success"]:
            return _error_response(result)
        return jsonify({'rewards': result["rewards"]})

    @app.route('/health')
    def health():
        """Health check endpoint"""
        return jsonify({'status': 'ok', 'message': 'Storefront is running!'})

    @app.errorhandler(Exception)
    def handle_error(e):
        if isinstance(e, HTTPException):
            return e
        log.exception("unhandled_error", path=request.path)
        return jsonify({'error': f'An error occurred: {str(e)}'}), 500

    return app


if __name__ == '__main__':
    print("=== Storefront Server ===")
    print(f"Starting server on http://localhost:{PORT}")
    print("Press Ctrl+C to stop")

    create_app().run(
        host='0.0.0.0',
        port=PORT,
        debug=DEBUG
    )
