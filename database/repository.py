"""
Database repository classes
"""
import sqlite3
import json
from typing import List, Optional, Dict, Any

from models.product import Product
from models.promo import PromoCodeRecord
from models.location import Location
from models.loyalty import LoyaltyReward, LoyaltyCustomer, CouponStatus
from models.order import Order, OrderItem
from .connection import DatabaseConnection, utc_now_iso


class CartRepository:
    # Persisted cart snapshots keyed by session

    def __init__(self, db_connection: DatabaseConnection):
        # DatabaseConnection instance is injected
        self.db = db_connection

    def save_cart(self, session_id: str, payload: Dict[str, Any]):
        # Insert or overwrite the session's snapshot
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR REPLACE INTO Cart_State (session_id, payload, updated_at)
            VALUES (?, ?, ?)
            """, (session_id, json.dumps(payload), utc_now_iso()))
            conn.commit()

    def load_cart(self, session_id: str) -> Optional[Any]:
        # Raw decoded snapshot, None when nothing is stored or the JSON is unreadable
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT payload FROM Cart_State WHERE session_id = ?", (session_id,))
            row = cursor.fetchone()

        if not row:
            return None
        try:
            return json.loads(row[0])
        except ValueError:
            return None

    def delete_cart(self, session_id: str) -> int:
        # Drop the session's snapshot
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Cart_State WHERE session_id = ?", (session_id,))
            removed = cursor.rowcount
            conn.commit()
            return removed


class ProductRepository:
    # Menu product data access

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def _row_to_product(self, row) -> Product:
        return Product(
            product_id=row[0],
            product_name=row[1],
            category_slug=row[2],
            price=row[3],
            description=row[4],
            is_available=bool(row[5])
        )

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT product_id, product_name, category_slug, price, description, is_available
            FROM Menu_Products WHERE product_id = ?
            """, (product_id,))
            result = cursor.fetchone()
            return self._row_to_product(result) if result else None

    def get_menu_products(self) -> List[Product]:
        # Available products grouped by category
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT product_id, product_name, category_slug, price, description, is_available
            FROM Menu_Products
            WHERE is_available = 1
            ORDER BY category_slug, product_name
            """)
            return [self._row_to_product(row) for row in cursor.fetchall()]

    def get_category_slugs(self) -> List[str]:
        # Distinct category slugs in menu order
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT DISTINCT category_slug FROM Menu_Products ORDER BY category_slug")
            return [row[0] for row in cursor.fetchall()]

    def find_cheapest_in_category(self, category_slug: str) -> Optional[Product]:
        # Lowest-priced product of a category
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT product_id, product_name, category_slug, price, description, is_available
            FROM Menu_Products
            WHERE category_slug = ?
            ORDER BY price ASC
            LIMIT 1
            """, (category_slug,))
            result = cursor.fetchone()
            return self._row_to_product(result) if result else None

    def add_product(self, product: Product) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                INSERT INTO Menu_Products (
                    product_id, product_name, category_slug, price, description, is_available
                ) VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    product.product_id, product.product_name, product.category_slug,
                    product.price, product.description, int(product.is_available)
                ))
                conn.commit()
                return True
            except sqlite3.IntegrityError:
                return False


class LocationRepository:
    # Restaurant location data access

    LOCATION_COLUMNS = "location_id, name, min_order_value, delivery_fee, pay_on_pickup_fee, is_active"
    EDITABLE_FIELDS = ("name", "min_order_value", "delivery_fee", "pay_on_pickup_fee")

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def _row_to_location(self, row) -> Location:
        return Location(
            location_id=row[0],
            name=row[1],
            min_order_value=row[2],
            delivery_fee=row[3],
            pay_on_pickup_fee=row[4],
            is_active=bool(row[5])
        )

    def get_location(self, location_id: str) -> Optional[Location]:
        # Active location by id
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
            SELECT {self.LOCATION_COLUMNS}
            FROM Locations WHERE location_id = ? AND is_active = 1
            """, (location_id,))
            row = cursor.fetchone()
            return self._row_to_location(row) if row else None

    def get_default_location(self) -> Optional[Location]:
        # First active location
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
            SELECT {self.LOCATION_COLUMNS}
            FROM Locations WHERE is_active = 1
            ORDER BY rowid
            LIMIT 1
            """)
            row = cursor.fetchone()
            return self._row_to_location(row) if row else None

    def update_location(self, location_id: str, fields: Dict[str, Any]) -> bool:
        # Only EDITABLE_FIELDS are written; column names never come from the caller
        updates = [(name, fields[name]) for name in self.EDITABLE_FIELDS if name in fields]
        if not updates:
            return False

        assignments = ", ".join(f"{name} = ?" for name, _ in updates)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE Locations SET {assignments} WHERE location_id = ?",
                [value for _, value in updates] + [location_id]
            )
            conn.commit()
            return cursor.rowcount > 0

    def add_location(self, location: Location) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                INSERT INTO Locations (
                    location_id, name, min_order_value, delivery_fee, pay_on_pickup_fee, is_active
                ) VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    location.location_id, location.name, location.min_order_value,
                    location.delivery_fee, location.pay_on_pickup_fee, int(location.is_active)
                ))
                conn.commit()
                return True
            except sqlite3.IntegrityError:
                return False


class PromoCodeRepository:
    # Promo code data access

    PROMO_COLUMNS = """code, discount_type, discount_value, free_product_id, is_active,
                   valid_from, valid_until, min_order_value, max_uses, uses_count, first_order_only"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def _row_to_promo(self, row) -> PromoCodeRecord:
        return PromoCodeRecord(
            code=row[0],
            discount_type=row[1],
            discount_value=row[2],
            free_product_id=row[3],
            is_active=bool(row[4]),
            valid_from=row[5],
            valid_until=row[6],
            min_order_value=row[7],
            max_uses=row[8],
            uses_count=row[9],
            first_order_only=bool(row[10])
        )

    def find_by_code(self, code: str) -> Optional[PromoCodeRecord]:
        # Case-insensitive lookup
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
            SELECT {self.PROMO_COLUMNS}
            FROM Promo_Codes WHERE UPPER(code) = UPPER(?)
            """, (code,))
            row = cursor.fetchone()
            return self._row_to_promo(row) if row else None

    def list_promo_codes(self) -> List[PromoCodeRecord]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {self.PROMO_COLUMNS} FROM Promo_Codes ORDER BY rowid DESC")
            return [self._row_to_promo(row) for row in cursor.fetchall()]

    def set_active(self, code: str, is_active: bool) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            UPDATE Promo_Codes SET is_active = ? WHERE UPPER(code) = UPPER(?)
            """, (int(is_active), code))
            conn.commit()
            return cursor.rowcount > 0

    def increment_uses(self, code: str) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            UPDATE Promo_Codes SET uses_count = uses_count + 1 WHERE UPPER(code) = UPPER(?)
            """, (code,))
            conn.commit()
            return cursor.rowcount > 0

    def add_promo_code(self, promo: PromoCodeRecord) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                INSERT INTO Promo_Codes (
                    code, discount_type, discount_value, free_product_id, is_active,
                    valid_from, valid_until, min_order_value, max_uses, uses_count, first_order_only
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    promo.code, promo.discount_type, promo.discount_value, promo.free_product_id,
                    int(promo.is_active), promo.valid_from, promo.valid_until,
                    promo.min_order_value, promo.max_uses, promo.uses_count,
                    int(promo.first_order_only)
                ))
                conn.commit()
                return True
            except sqlite3.IntegrityError:
                return False


class LoyaltyRepository:
    # Loyalty customers, rewards, coupons and the points ledger

    COUPON_COLUMNS = "coupon_id, code, coupon_type, discount_value, free_product_name, expires_at, source"

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def _row_to_coupon(self, row) -> Dict[str, Any]:
        return {
            "id": row[0],
            "code": row[1],
            "coupon_type": row[2],
            "discount_value": row[3],
            "free_product_name": row[4],
            "expires_at": row[5],
            "source": row[6]
        }

    def get_customer(self, customer_id: str) -> Optional[LoyaltyCustomer]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT customer_id, loyalty_points, loyalty_tier
            FROM Loyalty_Customers WHERE customer_id = ?
            """, (customer_id,))
            row = cursor.fetchone()
            if not row:
                return None
            return LoyaltyCustomer(customer_id=row[0], loyalty_points=row[1], loyalty_tier=row[2])

    def add_customer(self, customer: LoyaltyCustomer) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                INSERT INTO Loyalty_Customers (customer_id, loyalty_points, loyalty_tier)
                VALUES (?, ?, ?)
                """, (customer.customer_id, customer.loyalty_points, customer.loyalty_tier))
                conn.commit()
                return True
            except sqlite3.IntegrityError:
                return False

    def set_points(self, customer_id: str, points: int) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            UPDATE Loyalty_Customers SET loyalty_points = ? WHERE customer_id = ?
            """, (points, customer_id))
            conn.commit()
            return cursor.rowcount > 0

    def _row_to_reward(self, row) -> LoyaltyReward:
        return LoyaltyReward(
            reward_id=row[0],
            name=row[1],
            reward_type=row[2],
            points_cost=row[3],
            discount_value=row[4],
            min_tier=row[5],
            is_active=bool(row[6])
        )

    def get_reward(self, reward_id: str) -> Optional[LoyaltyReward]:
        # Active reward by id
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT reward_id, name, reward_type, points_cost, discount_value, min_tier, is_active
            FROM Loyalty_Rewards WHERE reward_id = ? AND is_active = 1
            """, (reward_id,))
            row = cursor.fetchone()
            return self._row_to_reward(row) if row else None

    def list_rewards(self) -> List[LoyaltyReward]:
        # Every reward, cheapest first
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT reward_id, name, reward_type, points_cost, discount_value, min_tier, is_active
            FROM Loyalty_Rewards ORDER BY points_cost, reward_id
            """)
            return [self._row_to_reward(row) for row in cursor.fetchall()]

    def add_reward(self, reward: LoyaltyReward) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                INSERT INTO Loyalty_Rewards (
                    reward_id, name, reward_type, points_cost, discount_value, min_tier, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    reward.reward_id, reward.name, reward.reward_type, reward.points_cost,
                    reward.discount_value, reward.min_tier, int(reward.is_active)
                ))
                conn.commit()
                return True
            except sqlite3.IntegrityError:
                return False

    def expire_stale_coupons(self, customer_id: str, now: str) -> int:
        # Flip active coupons past their expiry to expired
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            UPDATE Customer_Coupons SET status = ?
            WHERE customer_id = ? AND status = ? AND expires_at < ?
            """, (CouponStatus.EXPIRED.value, customer_id, CouponStatus.ACTIVE.value, now))
            conn.commit()
            return cursor.rowcount

    def get_active_coupons(self, customer_id: str, now: str) -> List[Dict[str, Any]]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
            SELECT {self.COUPON_COLUMNS}
            FROM Customer_Coupons
            WHERE customer_id = ? AND status = ? AND expires_at > ?
            ORDER BY created_at
            """, (customer_id, CouponStatus.ACTIVE.value, now))
            return [self._row_to_coupon(row) for row in cursor.fetchall()]

    def has_active_coupon(self, customer_id: str) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT 1 FROM Customer_Coupons WHERE customer_id = ? AND status = ? LIMIT 1
            """, (customer_id, CouponStatus.ACTIVE.value))
            return cursor.fetchone() is not None

    def code_exists(self, code: str) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM Customer_Coupons WHERE code = ?", (code,))
            return cursor.fetchone() is not None

    def insert_coupon(self, coupon: Dict[str, Any]) -> bool:
        # Returns False when the row is rejected (duplicate code, constraint failure)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                INSERT INTO Customer_Coupons (
                    coupon_id, customer_id, code, coupon_type, discount_value, free_product_name,
                    status, points_spent, source, expires_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    coupon["id"], coupon["customer_id"], coupon["code"], coupon["coupon_type"],
                    coupon.get("discount_value"), coupon.get("free_product_name"),
                    CouponStatus.ACTIVE.value, coupon.get("points_spent", 0),
                    coupon.get("source", "reward"), coupon["expires_at"], utc_now_iso()
                ))
                conn.commit()
                return True
            except sqlite3.IntegrityError:
                return False

    def update_coupon_status(self, coupon_id: str, status: CouponStatus,
                             order_id: Optional[str] = None) -> bool:
        # Used and cancelled coupons get a used_at stamp
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            UPDATE Customer_Coupons SET status = ?, used_at = ?, order_id = COALESCE(?, order_id)
            WHERE coupon_id = ?
            """, (status.value, utc_now_iso(), order_id, coupon_id))
            conn.commit()
            return cursor.rowcount > 0

    def add_transaction(self, customer_id: str, description: str, amount: int, reason: str):
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT INTO Loyalty_Transactions (customer_id, description, amount, reason, created_at)
            VALUES (?, ?, ?, ?, ?)
            """, (customer_id, description, amount, reason, utc_now_iso()))
            conn.commit()

    def get_transactions(self, customer_id: str) -> List[Dict[str, Any]]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT description, amount, reason, created_at
            FROM Loyalty_Transactions WHERE customer_id = ?
            ORDER BY transaction_id
            """, (customer_id,))
            return [
                {"description": row[0], "amount": row[1], "reason": row[2], "created_at": row[3]}
                for row in cursor.fetchall()
            ]


class OrderRepository:
    # Order data access (creation, lookup and status changes)

    ORDER_COLUMNS = """order_id, session_id, customer_id, location_id, delivery_type, payment_type,
                   status, payment_status, subtotal, discount, delivery_fee, payment_fee, tip,
                   total_amount, promo_code, customer_name, customer_phone, customer_email, created_at"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def _insert_order(self, cursor: sqlite3.Cursor, order: Order):
        cursor.execute("""
        INSERT INTO Orders (
            order_id, session_id, customer_id, location_id, delivery_type, payment_type,
            status, payment_status, subtotal, discount, delivery_fee, payment_fee, tip,
            total_amount, promo_code, customer_name, customer_phone, customer_email, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            order.order_id, order.session_id, order.customer_id, order.location_id,
            order.delivery_type, order.payment_type, order.status.value,
            order.payment_status.value, order.subtotal, order.discount,
            order.delivery_fee, order.payment_fee, order.tip, order.total_amount,
            order.promo_code, order.customer.name, order.customer.phone,
            order.customer.email, order.created_at or utc_now_iso()
        ))

    def _insert_order_item(self, cursor: sqlite3.Cursor, order_item: OrderItem):
        cursor.execute("""
        INSERT INTO Order_Items (
            order_item_id, order_id, product_id, product_name, quantity, unit_price,
            variant_name, addons, spice_level, notes, line_total
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            order_item.order_item_id, order_item.order_id, order_item.product_id,
            order_item.product_name, order_item.quantity, order_item.unit_price,
            order_item.variant_name,
            json.dumps(order_item.addons),  # addons stored as JSON
            order_item.spice_level, order_item.notes, order_item.line_total
        ))

    def create_order_with_items(self, order: Order) -> bool:
        # Header and every item in one transaction; nothing is kept when any row fails
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            try:
                self._insert_order(cursor, order)
                for order_item in order.items:
                    self._insert_order_item(cursor, order_item)

                conn.commit()
                return True

            except sqlite3.IntegrityError:
                conn.rollback()
                return False
            except sqlite3.Error:
                conn.rollback()
                raise

    def _row_to_order_info(self, row) -> Dict[str, Any]:
        return {
            "order_id": row[0],
            "session_id": row[1],
            "customer_id": row[2],
            "location_id": row[3],
            "delivery_type": row[4],
            "payment_type": row[5],
            "status": row[6],
            "payment_status": row[7],
            "subtotal": row[8],
            "discount": row[9],
            "delivery_fee": row[10],
            "payment_fee": row[11],
            "tip": row[12],
            "total_amount": row[13],
            "promo_code": row[14],
            "customer_name": row[15],
            "customer_phone": row[16],
            "customer_email": row[17],
            "created_at": row[18]
        }

    def _fetch_items(self, cursor: sqlite3.Cursor, order_id: str) -> List[Dict[str, Any]]:
        cursor.execute("""
        SELECT order_item_id, product_id, product_name, quantity, unit_price,
               variant_name, addons, spice_level, notes, line_total
        FROM Order_Items WHERE order_id = ?
        ORDER BY rowid
        """, (order_id,))

        order_items = []
        for item_row in cursor.fetchall():
            order_items.append({
                "order_item_id": item_row[0],
                "product_id": item_row[1],
                "product_name": item_row[2],
                "quantity": item_row[3],
                "unit_price": item_row[4],
                "variant_name": item_row[5],
                "addons": json.loads(item_row[6]) if item_row[6] else [],
                "spice_level": item_row[7],
                "notes": item_row[8],
                "line_total": item_row[9]
            })
        return order_items

    def get_order_details(self, order_id: str) -> Optional[Dict[str, Any]]:
        # Order header plus its items
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute(f"SELECT {self.ORDER_COLUMNS} FROM Orders WHERE order_id = ?", (order_id,))
            order_row = cursor.fetchone()
            if not order_row:
                return None

            return {
                "order_info": self._row_to_order_info(order_row),
                "order_items": self._fetch_items(cursor, order_id)
            }

    def list_orders(self, statuses: List[str], finished_statuses: List[str] = None,
                    finished_since: Optional[str] = None,
                    location_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Orders in any of `statuses`, oldest first, each with its items.

        Orders in `finished_statuses` are included too when they were created
        at or after `finished_since`.
        """
        conditions = [f"status IN ({', '.join('?' * len(statuses))})"]
        params: List[Any] = list(statuses)
        if finished_statuses and finished_since:
            conditions.append(
                f"(status IN ({', '.join('?' * len(finished_statuses))}) AND created_at >= ?)"
            )
            params.extend(finished_statuses)
            params.append(finished_since)

        query = f"SELECT {self.ORDER_COLUMNS} FROM Orders WHERE ({' OR '.join(conditions)})"
        if location_id:
            query += " AND location_id = ?"
            params.append(location_id)
        query += " ORDER BY created_at ASC"

        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()

            orders = []
            for row in rows:
                order_info = self._row_to_order_info(row)
                order_info["items"] = self._fetch_items(cursor, order_info["order_id"])
                orders.append(order_info)
            return orders

    def list_customer_orders(self, customer_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        # Newest first, with items
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
            SELECT {self.ORDER_COLUMNS} FROM Orders
            WHERE customer_id = ?
            ORDER BY created_at DESC
            LIMIT ?
            """, (customer_id, limit))
            rows = cursor.fetchall()

            orders = []
            for row in rows:
                order_info = self._row_to_order_info(row)
                order_info["items"] = self._fetch_items(cursor, order_info["order_id"])
                orders.append(order_info)
            return orders

    def count_customer_orders(self, customer_id: str) -> int:
        # Orders that were not cancelled
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT COUNT(*) FROM Orders WHERE customer_id = ? AND status != 'cancelled'
            """, (customer_id,))
            return cursor.fetchone()[0]

    def find_settled_order_with_code(self, customer_id: str, code: str) -> Optional[str]:
        # Id of a paid or pay-on-pickup order that carried the code
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT order_id FROM Orders
            WHERE customer_id = ? AND promo_code = ? AND payment_status IN ('paid', 'pay_on_pickup')
            LIMIT 1
            """, (customer_id, code))
            row = cursor.fetchone()
            return row[0] if row else None

    def update_order_status(self, order_id: str, status: str,
                            payment_status: Optional[str] = None) -> bool:
        # Payment status is left alone when not given
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            UPDATE Orders SET status = ?, payment_status = COALESCE(?, payment_status)
            WHERE order_id = ?
            """, (status, payment_status, order_id))
            conn.commit()
            return cursor.rowcount > 0
