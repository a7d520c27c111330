"""
Database connection management
"""
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

from config import DATABASE_PATH


def utc_now_iso() -> str:
    # Timestamps are stored as ISO-8601 UTC strings so they compare lexically
    return datetime.now(timezone.utc).isoformat()


class DatabaseConnection:
    # Manages the sqlite database file and its schema

    def __init__(self, db_path: str = DATABASE_PATH):
        # Remember the database path and make sure all tables exist
        self.db_path = db_path
        self.init_database()

    def init_database(self):
        # Create the tables the storefront needs
        with self.get_connection() as conn:
            cursor = conn.cursor()

            # Persisted cart snapshot per session
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Cart_State (
                session_id TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Menu_Products (
                product_id TEXT PRIMARY KEY,
                product_name TEXT NOT NULL,
                category_slug TEXT NOT NULL,
                price REAL NOT NULL,
                description TEXT,
                is_available INTEGER NOT NULL DEFAULT 1
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Locations (
                location_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                min_order_value REAL NOT NULL,
                delivery_fee REAL NOT NULL,
                pay_on_pickup_fee REAL NOT NULL DEFAULT 2,
                is_active INTEGER NOT NULL DEFAULT 1
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Promo_Codes (
                code TEXT PRIMARY KEY,
                discount_type TEXT NOT NULL,
                discount_value REAL,
                free_product_id TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                valid_from TEXT,
                valid_until TEXT,
                min_order_value REAL,
                max_uses INTEGER,
                uses_count INTEGER NOT NULL DEFAULT 0,
                first_order_only INTEGER NOT NULL DEFAULT 0
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Loyalty_Customers (
                customer_id TEXT PRIMARY KEY,
                loyalty_points INTEGER NOT NULL DEFAULT 0,
                loyalty_tier TEXT NOT NULL DEFAULT 'bronze'
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Loyalty_Rewards (
                reward_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                reward_type TEXT NOT NULL,
                points_cost INTEGER NOT NULL,
                discount_value REAL,
                min_tier TEXT NOT NULL DEFAULT 'bronze',
                is_active INTEGER NOT NULL DEFAULT 1
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Customer_Coupons (
                coupon_id TEXT PRIMARY KEY,
                customer_id TEXT NOT NULL,
                code TEXT NOT NULL UNIQUE,
                coupon_type TEXT NOT NULL,
                discount_value REAL,
                free_product_name TEXT,
                status TEXT NOT NULL DEFAULT 'active',
                points_spent INTEGER NOT NULL DEFAULT 0,
                source TEXT NOT NULL DEFAULT 'reward',
                expires_at TEXT NOT NULL,
                used_at TEXT,
                order_id TEXT,
                created_at TEXT NOT NULL
            )
            ''')

            # Points ledger (negative amounts are redemptions)
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Loyalty_Transactions (
                transaction_id INTEGER PRIMARY KEY AUTOINCREMENT,
                customer_id TEXT NOT NULL,
                description TEXT NOT NULL,
                amount INTEGER NOT NULL,
                reason TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Orders (
                order_id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                customer_id TEXT,
                location_id TEXT,
                delivery_type TEXT NOT NULL,
                payment_type TEXT NOT NULL,
                status TEXT NOT NULL,
                payment_status TEXT NOT NULL,
                subtotal REAL NOT NULL,
                discount REAL NOT NULL,
                delivery_fee REAL NOT NULL,
                payment_fee REAL NOT NULL,
                tip REAL NOT NULL,
                total_amount REAL NOT NULL,
                promo_code TEXT,
                customer_name TEXT,
                customer_phone TEXT,
                customer_email TEXT,
                created_at TEXT NOT NULL
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Order_Items (
                order_item_id TEXT PRIMARY KEY,
                order_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                product_name TEXT NOT NULL,
                quantity INTEGER NOT NULL,
                unit_price REAL NOT NULL,
                variant_name TEXT,
                addons TEXT,
                spice_level INTEGER,
                notes TEXT,
                line_total REAL NOT NULL,
                FOREIGN KEY(order_id) REFERENCES Orders(order_id)
            )
            ''')

            conn.commit()

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        # Open a connection for the duration of the with-block
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()
