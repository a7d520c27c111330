"""
Application configuration and logging setup
"""
import logging
import os

import structlog
from dotenv import load_dotenv

load_dotenv()

DATABASE_PATH = os.getenv('DATABASE_PATH', 'storefront.db')
SECRET_KEY = os.getenv('SECRET_KEY', 'your-secret-key-here')
PORT = int(os.getenv('PORT', 5000))
DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

# Fallbacks used until the selected location has been loaded
DEFAULT_MIN_ORDER_VALUE = float(os.getenv('DEFAULT_MIN_ORDER_VALUE', 35))
DEFAULT_DELIVERY_FEE = float(os.getenv('DEFAULT_DELIVERY_FEE', 7.99))
DEFAULT_PAY_ON_PICKUP_FEE = float(os.getenv('DEFAULT_PAY_ON_PICKUP_FEE', 2))
MAX_TIP = 200

COUPON_TTL_HOURS = int(os.getenv('COUPON_TTL_HOURS', 24))

P24_MERCHANT_ID = int(os.getenv('P24_MERCHANT_ID', 0))
P24_POS_ID = int(os.getenv('P24_POS_ID', os.getenv('P24_MERCHANT_ID', 0)))
P24_CRC_KEY = os.getenv('P24_CRC_KEY', '')
P24_API_KEY = os.getenv('P24_API_KEY', '')
P24_MODE = os.getenv('P24_MODE', 'sandbox')
P24_CURRENCY = 'PLN'
P24_TIMEOUT = float(os.getenv('P24_TIMEOUT', 30))

# Kitchen dashboard access
OPERATOR_PIN = os.getenv('OPERATOR_PIN', '0000')

# Session carts kept in memory; older ones reload from the database
MAX_CACHED_CARTS = int(os.getenv('MAX_CACHED_CARTS', 500))

_logging_configured = False


def configure_logging(level: str = LOG_LEVEL):
    # Configure structlog once per process (JSON lines to stdout)
    global _logging_configured
    if _logging_configured:
        return

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
    _logging_configured = True
