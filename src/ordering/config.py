"""Business settings for checkout and returns.

Values are read from the environment once, at import time, with the
storefront's published rates as defaults.
"""

import os


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "WOOD")
RETURN_ID_PREFIX = "RET"

# Flat rate, no jurisdiction logic
TAX_RATE = _env_float("TAX_RATE", 0.08)

SHIPPING_RATES = {
    "standard": _env_float("SHIPPING_RATE_STANDARD", 15.00),
    "express": _env_float("SHIPPING_RATE_EXPRESS", 25.00),
    "overnight": _env_float("SHIPPING_RATE_OVERNIGHT", 45.00),
}
DEFAULT_SHIPPING_METHOD = "standard"

RETURN_WINDOW_DAYS = _env_int("RETURN_WINDOW_DAYS", 30)

# Insert attempts before an order falls back to a timestamp-based number
ORDER_NUMBER_ATTEMPTS = _env_int("ORDER_NUMBER_ATTEMPTS", 3)
