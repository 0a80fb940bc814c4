"""Checkout settlement rules.

Turns a cart and a shipping address into the priced, party-resolved input an
Order is created from. Nothing here touches storage; client-sent totals are
never consulted.
"""

import re

from protean.exceptions import ValidationError

from ordering import config
from ordering.exceptions import EmptyCartError, InvalidAddressError
from ordering.order.order import Party, ShippingMethod

REQUIRED_ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "address",
    "city",
    "state",
    "zip_code",
)
OPTIONAL_ADDRESS_FIELDS = ("phone", "apartment", "country")

# Placeholder strings browser clients send instead of omitting the field
_SENTINEL_USER_IDS = {"null", "undefined", "guest"}
_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_cart(items) -> None:
    if not items:
        raise EmptyCartError({"items": ["Cart is empty"]})


def validate_address(address) -> None:
    address = address or {}
    missing = [name for name in REQUIRED_ADDRESS_FIELDS if not str(address.get(name) or "").strip()]
    if missing:
        raise InvalidAddressError({name: ["is required"] for name in missing})


def clean_address(address) -> dict:
    """Known address fields only, stripped, with blank optional fields dropped."""
    cleaned = {}
    for name in REQUIRED_ADDRESS_FIELDS + OPTIONAL_ADDRESS_FIELDS:
        value = str(address.get(name) or "").strip()
        if value:
            cleaned[name] = value
    return cleaned


def is_valid_user_id(user_id) -> bool:
    if user_id is None:
        return False
    candidate = str(user_id).strip()
    if candidate.lower() in _SENTINEL_USER_IDS:
        return False
    return bool(_USER_ID_PATTERN.match(candidate))


def resolve_party(user_id, address) -> Party:
    """Account party for a usable user id, otherwise a guest built from the address."""
    if is_valid_user_id(user_id):
        return Party.account(str(user_id).strip())

    name = f"{address.get('first_name', '')} {address.get('last_name', '')}".strip()
    return Party.guest(email=address["email"], name=name or None, phone=address.get("phone") or None)


def shipping_cost_for(method) -> float:
    return config.SHIPPING_RATES.get(method, config.SHIPPING_RATES[config.DEFAULT_SHIPPING_METHOD])


def normalize_shipping_method(method) -> str:
    if method in {m.value for m in ShippingMethod}:
        return method
    return config.DEFAULT_SHIPPING_METHOD


def line_total(item) -> float:
    return round(round(float(item["unit_price"]), 2) * int(item["quantity"]), 2)


def price_cart(items, shipping_method=None, discount_amount=0.0) -> dict:
    """Compute the financial breakdown for a cart.

    Returns a dict with total_amount, shipping_cost, tax_amount,
    discount_amount and final_amount, each rounded to cents.
    """
    total = round(sum(line_total(item) for item in items), 2)
    shipping = round(shipping_cost_for(normalize_shipping_method(shipping_method)), 2)
    tax = round(total * config.TAX_RATE, 2)
    discount = round(float(discount_amount or 0.0), 2)
    if discount < 0 or discount > total + shipping + tax:
        raise ValidationError({"discount_amount": ["Discount must be between zero and the order amount"]})

    return {
        "total_amount": total,
        "shipping_cost": shipping,
        "tax_amount": tax,
        "discount_amount": discount,
        "final_amount": round(total + shipping + tax - discount, 2),
    }
