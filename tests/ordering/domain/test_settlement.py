"""Tests for checkout settlement rules — validation, party resolution and pricing."""

import pytest
from ordering.checkout.settlement import (
    clean_address,
    is_valid_user_id,
    price_cart,
    resolve_party,
    shipping_cost_for,
    validate_address,
    validate_cart,
)
from ordering.exceptions import EmptyCartError, InvalidAddressError
from ordering.order.order import PartyKind
from protean.exceptions import ValidationError

ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "phone": "555-0100",
    "address": "12 Mill Road",
    "city": "Portland",
    "state": "OR",
    "zip_code": "97201",
}

CART = [
    {"product_id": "a", "product_name": "Walnut", "unit_price": 10.0, "quantity": 2},
    {"product_id": "b", "product_name": "Oak", "unit_price": 5.0, "quantity": 1},
]


class TestValidation:
    def test_empty_cart(self):
        with pytest.raises(EmptyCartError):
            validate_cart([])

    def test_cart_with_items(self):
        validate_cart(CART)

    def test_missing_address_fields_are_named(self):
        address = dict(ADDRESS, city="", zip_code=None)
        del address["email"]

        with pytest.raises(InvalidAddressError) as exc:
            validate_address(address)

        assert set(exc.value.messages) == {"city", "zip_code", "email"}

    def test_optional_fields_may_be_missing(self):
        address = {k: v for k, v in ADDRESS.items() if k != "phone"}
        validate_address(address)

    def test_clean_address_drops_unknown_and_blank_fields(self):
        cleaned = clean_address(dict(ADDRESS, apartment="  ", street="ignored", city=" Portland "))

        assert "apartment" not in cleaned
        assert "street" not in cleaned
        assert cleaned["city"] == "Portland"


class TestPartyResolution:
    def test_valid_user_id_makes_account_party(self):
        party = resolve_party("64b7f0c2e1", ADDRESS)
        assert party.kind == PartyKind.ACCOUNT.value
        assert party.user_id == "64b7f0c2e1"
        assert party.email is None

    @pytest.mark.parametrize("user_id", [None, "", "   ", "null", "undefined", "guest", "NULL", "has space", "x" * 65])
    def test_unusable_user_id_makes_guest_party(self, user_id):
        party = resolve_party(user_id, ADDRESS)

        assert party.kind == PartyKind.GUEST.value
        assert party.user_id is None
        assert party.email == "ada@example.com"
        assert party.name == "Ada Lovelace"
        assert party.phone == "555-0100"

    def test_user_id_rules(self):
        assert is_valid_user_id("user_123-abc")
        assert not is_valid_user_id("user@123")


class TestPricing:
    def test_standard_cart(self):
        pricing = price_cart(CART, "standard")

        assert pricing == {
            "total_amount": 25.0,
            "shipping_cost": 15.0,
            "tax_amount": 2.0,
            "discount_amount": 0.0,
            "final_amount": 42.0,
        }

    @pytest.mark.parametrize(
        "method,rate",
        [("standard", 15.0), ("express", 25.0), ("overnight", 45.0), ("teleport", 15.0), (None, 15.0)],
    )
    def test_shipping_rates(self, method, rate):
        assert shipping_cost_for(method) == rate

    def test_unknown_method_prices_as_standard(self):
        assert price_cart(CART, "drone")["shipping_cost"] == 15.0

    def test_tax_rounds_to_cents(self):
        pricing = price_cart([{"unit_price": 19.99, "quantity": 3}], "express")

        assert pricing["total_amount"] == 59.97
        assert pricing["tax_amount"] == 4.8
        assert pricing["final_amount"] == 89.77

    def test_discount_reduces_final(self):
        assert price_cart(CART, "standard", discount_amount=2.0)["final_amount"] == 40.0

    def test_discount_cannot_exceed_order(self):
        with pytest.raises(ValidationError):
            price_cart(CART, "standard", discount_amount=100.0)

    def test_client_totals_are_ignored(self):
        cart = [dict(CART[0], subtotal=1.0), dict(CART[1], subtotal=1.0)]
        assert price_cart(cart, "standard")["total_amount"] == 25.0
