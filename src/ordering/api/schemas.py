"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands. Field names follow the storefront's checkout
form; totals sent by a client are accepted but never used.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class DimensionsSchema(BaseModel):
    length: float | None = Field(default=None, ge=0)
    width: float | None = Field(default=None, ge=0)
    thickness: float | None = Field(default=None, ge=0)


class CartItemSchema(BaseModel):
    product_id: str
    product_name: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    dimensions: DimensionsSchema | None = None


class ShippingAddressSchema(BaseModel):
    # Optional here so missing fields are reported together by checkout
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    apartment: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = "United States"


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[CartItemSchema]
    shipping_address: ShippingAddressSchema
    payment_method: str
    shipping_method: str = "standard"
    user_id: str | None = None
    discount_amount: float = Field(default=0.0, ge=0)
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "product_id": "walnut-board-001",
                            "product_name": "Black Walnut Board",
                            "quantity": 2,
                            "unit_price": 50.0,
                            "dimensions": {"length": 48, "width": 6, "thickness": 1},
                        }
                    ],
                    "shipping_address": {
                        "first_name": "Ada",
                        "last_name": "Lovelace",
                        "email": "ada@example.com",
                        "address": "12 Mill Road",
                        "city": "Portland",
                        "state": "OR",
                        "zip_code": "97201",
                    },
                    "payment_method": "credit_card",
                    "shipping_method": "standard",
                }
            ]
        }
    }


class UpdateStatusRequest(BaseModel):
    status: str
    note: str | None = None
    actor_ref: str | None = None
    cancellation_reason: str | None = None
    tracking_number: str | None = None
    estimated_delivery: datetime | None = None
    expected_revision: int | None = None


class FileReturnRequest(BaseModel):
    order_number: str | None = None
    reason: str | None = None
    description: str | None = None


class ReviewReturnRequest(BaseModel):
    status: str
    refund_amount: float | None = Field(default=None, ge=0)
    tracking_number: str | None = None
    admin_notes: str | None = None
    expected_revision: int | None = None


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class ReconcileCartsRequest(BaseModel):
    guest_items: list[CartItemSchema] = Field(default_factory=list)
    account_items: list[CartItemSchema] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class ReturnFiledResponse(BaseModel):
    return_id: str
    order_number: str


class ReconcileCartsResponse(BaseModel):
    items: list[dict]
