"""FastAPI routes for the Ordering domain — orders, returns and carts."""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    FileReturnRequest,
    PlaceOrderRequest,
    ReconcileCartsRequest,
    ReconcileCartsResponse,
    ReturnFiledResponse,
    ReviewReturnRequest,
    UpdateStatusRequest,
)
from ordering.cart.reconciler import reconcile
from ordering.exceptions import OrderNotFoundError
from ordering.order.creation import PlaceOrder
from ordering.order.order import Order
from ordering.order.returns import FileReturn, ReviewReturn
from ordering.order.status import UpdateOrderStatus
from ordering.utils.logging import get_logger

logger = get_logger(__name__)


def _iso(value):
    return value.isoformat() if value else None


def serialize_return(request) -> dict:
    return {
        "return_id": request.return_id,
        "items": request.returned_items,
        "reason": request.reason,
        "description": request.description,
        "status": request.status,
        "requested_at": _iso(request.requested_at),
        "processed_at": _iso(request.processed_at),
        "refund_amount": request.refund_amount,
        "tracking_number": request.tracking_number,
        "admin_notes": request.admin_notes,
    }


def serialize_order(order) -> dict:
    party = order.party
    address = order.shipping_address
    financials = order.financials
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "party": {
            "kind": party.kind,
            "user_id": party.user_id,
            "email": party.email,
            "name": party.name,
            "phone": party.phone,
        },
        "items": [
            {
                "product_id": str(item.product_id),
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "subtotal": item.subtotal,
                "dimensions": (
                    {
                        "length": item.dimensions.length,
                        "width": item.dimensions.width,
                        "thickness": item.dimensions.thickness,
                    }
                    if item.dimensions
                    else None
                ),
                "return_eligible": item.return_eligible,
            }
            for item in order.items
        ],
        "shipping_address": {
            "first_name": address.first_name,
            "last_name": address.last_name,
            "email": address.email,
            "phone": address.phone,
            "address": address.address,
            "apartment": address.apartment,
            "city": address.city,
            "state": address.state,
            "zip_code": address.zip_code,
            "country": address.country,
        },
        "shipping_method": order.shipping_method,
        "total_amount": financials.total_amount,
        "shipping_cost": financials.shipping_cost,
        "tax_amount": financials.tax_amount,
        "discount_amount": financials.discount_amount,
        "final_amount": financials.final_amount,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "status": order.status,
        "status_history": [
            {
                "status": entry.status,
                "note": entry.note,
                "timestamp": _iso(entry.timestamp),
                "actor_ref": entry.actor_ref,
            }
            for entry in order.history
        ],
        "return_requests": [serialize_return(r) for r in order.return_requests],
        "notes": order.notes,
        "tracking_number": order.tracking_number,
        "estimated_delivery": _iso(order.estimated_delivery),
        "delivered_at": _iso(order.delivered_at),
        "cancelled_at": _iso(order.cancelled_at),
        "cancellation_reason": order.cancellation_reason,
        "revision": order.revision,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }


def _load_order(order_id) -> Order:
    return current_domain.repository_for(Order).get_order(order_id)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201)
async def place_order(body: PlaceOrderRequest) -> dict:
    command = PlaceOrder(
        items=json.dumps([item.model_dump(exclude_none=True) for item in body.items]),
        shipping_address=json.dumps(body.shipping_address.model_dump(exclude_none=True)),
        payment_method=body.payment_method,
        shipping_method=body.shipping_method,
        user_id=body.user_id,
        discount_amount=body.discount_amount,
        notes=body.notes,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return {"order": serialize_order(_load_order(order_id)), "clear_cart": True}


@order_router.get("")
async def list_orders(
    status: str | None = None,
    user_id: str | None = None,
    email: str | None = None,
    offset: int = 0,
    limit: int = 20,
) -> dict:
    offset = max(offset, 0)
    limit = min(max(limit, 1), 100)
    orders, total = current_domain.repository_for(Order).list_orders(
        status=status, user_id=user_id, email=email, offset=offset, limit=limit
    )
    return {
        "orders": [serialize_order(order) for order in orders],
        "total": total,
        "offset": offset,
        "limit": limit,
    }


# Registered before /{order_id} so "returns" and "number" are not read as ids
@order_router.post("/returns", status_code=201, response_model=ReturnFiledResponse)
async def file_return(body: FileReturnRequest) -> ReturnFiledResponse:
    command = FileReturn(
        order_number=body.order_number,
        reason=body.reason,
        description=body.description,
    )
    result = current_domain.process(command, asynchronous=False)
    return ReturnFiledResponse(**result)


@order_router.get("/number/{order_number}")
async def get_order_by_number(order_number: str) -> dict:
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise OrderNotFoundError(f"Order {order_number} not found")
    return serialize_order(order)


@order_router.get("/{order_id}")
async def get_order(order_id: str) -> dict:
    return serialize_order(_load_order(order_id))


@order_router.patch("/{order_id}/status")
async def update_order_status(order_id: str, body: UpdateStatusRequest) -> dict:
    command = UpdateOrderStatus(order_id=order_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return serialize_order(_load_order(order_id))


@order_router.patch("/{order_id}/returns/{return_id}")
async def review_return(order_id: str, return_id: str, body: ReviewReturnRequest) -> dict:
    command = ReviewReturn(order_id=order_id, return_id=return_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return serialize_order(_load_order(order_id))


@order_router.delete("/{order_id}")
async def delete_order(order_id: str) -> dict:
    """Administrative removal. Business flows never delete orders."""
    repo = current_domain.repository_for(Order)
    order = repo.get_order(order_id)
    repo._dao.delete(order)
    logger.warning("order_deleted", order_id=order_id, order_number=order.order_number)
    return {"id": order_id, "order_number": order.order_number}


# ---------------------------------------------------------------------------
# Return Router
# ---------------------------------------------------------------------------
return_router = APIRouter(prefix="/returns", tags=["returns"])


@return_router.get("/{return_id}")
async def find_return(return_id: str) -> dict:
    order, request = current_domain.repository_for(Order).find_by_return_id(return_id)
    return {"order_number": order.order_number, "return": serialize_return(request)}


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("/reconcile", response_model=ReconcileCartsResponse)
async def reconcile_carts(body: ReconcileCartsRequest) -> ReconcileCartsResponse:
    merged = reconcile(
        [item.model_dump(exclude_none=True) for item in body.guest_items],
        [item.model_dump(exclude_none=True) for item in body.account_items],
    )
    return ReconcileCartsResponse(items=merged)
