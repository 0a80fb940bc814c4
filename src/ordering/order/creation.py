"""Order placement — command and handler.

Settles a cart into a new pending order: validates the cart and address,
resolves the purchaser, prices the order server-side and assigns the next
order number for the day.
"""

import json
from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, String, Text
from protean.utils.globals import current_domain

from ordering import config
from ordering.checkout.settlement import (
    clean_address,
    normalize_shipping_method,
    price_cart,
    resolve_party,
    validate_address,
    validate_cart,
)
from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.sequence import SequenceGenerator
from ordering.utils.logging import get_logger

logger = get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    items = Text(required=True)  # JSON: list of cart line dicts
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True, max_length=50)
    shipping_method = String(max_length=50, default="standard")
    user_id = String(max_length=255)  # Unverified; falls back to guest checkout
    discount_amount = Float(default=0.0)
    notes = Text()


def _load(value):
    return json.loads(value) if isinstance(value, str) else value


def order_number_candidates(repo, sequence, at):
    """Yield order numbers to try: the day's sequence first, then fallbacks.

    A candidate can still lose a race after this check; the caller moves on
    to the next one when the insert hits the unique index.
    """
    for attempt in range(config.ORDER_NUMBER_ATTEMPTS):
        candidate = sequence.next_order_number(at, skip=attempt)
        if repo.order_number_taken(candidate):
            logger.info("order_number_taken", order_number=candidate, attempt=attempt + 1)
            continue
        yield candidate

    for _ in range(max(config.ORDER_NUMBER_ATTEMPTS, 1)):
        fallback = sequence.fallback_order_number(at)
        logger.warning("order_number_fallback", order_number=fallback)
        yield fallback


def _is_number_conflict(exc: ValidationError) -> bool:
    return "order_number" in (exc.messages or {})


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items_data = _load(command.items) or []
        shipping_address = _load(command.shipping_address) or {}

        validate_cart(items_data)
        validate_address(shipping_address)
        shipping_address = clean_address(shipping_address)

        party = resolve_party(command.user_id, shipping_address)
        shipping_method = normalize_shipping_method(command.shipping_method)
        pricing = price_cart(items_data, shipping_method, command.discount_amount)

        repo = current_domain.repository_for(Order)
        now = datetime.now(UTC)
        sequence = SequenceGenerator(repository=repo)

        conflict = None
        for order_number in order_number_candidates(repo, sequence, now):
            # Rebuilt per attempt so the OrderPlaced event carries the stored number
            order = Order.place(
                order_number=order_number,
                party=party,
                items_data=items_data,
                shipping_address=shipping_address,
                payment_method=command.payment_method,
                shipping_method=shipping_method,
                shipping_cost=pricing["shipping_cost"],
                tax_amount=pricing["tax_amount"],
                discount_amount=pricing["discount_amount"],
                notes=command.notes,
                placed_at=now,
            )
            try:
                repo.save(order)
            except ValidationError as exc:
                if not _is_number_conflict(exc):
                    raise
                logger.info("order_number_conflict", order_number=order_number)
                conflict = exc
                continue
            break
        else:
            raise conflict

        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order_number,
            party_kind=party.kind,
            final_amount=order.financials.final_amount,
        )
        return str(order.id)
