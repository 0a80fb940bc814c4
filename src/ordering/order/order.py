"""Order aggregate (CQRS) — the core of the ordering domain.

One Order is persisted per checkout. It owns its line items, its status
history and any return requests filed against it. Financial fields are
derived from the line items and recomputed whenever the order is saved, so
they reconcile no matter what a client sent.

State Machine (7 states):
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED → RETURN_REQUESTED
    CANCELLED (from PENDING, CONFIRMED, PROCESSING)

RETURN_REQUESTED absorbs further return filings; only the nested return
requests progress from there.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering import config
from ordering.domain import ordering
from ordering.exceptions import (
    ConflictError,
    IneligibleStatusError,
    ReturnNotFoundError,
    ReturnWindowExpiredError,
    TransitionError,
)
from ordering.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    ReturnFiled,
    ReturnReviewed,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURN_REQUESTED = "return_requested"


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    PAYPAL = "paypal"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIAL_REFUND = "partial_refund"


class ShippingMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"


class PartyKind(Enum):
    ACCOUNT = "account"
    GUEST = "guest"


class ReturnReason(Enum):
    WRONG_ITEM = "wrong-item"
    DAMAGED = "damaged"
    NOT_AS_DESCRIBED = "not-as-described"
    SIZE_ISSUE = "size-issue"
    CHANGED_MIND = "changed-mind"
    OTHER = "other"


class ReturnStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
    REFUNDED = "refunded"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURN_REQUESTED},
    OrderStatus.RETURN_REQUESTED: set(),
    OrderStatus.CANCELLED: set(),  # Terminal
}

# States from which a customer may file a return
_RETURNABLE_STATES = {OrderStatus.DELIVERED, OrderStatus.RETURN_REQUESTED}

_RETURN_TRANSITIONS = {
    ReturnStatus.PENDING: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.PROCESSED},
    ReturnStatus.PROCESSED: {ReturnStatus.REFUNDED},
    ReturnStatus.REJECTED: set(),
    ReturnStatus.REFUNDED: set(),
}


def _money(value) -> float:
    """Round a monetary amount to cents."""
    return round(float(value or 0.0), 2)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Party:
    """The purchaser of an order: a registered account or a guest contact.

    ``kind`` tags which form is populated. An account party carries only a
    ``user_id``; a guest party carries only contact details, and always an
    email. Exactly one form is ever present.
    """

    kind = String(required=True, choices=PartyKind)
    user_id = Identifier()
    email = String(max_length=254)
    name = String(max_length=200)
    phone = String(max_length=50)

    @invariant.post
    def exactly_one_identity(self):
        if self.kind == PartyKind.ACCOUNT.value:
            if not self.user_id:
                raise ValidationError({"party": ["Account party requires a user id"]})
            if self.email or self.name or self.phone:
                raise ValidationError({"party": ["Account party cannot carry guest contact details"]})
        else:
            if self.user_id:
                raise ValidationError({"party": ["Guest party cannot carry a user id"]})
            if not self.email:
                raise ValidationError({"party": ["Guest party requires an email"]})

    @classmethod
    def account(cls, user_id):
        return cls(kind=PartyKind.ACCOUNT.value, user_id=str(user_id))

    @classmethod
    def guest(cls, email, name=None, phone=None):
        return cls(kind=PartyKind.GUEST.value, email=email, name=name, phone=phone)

    @property
    def is_guest(self) -> bool:
        return self.kind == PartyKind.GUEST.value


@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address and contact captured at checkout time.

    Immutable once recorded on an Order, regardless of later changes to the
    customer's saved addresses.
    """

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    email = String(required=True, max_length=254)
    phone = String(max_length=50)
    address = String(required=True, max_length=255)
    apartment = String(max_length=100)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100, default="United States")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@ordering.value_object(part_of="Order")
class Dimensions:
    """Cut dimensions of a piece of wood stock, in inches."""

    length = Float(min_value=0.0)
    width = Float(min_value=0.0)
    thickness = Float(min_value=0.0)


@ordering.value_object(part_of="Order")
class OrderFinancials:
    """Financial breakdown of an order.

    ``final_amount`` is always ``total + shipping + tax - discount``; build
    instances through ``OrderFinancials.compute`` so that holds.
    """

    total_amount = Float(default=0.0, min_value=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    final_amount = Float(default=0.0, min_value=0.0)

    @invariant.post
    def final_amount_reconciles(self):
        expected = _money(self.total_amount + self.shipping_cost + self.tax_amount - self.discount_amount)
        if abs(_money(self.final_amount) - expected) > 0.005:
            raise ValidationError({"final_amount": [f"Final amount must equal {expected:.2f}"]})

    @classmethod
    def compute(cls, total_amount, shipping_cost=0.0, tax_amount=0.0, discount_amount=0.0):
        total_amount = _money(total_amount)
        shipping_cost = _money(shipping_cost)
        tax_amount = _money(tax_amount)
        discount_amount = _money(discount_amount)
        return cls(
            total_amount=total_amount,
            shipping_cost=shipping_cost,
            tax_amount=tax_amount,
            discount_amount=discount_amount,
            final_amount=_money(total_amount + shipping_cost + tax_amount - discount_amount),
        )


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line item: a product snapshot, quantity and unit price.

    ``subtotal`` is derived. Whatever value it arrives with is overwritten
    when the order reconciles.
    """

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    dimensions = ValueObject(Dimensions)
    subtotal = Float(default=0.0, min_value=0.0)
    return_eligible = Boolean(default=True)


@ordering.entity(part_of="Order")
class StatusEntry:
    """One entry in an order's append-only status audit trail."""

    status = String(required=True, choices=OrderStatus)
    note = String(max_length=500)
    timestamp = DateTime(required=True)
    actor_ref = Identifier()
    position = Integer(required=True, min_value=0)


@ordering.entity(part_of="Order")
class ReturnRequest:
    """A customer claim against a delivered order.

    Has no life outside its order, but ``return_id`` is unique across the
    system so customers can look a return up without the order number.
    """

    return_id = String(required=True, max_length=50)
    items = Text(required=True)  # JSON: list of returned line dicts
    reason = String(required=True, choices=ReturnReason)
    description = Text(required=True)
    status = String(choices=ReturnStatus, default=ReturnStatus.PENDING.value)
    requested_at = DateTime(required=True)
    processed_at = DateTime()
    refund_amount = Float(min_value=0.0)
    tracking_number = String(max_length=255)
    admin_notes = Text()

    @property
    def returned_items(self) -> list[dict]:
        return json.loads(self.items) if self.items else []


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    party = ValueObject(Party, required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress, required=True)
    shipping_method = String(choices=ShippingMethod, default=ShippingMethod.STANDARD.value)
    financials = ValueObject(OrderFinancials, required=True)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = HasMany(StatusEntry)
    return_requests = HasMany(ReturnRequest)
    notes = Text()
    tracking_number = String(max_length=255)
    estimated_delivery = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)
    revision = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def order_must_have_items(self):
        if not self.items:
            raise ValidationError({"items": ["An order must contain at least one item"]})

    @invariant.post
    def item_subtotals_match_prices(self):
        for item in self.items:
            if abs(item.subtotal - _money(item.unit_price * item.quantity)) > 0.005:
                raise ValidationError({"items": [f"Subtotal of {item.product_name} does not match its price"]})

    @invariant.post
    def total_matches_items(self):
        if self.financials is None:
            return
        expected = _money(sum(item.subtotal for item in self.items))
        if abs(self.financials.total_amount - expected) > 0.005:
            raise ValidationError({"financials": [f"Total amount must equal the sum of item subtotals ({expected:.2f})"]})

    @invariant.post
    def history_mirrors_status(self):
        history = self.history
        if not history:
            raise ValidationError({"status_history": ["Status history cannot be empty"]})
        if history[-1].status != self.status:
            raise ValidationError({"status_history": ["Latest history entry must match the order status"]})

    @invariant.post
    def history_is_chronological(self):
        history = self.history
        for previous, current in zip(history, history[1:], strict=False):
            if current.timestamp < previous.timestamp:
                raise ValidationError({"status_history": ["Status history must be in chronological order"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        party,
        items_data,
        shipping_address,
        payment_method,
        shipping_method=ShippingMethod.STANDARD.value,
        shipping_cost=0.0,
        tax_amount=0.0,
        discount_amount=0.0,
        notes=None,
        placed_at=None,
    ):
        """Create a new pending order from settled checkout data.

        Args:
            order_number: Human-readable number from the sequence generator.
            party: A ``Party`` value object.
            items_data: List of dicts with product_id, product_name, quantity,
                        unit_price and optional dimensions.
            shipping_address: Dict of ``ShippingAddress`` fields.
            payment_method: One of the ``PaymentMethod`` labels.
            shipping_cost, tax_amount, discount_amount: Settled charges.
                        The item total and final amount are derived here.
        """
        now = placed_at or datetime.now(UTC)

        items = [
            OrderItem(
                product_id=item["product_id"],
                product_name=item["product_name"],
                quantity=item["quantity"],
                unit_price=_money(item["unit_price"]),
                dimensions=Dimensions(**item["dimensions"]) if item.get("dimensions") else None,
                subtotal=_money(_money(item["unit_price"]) * item["quantity"]),
            )
            for item in items_data
        ]
        total_amount = sum(item.subtotal for item in items)

        order = cls(
            order_number=order_number,
            party=party,
            items=items,
            shipping_address=ShippingAddress(**shipping_address),
            shipping_method=shipping_method,
            financials=OrderFinancials.compute(
                total_amount=total_amount,
                shipping_cost=shipping_cost,
                tax_amount=tax_amount,
                discount_amount=discount_amount,
            ),
            payment_method=payment_method,
            status=OrderStatus.PENDING.value,
            status_history=[
                StatusEntry(
                    status=OrderStatus.PENDING.value,
                    note="Order created",
                    timestamp=now,
                    position=0,
                )
            ],
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                party_kind=party.kind,
                user_id=party.user_id,
                contact_email=order.shipping_address.email,
                final_amount=order.financials.final_amount,
                item_count=len(items),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def history(self) -> list:
        """Status history in the order entries were appended."""
        return sorted(self.status_history or [], key=lambda entry: entry.position)

    @property
    def is_guest(self) -> bool:
        return self.party.is_guest

    def reconcile(self):
        """Recompute item subtotals and the financial breakdown from the items."""
        with atomic_change(self):
            for item in self.items:
                subtotal = _money(item.unit_price * item.quantity)
                if item.subtotal != subtotal:
                    item.subtotal = subtotal

            current = self.financials
            recomputed = OrderFinancials.compute(
                total_amount=sum(item.subtotal for item in self.items),
                shipping_cost=current.shipping_cost if current else 0.0,
                tax_amount=current.tax_amount if current else 0.0,
                discount_amount=current.discount_amount if current else 0.0,
            )
            if recomputed != current:
                self.financials = recomputed

    def expect_revision(self, expected):
        """Reject a write based on a stale read of this order."""
        if expected is not None and expected != self.revision:
            raise ConflictError(
                f"Order {self.order_number} is at revision {self.revision}, expected {expected}"
            )

    def _touch(self, now):
        self.revision = (self.revision or 0) + 1
        self.updated_at = now

    def _append_history(self, status, note=None, actor=None, at=None):
        history = self.history
        now = at or datetime.now(UTC)
        # Entries never go back in time, even if clocks disagree
        if history and now < history[-1].timestamp:
            now = history[-1].timestamp

        self.add_status_history(
            StatusEntry(
                status=status,
                note=note,
                timestamp=now,
                actor_ref=str(actor) if actor else None,
                position=len(history),
            )
        )
        return now

    def _change_status(self, target, note=None, actor=None, at=None):
        previous = self.status
        self.status = target.value
        now = self._append_history(target.value, note=note, actor=actor, at=at)
        self._touch(now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                contact_email=self.shipping_address.email,
                previous_status=previous,
                new_status=target.value,
                note=note,
                actor_ref=str(actor) if actor else None,
                changed_at=now,
            )
        )
        return now

    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise TransitionError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def update_status(
        self,
        new_status,
        note=None,
        actor=None,
        cancellation_reason=None,
        tracking_number=None,
        estimated_delivery=None,
        at=None,
    ):
        """Move the order along the state machine and record it in the history."""
        try:
            target = OrderStatus(new_status)
        except ValueError as exc:
            raise TransitionError({"status": [f"Unknown order status: {new_status}"]}) from exc

        self._assert_can_transition(target)

        reason = cancellation_reason or note
        if target == OrderStatus.CANCELLED and not reason:
            raise ValidationError({"cancellation_reason": ["A reason is required to cancel an order"]})

        with atomic_change(self):
            now = self._change_status(target, note=note, actor=actor, at=at)

            if target == OrderStatus.SHIPPED:
                if tracking_number:
                    self.tracking_number = tracking_number
                if estimated_delivery:
                    self.estimated_delivery = estimated_delivery
            elif target == OrderStatus.DELIVERED:
                self.delivered_at = now
            elif target == OrderStatus.CANCELLED:
                self.cancelled_at = now
                self.cancellation_reason = reason

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def assert_returnable(self, at=None):
        """Check the return window first, then the order status."""
        now = at or datetime.now(UTC)
        reference = self.delivered_at or self.created_at
        if reference and now - reference > timedelta(days=config.RETURN_WINDOW_DAYS):
            raise ReturnWindowExpiredError(
                f"Order {self.order_number} is outside the {config.RETURN_WINDOW_DAYS}-day return window"
            )

        if OrderStatus(self.status) not in _RETURNABLE_STATES:
            raise IneligibleStatusError(
                f"Returns can only be requested for delivered orders. Current order status: {self.status}"
            )

    def request_return(self, return_id, reason, description, at=None):
        """File a return covering every item of the order."""
        self.assert_returnable(at=at)
        now = at or datetime.now(UTC)

        returned_items = [
            {
                "product_id": str(item.product_id),
                "product_name": item.product_name,
                "quantity": item.quantity,
                "reason": reason,
                "description": description,
                "status": ReturnStatus.PENDING.value,
            }
            for item in self.items
        ]
        return_request = ReturnRequest(
            return_id=return_id,
            items=json.dumps(returned_items),
            reason=reason,
            description=description,
            status=ReturnStatus.PENDING.value,
            requested_at=now,
        )

        with atomic_change(self):
            self.add_return_requests(return_request)
            if OrderStatus(self.status) != OrderStatus.RETURN_REQUESTED:
                self._change_status(OrderStatus.RETURN_REQUESTED, note="Return requested by customer", at=now)
            else:
                self._touch(now)

        self.raise_(
            ReturnFiled(
                order_id=str(self.id),
                order_number=self.order_number,
                contact_email=self.shipping_address.email,
                return_id=return_id,
                reason=reason,
                item_count=len(returned_items),
                requested_at=now,
            )
        )
        return return_request

    def find_return(self, return_id):
        request = next((r for r in self.return_requests if r.return_id == return_id), None)
        if request is None:
            raise ReturnNotFoundError(f"Return {return_id} not found on order {self.order_number}")
        return request

    def review_return(
        self,
        return_id,
        new_status,
        refund_amount=None,
        tracking_number=None,
        admin_notes=None,
        at=None,
    ):
        """Progress a nested return request. The order's own status is unchanged."""
        request = self.find_return(return_id)

        try:
            target = ReturnStatus(new_status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Unknown return status: {new_status}"]}) from exc

        current = ReturnStatus(request.status)
        if target not in _RETURN_TRANSITIONS[current]:
            raise TransitionError({"status": [f"Cannot move return from {current.value} to {target.value}"]})

        if refund_amount is not None and refund_amount > self.financials.final_amount:
            raise ValidationError({"refund_amount": ["Refund cannot exceed the order's final amount"]})

        now = at or datetime.now(UTC)
        returned_items = request.returned_items
        for line in returned_items:
            line["status"] = target.value

        with atomic_change(self):
            if current == ReturnStatus.PENDING:
                request.processed_at = now
            request.status = target.value
            request.items = json.dumps(returned_items)
            if refund_amount is not None:
                request.refund_amount = _money(refund_amount)
            if tracking_number:
                request.tracking_number = tracking_number
            if admin_notes:
                request.admin_notes = admin_notes
            self._touch(now)

        self.raise_(
            ReturnReviewed(
                order_id=str(self.id),
                order_number=self.order_number,
                contact_email=self.shipping_address.email,
                return_id=return_id,
                previous_status=current.value,
                new_status=target.value,
                refund_amount=request.refund_amount,
                reviewed_at=now,
            )
        )
        return request
