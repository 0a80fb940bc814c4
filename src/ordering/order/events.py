"""Domain events for the Order aggregate.

Events are immutable facts raised by the aggregate and dispatched when the
unit of work commits. They feed the notification handler; they are not used
to rebuild order state.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A cart was settled into a new pending order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    party_kind = String(required=True)
    user_id = Identifier()
    contact_email = String(required=True)
    final_amount = Float(required=True)
    item_count = Integer(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along the status state machine."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    contact_email = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    note = String()
    actor_ref = Identifier()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ReturnFiled:
    """A customer filed a return request against a delivered order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    contact_email = String(required=True)
    return_id = String(required=True)
    reason = String(required=True)
    item_count = Integer(required=True)
    requested_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ReturnReviewed:
    """An administrator moved a return request out of its current status."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    contact_email = String(required=True)
    return_id = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    refund_amount = Float()
    reviewed_at = DateTime(required=True)
