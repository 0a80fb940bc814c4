"""Customer notifications for order events.

Tells the customer when an order is placed, when its status changes and
when a return is filed or reviewed. Delivery is best effort: a notifier
failure is logged and never fails the command that raised the event.
"""

import structlog
from protean.utils.mixins import handle

from ordering.domain import ordering
from ordering.notifier import get_notifier
from ordering.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    ReturnFiled,
    ReturnReviewed,
)
from ordering.order.order import Order

logger = structlog.get_logger(__name__)

_STATUS_MESSAGES = {
    "confirmed": "has been confirmed",
    "processing": "is being prepared",
    "shipped": "has shipped",
    "delivered": "has been delivered",
    "cancelled": "has been cancelled",
}


def _notify(kind, to, subject, body, **context):
    try:
        result = get_notifier().send(to=to, subject=subject, body=body, kind=kind)
    except Exception as exc:
        logger.warning("notification_failed", kind=kind, error=str(exc), **context)
        return

    if result.get("status") != "sent":
        logger.warning("notification_failed", kind=kind, error=result.get("error"), **context)


@ordering.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        _notify(
            "order_placed",
            event.contact_email,
            f"Order {event.order_number} received",
            (
                f"Thank you for your order {event.order_number}.\n\n"
                f"Items: {event.item_count}\n"
                f"Order Total: ${event.final_amount:.2f}\n\n"
                "We'll let you know when it ships."
            ),
            order_number=event.order_number,
        )

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        # Return filings get their own message
        if event.new_status == "return_requested":
            return

        message = _STATUS_MESSAGES.get(event.new_status, f"is now {event.new_status}")
        body = f"Your order {event.order_number} {message}."
        if event.note:
            body += f"\n\n{event.note}"
        _notify(
            "status_changed",
            event.contact_email,
            f"Order {event.order_number} update",
            body,
            order_number=event.order_number,
            new_status=event.new_status,
        )

    @handle(ReturnFiled)
    def on_return_filed(self, event: ReturnFiled) -> None:
        _notify(
            "return_filed",
            event.contact_email,
            f"Return {event.return_id} received",
            (
                f"We received your return request for order {event.order_number}.\n\n"
                f"Return ID: {event.return_id}\n"
                "Keep this ID to check on your return."
            ),
            order_number=event.order_number,
            return_id=event.return_id,
        )

    @handle(ReturnReviewed)
    def on_return_reviewed(self, event: ReturnReviewed) -> None:
        body = f"Your return {event.return_id} for order {event.order_number} is now {event.new_status}."
        if event.new_status == "refunded" and event.refund_amount is not None:
            body += f"\n\nRefund: ${event.refund_amount:.2f}"
        _notify(
            "return_reviewed",
            event.contact_email,
            f"Return {event.return_id} update",
            body,
            order_number=event.order_number,
            return_id=event.return_id,
        )
