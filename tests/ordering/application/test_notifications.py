"""Application tests for customer notifications — delivery is best effort."""

import json
from datetime import UTC, datetime

from ordering.notifier import set_notifier
from ordering.notifier.port import NotifierPort
from ordering.order.creation import PlaceOrder
from ordering.order.events import OrderStatusChanged, ReturnReviewed
from ordering.order.notifications import OrderNotificationHandler
from ordering.order.order import Order, OrderStatus
from protean import current_domain


class ExplodingNotifier(NotifierPort):
    def send(self, to, subject, body, kind):
        raise ConnectionError("mail relay unreachable")


def _place_order():
    return current_domain.process(
        PlaceOrder(
            items=json.dumps(
                [{"product_id": "teak-001", "product_name": "Teak Offcut", "unit_price": 9.5, "quantity": 4}]
            ),
            shipping_address=json.dumps(
                {
                    "first_name": "Edsger",
                    "last_name": "Dijkstra",
                    "email": "edsger@example.com",
                    "address": "3 Canal Street",
                    "city": "Austin",
                    "state": "TX",
                    "zip_code": "78701",
                }
            ),
            payment_method="google_pay",
        ),
        asynchronous=False,
    )


class TestNotificationFailures:
    def test_failed_delivery_does_not_block_checkout(self, notifier):
        notifier.configure(should_succeed=False)

        order_id = _place_order()

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert notifier.sent == []

    def test_notifier_exception_is_swallowed(self):
        set_notifier(ExplodingNotifier())

        order_id = _place_order()

        assert current_domain.repository_for(Order).get(order_id) is not None


class TestNotificationContent:
    def test_order_placed_message(self, notifier):
        _place_order()

        message = notifier.sent[0]
        assert message["kind"] == "order_placed"
        assert message["to"] == "edsger@example.com"
        # 38.00 items + 15.00 shipping + 3.04 tax
        assert "$56.04" in message["body"]

    def test_return_requested_status_is_not_announced_twice(self, notifier):
        OrderNotificationHandler().on_status_changed(
            OrderStatusChanged(
                order_id="order-1",
                order_number="WOOD-20250601-001",
                contact_email="edsger@example.com",
                previous_status="delivered",
                new_status="return_requested",
                changed_at=datetime(2025, 6, 10, 12, 0, tzinfo=UTC),
            )
        )
        assert notifier.sent == []

    def test_refund_message_includes_amount(self, notifier):
        OrderNotificationHandler().on_return_reviewed(
            ReturnReviewed(
                order_id="order-1",
                order_number="WOOD-20250601-001",
                contact_email="edsger@example.com",
                return_id="RET-1-abcdefghi",
                previous_status="processed",
                new_status="refunded",
                refund_amount=38.0,
                reviewed_at=datetime(2025, 6, 20, 12, 0, tzinfo=UTC),
            )
        )

        assert notifier.sent[0]["kind"] == "return_reviewed"
        assert "Refund: $38.00" in notifier.sent[0]["body"]
