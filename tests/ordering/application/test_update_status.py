"""Application tests for admin status updates through the UpdateOrderStatus command."""

import json

import pytest
from ordering.exceptions import ConflictError, OrderNotFoundError, TransitionError
from ordering.order.creation import PlaceOrder
from ordering.order.order import Order, OrderStatus
from ordering.order.status import UpdateOrderStatus
from protean import current_domain
from protean.exceptions import ExpectedVersionError


def _place_order():
    return current_domain.process(
        PlaceOrder(
            items=json.dumps(
                [{"product_id": "pine-001", "product_name": "Pine Shelf Board", "unit_price": 18.0, "quantity": 3}]
            ),
            shipping_address=json.dumps(
                {
                    "first_name": "Grace",
                    "last_name": "Hopper",
                    "email": "grace@example.com",
                    "address": "1 Harbor Way",
                    "city": "Arlington",
                    "state": "VA",
                    "zip_code": "22201",
                }
            ),
            payment_method="bank_transfer",
        ),
        asynchronous=False,
    )


def _update(order_id, status, **kwargs):
    return current_domain.process(UpdateOrderStatus(order_id=order_id, status=status, **kwargs), asynchronous=False)


def _load(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestUpdateOrderStatus:
    def test_confirm_order(self):
        order_id = _place_order()

        revision = _update(order_id, "confirmed", note="Payment received", actor_ref="admin-1")

        order = _load(order_id)
        assert revision == 1
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.revision == 1
        assert order.history[-1].note == "Payment received"
        assert order.history[-1].actor_ref == "admin-1"

    def test_full_fulfilment(self):
        order_id = _place_order()
        _update(order_id, "confirmed")
        _update(order_id, "processing")
        _update(order_id, "shipped", tracking_number="1Z999AA10123456784")
        _update(order_id, "delivered")

        order = _load(order_id)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.tracking_number == "1Z999AA10123456784"
        assert order.delivered_at is not None
        assert len(order.history) == 5

    def test_cancel_with_reason(self):
        order_id = _place_order()
        _update(order_id, "cancelled", cancellation_reason="Customer request")

        order = _load(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Customer request"

    def test_illegal_transition_is_not_persisted(self):
        order_id = _place_order()

        with pytest.raises(TransitionError):
            _update(order_id, "delivered")

        order = _load(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert len(order.history) == 1

    def test_unknown_order(self):
        with pytest.raises(OrderNotFoundError):
            _update("missing-order", "confirmed")


class TestOptimisticConcurrency:
    def test_matching_revision_is_accepted(self):
        order_id = _place_order()
        _update(order_id, "confirmed", expected_revision=0)
        _update(order_id, "processing", expected_revision=1)

        assert _load(order_id).status == OrderStatus.PROCESSING.value

    def test_stale_revision_is_rejected(self):
        order_id = _place_order()
        # Two admins read revision 0; the first write wins
        _update(order_id, "confirmed", expected_revision=0)

        with pytest.raises(ConflictError):
            _update(order_id, "cancelled", note="Duplicate", expected_revision=0)

        order = _load(order_id)
        assert order.status == OrderStatus.CONFIRMED.value
        assert [entry.status for entry in order.history] == ["pending", "confirmed"]

    def test_interleaved_update_does_not_drop_history(self):
        order_id = _place_order()
        repo = current_domain.repository_for(Order)
        # Read before another admin's update lands
        stale = repo.get(order_id)

        _update(order_id, "confirmed")

        stale.update_status("cancelled", note="Customer changed their mind")
        with pytest.raises(ExpectedVersionError):
            repo.save(stale)

        order = _load(order_id)
        assert order.status == OrderStatus.CONFIRMED.value
        assert [entry.status for entry in order.history] == ["pending", "confirmed"]


class TestStatusNotifications:
    def test_placement_and_status_change_notify_customer(self, notifier):
        order_id = _place_order()
        _update(order_id, "confirmed")

        kinds = [message["kind"] for message in notifier.sent]
        assert kinds == ["order_placed", "status_changed"]
        assert all(message["to"] == "grace@example.com" for message in notifier.sent)
        assert "has been confirmed" in notifier.sent[-1]["body"]
