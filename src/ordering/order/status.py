"""Order status updates — command and handler.

Administrators drive an order through confirmation, processing, shipment and
delivery, or cancel it before it ships.
"""

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.utils.logging import get_logger

logger = get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    note = String(max_length=500)
    actor_ref = Identifier()
    cancellation_reason = String(max_length=500)
    tracking_number = String(max_length=255)
    estimated_delivery = DateTime()
    expected_revision = Integer()


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_order(command.order_id)
        order.expect_revision(command.expected_revision)

        previous = order.status
        order.update_status(
            command.status,
            note=command.note,
            actor=command.actor_ref,
            cancellation_reason=command.cancellation_reason,
            tracking_number=command.tracking_number,
            estimated_delivery=command.estimated_delivery,
        )
        repo.save(order)

        logger.info(
            "order_status_changed",
            order_number=order.order_number,
            previous_status=previous,
            new_status=order.status,
        )
        return order.revision
