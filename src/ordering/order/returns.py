"""Order returns — commands and handlers.

Customers file a return against a delivered order by order number; the
request covers every item on the order. Administrators then review it
through approval or rejection, receipt and refund.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.exceptions import OrderNotFoundError
from ordering.order.order import Order, ReturnReason
from ordering.order.sequence import SequenceGenerator
from ordering.utils.logging import get_logger

logger = get_logger(__name__)


@ordering.command(part_of="Order")
class FileReturn:
    """Request a return of every item on a delivered order."""

    order_number = String(max_length=50)
    reason = String(max_length=50)
    description = Text()


@ordering.command(part_of="Order")
class ReviewReturn:
    """Move a return request along its review workflow."""

    order_id = Identifier(required=True)
    return_id = String(required=True, max_length=50)
    status = String(required=True, max_length=50)
    refund_amount = Float(min_value=0.0)
    tracking_number = String(max_length=255)
    admin_notes = Text()
    expected_revision = Integer()


def _check_filing(command) -> None:
    errors = {}
    for name in ("order_number", "reason", "description"):
        if not str(getattr(command, name) or "").strip():
            errors[name] = ["is required"]
    if "reason" not in errors and command.reason not in {r.value for r in ReturnReason}:
        errors["reason"] = [f"Unknown return reason: {command.reason}"]
    if errors:
        raise ValidationError(errors)


@ordering.command_handler(part_of=Order)
class ManageReturnsHandler:
    @handle(FileReturn)
    def file_return(self, command):
        _check_filing(command)

        repo = current_domain.repository_for(Order)
        order = repo.find_by_number(command.order_number)
        if order is None:
            raise OrderNotFoundError(f"Order {command.order_number.strip()} not found")

        # Eligibility is checked before an id is spent
        order.assert_returnable()
        return_id = SequenceGenerator(repository=repo).next_return_id()
        order.request_return(
            return_id=return_id,
            reason=command.reason,
            description=command.description.strip(),
        )
        repo.save(order)

        logger.info("return_filed", order_number=order.order_number, return_id=return_id)
        return {"return_id": return_id, "order_number": order.order_number}

    @handle(ReviewReturn)
    def review_return(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_order(command.order_id)
        order.expect_revision(command.expected_revision)

        request = order.review_return(
            command.return_id,
            command.status,
            refund_amount=command.refund_amount,
            tracking_number=command.tracking_number,
            admin_notes=command.admin_notes,
        )
        repo.save(order)

        logger.info(
            "return_reviewed",
            order_number=order.order_number,
            return_id=request.return_id,
            status=request.status,
        )
        return order.revision
