"""Repository for the Order aggregate."""

from protean.exceptions import ObjectNotFoundError

from ordering.domain import ordering
from ordering.exceptions import OrderNotFoundError, ReturnNotFoundError
from ordering.order.order import Order

# Upper bound for scans that filter in memory
_SCAN_LIMIT = 10_000

# Filter values storefront clients send to mean "no filter"
_ANY_STATUS = {"all", "null"}
_ANY_USER = {"null", "undefined"}


@ordering.repository(part_of=Order)
class OrderRepository:
    """Order persistence with the lookups checkout and returns rely on.

    Saving through ``save`` recomputes derived financial fields first, so a stored order
    always reconciles with its line items.
    """

    def save(self, order):
        order.reconcile()
        return self.add(order)

    def get_order(self, identifier) -> Order:
        try:
            return self.get(identifier)
        except ObjectNotFoundError as exc:
            raise OrderNotFoundError(f"Order {identifier} not found") from exc

    def find_by_number(self, order_number: str) -> Order | None:
        """Exact match first, then case-insensitive."""
        order_number = (order_number or "").strip()
        if not order_number:
            return None

        exact = self._dao.query.filter(order_number=order_number).all().items
        if exact:
            return exact[0]

        loose = self._dao.query.filter(order_number__iexact=order_number).all().items
        return loose[0] if loose else None

    def count_created_between(self, start, end) -> int:
        return self._dao.query.filter(created_at__gte=start, created_at__lt=end).all().total

    def order_number_taken(self, order_number: str) -> bool:
        return bool(self._dao.query.filter(order_number=order_number).all().items)

    def find_by_return_id(self, return_id: str) -> tuple[Order, object]:
        for order in self._dao.query.filter(status="return_requested").limit(_SCAN_LIMIT).all().items:
            for request in order.return_requests:
                if request.return_id == return_id:
                    return order, request
        raise ReturnNotFoundError(f"Return {return_id} not found")

    def list_orders(self, status=None, user_id=None, email=None, offset=0, limit=20) -> tuple[list[Order], int]:
        """Newest first, filtered by status and purchaser."""
        query = self._dao.query
        if status and status.lower() not in _ANY_STATUS:
            query = query.filter(status=status)
        orders = query.limit(_SCAN_LIMIT).all().items

        if user_id and str(user_id).lower() not in _ANY_USER:
            orders = [o for o in orders if o.party.user_id == str(user_id)]
        if email:
            email = email.strip().lower()
            orders = [o for o in orders if (o.shipping_address.email or "").lower() == email]

        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[offset : offset + limit], len(orders)
