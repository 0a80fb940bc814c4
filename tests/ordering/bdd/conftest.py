"""Shared BDD step definitions for the Ordering domain."""

from ordering.order.order import Order
from protean import current_domain
from pytest_bdd import parsers, then


@then(parsers.cfparse('the order status is "{status}"'))
def _(order_id, status):
    assert current_domain.repository_for(Order).get(order_id).status == status
