"""Ordering bounded context — order lifecycle for the woodshop storefront.

Handles checkout settlement (cart → order), daily sequenced order numbers,
the order status state machine with its audit trail, and customer return
requests filed against delivered orders.
"""

from protean.domain import Domain

from ordering.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
ordering = Domain(name="ordering")
