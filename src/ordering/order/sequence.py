"""Human-readable identifiers for orders and returns.

Order numbers take the form ``WOOD-YYYYMMDD-NNN`` where ``NNN`` is one more
than the number of orders created so far on the server's local calendar
day. The count is racy under concurrent checkouts; the unique index on
``order_number`` together with the retry loop in order creation absorbs
collisions.
"""

import secrets
import string
from datetime import UTC, datetime, timedelta

from ordering import config
from ordering.utils.logging import get_logger

logger = get_logger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def _epoch_millis(at: datetime) -> int:
    return int(at.timestamp() * 1000)


def local_day_window(at: datetime) -> tuple[datetime, datetime]:
    """Start and end of ``at``'s calendar day in server-local time."""
    local = at.astimezone()
    start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


class SequenceGenerator:
    def __init__(self, repository=None, clock=None):
        self._repository = repository
        self._clock = clock or (lambda: datetime.now(UTC))

    def next_order_number(self, at: datetime | None = None, skip: int = 0) -> str:
        """Next number for the day of ``at``. ``skip`` moves past numbers known to be taken."""
        at = at or self._clock()
        start, end = local_day_window(at)
        try:
            count = self._repository.count_created_between(start, end)
        except Exception as exc:
            logger.warning("order_number_count_failed", error=str(exc))
            return self.fallback_order_number(at)

        return f"{config.ORDER_NUMBER_PREFIX}-{start:%Y%m%d}-{count + 1 + skip:03d}"

    def fallback_order_number(self, at: datetime | None = None) -> str:
        at = at or self._clock()
        return f"{config.ORDER_NUMBER_PREFIX}-{_epoch_millis(at)}-{_random_suffix()}"

    def next_return_id(self, at: datetime | None = None) -> str:
        at = at or self._clock()
        return f"{config.RETURN_ID_PREFIX}-{_epoch_millis(at)}-{_random_suffix()}"
