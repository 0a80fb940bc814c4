"""Tests for SequenceGenerator — daily order numbers, return ids and fallbacks."""

import re
from datetime import datetime

from ordering.order.sequence import SequenceGenerator, local_day_window

FALLBACK_PATTERN = re.compile(r"^WOOD-\d{13}-[0-9a-z]{9}$")
RETURN_PATTERN = re.compile(r"^RET-\d{13}-[0-9a-z]{9}$")


class CountingRepository:
    """Stands in for the order repository's day count."""

    def __init__(self, count=0):
        self.count = count
        self.windows = []

    def count_created_between(self, start, end):
        self.windows.append((start, end))
        return self.count


class BrokenRepository:
    def count_created_between(self, start, end):
        raise ConnectionError("database unavailable")


# Server-local wall clock time on 2025-06-01
JUNE_FIRST = datetime(2025, 6, 1, 9, 0).astimezone()


class TestOrderNumbers:
    def test_first_order_of_the_day(self):
        generator = SequenceGenerator(repository=CountingRepository(0))
        assert generator.next_order_number(JUNE_FIRST) == "WOOD-20250601-001"

    def test_two_existing_orders_yield_003(self):
        generator = SequenceGenerator(repository=CountingRepository(2))
        number = generator.next_order_number(JUNE_FIRST)

        assert number == "WOOD-20250601-003"
        assert number.endswith("-003")

    def test_counter_widens_past_999(self):
        generator = SequenceGenerator(repository=CountingRepository(1200))
        assert generator.next_order_number(JUNE_FIRST) == "WOOD-20250601-1201"

    def test_skip_moves_past_taken_numbers(self):
        generator = SequenceGenerator(repository=CountingRepository(2))
        assert generator.next_order_number(JUNE_FIRST, skip=1) == "WOOD-20250601-004"

    def test_counts_orders_in_the_local_day(self):
        repository = CountingRepository(0)
        SequenceGenerator(repository=repository).next_order_number(JUNE_FIRST)

        start, end = repository.windows[0]
        assert (start.year, start.month, start.day, start.hour) == (2025, 6, 1, 0)
        assert (end - start).days == 1

    def test_clock_supplies_default_time(self):
        generator = SequenceGenerator(repository=CountingRepository(0), clock=lambda: JUNE_FIRST)
        assert generator.next_order_number() == "WOOD-20250601-001"

    def test_count_failure_falls_back(self):
        generator = SequenceGenerator(repository=BrokenRepository())
        number = generator.next_order_number(JUNE_FIRST)

        assert FALLBACK_PATTERN.match(number)

    def test_fallback_uses_epoch_millis(self):
        generator = SequenceGenerator()
        number = generator.fallback_order_number(JUNE_FIRST)
        assert number.split("-")[1] == str(int(JUNE_FIRST.timestamp() * 1000))

    def test_fallbacks_are_distinct(self):
        generator = SequenceGenerator()
        numbers = {generator.fallback_order_number(JUNE_FIRST) for _ in range(20)}
        assert len(numbers) == 20


class TestReturnIds:
    def test_return_id_format(self):
        return_id = SequenceGenerator().next_return_id(JUNE_FIRST)
        assert RETURN_PATTERN.match(return_id)

    def test_return_ids_are_distinct(self):
        generator = SequenceGenerator()
        ids = {generator.next_return_id(JUNE_FIRST) for _ in range(20)}
        assert len(ids) == 20


class TestLocalDayWindow:
    def test_window_spans_midnight_to_midnight(self):
        start, end = local_day_window(JUNE_FIRST)
        assert start <= JUNE_FIRST < end
        assert (start.hour, start.minute, start.second) == (0, 0, 0)
