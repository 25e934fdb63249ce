import asyncio
from datetime import date, datetime, timezone

import pytest
from pymongo.errors import AutoReconnect

from kwikq.errors import AllocationError
from kwikq.services.sequence_allocator import SequenceAllocator, format_ticket_number
from kwikq.stores.memory import InMemorySequenceStore


class FlakySequenceStore(InMemorySequenceStore):
    """Fails the first call before touching the counter."""

    def __init__(self):
        super().__init__()
        self.failures = 1

    async def atomic_increment(self, business_id, day_key):
        if self.failures:
            self.failures -= 1
            raise AutoReconnect("primary stepped down")
        return await super().atomic_increment(business_id, day_key)


def test_format_pads_to_three_digits():
    assert format_ticket_number("LEK", 7) == "LEK-007"
    assert format_ticket_number("LEK", 42) == "LEK-042"


def test_format_never_truncates_wide_sequences():
    assert format_ticket_number("LEK", 1000) == "LEK-1000"
    assert format_ticket_number("Q", 12345) == "Q-12345"


async def test_sequences_count_up_per_day(directory, sequences):
    allocator = SequenceAllocator(directory, sequences)
    day = date(2026, 3, 10)

    assert [await allocator.next("B1", day) for _ in range(3)] == [1, 2, 3]
    assert await allocator.next("B1", date(2026, 3, 11)) == 1
    assert await allocator.next("ORG1", day) == 1


async def test_unknown_business_is_an_allocation_error(directory, sequences):
    allocator = SequenceAllocator(directory, sequences)

    with pytest.raises(AllocationError):
        await allocator.next("nope", date(2026, 3, 10))
    with pytest.raises(AllocationError):
        await allocator.allocate("nope", datetime(2026, 3, 10, tzinfo=timezone.utc))


async def test_failed_allocation_does_not_spend_a_sequence(directory):
    allocator = SequenceAllocator(directory, FlakySequenceStore())
    day = date(2026, 3, 10)

    with pytest.raises(AllocationError):
        await allocator.next("B1", day)
    assert await allocator.next("B1", day) == 1


async def test_day_resets_at_local_midnight(directory, sequences):
    allocator = SequenceAllocator(directory, sequences)

    # Lagos is UTC+1: the local day turns over at 23:00 UTC
    late = await allocator.allocate("B1", datetime(2026, 3, 10, 22, 30, tzinfo=timezone.utc))
    before = await allocator.allocate("B1", datetime(2026, 3, 10, 22, 59, tzinfo=timezone.utc))
    after = await allocator.allocate("B1", datetime(2026, 3, 10, 23, 0, tzinfo=timezone.utc))

    assert late.service_day == "2026-03-10"
    assert before.ticket_number == "LEK-002"
    assert after.service_day == "2026-03-11"
    assert after.ticket_number == "LEK-001"


async def test_organization_without_code_uses_default_prefix(directory, sequences):
    allocator = SequenceAllocator(directory, sequences)

    allocation = await allocator.allocate("ORG1", datetime(2026, 3, 10, 12, tzinfo=timezone.utc))

    assert allocation.ticket_number == "Q-001"
    # No timezone on record: the day is the UTC day
    assert allocation.service_day == "2026-03-10"


async def test_concurrent_allocations_are_unique_and_gap_free(directory, sequences):
    allocator = SequenceAllocator(directory, sequences)
    day = date(2026, 3, 10)

    issued = await asyncio.gather(*(allocator.next("B1", day) for _ in range(1000)))

    assert sorted(issued) == list(range(1, 1001))
