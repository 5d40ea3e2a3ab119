"""Tests for IdSequence."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from ignite_store.errors import InvalidRequestError
from ignite_store.ids import IdSequence


def test_id_sequence_is_monotonic():
    sequence = IdSequence()
    assert [sequence.next() for _ in range(3)] == [0, 1, 2]
    assert sequence.current == 3


def test_reserve_hands_out_consecutive_block():
    sequence = IdSequence(start=10)
    block = sequence.reserve(3)
    assert list(block) == [10, 11, 12]
    assert sequence.next() == 13


def test_reserve_rejects_negative_count():
    with pytest.raises(InvalidRequestError):
        IdSequence().reserve(-1)


@pytest.mark.parametrize("callers,per_caller", [(8, 500), (32, 100)])
def test_concurrent_callers_never_share_ids(callers, per_caller):
    """N parallel callers each taking M ids must see N*M distinct values."""
    sequence = IdSequence()

    def take(_):
        taken = [sequence.next() for _ in range(per_caller // 2)]
        taken.extend(sequence.reserve(per_caller - len(taken)))
        return taken

    with ThreadPoolExecutor(max_workers=callers) as pool:
        batches = list(pool.map(take, range(callers)))

    all_ids = [value for batch in batches for value in batch]
    assert len(all_ids) == callers * per_caller
    assert len(set(all_ids)) == callers * per_caller
    assert sequence.current == callers * per_caller
