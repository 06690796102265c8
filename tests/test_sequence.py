import pytest

from photobooth_queue.sequence import SequenceAllocator


def test_next_increments_and_reset_restarts():
    seq = SequenceAllocator()
    assert [seq.next(), seq.next(), seq.next()] == [1, 2, 3]
    seq.reset()
    assert seq.last_number == 0
    assert seq.next() == 1


def test_restore_continues_from_adopted_counter():
    seq = SequenceAllocator()
    seq.restore(41)
    assert seq.next() == 42


def test_rejects_negative_counter():
    with pytest.raises(ValueError):
        SequenceAllocator(-1)
