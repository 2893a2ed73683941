import threading

import pytest

from cncfeeder.circular_queue import QUEUE_SIZE, CircularQueue, QueueFullError


def test_default_capacity():
    assert CircularQueue().capacity == QUEUE_SIZE


def test_round_trip_fifo():
    q = CircularQueue(16)
    q.put(b"G01 X1")
    q.put(b"\n")
    assert q.get(100) == b"G01 X1\n"
    assert q.is_empty()


def test_partial_get_keeps_rest():
    q = CircularQueue(16)
    q.put(b"abcdef")
    assert q.get(2) == b"ab"
    assert len(q) == 4
    assert q.get(10) == b"cdef"


def test_get_from_empty_returns_nothing():
    q = CircularQueue(8)
    assert q.get(5) == b""


def test_overflow_stores_what_fits():
    q = CircularQueue(4)
    with pytest.raises(QueueFullError) as info:
        q.put(b"abcdef")
    assert info.value.accepted == 4
    assert info.value.requested == 6
    assert q.is_full()
    assert q.get(10) == b"abcd"


def test_put_into_full_queue_accepts_nothing():
    q = CircularQueue(2)
    q.put(b"xy")
    with pytest.raises(QueueFullError) as info:
        q.put(b"z")
    assert info.value.accepted == 0
    assert q.get(5) == b"xy"


def test_space_left_reserves_one_byte():
    q = CircularQueue(10)
    q.put(b"abc")
    assert q.space_left() == q.capacity - len(q) - 1


def test_max_size_tracks_high_water_and_resets():
    q = CircularQueue(32)
    q.put(b"12345")
    q.get(4)
    q.put(b"67")
    assert q.max_size() == 5
    assert len(q) == 3
    q.reset()
    assert q.max_size() == 0
    assert q.is_empty()


def test_status_reports_size_and_peak():
    q = CircularQueue(32)
    q.put(b"12345")
    q.get(2)
    assert q.status() == f"Queue size: {len(q)}, max: {q.max_size()}"


def test_wrap_around_many_cycles():
    q = CircularQueue(5)
    out = bytearray()
    for i in range(20):
        q.put(bytes([i, i + 1, i + 2]))
        out += q.get(3)
    assert out == b"".join(bytes([i, i + 1, i + 2]) for i in range(20))


@pytest.mark.parametrize("capacity", [0, -3])
def test_invalid_capacity(capacity):
    with pytest.raises(ValueError):
        CircularQueue(capacity)


def test_concurrent_producers_lose_nothing():
    q = CircularQueue(10_000)

    def produce():
        for _ in range(100):
            q.put(b"ab")

    threads = [threading.Thread(target=produce) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    data = q.get(10_000)
    assert len(data) == 8 * 100 * 2
    assert data.count(b"a") == data.count(b"b")