import pytest

from roomba_oi.l0_core.bounded_queue import BoundedQueue


def test_bounded_queue_timed_put_get():
    q = BoundedQueue(maxsize=2, name="tq")

    assert q.put(1, timeout=0.01) is True
    assert q.put(2, timeout=0.01) is True

    # Exceed capacity → dropped by policy (False)
    assert q.put(3, timeout=0.01) is False
    assert q.dropped() == 1
    assert q.accepted() == 2

    ok, val = q.get(timeout=0.01)
    assert ok is True and val == 1

    ok, val = q.get(timeout=0.01)
    assert ok is True and val == 2

    # Empty → (False, None)
    ok, val = q.get(timeout=0.01)
    assert ok is False and val is None


def test_bounded_queue_metadata():
    q = BoundedQueue(maxsize=4, name="meta")
    q.put("a", timeout=0)
    assert q.qsize() == 1
    assert q.maxsize() == 4
    assert q.name() == "meta"


@pytest.mark.parametrize("maxsize, name", [(0, "q"), (-1, "q"), (2, ""), (2, "   ")])
def test_bounded_queue_rejects_bad_arguments(maxsize, name):
    with pytest.raises(ValueError):
        BoundedQueue(maxsize, name)
