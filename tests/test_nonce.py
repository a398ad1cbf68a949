# tests/test_nonce.py

import threading

from hlactions.core.nonce import NonceSource, get_timestamp_ms


def test_same_millisecond_is_still_strictly_increasing():
    source = NonceSource(clock=lambda: 1_000)
    assert [source.next() for _ in range(3)] == [1_000, 1_001, 1_002]
    assert source.last == 1_002


def test_clock_step_back_does_not_repeat():
    ticks = iter([2_000, 1_500, 2_500])
    source = NonceSource(clock=lambda: next(ticks))
    assert [source.next() for _ in range(3)] == [2_000, 2_001, 2_500]


def test_follows_wall_clock():
    before = get_timestamp_ms()
    nonce = NonceSource().next()
    assert before <= nonce <= get_timestamp_ms() + 1


def test_unique_across_threads():
    source = NonceSource(clock=lambda: 1_000)
    results = []
    lock = threading.Lock()

    def worker():
        local = [source.next() for _ in range(200)]
        with lock:
            results.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 1600
    assert len(set(results)) == 1600
    assert max(results) == 1_000 + 1599
