"""Response cache tests."""

from relay.cache import ResponseCache
from relay.types import AnswerSource, ResolutionResult


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def result(text: str = "Tomatoes need full sun") -> ResolutionResult:
    return ResolutionResult(query_text="q", fulfillment_text=text, answer_source=AnswerSource.KB_ONLY)


def test_get_missing_returns_none():
    assert ResponseCache().get("anything") is None


def test_keys_are_case_folded_and_trimmed():
    cache = ResponseCache()
    cache.put("  How do I grow Tomatoes?  ", result())

    assert cache.get("how do i grow tomatoes?") == result()
    assert cache.get("HOW DO I GROW TOMATOES?") == result()


def test_put_overwrites():
    cache = ResponseCache()
    cache.put("q", result("first answer"))
    cache.put("Q", result("second answer"))

    assert cache.get("q").fulfillment_text == "second answer"
    assert len(cache) == 1


def test_entry_expires_exactly_at_ttl():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=60, clock=clock)
    cache.put("q", result())

    clock.now += 59.999
    assert cache.get("q") is not None

    clock.now = 1000.0 + 60
    assert cache.get("q") is None
    assert len(cache) == 0


def test_sweep_runs_only_past_capacity():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=10, capacity=3, clock=clock)
    for key in ("a", "b", "c"):
        cache.put(key, result())
    clock.now += 10

    # At capacity: no sweep, expired entries linger.
    cache.put("c", result())
    assert len(cache) == 3

    cache.put("d", result())
    assert len(cache) == 2
    assert cache.get("c") is not None
    assert cache.get("d") is not None


def test_sweep_keeps_fresh_entries_even_over_capacity():
    cache = ResponseCache(ttl_seconds=60, capacity=2, clock=FakeClock())
    for key in ("a", "b", "c", "d"):
        cache.put(key, result())

    assert len(cache) == 4

