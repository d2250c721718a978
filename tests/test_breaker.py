import pytest

from waterdrop.breaker import (
    BreakerGroup,
    BreakerState,
    GoogleSreBreaker,
    GoogleSreBreakerConfig,
    Proba,
    ServiceUnavailableError,
    new_breaker_group,
)


class _AlwaysTrue:
    def true_on_proba(self, proba):
        return True


class _AlwaysFalse:
    def true_on_proba(self, proba):
        return False


class _FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def group():
    return BreakerGroup()


def test_breaker_accept(group):
    breaker = group.get("breaker")
    for _ in range(100):
        breaker.accept()
    assert breaker.allow() is None
    assert breaker.summary() == (100.0, 100)


def test_breaker_reject(group):
    breaker = group.get("breaker")
    for _ in range(40000):
        breaker.reject()
    with pytest.raises(ServiceUnavailableError):
        breaker.allow()


def test_breaker_do(group):
    assert group.do("do", lambda: "ok", lambda e: e is None) == "ok"

    def fail():
        raise RuntimeError("exit")

    with pytest.raises(RuntimeError, match="exit"):
        group.do("do", fail, lambda e: e is None)
    assert group.get("do").summary() == (1.0, 2)


def test_do_refused_does_not_run(group):
    breaker = group.get("refused")
    for _ in range(40000):
        breaker.reject()
    calls = []
    with pytest.raises(ServiceUnavailableError):
        group.do("refused", lambda: calls.append(1), lambda e: e is None)
    assert calls == []


def test_group_returns_same_breaker(group):
    assert group.get("a") is group.get("a")
    assert group.get("a") is not group.get("b")


def test_new_breaker_group_is_shared():
    name = "shared-group-breaker-under-test"
    new_breaker_group().get(name).accept()
    assert new_breaker_group().get(name).summary() == (1.0, 1)


def test_state_transitions():
    breaker = GoogleSreBreaker(proba=_AlwaysFalse())
    assert breaker.state is BreakerState.OPEN
    breaker.allow()
    assert breaker.state is BreakerState.CLOSED
    breaker.reject()
    breaker.allow()
    assert breaker.state is BreakerState.OPEN


def test_allow_raises_when_proba_hits():
    breaker = GoogleSreBreaker(proba=_AlwaysTrue())
    breaker.reject()
    with pytest.raises(ServiceUnavailableError):
        breaker.allow()


def test_empty_breaker_allows_even_when_proba_hits():
    breaker = GoogleSreBreaker(proba=_AlwaysTrue())
    assert breaker.allow() is None
    assert breaker.summary() == (0.0, 0)


def test_window_expiry_forgets_failures():
    clock = _FakeClock()
    breaker = GoogleSreBreaker(
        GoogleSreBreakerConfig(window=10.0, bucket_size=40), proba=_AlwaysTrue(), clock=clock
    )
    for _ in range(10):
        breaker.reject()
    assert breaker.summary() == (0.0, 10)
    clock.now += 11.0
    assert breaker.summary() == (0.0, 0)
    assert breaker.allow() is None


def test_window_partial_expiry():
    clock = _FakeClock()
    breaker = GoogleSreBreaker(
        GoogleSreBreakerConfig(window=4.0, bucket_size=4), proba=_AlwaysFalse(), clock=clock
    )
    breaker.accept()
    clock.now += 2.0
    breaker.reject()
    assert breaker.summary() == (1.0, 2)
    clock.now += 2.5
    assert breaker.summary() == (0.0, 1)


def test_invalid_config():
    with pytest.raises(ValueError):
        GoogleSreBreaker(GoogleSreBreakerConfig(bucket_size=0))
    with pytest.raises(ValueError):
        GoogleSreBreaker(GoogleSreBreakerConfig(window=0))


def test_proba_extremes():
    proba = Proba(seed=7)
    assert not any(proba.true_on_proba(0.0) for _ in range(1000))
    assert all(proba.true_on_proba(1.0) for _ in range(1000))


def test_proba_seed_is_deterministic():
    first = Proba(seed=42)
    second = Proba(seed=42)
    assert [first.true_on_proba(0.5) for _ in range(50)] == [
        second.true_on_proba(0.5) for _ in range(50)
    ]