import pytest

from expiry import EXPIRED, NEVER, Verdict, evaluate, expires_at

HOUR = 3600
NOW = 1_700_000_000.0


@pytest.mark.parametrize("expiry", [0, -1, -HOUR])
@pytest.mark.parametrize("age", [0, HOUR, 1000 * HOUR, -HOUR])
def test_disabled_expiry_never_expires(expiry, age):
    verdict = evaluate(NOW - age, NOW, expiry)
    assert verdict is NEVER
    assert verdict.expired is False
    assert verdict.remaining is None


def test_boundary_is_inclusive():
    assert evaluate(NOW - 2 * HOUR, NOW, 2 * HOUR) == EXPIRED


def test_one_second_before_boundary():
    verdict = evaluate(NOW - (2 * HOUR - 1), NOW, 2 * HOUR)
    assert verdict == Verdict(expired=False, remaining=1)


def test_fresh_file_has_full_window():
    verdict = evaluate(NOW, NOW, HOUR)
    assert not verdict.expired
    assert verdict.remaining == HOUR


def test_long_expired():
    assert evaluate(NOW - 50 * HOUR, NOW, HOUR).expired


def test_future_mtime_is_alive():
    verdict = evaluate(NOW + 10, NOW, HOUR)
    assert not verdict.expired
    assert verdict.remaining > 0


def test_expires_at():
    assert expires_at(NOW, HOUR) == NOW + HOUR
    assert expires_at(NOW, 0) is None
