"""Tests for rate limiter storage selection."""

from chatdesk.core import rate_limit


def test_limiter_disabled_under_testing():
    assert rate_limit.IS_TESTING is True
    assert rate_limit.limiter.enabled is False
    assert rate_limit.build_limiter("redis://localhost:6379/0").enabled is False


def test_unreachable_redis_falls_back_to_memory(monkeypatch):
    monkeypatch.setattr(rate_limit, "IS_TESTING", False)

    assert rate_limit._storage_uri(None) == rate_limit.MEMORY_STORAGE
    assert rate_limit._storage_uri("redis://127.0.0.1:1/0") == rate_limit.MEMORY_STORAGE


def test_default_limits_follow_settings(monkeypatch):
    monkeypatch.setattr(rate_limit, "IS_TESTING", False)
    monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_API", 60)
    assert rate_limit._default_limits() == ["60/minute"]

    monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_API", 0)
    assert rate_limit._default_limits() == []
