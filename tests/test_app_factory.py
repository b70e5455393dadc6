"""App factory tests — config wiring for the extensions."""

from wsjfp import limiter
from wsjfp.config import Config, TestingConfig


def test_rate_limit_storage_is_configured(app):
    assert app.config["RATELIMIT_STORAGE_URI"] == TestingConfig.RATELIMIT_STORAGE_URI
    assert Config.RATELIMIT_STORAGE_URI


def test_limiter_takes_storage_from_app_config():
    # no constructor override, so RATELIMIT_STORAGE_URI decides
    assert limiter._storage_uri is None


def test_rate_limits_disabled_when_testing(app):
    assert app.config["RATELIMIT_ENABLED"] is False
    assert limiter.enabled is False
