"""Origin decisions are pure functions of the Origin header and the configuration."""

import logging

import pytest

from session_gateway.cors.origin_policy import OriginPolicy, RejectedOriginLog

from .conftest import APP_ORIGIN, EVIL_ORIGIN


@pytest.fixture
def policy(config) -> OriginPolicy:
    return OriginPolicy(config)


class TestOriginPolicyDecide:

    def test_absent_origin_is_allowed_with_credentials(self, policy):
        decision = policy.decide(None)
        assert decision.allow is True
        assert decision.allow_credentials is True
        assert decision.allow_origin is None
        assert decision.response_headers() == []

    def test_listed_origin_is_echoed_exactly(self, policy):
        decision = policy.decide(APP_ORIGIN)
        assert decision.allow is True
        assert decision.allow_credentials is True
        assert decision.allow_origin == APP_ORIGIN

        headers = dict(decision.response_headers())
        assert headers[b"access-control-allow-origin"] == APP_ORIGIN.encode()
        assert headers[b"access-control-allow-credentials"] == b"true"
        assert headers[b"vary"] == b"Origin"

    @pytest.mark.parametrize("origin", [
        EVIL_ORIGIN,
        "https://App.example.com",
        "http://app.example.com",
        "https://app.example.com:8443",
        "https://sub.app.example.com",
        "null",
    ])
    def test_unlisted_origins_are_denied(self, policy, origin):
        decision = policy.decide(origin)
        assert decision.allow is False
        assert decision.response_headers() == []

    def test_empty_allow_list_denies_every_cross_origin_request(self, config_factory):
        policy = OriginPolicy(config_factory(allowed_origins=""))
        assert policy.decide(APP_ORIGIN).allow is False
        assert policy.decide(None).allow is True

    def test_allow_all_uses_wildcard_without_credentials(self, config_factory):
        policy = OriginPolicy(config_factory(allow_all_origins=True))
        decision = policy.decide(EVIL_ORIGIN)
        assert decision.allow is True
        assert decision.allow_credentials is False
        headers = dict(decision.response_headers())
        assert headers[b"access-control-allow-origin"] == b"*"
        assert b"access-control-allow-credentials" not in headers

    def test_listed_origin_keeps_credentials_when_allow_all_is_on(self, config_factory):
        policy = OriginPolicy(config_factory(allow_all_origins=True))
        decision = policy.decide(APP_ORIGIN)
        assert decision.allow_origin == APP_ORIGIN
        assert decision.allow_credentials is True

    def test_preflight_headers(self, policy):
        headers = dict(policy.preflight_headers(policy.decide(APP_ORIGIN)))
        assert headers[b"access-control-allow-origin"] == APP_ORIGIN.encode()
        assert b"POST" in headers[b"access-control-allow-methods"]
        assert headers[b"access-control-max-age"] == b"600"


class TestRejectedOriginLog:

    def test_logs_once_per_window(self, caplog):
        log = RejectedOriginLog(window_seconds=60)
        with caplog.at_level(logging.WARNING, logger="session_gateway.cors.origin_policy"):
            assert log.report(EVIL_ORIGIN, "/a") is True
            assert log.report(EVIL_ORIGIN, "/a") is False
            assert log.report(EVIL_ORIGIN, "/b") is False
        assert len([r for r in caplog.records if EVIL_ORIGIN in r.getMessage()]) == 1

    def test_reports_suppressed_count_when_window_elapses(self, caplog):
        log = RejectedOriginLog(window_seconds=60)
        log.report(EVIL_ORIGIN)
        log.report(EVIL_ORIGIN)
        log.report(EVIL_ORIGIN)
        log._last_logged[EVIL_ORIGIN] -= 120

        with caplog.at_level(logging.WARNING, logger="session_gateway.cors.origin_policy"):
            assert log.report(EVIL_ORIGIN) is True
        assert "2 further rejection(s) suppressed" in caplog.text

    def test_distinct_origins_are_tracked_separately(self):
        log = RejectedOriginLog(window_seconds=60)
        assert log.report(EVIL_ORIGIN) is True
        assert log.report("https://other.example") is True

    def test_tracking_table_is_bounded(self):
        log = RejectedOriginLog(window_seconds=60)
        for i in range(RejectedOriginLog.MAX_TRACKED_ORIGINS + 10):
            log.report(f"https://spam{i}.example")
        assert len(log._last_logged) <= RejectedOriginLog.MAX_TRACKED_ORIGINS
