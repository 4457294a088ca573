"""Tests for session_fetch.py – three-step sign-in and sign-out."""
import random

import pytest
import requests

from fakes import FakeHttp, FakeResponse, login_routes
from srm_calendar_export.config import PortalConfig
from srm_calendar_export.errors import (
    AutomationBlocked,
    InvalidCredentials,
    ProtocolError,
    UpstreamUnavailable,
)
from srm_calendar_export.session_fetch import (
    SessionAuthenticator,
    SessionBundle,
    extract_csrf_token,
)


def _replace_route(routes, fragment, response):
    return [(m, f, response if f == fragment else r) for m, f, r in routes]


# ── Session bundle ─────────────────────────────────────────────

class TestSessionBundle:
    def test_merge_keeps_order_and_last_value_wins(self):
        bundle = SessionBundle().merged(["a=1; Path=/", "iamcsr=x; Secure", "b=2"])
        rotated = bundle.merged(["iamcsr=y; Path=/", "c=3", "a=9"])

        assert rotated.cookie_header == "a=9; iamcsr=y; b=2; c=3"
        assert rotated.csrf_token == "y"

    def test_merge_does_not_mutate(self):
        bundle = SessionBundle().merged(["iamcsr=x"])
        bundle.merged(["iamcsr=y"])
        assert bundle.csrf_token == "x"
        assert bundle.cookie_header == "iamcsr=x"

    def test_ignores_malformed_set_cookie(self):
        bundle = SessionBundle().merged(["garbage", "=nothing", "ok=1"])
        assert bundle.cookie_header == "ok=1"
        assert bundle.csrf_token == ""

    def test_extract_csrf_token(self):
        assert extract_csrf_token("a=1; iamcsr=tok; b=2") == "tok"
        assert extract_csrf_token("xiamcsr=nope") is None
        assert extract_csrf_token("") is None


# ── Authenticate ───────────────────────────────────────────────

class TestAuthenticate:
    def test_success_returns_merged_cookies(self, config):
        http = FakeHttp(login_routes())
        bundle = SessionAuthenticator(config, http=http).authenticate("me@srmist.edu.in", "pw")

        assert bundle.cookie_header == "iamcsr=csrf-1; _zcsr_tmp=tmp-1; JSESSIONID=final"
        assert bundle.csrf_token == "csrf-1"

    def test_csrf_rotation_during_lookup(self, config):
        http = FakeHttp(login_routes(lookup_cookies=["iamcsr=csrf-2; Path=/"]))
        bundle = SessionAuthenticator(config, http=http).authenticate("me", "pw")

        assert bundle.csrf_token == "csrf-2"
        # The password step must already carry the rotated token
        _, _, kwargs = http.calls_to("/password")[0]
        assert kwargs["headers"]["x-zcsrf-token"] == "iamcsrcoo=csrf-2"
        assert "iamcsr=csrf-2" in kwargs["headers"]["Cookie"]

    def test_request_shapes(self, config):
        http = FakeHttp(login_routes())
        SessionAuthenticator(config, http=http).authenticate("me", "secret")

        _, lookup_url, lookup = http.calls_to("/lookup/")[0]
        assert lookup_url.endswith("/signin/v2/lookup/me")
        assert lookup["data"]["mode"] == "primary"
        assert lookup["headers"]["x-zcsrf-token"] == "iamcsrcoo=csrf-1"
        assert lookup["headers"]["Cookie"] == "iamcsr=csrf-1; _zcsr_tmp=tmp-1"

        _, password_url, password = http.calls_to("/password")[0]
        assert "/primary/1234567/password" in password_url
        assert password["params"]["digest"] == "abcdef"
        assert password["json"] == {"passwordauth": {"password": "secret"}}

        for _, _, kwargs in http.calls:
            assert kwargs["timeout"] == config.timeout
            assert "sec-ch-ua" in kwargs["headers"]

    def test_login_page_error_status(self, config):
        routes = _replace_route(login_routes(), "/signin?", FakeResponse(503, "down"))
        with pytest.raises(UpstreamUnavailable):
            SessionAuthenticator(config, http=FakeHttp(routes)).authenticate("me", "pw")

    def test_network_error(self, config):
        routes = _replace_route(login_routes(), "/signin?", requests.ConnectionError("boom"))
        with pytest.raises(UpstreamUnavailable):
            SessionAuthenticator(config, http=FakeHttp(routes)).authenticate("me", "pw")

    def test_timeout_is_upstream_unavailable(self, config):
        routes = _replace_route(login_routes(), "/password", requests.Timeout("slow"))
        with pytest.raises(UpstreamUnavailable):
            SessionAuthenticator(config, http=FakeHttp(routes)).authenticate("me", "pw")

    def test_missing_csrf_cookie(self, config):
        routes = _replace_route(
            login_routes(), "/signin?", FakeResponse(200, "", set_cookies=["other=1"])
        )
        with pytest.raises(ProtocolError):
            SessionAuthenticator(config, http=FakeHttp(routes)).authenticate("me", "pw")

    def test_unknown_user(self, config):
        routes = _replace_route(
            login_routes(), "/signin/v2/lookup/",
            FakeResponse(400, json={"errors": [{"code": "U400"}]}),
        )
        with pytest.raises(InvalidCredentials) as exc:
            SessionAuthenticator(config, http=FakeHttp(routes)).authenticate("nobody", "pw")
        assert not isinstance(exc.value, AutomationBlocked)

    def test_lookup_without_digest(self, config):
        routes = _replace_route(
            login_routes(), "/signin/v2/lookup/",
            FakeResponse(200, json={"lookup": {"identifier": "1"}}),
        )
        with pytest.raises(InvalidCredentials):
            SessionAuthenticator(config, http=FakeHttp(routes)).authenticate("me", "pw")

    def test_lookup_non_json(self, config):
        routes = _replace_route(
            login_routes(), "/signin/v2/lookup/", FakeResponse(200, "<html>oops</html>")
        )
        with pytest.raises(InvalidCredentials):
            SessionAuthenticator(config, http=FakeHttp(routes)).authenticate("me", "pw")

    def test_wrong_password(self, config):
        http = FakeHttp(login_routes(
            password_body='{"errors":[{"code":"IN102","message":"Invalid password"}]}',
        ))
        with pytest.raises(InvalidCredentials) as exc:
            SessionAuthenticator(config, http=http).authenticate("me", "bad")
        assert type(exc.value) is InvalidCredentials

    @pytest.mark.parametrize("body", [
        '{"errors":[{"code":"NON_TRUSTED_DOMAIN"}],"message":"error"}',
        '{"message":"Sign-in from a Non-Trusted domain is blocked"}',
    ])
    def test_automation_block_is_distinct(self, config, body):
        http = FakeHttp(login_routes(password_body=body))
        with pytest.raises(AutomationBlocked):
            SessionAuthenticator(config, http=http).authenticate("me", "pw")

    def test_password_step_4xx_without_body_markers(self, config):
        routes = _replace_route(login_routes(), "/password", FakeResponse(401, "{}"))
        with pytest.raises(InvalidCredentials):
            SessionAuthenticator(config, http=FakeHttp(routes)).authenticate("me", "pw")


class TestDelays:
    def test_random_delay_between_steps(self):
        slept = []
        config = PortalConfig(step_delay=(0.3, 0.9))
        auth = SessionAuthenticator(
            config, http=FakeHttp(login_routes()), sleep=slept.append, rng=random.Random(7)
        )
        auth.authenticate("me", "pw")

        assert len(slept) == 2
        assert all(0.3 <= s <= 0.9 for s in slept)

    def test_zero_delay_never_sleeps(self, config):
        slept = []
        auth = SessionAuthenticator(config, http=FakeHttp(login_routes()), sleep=slept.append)
        auth.authenticate("me", "pw")
        assert slept == []


# ── Logout ─────────────────────────────────────────────────────

class TestLogout:
    def test_sends_cookie(self, config):
        http = FakeHttp(login_routes())
        bundle = SessionBundle().merged(["iamcsr=t", "JSESSIONID=s"])
        SessionAuthenticator(config, http=http).logout(bundle)

        (_, url, kwargs), = http.calls
        assert "/logout" in url
        assert kwargs["headers"]["Cookie"] == "iamcsr=t; JSESSIONID=s"

    def test_failure_is_swallowed(self, config, caplog):
        http = FakeHttp([("get", "/logout", requests.ConnectionError("gone"))])
        SessionAuthenticator(config, http=http).logout(SessionBundle())
        assert "Sign-out failed" in caplog.text
