"""Tests for idmauth.auth.authenticator -- the credential exchange.

All HTTP traffic goes through :class:`httpx.MockTransport`; the coroutine
is driven with :func:`asyncio.run` so no async test plugin is needed.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from idmauth.auth import CredentialAuthenticator, ExchangeReply
from idmauth.auth.classify import (
    COOKIES_REQUIRED_MESSAGE,
    CREDENTIAL_MISMATCH_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    UNVERIFIED_MESSAGE,
)
from idmauth.exceptions import ConnectionError_, MalformedResponseError
from idmauth.models import AuthContext, OutcomeKind
from idmauth.store import MemoryCookieHost, ScopedStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Events:
    """Collects handler invocations in call order."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.replies: dict[str, ExchangeReply] = {}

    def on_success(self, reply: ExchangeReply) -> None:
        self.calls.append("success")
        self.replies["success"] = reply

    def on_failure(self, reply: ExchangeReply) -> None:
        self.calls.append("failure")
        self.replies["failure"] = reply

    def on_finally(self) -> None:
        self.calls.append("finally")


def _responder(status: int, text: str = "", seen: list[httpx.Request] | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, text=text)

    return httpx.MockTransport(handler)


def _authenticator(
    context: AuthContext,
    store: ScopedStore,
    transport: httpx.MockTransport,
) -> CredentialAuthenticator:
    return CredentialAuthenticator(context, store, transport=transport)


def _submit(authenticator: CredentialAuthenticator, events: Events, credentials: dict[str, Any] | None = None):
    return asyncio.run(
        authenticator.submit(
            credentials or {"UserName": "u", "Password": "good"},
            on_success=events.on_success,
            on_failure=events.on_failure,
            on_finally=events.on_finally,
        )
    )


@pytest.fixture(autouse=True)
def _plain_output(verbose_output):
    """Plain, unwrapped diagnostics so stderr assertions see whole lines."""
    return verbose_output


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------


class TestRequest:
    def test_posts_json_to_token_url(self, context: AuthContext, store: ScopedStore) -> None:
        seen: list[httpx.Request] = []
        auth = _authenticator(context, store, _responder(200, '{"Token": "t"}', seen))
        asyncio.run(auth.submit({"UserName": "u", "Password": "p"}))

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://comps.idmod.org/tokens?format=json"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {
            "UserName": "u",
            "Password": "p",
            "ApplicationName": "COMPS",
            "ClientVersion": 11,
        }

    def test_caller_credentials_not_mutated(self, context: AuthContext, store: ScopedStore) -> None:
        credentials = {"UserName": "u", "Password": "p"}
        auth = _authenticator(context, store, _responder(200, '{"Token": "t"}'))
        asyncio.run(auth.submit(credentials))
        assert credentials == {"UserName": "u", "Password": "p"}

    def test_context_fields_override_credentials(self, store: ScopedStore) -> None:
        context = AuthContext(endpoint="https://comps.idmod.org", context={"ClientVersion": 12})
        auth = CredentialAuthenticator(context, store)
        payload = auth.build_payload({"UserName": "u", "ClientVersion": 1})
        assert payload == {"UserName": "u", "ClientVersion": 12}

    def test_endpoint_without_trailing_slash(self, store: ScopedStore) -> None:
        seen: list[httpx.Request] = []
        context = AuthContext(endpoint="https://comps.idmod.org/api")
        auth = _authenticator(context, store, _responder(200, '{"Token": "t"}', seen))
        asyncio.run(auth.submit({}))
        assert str(seen[0].url) == "https://comps.idmod.org/api/tokens?format=json"


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class TestSuccess:
    def test_token_stored_with_far_future_expiry(
        self, context: AuthContext, store: ScopedStore, memory_host: MemoryCookieHost
    ) -> None:
        events = Events()
        auth = _authenticator(context, store, _responder(200, '{"Token": "valid-token-value"}'))
        outcome = _submit(auth, events)

        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.token_stored is True
        assert store.get_item("IDMToken") == "valid-token-value"
        record = memory_host.records()[0]
        assert record.expires_at.year == 9999
        assert record.domain == "idmod.org"
        assert events.calls == ["success", "finally"]
        assert events.replies["success"].body == {"Token": "valid-token-value"}
        assert events.replies["success"].status_code == 200

    def test_current_token(self, context: AuthContext, store: ScopedStore) -> None:
        auth = _authenticator(context, store, _responder(200, '{"Token": "valid-token-value"}'))
        assert auth.current_token() is None
        auth.authenticate({"UserName": "u", "Password": "good"})
        assert auth.current_token() == "valid-token-value"

    def test_signed_in_message(self, context: AuthContext, store: ScopedStore, capsys: pytest.CaptureFixture[str]) -> None:
        auth = _authenticator(context, store, _responder(200, '{"Token": "t"}'))
        auth.authenticate({})
        assert "Signed in." in capsys.readouterr().err

    def test_second_sign_in_replaces_token(self, context: AuthContext, store: ScopedStore) -> None:
        _authenticator(context, store, _responder(200, '{"Token": "first"}')).authenticate({})
        _authenticator(context, store, _responder(200, '{"Token": "second"}')).authenticate({})
        assert store.get_item("IDMToken") == "second"
        assert store.get_keys() == ["IDMToken"]

    def test_cookies_refused(self, context: AuthContext) -> None:
        store = ScopedStore(MemoryCookieHost("https://comps.idmod.org/", enabled=False), context)
        events = Events()
        auth = _authenticator(context, store, _responder(200, '{"Token": "valid-token-value"}'))
        outcome = _submit(auth, events)

        assert outcome.is_success
        assert outcome.token_stored is False
        assert events.calls == ["failure", "success", "finally"]
        assert events.replies["failure"].message == COOKIES_REQUIRED_MESSAGE


class TestRejected:
    def test_unauthorized_without_handler(
        self, context: AuthContext, store: ScopedStore, capsys: pytest.CaptureFixture[str]
    ) -> None:
        finished: list[bool] = []
        auth = _authenticator(context, store, _responder(401, '{"ResponseMessage": "nope"}'))
        outcome = asyncio.run(
            auth.submit({"UserName": "u", "Password": "bad"}, on_finally=lambda: finished.append(True))
        )

        assert outcome.kind is OutcomeKind.REJECTED
        assert store.get_keys() == []
        assert finished == [True]
        assert CREDENTIAL_MISMATCH_MESSAGE in capsys.readouterr().err

    def test_failure_handler_receives_message(self, context: AuthContext, store: ScopedStore) -> None:
        events = Events()
        auth = _authenticator(context, store, _responder(401, "{}"))
        _submit(auth, events, {"UserName": "u", "Password": "bad"})

        assert events.calls == ["failure", "finally"]
        reply = events.replies["failure"]
        assert reply.message == CREDENTIAL_MISMATCH_MESSAGE
        assert reply.status_code == 401

    def test_server_error(self, context: AuthContext, store: ScopedStore) -> None:
        events = Events()
        auth = _authenticator(context, store, _responder(500, '{"Token": "valid-token-value"}'))
        outcome = _submit(auth, events)

        assert outcome.kind is OutcomeKind.REJECTED
        assert events.replies["failure"].message == UNVERIFIED_MESSAGE
        assert store.has_item("IDMToken") is False


class TestEmpty:
    def test_empty_body(self, context: AuthContext, store: ScopedStore) -> None:
        events = Events()
        auth = _authenticator(context, store, _responder(200, ""))
        outcome = _submit(auth, events)

        assert outcome.kind is OutcomeKind.EMPTY
        assert events.calls == ["failure", "finally"]
        assert events.replies["failure"].message == GENERIC_FAILURE_MESSAGE
        assert store.get_keys() == []

    def test_empty_body_without_handlers(self, context: AuthContext, store: ScopedStore) -> None:
        auth = _authenticator(context, store, _responder(200, ""))
        outcome = auth.authenticate({})
        assert outcome.kind is OutcomeKind.EMPTY


class TestUnverified:
    def test_empty_token_calls_failure_then_success(
        self, context: AuthContext, store: ScopedStore, capsys: pytest.CaptureFixture[str]
    ) -> None:
        events = Events()
        auth = _authenticator(context, store, _responder(200, '{"Token": ""}'))
        outcome = _submit(auth, events)

        assert outcome.kind is OutcomeKind.UNVERIFIED
        assert events.calls == ["failure", "success", "finally"]
        assert events.replies["failure"].message == UNVERIFIED_MESSAGE
        assert events.replies["success"].outcome.kind is OutcomeKind.UNVERIFIED
        assert store.get_keys() == []
        assert f"Warning: idmorg-auth:submit: {UNVERIFIED_MESSAGE}" in capsys.readouterr().err

    def test_warning_includes_response_message(
        self, context: AuthContext, store: ScopedStore, capsys: pytest.CaptureFixture[str]
    ) -> None:
        auth = _authenticator(context, store, _responder(200, '{"ResponseMessage": "Password expired"}'))
        auth.authenticate({})
        assert "(Password expired)" in capsys.readouterr().err


class TestMalformed:
    def test_raises_after_finally(self, context: AuthContext, store: ScopedStore) -> None:
        events = Events()
        auth = _authenticator(context, store, _responder(200, "<html>maintenance</html>"))

        with pytest.raises(MalformedResponseError) as exc_info:
            _submit(auth, events)

        assert exc_info.value.status_code == 200
        assert exc_info.value.body == "<html>maintenance</html>"
        assert exc_info.value.exit_code == 7
        assert events.calls == ["finally"]
        assert store.get_keys() == []


class TestConnectionFailure:
    def test_connect_error(self, context: AuthContext, store: ScopedStore) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        events = Events()
        auth = _authenticator(context, store, httpx.MockTransport(handler))
        with pytest.raises(ConnectionError_) as exc_info:
            _submit(auth, events)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.exit_code == 6
        assert events.calls == ["finally"]

    def test_timeout(self, context: AuthContext, store: ScopedStore) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        auth = _authenticator(context, store, httpx.MockTransport(handler))
        with pytest.raises(ConnectionError_):
            auth.authenticate({})

    def test_unencodable_credentials_logged_and_reraised(
        self, context: AuthContext, store: ScopedStore, capsys: pytest.CaptureFixture[str]
    ) -> None:
        events = Events()
        auth = _authenticator(context, store, _responder(200, '{"Token": "t"}'))
        with pytest.raises(TypeError):
            _submit(auth, events, {"UserName": "u", "Extra": {1, 2}})

        assert events.calls == ["finally"]
        assert "Error: idmorg-auth:submit:" in capsys.readouterr().err
        assert store.get_keys() == []


class TestFinalizer:
    def test_runs_when_handler_raises(self, context: AuthContext, store: ScopedStore) -> None:
        finished: list[bool] = []

        def explode(reply: ExchangeReply) -> None:
            raise ValueError("handler bug")

        auth = _authenticator(context, store, _responder(200, '{"Token": "t"}'))
        with pytest.raises(ValueError):
            auth.authenticate({}, on_success=explode, on_finally=lambda: finished.append(True))
        assert finished == [True]

    def test_runs_exactly_once(self, context: AuthContext, store: ScopedStore) -> None:
        counter: list[int] = []
        finalizer: Callable[[], None] = lambda: counter.append(1)
        auth = _authenticator(context, store, _responder(200, '{"Token": "t"}'))
        auth.authenticate({}, on_finally=finalizer)
        assert counter == [1]


# ---------------------------------------------------------------------------
# Sign out
# ---------------------------------------------------------------------------


class TestSignOut:
    def test_sign_out_removes_domain_token(self, context: AuthContext, store: ScopedStore) -> None:
        auth = _authenticator(context, store, _responder(200, '{"Token": "valid-token-value"}'))
        auth.authenticate({})

        assert auth.sign_out() is True
        assert auth.current_token() is None
        assert auth.sign_out() is False

    def test_sign_out_without_localize(self, memory_host: MemoryCookieHost) -> None:
        context = AuthContext(endpoint="https://comps.idmod.org/", localize=False)
        store = ScopedStore(memory_host, context)
        auth = _authenticator(context, store, _responder(200, '{"Token": "t"}'))
        auth.authenticate({})
        assert memory_host.records()[0].host_only is True

        assert auth.sign_out() is True
        assert auth.current_token() is None
