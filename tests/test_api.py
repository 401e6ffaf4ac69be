"""Tests for the REST client, ticket client and recording client."""
from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from sshterm.api import ApiClient, RecordingClient, TicketClient
from sshterm.config import ClientConfig
from sshterm.errors import ApiError, AuthError, SessionExpiredError


def make_response(status=200, payload=None, text=None):
    response = MagicMock()
    response.status_code = status
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    response.text = text if text is not None else json.dumps(payload)
    return response


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def api(client_config, http):
    client_config.SERVER_ORIGIN = "https://ops.example.com/"
    return ApiClient(client_config, session=http)


class TestApiClient:
    def test_bearer_and_base_url(self, api, http):
        http.request.return_value = make_response(payload={"success": True, "data": [1, 2]})

        assert api.get("/ssh-hosts") == [1, 2]

        method, url = http.request.call_args.args
        kwargs = http.request.call_args.kwargs
        assert method == "GET"
        assert url == "https://ops.example.com/api/ssh-hosts"
        assert kwargs["headers"] == {"Authorization": "Bearer secret-token"}
        assert kwargs["timeout"] == 10

    def test_page_origin_fallback(self, http):
        cfg = ClientConfig()
        assert ApiClient(cfg, session=http).base_url() == "http://localhost:8080/api"

    def test_no_token_no_header(self, http):
        http.request.return_value = make_response(payload={"ok": 1})
        client = ApiClient(ClientConfig(), session=http)
        assert client.post("/x", {"a": 1}) == {"ok": 1}
        assert http.request.call_args.kwargs["headers"] == {}
        assert http.request.call_args.kwargs["json"] == {"a": 1}

    def test_unenveloped_payload_returned_as_is(self, api, http):
        http.request.return_value = make_response(payload={"ticket": "abc"})
        assert api.post("/auth/ws-ticket") == {"ticket": "abc"}

    def test_401_expires_session(self, client_config, http):
        expired = []
        client = ApiClient(client_config, on_session_expired=lambda: expired.append(True), session=http)
        http.request.return_value = make_response(401, payload={"success": False, "error": "token expired"})

        with pytest.raises(SessionExpiredError):
            client.get("/recordings")

        assert client_config.TOKEN is None
        assert expired == [True]

    def test_401_on_login_is_plain_error(self, client_config, http):
        client = ApiClient(client_config, on_session_expired=pytest.fail, session=http)
        http.request.return_value = make_response(401, payload={"success": False, "error": "bad password"})

        with pytest.raises(ApiError) as info:
            client.post("/auth/login", {"username": "a"})

        assert not isinstance(info.value, SessionExpiredError)
        assert str(info.value) == "bad password"
        assert client_config.TOKEN == "secret-token"

    def test_error_status(self, api, http):
        http.request.return_value = make_response(500, text="oops")
        with pytest.raises(ApiError) as info:
            api.delete("/recordings/3")
        assert info.value.status == 500

    def test_network_failure(self, api, http):
        http.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ApiError):
            api.get("/recordings")

    def test_text_response(self, api, http):
        http.request.return_value = make_response(text='[0,"o","x"]\n')
        assert api.get("/recordings/1/stream", as_text=True) == '[0,"o","x"]\n'


class TestTicketClient:
    def test_fetch(self, api, http):
        http.request.return_value = make_response(payload={"success": True, "data": {"ticket": "T1"}})
        assert TicketClient(api).fetch() == "T1"
        assert http.request.call_args.args == ("POST", "https://ops.example.com/api/auth/ws-ticket")

    def test_fetch_failure_is_auth_error(self, api, http):
        http.request.return_value = make_response(403, payload={"error": "forbidden"})
        with pytest.raises(AuthError):
            TicketClient(api).fetch()

    def test_expired_session_is_auth_error(self, api, http):
        http.request.return_value = make_response(401, payload={})
        with pytest.raises(AuthError):
            TicketClient(api).fetch()

    def test_missing_ticket(self, api, http):
        http.request.return_value = make_response(payload={"success": True, "data": {}})
        with pytest.raises(AuthError):
            TicketClient(api).fetch()


class TestRecordingClient:
    def test_get_stream(self, api, http):
        http.request.return_value = make_response(text="[0,\"o\",\"hi\"]\n")
        assert RecordingClient(api).get_stream(4) == "[0,\"o\",\"hi\"]\n"
        assert http.request.call_args.args[1] == "https://ops.example.com/api/recordings/4/stream"

    def test_list(self, api, http):
        http.request.return_value = make_response(payload={"success": True, "data": [{"id": 1}]})
        assert RecordingClient(api).list() == [{"id": 1}]
