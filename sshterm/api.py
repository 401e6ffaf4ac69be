from typing import Any, Callable, Dict, List, Optional

import requests

from sshterm.config import API_PREFIX, HTTP_TIMEOUT, LOGIN_PATH, TICKET_PATH, ClientConfig
from sshterm.errors import ApiError, AuthError, SessionExpiredError
from sshterm.utils import log_error


class ApiClient:
    """Thin REST wrapper around requests.

    Every request carries the bearer credential from the config. Responses
    shaped like ``{"success": true, "data": ...}`` are unwrapped to their
    ``data``. A 401 on anything but the login endpoint clears the stored
    credential and raises SessionExpiredError after notifying the host
    application through ``on_session_expired``.
    """

    def __init__(
        self,
        client_config: ClientConfig,
        on_session_expired: Optional[Callable[[], None]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT,
    ):
        self.config = client_config
        self.on_session_expired = on_session_expired
        self.session = session or requests.Session()
        self.timeout = timeout

    def base_url(self) -> str:
        return self.config.origin() + API_PREFIX

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self.config.TOKEN:
            headers["Authorization"] = f"Bearer {self.config.TOKEN}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        as_text: bool = False,
    ) -> Any:
        url = self.base_url() + path
        try:
            response = self.session.request(
                method,
                url,
                json=body,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
                verify=self.config.VERIFY_TLS,
            )
        except requests.RequestException as exc:
            raise ApiError(f"request failed: {exc}", path=path) from exc

        if response.status_code == 401 and LOGIN_PATH not in path:
            log_error(f"{method} {path} -> 401, session expired")
            self.config.TOKEN = None
            if self.on_session_expired:
                self.on_session_expired()
            raise SessionExpiredError("Session expired, please login again", status=401, path=path)

        if not (200 <= response.status_code < 300):
            raise ApiError(self._error_message(response), status=response.status_code, path=path)

        if as_text:
            return response.text

        try:
            payload = response.json()
        except ValueError:
            return response.text
        if isinstance(payload, dict) and payload.get("success"):
            return payload.get("data")
        return payload

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("error"):
            return str(payload["error"])
        return f"Request failed with status {response.status_code}"

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, as_text: bool = False) -> Any:
        return self.request("GET", path, params=params, as_text=as_text)

    def post(self, path: str, body: Any = None) -> Any:
        return self.request("POST", path, body=body)

    def put(self, path: str, body: Any = None) -> Any:
        return self.request("PUT", path, body=body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)


class TicketClient:
    def __init__(self, api: ApiClient):
        self.api = api

    def fetch(self) -> str:
        try:
            result = self.api.post(TICKET_PATH)
        except ApiError as exc:
            raise AuthError(f"ticket request failed: {exc}") from exc
        ticket = result.get("ticket") if isinstance(result, dict) else None
        if not ticket or not isinstance(ticket, str):
            raise AuthError("ticket response did not contain a ticket")
        return ticket


class RecordingClient:
    def __init__(self, api: ApiClient):
        self.api = api

    def list(self) -> List[Dict[str, Any]]:
        result = self.api.get("/recordings")
        return result if isinstance(result, list) else []

    def get_stream(self, recording_id: Any) -> str:
        return self.api.get(f"/recordings/{recording_id}/stream", as_text=True)
