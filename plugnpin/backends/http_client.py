import threading
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from plugnpin.logger import logger
from plugnpin.utils.errors import AuthenticationError, BackendError

JSON_HEADERS = {
    "accept": "application/json",
    "content-type": "application/json",
}


class CredentialHolder:
    """
    Owns the session token of one backend client.

    Refreshes are single-flight: the first caller to notice an expired token
    logs in again while concurrent callers wait on the lock and then reuse
    the token it obtained.
    """

    def __init__(self, login: Callable[[], str]) -> None:
        self._login = login
        self._lock = threading.Lock()
        self._token: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    def get(self) -> str:
        token = self._token
        if token is not None:
            return token
        return self.refresh(None)

    def refresh(self, stale_token: Optional[str]) -> str:
        with self._lock:
            if self._token is not None and self._token != stale_token:
                # Someone else refreshed while we were waiting
                return self._token
            self._token = self._login()
            return self._token


def error_message(response: requests.Response) -> str:
    """Best effort extraction of the error message a backend sent back."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason or ""

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if payload.get("message"):
            return str(payload["message"])
    return str(payload)


class BackendClient:
    name = "backend"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.credentials: Optional[CredentialHolder] = None
        self.auth: Optional[Tuple[str, str]] = None

    def _auth_headers(self, token: Optional[str]) -> Dict[str, str]:
        return {}

    def _send(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"[{self.name}] {method} {url}")
        try:
            return self.session.request(
                method,
                url,
                headers={**JSON_HEADERS, **(headers or {})},
                auth=self.auth,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise BackendError(self.name, f"{method} {path} failed: {e}") from e

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send an authenticated request and return the decoded body.

        A 401 triggers exactly one re-login and retry when the client has
        refreshable credentials.
        """
        if self.credentials is None:
            response = self._send(method, path, headers=self._auth_headers(None), **kwargs)
        else:
            token = self.credentials.get()
            response = self._send(method, path, headers=self._auth_headers(token), **kwargs)
            if response.status_code == 401:
                logger.info(f"[{self.name}] Session expired, logging in again")
                token = self.credentials.refresh(token)
                response = self._send(method, path, headers=self._auth_headers(token), **kwargs)

        if response.status_code == 401:
            raise AuthenticationError(
                self.name, f"{method} {path} unauthorized: {error_message(response)}", 401
            )
        if response.status_code >= 400:
            raise BackendError(
                self.name,
                f"{method} {path} returned {response.status_code}: {error_message(response)}",
                response.status_code,
            )
        return self._decode(response)

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
