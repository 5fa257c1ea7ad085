"""
client/http.py
--------------
Authenticated HTTP client with transparent, single-flight token refresh.

When a request comes back 401, exactly one caller refreshes the token
while every other caller that hits a 401 meanwhile waits in a pending
queue. Once the refresh settles the waiters are replayed with the new
token, or rejected if it failed.
"""

import threading
from typing import List, Optional

import requests

from finance_tracker.client.errors import ApiRequestError, ClientError, SessionExpiredError
from finance_tracker.client.session import SessionContext
from finance_tracker.logger import get_logger

logger = get_logger(__name__)


class _Waiter:
    def __init__(self):
        self.event = threading.Event()
        self.token: Optional[str] = None
        self.error: Optional[Exception] = None


class HttpClient:
    MAX_REFRESH_ATTEMPTS = 1

    def __init__(
        self,
        base_url: str,
        session: SessionContext,
        http: Optional[requests.Session] = None,
        timeout: float = 10.0,
        refresh_path: str = "/auth/refresh",
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.http = http or requests.Session()
        self.timeout = timeout
        self.refresh_path = refresh_path

        self._lock = threading.Lock()
        self._refreshing = False
        self._pending: List[_Waiter] = []
        self._refresh_attempts = 0

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def is_refreshing(self) -> bool:
        with self._lock:
            return self._refreshing

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # ----------------------
    # Requests
    # ----------------------

    def request(self, method: str, path: str, refresh: bool = True, **kwargs) -> requests.Response:
        """
        Send a request with the session's bearer token.

        Args:
            method: HTTP verb.
            path: Path relative to ``base_url``.
            refresh: Set to False for calls such as login where a 401 means
                bad credentials rather than an expired token.
            **kwargs: Passed through to ``requests.Session.request``.

        Returns:
            The 2xx response.

        Raises:
            ApiRequestError: for any non-2xx response that survives the
                refresh-and-retry cycle.
            SessionExpiredError: when the token could not be refreshed.
            requests.RequestException: network failures, unchanged.
        """
        sent_token = self.session.get_token()
        response = self._send(method, path, sent_token, **kwargs)
        if response.status_code != 401:
            return self._finish(response)
        if not refresh or sent_token is None:
            raise ApiRequestError.from_response(response)

        token = self._token_for_retry(sent_token)
        retry = self._send(method, path, token, **kwargs)
        if retry.status_code == 401:
            raise ApiRequestError.from_response(retry)
        return self._finish(retry)

    def get(self, path: str, **kwargs) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> requests.Response:
        return self.request("POST", path, **kwargs)

    def patch(self, path: str, **kwargs) -> requests.Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        return self.request("DELETE", path, **kwargs)

    def _send(self, method: str, path: str, token: Optional[str], headers: Optional[dict] = None,
              **kwargs) -> requests.Response:
        headers = dict(headers or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        kwargs.setdefault("timeout", self.timeout)
        return self.http.request(method, self.url(path), headers=headers, **kwargs)

    def _finish(self, response: requests.Response) -> requests.Response:
        with self._lock:
            self._refresh_attempts = 0
        if not response.ok:
            raise ApiRequestError.from_response(response)
        return response

    # ----------------------
    # Refresh
    # ----------------------

    def _token_for_retry(self, sent_token: Optional[str]) -> str:
        waiter = None
        exhausted = False
        with self._lock:
            current = self.session.get_token()
            if current is not None and current != sent_token:
                # someone refreshed after this request went out
                return current
            if self._refreshing:
                waiter = _Waiter()
                self._pending.append(waiter)
            elif self._refresh_attempts >= self.MAX_REFRESH_ATTEMPTS:
                exhausted = True
            else:
                self._refreshing = True
                self._refresh_attempts += 1

        if exhausted:
            logger.warning("Token refresh budget exhausted, signing out")
            self.session.sign_out()
            raise SessionExpiredError(401, "SESSION_EXPIRED", "Session expired, please sign in again")
        if waiter is not None:
            return self._wait(waiter)
        return self._lead_refresh(sent_token)

    def _wait(self, waiter: _Waiter) -> str:
        if not waiter.event.wait(self.timeout * 2):
            with self._lock:
                if waiter in self._pending:
                    self._pending.remove(waiter)
            raise ClientError("Timed out waiting for token refresh")
        if waiter.error is not None:
            raise waiter.error
        return waiter.token

    def _lead_refresh(self, sent_token: Optional[str]) -> str:
        new_token = None
        error: Optional[Exception] = ClientError("Token refresh aborted")
        try:
            new_token = self._refresh(sent_token)
            self.session.set_token(new_token)
            error = None
        except (requests.RequestException, ApiRequestError, ValueError) as e:
            logger.warning(f"Token refresh failed: {e}")
            error = SessionExpiredError(401, "SESSION_EXPIRED", "Session expired, please sign in again")
            self.session.sign_out()
            raise error from e
        finally:
            # waiters are released whatever happened above
            self._settle(new_token, error)
        logger.info("Access token refreshed")
        return new_token

    def _refresh(self, sent_token: Optional[str]) -> str:
        headers = {"Authorization": f"Bearer {sent_token}"} if sent_token else {}
        response = self.http.post(self.url(self.refresh_path), headers=headers, timeout=self.timeout)
        if not response.ok:
            raise ApiRequestError.from_response(response)
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError("Refresh response is not a JSON object")
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        token = data.get("token") or body.get("token")
        if not token:
            raise ValueError("Refresh response did not include a token")
        return token

    def _settle(self, token: Optional[str], error: Optional[Exception]) -> None:
        with self._lock:
            waiters, self._pending = self._pending, []
            self._refreshing = False
        for waiter in waiters:
            waiter.token = token
            waiter.error = error
            waiter.event.set()
