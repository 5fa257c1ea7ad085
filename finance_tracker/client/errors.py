from typing import List, Optional

import requests


class ClientError(Exception):
    pass


class ApiRequestError(ClientError):
    """A non-2xx API response, with the server's error envelope resolved."""

    def __init__(self, status_code: int, code: str, message: str,
                 details: Optional[List[dict]] = None, response: Optional[requests.Response] = None):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or []
        self.response = response

    @property
    def field_errors(self) -> dict:
        """Field path -> message, for showing errors next to form inputs."""
        return {d.get("field", ""): d.get("message", "") for d in self.details}

    @classmethod
    def from_response(cls, response: requests.Response) -> "ApiRequestError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            status_code=response.status_code,
            code=body.get("code") or f"HTTP_{response.status_code}",
            message=body.get("message") or body.get("error") or response.reason or "Request failed",
            details=body.get("details"),
            response=response,
        )


class SessionExpiredError(ApiRequestError):
    """Token refresh failed or its budget is spent; the session was signed out."""
