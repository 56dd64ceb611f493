from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from sqlalchemy.orm import sessionmaker

from beestat.core.errors import PatreonApiError, PatreonTokenExpiredError
from beestat.services.external_api import LOG_ALL, ExternalApiClient

TOKEN_EXPIRED_CODE = 14
AUTH_ENDPOINTS = ("authorize", "token")


class PatreonClient(ExternalApiClient):
    provider = "patreon"
    error_class = PatreonApiError
    log_mode = LOG_ALL

    def __init__(
        self,
        *,
        base_url: str,
        authorize_url: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout_seconds: float = 20.0,
        session_factory: sessionmaker | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            session_factory=session_factory,
        )
        self._authorize_url = authorize_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    def authorize_url(self) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self._client_id,
                "redirect_uri": self._redirect_uri,
                "scope": "identity",
            }
        )
        return f"{self._authorize_url}?{query}"

    def request(
        self,
        method: str,
        endpoint: str,
        arguments: dict[str, Any] | None = None,
        *,
        access_token: str | None = None,
        user_id: int | None = None,
    ) -> dict[str, Any]:
        method = method.upper()
        if method not in ("GET", "POST"):
            raise ValueError(f"Unsupported patreon method {method}")

        call_arguments = dict(arguments or {})
        headers: dict[str, str] = {}
        if endpoint in AUTH_ENDPOINTS:
            url = self._url(endpoint)
        else:
            if not access_token:
                raise PatreonApiError(status_code=401, detail="No access token supplied")
            url = self._url(f"v2/{endpoint}")
            headers["Authorization"] = f"Bearer {access_token}"

        if method == "POST":
            # Patreon rejects GET requests that carry the client credentials.
            call_arguments["client_id"] = self._client_id
            call_arguments["client_secret"] = self._client_secret

        response = self._request_json(
            method,
            url,
            query=call_arguments if method == "GET" else None,
            form=call_arguments if method == "POST" else None,
            headers=headers,
            user_id=user_id,
            allow_error_status=True,
        )
        if not isinstance(response, dict):
            raise PatreonApiError(status_code=502, detail="patreon response is not a JSON object")

        status = response.get("status")
        if isinstance(status, dict) and status.get("code") not in (None, 0):
            message = str(status.get("message") or "Unknown patreon error")
            if status.get("code") == TOKEN_EXPIRED_CODE:
                raise PatreonTokenExpiredError(status_code=401, detail=message, code=TOKEN_EXPIRED_CODE)
            raise PatreonApiError(status_code=500, detail=message, code=status.get("code"))

        errors = response.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0] if isinstance(errors[0], dict) else {}
            detail = str(first.get("detail") or first.get("title") or "Unknown patreon error")
            if str(first.get("status")) == "401":
                raise PatreonTokenExpiredError(status_code=401, detail=detail, code=TOKEN_EXPIRED_CODE)
            raise PatreonApiError(status_code=int(first.get("status") or 500), detail=detail)
        return response

    def exchange_token(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", "token", arguments)
