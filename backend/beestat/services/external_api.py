from __future__ import annotations

import json
import logging
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from sqlalchemy.orm import sessionmaker

from beestat.core.errors import ExternalApiError
from beestat.db.session import session_scope
from beestat.repositories.external_api import add_api_log

LOG_ALL = "all"
LOG_ERROR = "error"


class ExternalApiClient:
    """Shared HTTP plumbing for the third party APIs.

    ``log_mode`` controls which calls are written to the external API log:
    ``"all"``, ``"error"`` or ``None``.
    """

    provider = "external"
    error_class: type[ExternalApiError] = ExternalApiError
    log_mode: str | None = LOG_ERROR

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        session_factory: sessionmaker | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._session_factory = session_factory
        self._logger = logging.getLogger(f"beestat.external_api.{self.provider}")

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        query: dict[str, Any] | None = None,
        form: dict[str, Any] | None = None,
        payload: Any | None = None,
        headers: dict[str, str] | None = None,
        user_id: int | None = None,
        allow_error_status: bool = False,
    ) -> Any:
        status_code, _, body, request_url = self._request_raw(
            method,
            url,
            query=query,
            form=form,
            payload=payload,
            headers=headers,
        )
        try:
            decoded = json.loads(body) if body else None
        except json.JSONDecodeError:
            decoded = None
        if decoded is None:
            self._log_call(method, request_url, status_code, body, error=True, user_id=user_id)
            self._logger.error(
                "invalid json from %s status=%s body=%s",
                self.provider,
                status_code,
                body[:500],
            )
            raise self.error_class(status_code=502, detail="Invalid JSON")

        failed = status_code >= 400
        self._log_call(method, request_url, status_code, body, error=failed, user_id=user_id)
        if failed and not allow_error_status:
            raise self.error_class(status_code=status_code, detail=body or "Unexpected response")
        return decoded

    def _request_raw(
        self,
        method: str,
        url: str,
        *,
        query: dict[str, Any] | None = None,
        form: dict[str, Any] | None = None,
        payload: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, str, str, str]:
        if query:
            filtered = {k: v for k, v in query.items() if v is not None}
            if filtered:
                url = f"{url}?{urlencode(filtered, doseq=True)}"

        data_bytes: bytes | None = None
        request_headers: dict[str, str] = {"Accept": "application/json"}
        if form is not None:
            data_bytes = urlencode(form).encode("utf-8")
            request_headers["Content-Type"] = "application/x-www-form-urlencoded"
        elif payload is not None:
            data_bytes = json.dumps(payload).encode("utf-8")
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})

        request = Request(url=url, method=method.upper(), data=data_bytes, headers=request_headers)
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                body = response.read().decode("utf-8", errors="replace")
                return response.status, response.headers.get("content-type", ""), body, url
        except HTTPError as exc:
            # Error responses still carry a JSON status object worth decoding.
            body = exc.read().decode("utf-8", errors="replace")
            content_type = exc.headers.get("content-type", "") if exc.headers else ""
            return exc.code, content_type, body, url
        except URLError as exc:
            self._log_call(method, url, None, str(exc), error=True)
            # Connect timeouts arrive wrapped in a URLError.
            status_code = 504 if isinstance(exc.reason, TimeoutError) else 503
            raise self.error_class(status_code=status_code, detail=str(exc))
        except TimeoutError as exc:
            self._log_call(method, url, None, str(exc), error=True)
            raise self.error_class(status_code=504, detail=str(exc))

    def _log_call(
        self,
        method: str,
        url: str,
        status_code: int | None,
        body: str | None,
        *,
        error: bool,
        user_id: int | None = None,
    ) -> None:
        if self.log_mode is None or (self.log_mode == LOG_ERROR and not error):
            return
        if self._session_factory is None:
            return
        try:
            with session_scope(self._session_factory) as db:
                add_api_log(
                    db,
                    provider=self.provider,
                    request_method=method.upper(),
                    request_url=_redact(url),
                    response_status=status_code,
                    response_body=body,
                    error=error,
                    user_id=user_id,
                )
        except Exception:
            self._logger.exception("failed to write api log provider=%s", self.provider)


def _redact(url: str) -> str:
    base, _, query = url.partition("?")
    if not query:
        return url
    parts = []
    for pair in query.split("&"):
        name, _, value = pair.partition("=")
        if name in ("auth-token", "refresh_token", "code", "client_secret"):
            value = "***"
        parts.append(f"{name}={value}")
    return f"{base}?{'&'.join(parts)}"
