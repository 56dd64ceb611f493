from __future__ import annotations

import hashlib
import json
from typing import Any

from sqlalchemy.orm import sessionmaker

from beestat.core.errors import SmartyStreetsApiError
from beestat.db.session import session_scope
from beestat.repositories.external_api import get_cached_response, put_cached_response
from beestat.services.external_api import LOG_ERROR, ExternalApiClient


class SmartyStreetsClient(ExternalApiClient):
    """Address verification. Lookups cost money, so responses are cached forever."""

    provider = "smarty_streets"
    error_class = SmartyStreetsApiError
    log_mode = LOG_ERROR

    def __init__(
        self,
        *,
        us_base_url: str,
        international_base_url: str,
        auth_id: str,
        auth_token: str,
        timeout_seconds: float = 10.0,
        session_factory: sessionmaker | None = None,
    ) -> None:
        super().__init__(
            base_url=us_base_url,
            timeout_seconds=timeout_seconds,
            session_factory=session_factory,
        )
        self._international_base_url = international_base_url.rstrip("/")
        self._auth_id = auth_id
        self._auth_token = auth_token

    def normalize(self, street: str, country: str) -> dict[str, Any] | None:
        """Return the first candidate for the address, or None when nothing matched."""
        cache_key = hashlib.sha1(f"{country}|{street}".encode("utf-8")).hexdigest()
        cached = self._cached(cache_key)
        if cached is not None:
            candidates = json.loads(cached)
        else:
            candidates = self._lookup(street, country)
            self._cache(cache_key, json.dumps(candidates))

        if not candidates:
            return None
        candidate = candidates[0]
        if country == "USA":
            return normalize_us_candidate(candidate)
        return normalize_international_candidate(candidate)

    def _lookup(self, street: str, country: str) -> list[dict[str, Any]]:
        credentials = {"auth-id": self._auth_id, "auth-token": self._auth_token}
        if country == "USA":
            url = self._url("street-address")
            query = {**credentials, "street": street, "candidates": 1}
        else:
            url = f"{self._international_base_url}/verify"
            query = {**credentials, "freeform": street, "country": country}

        response = self._request_json("GET", url, query=query)
        if not isinstance(response, list):
            raise SmartyStreetsApiError(status_code=502, detail="Expected a list of candidates")
        return [candidate for candidate in response if isinstance(candidate, dict)]

    def _cached(self, key: str) -> str | None:
        if self._session_factory is None:
            return None
        with session_scope(self._session_factory) as db:
            return get_cached_response(db, provider=self.provider, key=key)

    def _cache(self, key: str, response_body: str) -> None:
        if self._session_factory is None:
            return
        with session_scope(self._session_factory) as db:
            put_cached_response(db, provider=self.provider, key=key, response_body=response_body)


def normalize_us_candidate(candidate: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    lines = [
        candidate.get("delivery_line_1"),
        candidate.get("delivery_line_2"),
        candidate.get("last_line"),
    ]
    for index, line in enumerate([line for line in lines if line], start=1):
        normalized[f"address{index}"] = line
    if candidate.get("delivery_point_barcode"):
        normalized["delivery_point_barcode"] = candidate["delivery_point_barcode"]
    normalized["components"] = candidate.get("components") or {}
    normalized["metadata"] = candidate.get("metadata") or {}
    normalized["analysis"] = candidate.get("analysis") or {}
    return normalized


def normalize_international_candidate(candidate: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for index in range(1, 13):
        line = candidate.get(f"address{index}")
        if line:
            normalized[f"address{index}"] = line
    normalized["components"] = candidate.get("components") or {}
    normalized["metadata"] = candidate.get("metadata") or {}
    normalized["analysis"] = candidate.get("analysis") or {}
    return normalized
