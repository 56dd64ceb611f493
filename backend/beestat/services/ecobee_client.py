from __future__ import annotations

import hashlib
import json
from typing import Any
from urllib.parse import urlencode

from sqlalchemy.orm import sessionmaker

from beestat.core.errors import EcobeeApiError, EcobeeTokenExpiredError
from beestat.services.external_api import LOG_ERROR, ExternalApiClient

TOKEN_EXPIRED_CODE = 14
AUTH_ENDPOINTS = ("authorize", "token")

# includeReminders and includeSecuritySettings are documented but rejected for
# regular (non technician, non utility) accounts.
SYNC_SELECTION: dict[str, Any] = {
    "selectionType": "registered",
    "selectionMatch": "",
    "includeRuntime": True,
    "includeExtendedRuntime": True,
    "includeElectricity": True,
    "includeSettings": True,
    "includeLocation": True,
    "includeProgram": True,
    "includeEvents": True,
    "includeDevice": True,
    "includeTechnician": True,
    "includeUtility": True,
    "includeManagement": True,
    "includeAlerts": True,
    "includeWeather": True,
    "includeHouseDetails": True,
    "includeOemCfg": True,
    "includeEquipmentStatus": True,
    "includeNotificationSettings": True,
    "includeVersion": True,
    "includePrivacy": True,
    "includeAudio": True,
    "includeSensors": True,
}

LOGIN_SELECTION: dict[str, Any] = {
    "selectionType": "registered",
    "selectionMatch": "",
    "includeRuntime": True,
    "includeNotificationSettings": True,
}


class EcobeeClient(ExternalApiClient):
    provider = "ecobee"
    error_class = EcobeeApiError
    log_mode = LOG_ERROR

    def __init__(
        self,
        *,
        base_url: str,
        client_id: str,
        redirect_uri: str,
        timeout_seconds: float = 30.0,
        session_factory: sessionmaker | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            session_factory=session_factory,
        )
        self._client_id = client_id
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
                "scope": "smartRead",
            }
        )
        return f"{self._url('authorize')}?{query}"

    def request(
        self,
        method: str,
        endpoint: str,
        arguments: dict[str, Any] | None = None,
        *,
        access_token: str | None = None,
        user_id: int | None = None,
    ) -> dict[str, Any]:
        """Send one call to ecobee.

        ``authorize`` and ``token`` live at the API root and take no bearer
        token; every other endpoint is versioned under ``/1/``.
        """
        method = method.upper()
        if method not in ("GET", "POST"):
            raise ValueError(f"Unsupported ecobee method {method}")

        call_arguments = dict(arguments or {})
        call_arguments["client_id"] = self._client_id

        headers: dict[str, str] = {}
        if endpoint in AUTH_ENDPOINTS:
            url = self._url(endpoint)
        else:
            if not access_token:
                raise EcobeeApiError(status_code=401, detail="No access token supplied")
            url = self._url(f"1/{endpoint}")
            headers["Authorization"] = f"Bearer {access_token}"

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
            raise EcobeeApiError(status_code=502, detail="ecobee response is not a JSON object")

        status = response.get("status")
        if endpoint not in AUTH_ENDPOINTS and not isinstance(status, dict):
            raise EcobeeApiError(status_code=502, detail="ecobee response has no status object")
        if isinstance(status, dict) and status.get("code") not in (None, 0):
            code = status.get("code")
            message = str(status.get("message") or "Unknown ecobee error")
            self._logger.warning("ecobee status code=%s message=%s endpoint=%s", code, message, endpoint)
            if code == TOKEN_EXPIRED_CODE:
                raise EcobeeTokenExpiredError(status_code=500, detail=message, code=code)
            raise EcobeeApiError(status_code=500, detail=message, code=code)
        return response

    def exchange_token(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", "token", arguments)


def thermostat_arguments(selection: dict[str, Any]) -> dict[str, Any]:
    return {"body": json.dumps({"selection": selection})}


def thermostat_guid(api_thermostat: dict[str, Any]) -> str:
    """Stable id for a thermostat: the identifier alone is reused when a unit is replaced."""
    runtime = api_thermostat.get("runtime") or {}
    raw = f"{api_thermostat.get('identifier', '')}{runtime.get('firstConnected', '')}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()
