from __future__ import annotations

from typing import Any

from jsonschema import Draft202012Validator
from sqlalchemy.orm import Session

from beestat.core.errors import BeestatError, EcobeeApiError, EcobeeTokenExpiredError
from beestat.db.models import UserSession
from beestat.repositories.entities import list_ecobee_thermostats_by_guid
from beestat.repositories.users import create_anonymous_user, create_session
from beestat.services.ecobee_client import (
    LOGIN_SELECTION,
    SYNC_SELECTION,
    EcobeeClient,
    thermostat_arguments,
    thermostat_guid,
)
from beestat.services.mailchimp_client import MailchimpClient
from beestat.services.provider_api import ProviderApiService
from beestat.services.tokens import EcobeeTokenService

THERMOSTAT_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["thermostatList"],
    "properties": {
        "thermostatList": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["identifier"],
                "properties": {
                    "identifier": {"type": "string"},
                    "runtime": {"type": "object"},
                    "remoteSensors": {"type": "array"},
                },
            },
        },
    },
}
_thermostat_response_validator = Draft202012Validator(THERMOSTAT_RESPONSE_SCHEMA)


class EcobeeService(ProviderApiService):
    provider = "ecobee"
    expired_error = EcobeeTokenExpiredError

    def __init__(
        self,
        *,
        client: EcobeeClient,
        token_service: EcobeeTokenService,
        mailchimp: MailchimpClient | None = None,
    ) -> None:
        super().__init__(client=client, token_service=token_service)
        self._mailchimp = mailchimp

    def authorize_url(self) -> str:
        return self._client.authorize_url()

    def ecobee_api(
        self,
        db: Session,
        user_id: int | None,
        method: str,
        endpoint: str,
        arguments: dict[str, Any] | None = None,
        *,
        auto_refresh_token: bool = True,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        return self.call(
            db,
            user_id,
            method,
            endpoint,
            arguments,
            auto_refresh_token=auto_refresh_token,
            access_token=access_token,
        )

    def get_thermostats(
        self,
        db: Session,
        user_id: int | None,
        *,
        selection: dict[str, Any] = SYNC_SELECTION,
        auto_refresh_token: bool = True,
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        response = self.ecobee_api(
            db,
            user_id,
            "GET",
            "thermostat",
            thermostat_arguments(selection),
            auto_refresh_token=auto_refresh_token,
            access_token=access_token,
        )
        error = next(_thermostat_response_validator.iter_errors(response), None)
        if error is not None:
            path = "/".join(str(part) for part in error.path) or "$"
            raise EcobeeApiError(
                status_code=502,
                detail=f"Unexpected thermostat response at {path}: {error.message}",
            )
        return response["thermostatList"]

    def initialize(
        self,
        db: Session,
        *,
        code: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> UserSession:
        """Finish the ecobee OAuth flow and log in.

        The token is obtained before any user exists. If every thermostat on
        the account that we already know belongs to the same user, that user
        is logged back in; otherwise a new anonymous user is created.
        """
        if code is None:
            if error is not None:
                raise BeestatError(error_description or error)
            raise BeestatError("Unhandled error")

        token_attributes = self._token_service.obtain(code)
        api_thermostats = self.get_thermostats(
            db,
            None,
            selection=LOGIN_SELECTION,
            auto_refresh_token=False,
            access_token=token_attributes["access_token"],
        )

        guids = [thermostat_guid(api_thermostat) for api_thermostat in api_thermostats]
        email_addresses: list[str] = []
        for api_thermostat in api_thermostats:
            notification_settings = api_thermostat.get("notificationSettings") or {}
            email_addresses.extend(notification_settings.get("emailAddresses") or [])

        existing = list_ecobee_thermostats_by_guid(db, guids)
        owner_ids = {row.user_id for row in existing}
        if len(owner_ids) == 1:
            user_id = owner_ids.pop()
            session = create_session(db, user_id=user_id)
            self._token_service.store(db, user_id, token_attributes)
            self._logger.info("returning user logged in user_id=%s", user_id)
            return session

        user = create_anonymous_user(db)
        session = create_session(db, user_id=user.id)
        self._token_service.store(db, user.id, token_attributes)
        self._logger.info("created anonymous user user_id=%s thermostats=%s", user.id, len(guids))
        if email_addresses:
            self._subscribe(email_addresses[0])
        return session

    def _subscribe(self, email_address: str) -> None:
        if self._mailchimp is None or not self._mailchimp.enabled:
            return
        try:
            self._mailchimp.subscribe(email_address)
        except Exception:
            # Mailing list signup never blocks a login.
            self._logger.exception("mailing list subscribe failed")
