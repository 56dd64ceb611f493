from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from beestat.core.errors import PatreonTokenExpiredError
from beestat.db.models import User
from beestat.repositories.users import set_patreon_status
from beestat.services.patreon_client import PatreonClient
from beestat.services.provider_api import ProviderApiService
from beestat.services.tokens import PatreonTokenService

MEMBER_FIELDS = (
    "patron_status",
    "is_follower",
    "pledge_relationship_start",
    "lifetime_support_cents",
    "currently_entitled_amount_cents",
    "last_charge_date",
    "last_charge_status",
    "will_pay_amount_cents",
)

CLOSE_WINDOW_HTML = (
    "<html><head><title></title></head><body>"
    '<script type="text/javascript">window.close();</script>'
    "</body></html>"
)


class PatreonService(ProviderApiService):
    provider = "patreon"
    expired_error = PatreonTokenExpiredError

    def __init__(self, *, client: PatreonClient, token_service: PatreonTokenService) -> None:
        super().__init__(client=client, token_service=token_service)
        self._patreon_tokens = token_service

    def authorize_url(self) -> str:
        return self._client.authorize_url()

    def patreon_api(
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

    def initialize(self, db: Session, user_id: int, code: str | None = None) -> str:
        if code is not None:
            self._patreon_tokens.obtain_and_store(db, user_id, code)
            self.sync_patreon_status(db, user_id)
        return CLOSE_WINDOW_HTML

    def sync_patreon_status(self, db: Session, user_id: int) -> User:
        response = self.patreon_api(
            db,
            user_id,
            "GET",
            "identity",
            {
                "include": "memberships",
                "fields[member]": ",".join(MEMBER_FIELDS),
            },
        )
        return set_patreon_status(db, user_id=user_id, patreon_status=first_membership(response))


def first_membership(response: dict[str, Any]) -> dict[str, Any] | None:
    included = response.get("included")
    if not isinstance(included, list):
        return None
    for item in included:
        if isinstance(item, dict) and item.get("type") == "member":
            attributes = item.get("attributes")
            return attributes if isinstance(attributes, dict) else None
    return None
