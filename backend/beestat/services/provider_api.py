from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy.orm import Session

from beestat.core.errors import NO_TOKEN_FOR_USER, ExternalApiError, TokenError
from beestat.services.tokens import OAuthTokenService


class ProviderClient(Protocol):
    def request(
        self,
        method: str,
        endpoint: str,
        arguments: dict[str, Any] | None = None,
        *,
        access_token: str | None = None,
        user_id: int | None = None,
    ) -> dict[str, Any]: ...


class ProviderApiService:
    """Authenticated calls for the logged in user with one automatic token refresh."""

    provider = "provider"
    expired_error: type[ExternalApiError] = ExternalApiError
    auth_endpoints: tuple[str, ...] = ("authorize", "token")

    def __init__(self, *, client: ProviderClient, token_service: OAuthTokenService) -> None:
        self._client = client
        self._token_service = token_service
        self._logger = logging.getLogger(f"beestat.{self.provider}")

    def call(
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
        if endpoint not in self.auth_endpoints and access_token is None:
            access_token = self._user_access_token(db, user_id)

        try:
            return self._client.request(
                method,
                endpoint,
                arguments,
                access_token=access_token,
                user_id=user_id,
            )
        except self.expired_error:
            if not auto_refresh_token or user_id is None:
                raise
            self._logger.info("token expired, refreshing user_id=%s endpoint=%s", user_id, endpoint)
            self._token_service.refresh(user_id)
            # Second attempt never refreshes again.
            return self.call(db, user_id, method, endpoint, arguments, auto_refresh_token=False)

    def _user_access_token(self, db: Session, user_id: int | None) -> str:
        token = self._token_service.current(db, user_id) if user_id is not None else None
        if token is None:
            raise TokenError("No token for this user", code=NO_TOKEN_FOR_USER)
        return token.access_token
