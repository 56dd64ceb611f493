from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from beestat.core.errors import (
    COULD_NOT_GET_FIRST_TOKEN,
    NO_TOKEN_RETURNED,
    NO_TOKEN_TO_REFRESH,
    TokenError,
)
from beestat.db.models import EcobeeToken, PatreonToken
from beestat.db.session import session_scope
from beestat.repositories.crud import CrudRepository, apply_changes
from beestat.repositories.entities import ecobee_tokens, patreon_tokens
from beestat.repositories.locks import advisory_lock
from beestat.repositories.users import delete_sessions

TokenT = TypeVar("TokenT", EcobeeToken, PatreonToken)


class OAuthTokenService(Generic[TokenT]):
    """Access/refresh token lifecycle for one OAuth provider.

    Refreshing runs on its own session and holds a per user advisory lock, so
    when two calls hit an expired token at the same time only one of them
    talks to the provider; the other waits and then refreshes again from the
    token row the first one stored.
    """

    provider = "oauth"
    logout_on_delete = False

    def __init__(
        self,
        *,
        repository: CrudRepository[TokenT],
        exchange: Callable[[dict[str, Any]], dict[str, Any]],
        redirect_uri: str,
        session_factory: sessionmaker,
        lock_timeout_seconds: float = 3.0,
    ) -> None:
        self._repository = repository
        self._exchange = exchange
        self._redirect_uri = redirect_uri
        self._session_factory = session_factory
        self._lock_timeout_seconds = lock_timeout_seconds
        self._logger = logging.getLogger(f"beestat.tokens.{self.provider}")

    def lock_name(self, user_id: int) -> str:
        return f"{self.provider}_token->refresh({user_id})"

    def obtain(self, code: str) -> dict[str, Any]:
        """Exchange an authorization code; returns token attributes without storing them."""
        response = self._exchange(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
            }
        )
        if not _has_tokens(response):
            raise TokenError("Could not get first token.", code=COULD_NOT_GET_FIRST_TOKEN)
        return {
            "access_token": response["access_token"],
            "refresh_token": response["refresh_token"],
            "timestamp": datetime.now(timezone.utc),
            "deleted": False,
        }

    def store(self, db: Session, user_id: int, attributes: dict[str, Any]) -> TokenT:
        # One row per user; a revoked then regranted token revives the old row.
        existing = self._repository.get(db, user_id, {"deleted": [False, True]})
        if existing is None:
            return self._repository.create(db, user_id, attributes)
        return self._repository.update(db, user_id, {"id": existing.id, **attributes})

    def current(self, db: Session, user_id: int) -> TokenT | None:
        return self._repository.get(db, user_id, {}, populate_existing=True)

    def refresh(self, user_id: int) -> None:
        refreshed = False
        with session_scope(self._session_factory) as lock_db:
            with advisory_lock(
                lock_db,
                self.lock_name(user_id),
                timeout_seconds=self._lock_timeout_seconds,
            ):
                token = self._repository.get(lock_db, user_id, {}, populate_existing=True)
                if token is None:
                    raise TokenError(
                        f"Could not refresh {self.provider} token; no token found.",
                        code=NO_TOKEN_TO_REFRESH,
                    )

                response = self._exchange(
                    {
                        "grant_type": "refresh_token",
                        "refresh_token": token.refresh_token,
                    }
                )
                if _has_tokens(response):
                    apply_changes(
                        token,
                        {
                            "access_token": response["access_token"],
                            "refresh_token": response["refresh_token"],
                            "timestamp": datetime.now(timezone.utc),
                        },
                    )
                    refreshed = True
                else:
                    self._logger.warning("refresh returned no token user_id=%s", user_id)
                    self._delete(lock_db, user_id, token)
                # Committed before the lock is released so the next waiter sees it.
                # The lock lives on its own connection, so the commit leaves it held.
                lock_db.commit()

        if not refreshed:
            raise TokenError(
                f"Could not refresh {self.provider} token; {self.provider} returned no token.",
                code=NO_TOKEN_RETURNED,
            )
        self._logger.info("refreshed token user_id=%s", user_id)

    def delete(self, db: Session, user_id: int, token_id: int) -> TokenT:
        token = self._repository.get_by_id(db, user_id, token_id)
        return self._delete(db, user_id, token)

    def _delete(self, db: Session, user_id: int, token: TokenT) -> TokenT:
        token.deleted = True
        db.flush()
        if self.logout_on_delete:
            delete_sessions(db, user_id=user_id)
        return token


class EcobeeTokenService(OAuthTokenService[EcobeeToken]):
    provider = "ecobee"
    logout_on_delete = True

    def __init__(self, *, exchange, redirect_uri, session_factory, lock_timeout_seconds=3.0) -> None:
        super().__init__(
            repository=ecobee_tokens,
            exchange=exchange,
            redirect_uri=redirect_uri,
            session_factory=session_factory,
            lock_timeout_seconds=lock_timeout_seconds,
        )


class PatreonTokenService(OAuthTokenService[PatreonToken]):
    provider = "patreon"

    def __init__(self, *, exchange, redirect_uri, session_factory, lock_timeout_seconds=3.0) -> None:
        super().__init__(
            repository=patreon_tokens,
            exchange=exchange,
            redirect_uri=redirect_uri,
            session_factory=session_factory,
            lock_timeout_seconds=lock_timeout_seconds,
        )

    def obtain_and_store(self, db: Session, user_id: int, code: str) -> PatreonToken:
        return self.store(db, user_id, self.obtain(code))


def _has_tokens(response: Any) -> bool:
    return (
        isinstance(response, dict)
        and bool(response.get("access_token"))
        and bool(response.get("refresh_token"))
    )
