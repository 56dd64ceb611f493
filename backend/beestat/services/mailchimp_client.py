from __future__ import annotations

import base64
import hashlib

from sqlalchemy.orm import sessionmaker

from beestat.core.errors import MailchimpApiError
from beestat.services.external_api import LOG_ERROR, ExternalApiClient


class MailchimpClient(ExternalApiClient):
    provider = "mailchimp"
    error_class = MailchimpApiError
    log_mode = LOG_ERROR

    def __init__(
        self,
        *,
        api_key: str,
        list_id: str,
        timeout_seconds: float = 10.0,
        session_factory: sessionmaker | None = None,
    ) -> None:
        # API keys end in the data center, e.g. "abc123-us4".
        data_center = api_key.rsplit("-", 1)[-1] if "-" in api_key else "us1"
        super().__init__(
            base_url=f"https://{data_center}.api.mailchimp.com/3.0",
            timeout_seconds=timeout_seconds,
            session_factory=session_factory,
        )
        self._api_key = api_key
        self._list_id = list_id

    @property
    def enabled(self) -> bool:
        return bool(self._api_key and self._list_id)

    def subscribe(self, email_address: str) -> None:
        if not self.enabled:
            raise MailchimpApiError(status_code=503, detail="MailChimp is not configured")
        subscriber_hash = hashlib.md5(email_address.strip().lower().encode("utf-8")).hexdigest()
        credentials = base64.b64encode(f"beestat:{self._api_key}".encode("utf-8")).decode("ascii")
        self._request_json(
            "PUT",
            self._url(f"lists/{self._list_id}/members/{subscriber_hash}"),
            payload={
                "email_address": email_address,
                "status_if_new": "subscribed",
            },
            headers={"Authorization": f"Basic {credentials}"},
        )
