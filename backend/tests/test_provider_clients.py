from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any
from unittest import TestCase
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit

from _support import memory_session_factory

from beestat.core.errors import MailchimpApiError, PatreonTokenExpiredError
from beestat.db.models import ExternalApiCache, ExternalApiLog
from beestat.repositories.users import create_anonymous_user, get_user
from beestat.services.mailchimp_client import MailchimpClient
from beestat.services.patreon import CLOSE_WINDOW_HTML, PatreonService, first_membership
from beestat.services.patreon_client import PatreonClient
from beestat.services.smarty_streets_client import SmartyStreetsClient


def _response(body: Any, status: int = 200) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.headers = {"content-type": "application/json"}
    response.read.return_value = json.dumps(body).encode("utf-8")
    response.__enter__.return_value = response
    return response


IDENTITY = {
    "data": {"id": "123", "type": "user"},
    "included": [
        {"id": "m1", "type": "member", "attributes": {"patron_status": "active_patron", "will_pay_amount_cents": 200}}
    ],
}


class PatreonClientTests(TestCase):
    def setUp(self) -> None:
        self.client = PatreonClient(
            base_url="https://www.patreon.com/api/oauth2",
            authorize_url="https://www.patreon.com/oauth2/authorize",
            client_id="patreon-client",
            client_secret="patreon-secret",
            redirect_uri="http://localhost:8000/api/patreon/initialize",
        )

    def test_token_post_carries_client_credentials(self) -> None:
        tokens = {"access_token": "a", "refresh_token": "r"}
        with patch("beestat.services.external_api.urlopen", return_value=_response(tokens)) as urlopen:
            self.client.exchange_token({"grant_type": "authorization_code", "code": "abc"})

        form = parse_qs(urlopen.call_args[0][0].data.decode("utf-8"))
        self.assertEqual(form["client_id"], ["patreon-client"])
        self.assertEqual(form["client_secret"], ["patreon-secret"])

    def test_identity_get_uses_bearer_without_secret(self) -> None:
        with patch("beestat.services.external_api.urlopen", return_value=_response(IDENTITY)) as urlopen:
            response = self.client.request("GET", "identity", {"include": "memberships"}, access_token="tok")

        request = urlopen.call_args[0][0]
        url = urlsplit(request.full_url)
        self.assertEqual(url.path, "/api/oauth2/v2/identity")
        self.assertNotIn("client_secret", parse_qs(url.query))
        self.assertEqual(request.get_header("Authorization"), "Bearer tok")
        self.assertEqual(first_membership(response)["patron_status"], "active_patron")

    def test_unauthorized_error_is_token_expiry(self) -> None:
        body = {"errors": [{"status": "401", "detail": "The server could not verify that you are authorized"}]}
        with patch("beestat.services.external_api.urlopen", return_value=_response(body)):
            with self.assertRaises(PatreonTokenExpiredError):
                self.client.request("GET", "identity", access_token="tok")

    def test_calls_are_logged(self) -> None:
        session_factory = memory_session_factory()
        client = PatreonClient(
            base_url="https://www.patreon.com/api/oauth2",
            authorize_url="https://www.patreon.com/oauth2/authorize",
            client_id="patreon-client",
            client_secret="patreon-secret",
            redirect_uri="http://localhost:8000/api/patreon/initialize",
            session_factory=session_factory,
        )
        with patch("beestat.services.external_api.urlopen", return_value=_response(IDENTITY)):
            client.request("GET", "identity", access_token="tok", user_id=5)

        with session_factory() as db:
            logs = db.query(ExternalApiLog).all()
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].provider, "patreon")
        self.assertEqual(logs[0].user_id, 5)
        self.assertFalse(logs[0].error)


class PatreonServiceTests(TestCase):
    def test_initialize_stores_token_and_status(self) -> None:
        db = memory_session_factory()()
        user_id = create_anonymous_user(db).id
        stored: list[str] = []
        token_service = SimpleNamespace(
            obtain_and_store=lambda db, user_id, code: stored.append(code),
            current=lambda db, user_id: SimpleNamespace(access_token="tok"),
        )
        client = SimpleNamespace(request=lambda *args, **kwargs: IDENTITY)
        service = PatreonService(client=client, token_service=token_service)

        page = service.initialize(db, user_id, "abc")

        self.assertEqual(page, CLOSE_WINDOW_HTML)
        self.assertEqual(stored, ["abc"])
        self.assertEqual(get_user(db, user_id).patreon_status["will_pay_amount_cents"], 200)
        db.close()

    def test_first_membership_without_members(self) -> None:
        self.assertIsNone(first_membership({"data": {}}))
        self.assertIsNone(first_membership({"included": [{"type": "campaign", "attributes": {}}]}))


class SmartyStreetsClientTests(TestCase):
    def setUp(self) -> None:
        self.session_factory = memory_session_factory()
        self.client = SmartyStreetsClient(
            us_base_url="https://us-street.api.smartystreets.com",
            international_base_url="https://international-street.api.smartystreets.com",
            auth_id="id",
            auth_token="secret",
            session_factory=self.session_factory,
        )

    def test_us_lookup_is_cached(self) -> None:
        candidate = {
            "delivery_line_1": "1 Main St",
            "last_line": "Springfield IL 62701-0001",
            "delivery_point_barcode": "627010001019",
            "metadata": {"latitude": 39.8, "longitude": -89.6},
        }
        with patch("beestat.services.external_api.urlopen", return_value=_response([candidate])) as urlopen:
            first = self.client.normalize("1 Main St, Springfield, IL", "USA")
            second = self.client.normalize("1 Main St, Springfield, IL", "USA")

        self.assertEqual(urlopen.call_count, 1)
        self.assertEqual(first, second)
        self.assertEqual(first["delivery_point_barcode"], "627010001019")
        url = urlsplit(urlopen.call_args[0][0].full_url)
        self.assertEqual(url.path, "/street-address")
        self.assertEqual(parse_qs(url.query)["candidates"], ["1"])
        with self.session_factory() as db:
            self.assertEqual(db.query(ExternalApiCache).count(), 1)

    def test_international_lookup_without_candidates(self) -> None:
        with patch("beestat.services.external_api.urlopen", return_value=_response([])) as urlopen:
            normalized = self.client.normalize("10 Rue de Rivoli, Paris", "FRA")

        self.assertIsNone(normalized)
        url = urlsplit(urlopen.call_args[0][0].full_url)
        self.assertEqual(url.path, "/verify")
        self.assertEqual(parse_qs(url.query)["country"], ["FRA"])


class MailchimpClientTests(TestCase):
    def test_subscribe_puts_member(self) -> None:
        client = MailchimpClient(api_key="abc123-us4", list_id="list-1")
        with patch("beestat.services.external_api.urlopen", return_value=_response({"status": "subscribed"})) as urlopen:
            client.subscribe("Owner@Example.com")

        request = urlopen.call_args[0][0]
        self.assertEqual(request.get_method(), "PUT")
        self.assertTrue(request.full_url.startswith("https://us4.api.mailchimp.com/3.0/lists/list-1/members/"))
        self.assertEqual(json.loads(request.data)["status_if_new"], "subscribed")

    def test_unconfigured(self) -> None:
        client = MailchimpClient(api_key="", list_id="")

        self.assertFalse(client.enabled)
        with self.assertRaises(MailchimpApiError):
            client.subscribe("owner@example.com")
