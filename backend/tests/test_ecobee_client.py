from __future__ import annotations

import io
import json
from typing import Any
from unittest import TestCase
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qs, urlsplit

from beestat.core.errors import EcobeeApiError, EcobeeTokenExpiredError
from beestat.services.ecobee_client import SYNC_SELECTION, EcobeeClient, thermostat_arguments, thermostat_guid


def _response(body: Any, status: int = 200) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.headers = {"content-type": "application/json"}
    response.read.return_value = json.dumps(body).encode("utf-8")
    response.__enter__.return_value = response
    return response


def _http_error(body: Any, status: int = 500) -> HTTPError:
    return HTTPError(
        "https://api.ecobee.com/1/thermostat",
        status,
        "Internal Server Error",
        {"content-type": "application/json"},
        io.BytesIO(json.dumps(body).encode("utf-8")),
    )


class EcobeeClientTests(TestCase):
    def setUp(self) -> None:
        self.client = EcobeeClient(
            base_url="https://api.ecobee.com/",
            client_id="client-123",
            redirect_uri="http://localhost:8000/api/ecobee/initialize",
        )

    def test_get_sends_bearer_token_and_query(self) -> None:
        ok = {"status": {"code": 0, "message": ""}, "thermostatList": []}
        with patch("beestat.services.external_api.urlopen", return_value=_response(ok)) as urlopen:
            response = self.client.request(
                "GET",
                "thermostat",
                thermostat_arguments(SYNC_SELECTION),
                access_token="token-abc",
            )

        self.assertEqual(response, ok)
        request = urlopen.call_args[0][0]
        url = urlsplit(request.full_url)
        query = parse_qs(url.query)
        self.assertEqual(url.path, "/1/thermostat")
        self.assertEqual(request.get_method(), "GET")
        self.assertEqual(request.get_header("Authorization"), "Bearer token-abc")
        self.assertEqual(query["client_id"], ["client-123"])
        self.assertEqual(json.loads(query["body"][0])["selection"]["includeSensors"], True)

    def test_token_endpoint_posts_form_without_bearer(self) -> None:
        tokens = {"access_token": "a", "refresh_token": "r"}
        with patch("beestat.services.external_api.urlopen", return_value=_response(tokens)) as urlopen:
            response = self.client.exchange_token({"grant_type": "refresh_token", "refresh_token": "old"})

        self.assertEqual(response, tokens)
        request = urlopen.call_args[0][0]
        self.assertEqual(urlsplit(request.full_url).path, "/token")
        self.assertEqual(request.get_method(), "POST")
        self.assertIsNone(request.get_header("Authorization"))
        form = parse_qs(request.data.decode("utf-8"))
        self.assertEqual(form["grant_type"], ["refresh_token"])
        self.assertEqual(form["client_id"], ["client-123"])

    def test_expired_token_status_raises_dedicated_error(self) -> None:
        expired = {"status": {"code": 14, "message": "Authentication token has expired."}}
        with patch("beestat.services.external_api.urlopen", side_effect=_http_error(expired)):
            with self.assertRaises(EcobeeTokenExpiredError) as ctx:
                self.client.request("GET", "thermostat", access_token="token-abc")

        self.assertEqual(ctx.exception.code, 14)

    def test_other_status_codes_raise_api_error(self) -> None:
        failed = {"status": {"code": 3, "message": "Processing error."}}
        with patch("beestat.services.external_api.urlopen", side_effect=_http_error(failed)):
            with self.assertRaises(EcobeeApiError) as ctx:
                self.client.request("GET", "thermostat", access_token="token-abc")

        self.assertNotIsInstance(ctx.exception, EcobeeTokenExpiredError)
        self.assertEqual(ctx.exception.code, 3)

    def test_missing_status_object_is_rejected(self) -> None:
        with patch("beestat.services.external_api.urlopen", return_value=_response({"thermostatList": []})):
            with self.assertRaises(EcobeeApiError):
                self.client.request("GET", "thermostat", access_token="token-abc")

    def test_invalid_json_and_network_errors(self) -> None:
        garbage = MagicMock()
        garbage.status = 200
        garbage.headers = {}
        garbage.read.return_value = b"<html>"
        garbage.__enter__.return_value = garbage

        with patch("beestat.services.external_api.urlopen", return_value=garbage):
            with self.assertRaises(EcobeeApiError) as invalid:
                self.client.request("GET", "thermostat", access_token="token-abc")
        with patch("beestat.services.external_api.urlopen", side_effect=URLError("unreachable")):
            with self.assertRaises(EcobeeApiError) as network:
                self.client.request("GET", "thermostat", access_token="token-abc")

        self.assertEqual(invalid.exception.upstream_status_code, 502)
        self.assertEqual(network.exception.upstream_status_code, 503)

    def test_timeouts(self) -> None:
        with patch(
            "beestat.services.external_api.urlopen",
            side_effect=URLError(TimeoutError("timed out")),
        ):
            with self.assertRaises(EcobeeApiError) as connect:
                self.client.request("GET", "thermostat", access_token="token-abc")
        with patch("beestat.services.external_api.urlopen", side_effect=TimeoutError("timed out")):
            with self.assertRaises(EcobeeApiError) as read:
                self.client.request("GET", "thermostat", access_token="token-abc")

        self.assertEqual(connect.exception.upstream_status_code, 504)
        self.assertEqual(read.exception.upstream_status_code, 504)

    def test_non_auth_endpoint_needs_token(self) -> None:
        with self.assertRaises(EcobeeApiError):
            self.client.request("GET", "thermostat")
        with self.assertRaises(ValueError):
            self.client.request("DELETE", "thermostat", access_token="token-abc")

    def test_authorize_url(self) -> None:
        query = parse_qs(urlsplit(self.client.authorize_url()).query)

        self.assertEqual(query["response_type"], ["code"])
        self.assertEqual(query["scope"], ["smartRead"])
        self.assertEqual(query["client_id"], ["client-123"])

    def test_thermostat_guid_includes_first_connected(self) -> None:
        original = {"identifier": "311012345678", "runtime": {"firstConnected": "2019-03-01 17:22:10"}}
        replacement = {"identifier": "311012345678", "runtime": {"firstConnected": "2024-01-05 08:00:00"}}

        self.assertNotEqual(thermostat_guid(original), thermostat_guid(replacement))
        self.assertEqual(thermostat_guid(original), thermostat_guid(dict(original)))
