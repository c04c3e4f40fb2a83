# tests/test_ebay_client.py

"""Tests for the eBay Browse API adapter using mocked HTTP responses."""

import json
import unittest
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

from src.config.settings import Settings
from src.scrapers.ebay_client import EbayClient
from src.services.errors import AdapterError

FIXTURES_DIR = Path(__file__).parent / "fixtures"
NOW = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _load_items() -> list[dict[str, Any]]:
    with open(FIXTURES_DIR / "ebay_search.json", encoding="utf-8") as f:
        data: dict[str, Any] = json.load(f)
    items: list[dict[str, Any]] = data["itemSummaries"]
    return items


def _json_response(payload: dict[str, Any], status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = json.dumps(payload)
    resp.json.return_value = payload
    return resp


class TestParseItem(unittest.TestCase):
    """Mapping of Browse API item summaries to raw listings."""

    def setUp(self) -> None:
        self.items = _load_items()

    def test_buy_now_listing(self) -> None:
        listing = EbayClient.parse_item(self.items[0], now=NOW)

        self.assertEqual(listing.price, 429.99)
        self.assertEqual(listing.currency, "USD")
        self.assertEqual(listing.listing_type, "buy_now")
        self.assertEqual(listing.condition, "Used")
        self.assertEqual(listing.shipping_cost, 8.5)
        self.assertEqual(listing.shipping_estimate, "3-5 days")
        self.assertEqual(listing.external_id, "v1|266512345678|0")
        self.assertEqual(listing.seller_name, "edc_trader")
        self.assertEqual(listing.location_country, "US")
        self.assertEqual(
            listing.image_url,
            "https://i.ebayimg.com/images/g/abc/s-l225.jpg",
        )
        self.assertTrue(listing.in_stock)

    def test_auction_uses_current_bid(self) -> None:
        listing = EbayClient.parse_item(self.items[1], now=NOW)

        self.assertEqual(listing.listing_type, "auction")
        self.assertEqual(listing.price, 355.0)
        self.assertEqual(listing.location_country, "CA")

    def test_fixed_shipping_without_cost_is_free(self) -> None:
        listing = EbayClient.parse_item(self.items[1], now=NOW)
        self.assertEqual(listing.shipping_cost, 0.0)
        self.assertIsNone(listing.shipping_estimate)

    def test_thumbnail_fallback_image(self) -> None:
        listing = EbayClient.parse_item(self.items[1], now=NOW)
        self.assertEqual(
            listing.image_url,
            "https://i.ebayimg.com/images/g/def/s-l140.jpg",
        )

    def test_sparse_item(self) -> None:
        listing = EbayClient.parse_item(self.items[2], now=NOW)

        self.assertEqual(listing.price, 45.0)
        self.assertIsNone(listing.shipping_cost)
        self.assertIsNone(listing.seller_name)
        self.assertIsNone(listing.location_country)
        self.assertIsNone(listing.image_url)
        self.assertEqual(listing.condition, "")

    def test_single_day_estimate(self) -> None:
        option = {
            "minEstimatedDeliveryDate": "2026-03-03T08:00:00.000Z",
            "maxEstimatedDeliveryDate": "2026-03-03T08:00:00.000Z",
        }
        self.assertEqual(EbayClient._shipping_estimate(option, NOW), "2 days")

    def test_past_estimate_dropped(self) -> None:
        option = {
            "minEstimatedDeliveryDate": "2026-02-01T00:00:00Z",
            "maxEstimatedDeliveryDate": "2026-02-02T00:00:00Z",
        }
        self.assertIsNone(EbayClient._shipping_estimate(option, NOW))


@patch.object(Settings, "EBAY_CERT_ID", "cert-id")
@patch.object(Settings, "EBAY_APP_ID", "app-id")
@patch("src.scrapers.base_scraper.curl_requests.Session")
class TestEbaySearch(unittest.TestCase):
    """EbayClient.search against a mocked session."""

    def _token(self) -> MagicMock:
        return _json_response({"access_token": "tok", "expires_in": 7200})

    def _results(self) -> MagicMock:
        with open(FIXTURES_DIR / "ebay_search.json", encoding="utf-8") as f:
            return _json_response(json.load(f))

    def test_search_returns_listings(self, mock_session_cls: MagicMock) -> None:
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_session.request.side_effect = [self._token(), self._results()]

        client = EbayClient()
        listings = client.search("Chris Reeve Knives Sebenza 31")

        self.assertEqual(len(listings), 3)
        search_call = mock_session.request.call_args_list[1]
        self.assertEqual(search_call.args[0], "GET")
        self.assertEqual(
            search_call.kwargs["params"]["q"],
            "Chris Reeve Knives Sebenza 31",
        )
        self.assertEqual(
            search_call.kwargs["headers"]["Authorization"], "Bearer tok",
        )

    def test_token_is_cached(self, mock_session_cls: MagicMock) -> None:
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_session.request.side_effect = [
            self._token(), self._results(), self._results(),
        ]

        client = EbayClient()
        client.search("Sebenza 31")
        client.search("Sebenza 21")

        self.assertEqual(mock_session.request.call_count, 3)
        auth_calls = [
            c for c in mock_session.request.call_args_list
            if c.args[0] == "POST"
        ]
        self.assertEqual(len(auth_calls), 1)

    def test_missing_credentials(self, mock_session_cls: MagicMock) -> None:
        client = EbayClient()
        with (
            patch.object(Settings, "EBAY_APP_ID", None),
            self.assertRaises(AdapterError) as ctx,
        ):
            client.search("Sebenza 31")
        self.assertIn("EBAY_APP_ID", ctx.exception.message)
        mock_session_cls.return_value.request.assert_not_called()

    def test_auth_failure_raises(self, mock_session_cls: MagicMock) -> None:
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_session.request.return_value = _json_response({}, status=401)

        client = EbayClient()
        with self.assertRaises(AdapterError):
            client.search("Sebenza 31")

    def test_search_failure_raises(self, mock_session_cls: MagicMock) -> None:
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_session.request.side_effect = [self._token()] + [
            _json_response({}, status=500)
        ] * 3

        client = EbayClient()
        with self.assertRaises(AdapterError):
            client.search("Sebenza 31")

    def test_empty_results(self, mock_session_cls: MagicMock) -> None:
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_session.request.side_effect = [
            self._token(), _json_response({"total": 0}),
        ]

        client = EbayClient()
        self.assertEqual(client.search("Sebenza 31"), [])


if __name__ == "__main__":
    unittest.main()
