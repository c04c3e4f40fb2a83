# src/scrapers/ebay_client.py

"""eBay Browse API adapter (OAuth2 client-credentials flow)."""

import base64
import math
import time
from datetime import datetime, timezone
from typing import Any

from src.models.listing import RawListing
from src.scrapers.base_scraper import BaseScraper
from src.services.errors import AdapterError


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _to_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class EbayClient(BaseScraper):
    """Search eBay's knives category through the Browse API.

    Requires ``EBAY_APP_ID`` and ``EBAY_CERT_ID``; the application token
    is cached until shortly before it expires.
    """

    AUTH_URL = "https://api.ebay.com/identity/v1/oauth2/token"
    SEARCH_URL = "https://api.ebay.com/buy/browse/v1/item_summary/search"
    KNIVES_CATEGORY = "42577"
    OAUTH_SCOPE = "https://api.ebay.com/oauth/api_scope"

    def __init__(self) -> None:
        super().__init__("ebay")
        self._token: str | None = None
        self._token_expires_at: float = 0.0

    def _get_homepage(self) -> str:
        return "https://www.ebay.com/"

    def _get_app_token(self) -> str:
        """Return a cached application token, refreshing when near expiry."""
        margin = self.settings.EBAY_TOKEN_REFRESH_MARGIN
        if self._token and self._token_expires_at > time.time() + margin:
            return self._token

        app_id = self.settings.EBAY_APP_ID
        cert_id = self.settings.EBAY_CERT_ID
        if not app_id or not cert_id:
            msg = "Missing EBAY_APP_ID or EBAY_CERT_ID"
            raise AdapterError(msg)

        credentials = base64.b64encode(
            f"{app_id}:{cert_id}".encode()
        ).decode()
        resp = self._fetch(
            "POST",
            self.AUTH_URL,
            {
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": f"Basic {credentials}",
            },
            data=(
                "grant_type=client_credentials"
                f"&scope={self.OAUTH_SCOPE}"
            ),
        )
        if resp is None:
            msg = "eBay auth failed"
            raise AdapterError(msg)

        data: dict[str, Any] = resp.json()
        self._token = str(data["access_token"])
        self._token_expires_at = time.time() + float(data["expires_in"])
        self.logger.debug("[ebay] Application token refreshed")
        return self._token

    @staticmethod
    def _shipping_estimate(
        option: dict[str, Any], now: datetime,
    ) -> str | None:
        earliest = _parse_date(option.get("minEstimatedDeliveryDate"))
        latest = _parse_date(option.get("maxEstimatedDeliveryDate"))
        if earliest is None or latest is None:
            return None
        min_days = math.ceil((earliest - now).total_seconds() / 86400)
        max_days = math.ceil((latest - now).total_seconds() / 86400)
        if min_days <= 0 or max_days <= 0:
            return None
        if min_days == max_days:
            return f"{min_days} days"
        return f"{min_days}-{max_days} days"

    @staticmethod
    def parse_item(
        item: dict[str, Any], now: datetime | None = None,
    ) -> RawListing:
        """Map one Browse API item summary to a raw listing."""
        current = now or datetime.now(timezone.utc)
        options: list[dict[str, Any]] = item.get("shippingOptions") or []
        option = options[0] if options else {}

        shipping_cost = _to_float(
            (option.get("shippingCost") or {}).get("value")
        )
        if shipping_cost is None and option.get("shippingCostType") == "FIXED":
            shipping_cost = 0.0

        buying: list[str] = item.get("buyingOptions") or []
        is_auction = "AUCTION" in buying and "FIXED_PRICE" not in buying
        price_info: dict[str, Any] = item.get("price") or {}
        bid_info: dict[str, Any] = item.get("currentBidPrice") or {}
        price = _to_float(
            bid_info.get("value") if is_auction and bid_info
            else price_info.get("value")
        )

        image = (item.get("image") or {}).get("imageUrl")
        if not image:
            thumbs: list[dict[str, Any]] = item.get("thumbnailImages") or []
            image = thumbs[0].get("imageUrl") if thumbs else None

        return RawListing(
            title=str(item.get("title", "")),
            price=price or 0.0,
            currency=str(price_info.get("currency", "USD")),
            condition=str(item.get("condition") or ""),
            in_stock=True,
            url=str(item.get("itemWebUrl", "")),
            image_url=image,
            shipping_cost=shipping_cost,
            shipping_estimate=EbayClient._shipping_estimate(option, current),
            external_id=item.get("itemId"),
            seller_name=(item.get("seller") or {}).get("username"),
            location_country=(item.get("itemLocation") or {}).get("country"),
            listing_type="auction" if is_auction else "buy_now",
        )

    def search(self, query: str) -> list[RawListing]:
        """Search eBay; raises AdapterError on auth or transport failure."""
        token = self._get_app_token()
        resp = self._fetch(
            "GET",
            self.SEARCH_URL,
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "X-EBAY-C-MARKETPLACE-ID": "EBAY_US",
            },
            params={
                "q": query,
                "category_ids": self.KNIVES_CATEGORY,
                "limit": str(self.settings.EBAY_SEARCH_LIMIT),
                "offset": "0",
            },
        )
        if resp is None:
            msg = f"eBay search failed for '{query}'"
            raise AdapterError(msg)

        data: dict[str, Any] = resp.json()
        items: list[dict[str, Any]] = data.get("itemSummaries") or []
        listings = [self.parse_item(item) for item in items]
        self.logger.info(
            "[ebay] %d listings for '%s'", len(listings), query,
        )
        return listings
