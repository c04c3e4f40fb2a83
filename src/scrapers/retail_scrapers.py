# src/scrapers/retail_scrapers.py

"""HTML scrapers for knife retailers sharing a product-grid layout."""

from urllib.parse import quote_plus, urljoin

from bs4 import BeautifulSoup, Tag

from src.models.listing import RawListing
from src.scrapers.base_scraper import BaseScraper
from src.services.errors import AdapterError


class RetailScraper(BaseScraper):
    """Scrape a retailer's search results page into raw listings.

    Card layout is described by this source's entry in selectors.json:
    ``item``, ``title``, ``price``, ``link``, ``image``, ``out_of_stock``
    plus optional ``price_attr`` and ``id_attr`` attribute names.
    """

    SLUG: str = ""
    HOMEPAGE: str = ""
    SEARCH_URL: str = ""
    CURRENCY: str = "USD"
    SHIPPING_COST: float | None = 0.0
    SHIPPING_ESTIMATE: str | None = None

    def __init__(self) -> None:
        super().__init__(self.SLUG)

    def _get_homepage(self) -> str:
        return self.HOMEPAGE

    def _select_text(self, card: Tag, key: str) -> str:
        selector = self.selectors.get(key)
        if not selector:
            return ""
        el = card.select_one(selector)
        return el.get_text(" ", strip=True) if el else ""

    def _select_attr(
        self, card: Tag, key: str, *attrs: str,
    ) -> str:
        selector = self.selectors.get(key)
        if not selector:
            return ""
        el = card.select_one(selector)
        if el is None:
            return ""
        for attr in attrs:
            value = el.get(attr)
            if value:
                return str(value)
        return ""

    def _image_url(self, card: Tag) -> str | None:
        src = self._select_attr(card, "image", "src", "data-src")
        if not src:
            return None
        if src.startswith("//"):
            return f"https:{src}"
        return urljoin(self.HOMEPAGE, src)

    def _parse_card(self, card: Tag) -> RawListing | None:
        """Parse one product card, or ``None`` when it lacks essentials."""
        title = self._select_text(card, "title")
        price_text = self._select_text(card, "price")
        if not price_text and self.selectors.get("price_attr"):
            price_text = self._select_attr(
                card, "price", self.selectors["price_attr"],
            )
        if not title or not price_text:
            return None

        price = self.extract_price(price_text)
        if price <= 0:
            return None

        href = self._select_attr(card, "link", "href")
        out_of_stock = self.selectors.get("out_of_stock", "")
        in_stock = not (out_of_stock and card.select_one(out_of_stock))
        id_attr = self.selectors.get("id_attr", "")
        external_id = str(card.get(id_attr) or "") if id_attr else ""

        return RawListing(
            title=title,
            price=price,
            currency=self.CURRENCY,
            condition="New",
            in_stock=bool(in_stock),
            url=urljoin(self.HOMEPAGE, href) if href else "",
            image_url=self._image_url(card),
            shipping_cost=self.SHIPPING_COST,
            shipping_estimate=self.SHIPPING_ESTIMATE,
            external_id=external_id or None,
        )

    def parse_results(self, soup: BeautifulSoup) -> list[RawListing]:
        """Extract every parsable product card from a results page."""
        item_selector = self.selectors.get("item")
        if not item_selector:
            self.logger.error("[%s] No item selector configured", self.slug)
            return []

        listings: list[RawListing] = []
        for card in soup.select(item_selector):
            try:
                listing = self._parse_card(card)
            except (AttributeError, ValueError) as exc:
                self.logger.warning(
                    "[%s] Skipping malformed product card: %s",
                    self.slug,
                    exc,
                )
                continue
            if listing is not None:
                listings.append(listing)
        return listings

    def search(self, query: str) -> list[RawListing]:
        """Search the retailer; raises AdapterError if the page is unreachable."""
        url = self.SEARCH_URL.format(query=quote_plus(query))
        soup = self._get_page(url)
        if soup is None:
            msg = f"search page unavailable: {url}"
            raise AdapterError(msg)
        listings = self.parse_results(soup)
        self.logger.info(
            "[%s] %d listings for '%s'", self.slug, len(listings), query,
        )
        return listings


class BladeHQScraper(RetailScraper):
    """BladeHQ: free shipping over $99."""

    SLUG = "bladehq"
    HOMEPAGE = "https://www.bladehq.com/"
    SEARCH_URL = "https://www.bladehq.com/cat--All--1?search={query}"
    SHIPPING_ESTIMATE = "3-7 business days"


class KnifeCenterScraper(RetailScraper):
    SLUG = "knifecenter"
    HOMEPAGE = "https://www.knifecenter.com/"
    SEARCH_URL = "https://www.knifecenter.com/listing?q={query}"
    SHIPPING_ESTIMATE = "3-7 business days"


class DLTTradingScraper(RetailScraper):
    """DLT Trading runs Magento; prices sometimes only live in attributes."""

    SLUG = "dlt-trading"
    HOMEPAGE = "https://www.dlttrading.com/"
    SEARCH_URL = (
        "https://www.dlttrading.com/catalogsearch/result/?q={query}"
    )
    SHIPPING_ESTIMATE = "3-5 business days"


class KnivesShipFreeScraper(RetailScraper):
    SLUG = "knivesshipfree"
    HOMEPAGE = "https://www.knivesshipfree.com/"
    SEARCH_URL = (
        "https://www.knivesshipfree.com/search?type=product&q={query}"
    )
    SHIPPING_ESTIMATE = "2-5 business days"
