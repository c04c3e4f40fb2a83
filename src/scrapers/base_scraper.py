# src/scrapers/base_scraper.py

"""Source adapter contract and the shared HTTP scraping base class."""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.models.listing import RawListing
from src.scrapers.request_guard import RequestGuard, block_reason


@runtime_checkable
class SourceAdapter(Protocol):
    """Anything that can search one source for raw listings.

    ``search`` may raise; callers must treat every adapter as
    unreliable and isolate its failures.
    """

    slug: str

    def search(self, query: str) -> list[RawListing]:
        ...


class BaseScraper(ABC):
    """HTTP-backed source adapter.

    Subclasses get a browser-impersonating session, their CSS selectors
    from ``selectors.json`` and a :class:`RequestGuard` that paces and
    circuit-breaks every request they make through :meth:`_fetch`.
    """

    def __init__(self, slug: str) -> None:
        self.slug = slug
        self.logger = logging.getLogger(f"aggregator.sources.{slug}")
        self.settings = Settings()
        self.selectors: dict[str, str] = self._load_selectors()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self.guard = RequestGuard(slug, self.settings)

    def _load_selectors(self) -> dict[str, str]:
        try:
            with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
                all_selectors: dict[str, Any] = json.load(f)
        except FileNotFoundError:
            return {}
        result: dict[str, str] = all_selectors.get(self.slug, {})
        return result

    def _fetch(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        **kwargs: Any,
    ) -> curl_requests.Response | None:
        """Send a request with retries; ``None`` once every attempt failed.

        Extra keyword arguments (``params``, ``data``) go straight to
        the session.
        """
        if self.guard.blocked():
            return None
        attempts = self.settings.MAX_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                resp = self.session.request(
                    method,
                    url,
                    headers=headers,
                    timeout=self.settings.REQUEST_TIMEOUT,
                    **kwargs,
                )
            except Exception as exc:
                self.logger.warning(
                    "[%s] %s %s failed (attempt %d/%d): %s",
                    self.slug, method, url, attempt, attempts, exc,
                    exc_info=True,
                )
                time.sleep(self.guard.delay * attempt)
                continue

            if resp.status_code == 200:
                reason = block_reason(
                    resp.text, self.settings.CAPTCHA_KEYWORDS,
                )
                if reason is None:
                    self.guard.succeeded()
                    return resp
                self.logger.warning(
                    "[%s] Blocked response (%s) on attempt %d/%d",
                    self.slug, reason, attempt, attempts,
                )
                time.sleep(self.guard.back_off())
                continue

            self.logger.warning(
                "[%s] HTTP %d on attempt %d/%d",
                self.slug, resp.status_code, attempt, attempts,
            )
            if resp.status_code in (403, 429):
                time.sleep(self.guard.back_off())

        self.guard.failed()
        return None

    def _get_page(self, url: str) -> BeautifulSoup | None:
        """Fetch and parse an HTML page, falling back to cloudscraper."""
        if self.guard.blocked():
            return None
        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Referer": self._get_homepage(),
        }
        time.sleep(self.guard.delay)

        resp = self._fetch("GET", url, headers)
        if resp is not None:
            return BeautifulSoup(resp.text, "lxml")

        # cloudscraper solves the JS challenges curl_cffi cannot
        self.logger.info(
            "[%s] curl_cffi exhausted, falling back to cloudscraper",
            self.slug,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            fallback: Any = scraper.get(
                url, headers=headers, timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            self.logger.error(
                "[%s] cloudscraper fallback failed: %s",
                self.slug, exc, exc_info=True,
            )
            return None
        if fallback.status_code != 200:
            self.logger.warning(
                "[%s] cloudscraper fallback got HTTP %d",
                self.slug, fallback.status_code,
            )
            return None
        return BeautifulSoup(str(fallback.text), "lxml")

    @staticmethod
    def extract_price(text: str | None) -> float:
        """Extract a numeric price from a string like '$1,299.00'."""
        if not text:
            return 0.0
        numbers = re.findall(r"\d+\.?\d*", text.replace(",", ""))
        return float(numbers[0]) if numbers else 0.0

    @abstractmethod
    def _get_homepage(self) -> str:
        """Return the homepage URL for the Referer header."""
        ...

    @abstractmethod
    def search(self, query: str) -> list[RawListing]:
        """Search the source and return raw listings."""
        ...
