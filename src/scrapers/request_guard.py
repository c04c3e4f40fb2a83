# src/scrapers/request_guard.py

"""Per-source request pacing, circuit breaking and block-page detection."""

import logging
import time
from collections.abc import Iterable

from src.config.settings import Settings

# Cloudflare interstitial markers, checked before the keyword scan
_CHALLENGE_MARKERS: tuple[str, ...] = (
    "challenges.cloudflare.com",
    "cdn-cgi/challenge-platform",
    "just a moment",
    "cf-turnstile",
    "cf_chl_opt",
)


def block_reason(
    text: str, captcha_keywords: Iterable[str],
) -> str | None:
    """Say why *text* looks like an anti-bot page, or ``None`` if it is content.

    JSON bodies are always content.  Keywords are only scanned for on
    short pages: a full results page may mention "captcha" in a title.
    """
    if text.lstrip().startswith(("{", "[")):
        return None
    lower = text.lower()
    for marker in _CHALLENGE_MARKERS:
        if marker in lower:
            return f"challenge marker '{marker}'"
    if "<body" in lower and len(text) > 5000:
        return None
    for keyword in captcha_keywords:
        if keyword in lower:
            return f"captcha keyword '{keyword}'"
    return None


class RequestGuard:
    """Health of one source between requests.

    ``CIRCUIT_BREAKER_THRESHOLD`` consecutive failed fetches open the
    breaker.  Once ``CIRCUIT_BREAKER_COOLDOWN`` seconds pass it goes
    half-open and lets one probe through; a failed probe re-opens it.
    Rate limiting doubles the pause between requests, capped at
    ``REQUEST_DELAY * MAX_DELAY_MULTIPLIER``.
    """

    def __init__(
        self, slug: str, settings: Settings | None = None,
    ) -> None:
        self.slug = slug
        self.settings = settings or Settings()
        self.logger = logging.getLogger(f"aggregator.sources.{slug}")
        self.delay: float = self.settings.REQUEST_DELAY
        self.failures: int = 0
        self.opened_at: float | None = None

    @property
    def is_open(self) -> bool:
        return self.opened_at is not None

    def blocked(self) -> bool:
        """True while the breaker is open and still cooling down."""
        if self.opened_at is None:
            return False
        elapsed = time.time() - self.opened_at
        if elapsed < self.settings.CIRCUIT_BREAKER_COOLDOWN:
            return True
        self.logger.info(
            "[%s] Circuit breaker half-open after %.0fs", self.slug, elapsed,
        )
        self.opened_at = None
        return False

    def succeeded(self) -> None:
        self.failures = 0
        self.opened_at = None
        self.delay = self.settings.REQUEST_DELAY

    def failed(self) -> None:
        self.failures += 1
        if self.failures < self.settings.CIRCUIT_BREAKER_THRESHOLD:
            return
        self.opened_at = time.time()
        self.logger.error(
            "[%s] Circuit breaker opened after %d consecutive failures",
            self.slug,
            self.failures,
        )

    def back_off(self) -> float:
        """Double the pause between requests and return it."""
        cap = self.settings.REQUEST_DELAY * self.settings.MAX_DELAY_MULTIPLIER
        self.delay = min(self.delay * 2, cap)
        self.logger.warning(
            "[%s] Rate-limited, delay escalated to %.1fs",
            self.slug,
            self.delay,
        )
        return self.delay
