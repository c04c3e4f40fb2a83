# src/filters/product_matcher.py

"""Resolve messy listing titles to canonical catalog products.

Matching runs in three steps:

1. The title is normalised (grading and shipping noise removed).
2. A brand alias in the raw title narrows the candidate set to that
   brand's products, falling back to the full catalog when the brand
   has no products.
3. Each candidate is scored with weighted approximate matching over
   its name, brand and tags.  Scores are distances in ``[0, 1]`` where
   ``0`` is a perfect match; the lowest distance wins if it is within
   the threshold.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence

from rapidfuzz import fuzz, utils

from src.config.settings import Settings
from src.filters.brand_resolver import BrandResolver
from src.filters.title_normalizer import normalize_title
from src.models.catalog import CanonicalProduct

logger = logging.getLogger("aggregator.matching")


class ProductMatcher:
    """Weighted multi-field fuzzy matcher over a product catalog."""

    def __init__(
        self,
        resolver: BrandResolver | None = None,
        threshold: float | None = None,
        min_match_length: int | None = None,
        field_weights: Mapping[str, float] | None = None,
    ) -> None:
        self.resolver = resolver or BrandResolver()
        self.threshold = (
            Settings.MATCH_THRESHOLD if threshold is None else threshold
        )
        if not 0.0 <= self.threshold <= 1.0:
            msg = f"threshold must be within [0, 1], got {self.threshold}"
            raise ValueError(msg)
        self.min_match_length = (
            Settings.MIN_MATCH_LENGTH
            if min_match_length is None
            else min_match_length
        )
        self.field_weights: dict[str, float] = dict(
            field_weights or Settings.MATCH_FIELD_WEIGHTS
        )

    # ── Scoring ──────────────────────────────────────────

    def _field_values(
        self, product: CanonicalProduct, field_name: str,
    ) -> list[str]:
        raw: Iterable[str]
        if field_name == "tags":
            raw = product.tags
        else:
            raw = (getattr(product, field_name, "") or "",)
        return [
            v for v in raw
            if len(v.strip()) >= self.min_match_length
        ]

    def _field_distance(
        self, title: str, values: Sequence[str],
    ) -> float:
        best = max(
            fuzz.partial_ratio(
                title, value, processor=utils.default_process,
            )
            for value in values
        )
        return 1.0 - best / 100.0

    def score(
        self, normalized_title: str, product: CanonicalProduct,
    ) -> float | None:
        """Distance between a normalised title and *product*.

        Fields with no usable value are left out and the remaining
        weights are renormalised.  Returns ``None`` when the product
        has no scorable field at all.
        """
        weighted = 0.0
        total_weight = 0.0
        for field_name, weight in self.field_weights.items():
            values = self._field_values(product, field_name)
            if not values or weight <= 0:
                continue
            weighted += weight * self._field_distance(
                normalized_title, values,
            )
            total_weight += weight
        if total_weight == 0:
            return None
        return weighted / total_weight

    # ── Matching ─────────────────────────────────────────

    def _candidates(
        self,
        title: str,
        catalog: Sequence[CanonicalProduct],
    ) -> Sequence[CanonicalProduct]:
        brand = self.resolver.resolve(title)
        if brand is None:
            return catalog
        wanted = brand.lower()
        same_brand = [
            p for p in catalog if p.brand.lower() == wanted
        ]
        return same_brand or catalog

    def match(
        self,
        title: str,
        catalog: Sequence[CanonicalProduct],
    ) -> CanonicalProduct | None:
        """Return the best-matching product for *title*, or ``None``.

        Ties keep the candidate that comes first in catalog order.
        """
        if not catalog:
            return None
        cleaned = normalize_title(title)
        if len(cleaned) < self.min_match_length:
            return None

        best: CanonicalProduct | None = None
        best_score = float("inf")
        for product in self._candidates(title, catalog):
            distance = self.score(cleaned, product)
            if distance is not None and distance < best_score:
                best, best_score = product, distance

        if best is None or best_score > self.threshold:
            logger.debug(
                "No confident match for '%s' (best=%.3f)",
                title,
                best_score,
            )
            return None

        logger.debug(
            "Matched '%s' -> %s (score=%.3f)",
            title,
            best.slug,
            best_score,
        )
        return best

    def match_many(
        self,
        titles: Iterable[str],
        catalog: Sequence[CanonicalProduct],
    ) -> dict[str, CanonicalProduct | None]:
        """Match several titles against the same catalog."""
        return {title: self.match(title, catalog) for title in titles}
