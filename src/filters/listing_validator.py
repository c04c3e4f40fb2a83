# src/filters/listing_validator.py

"""Listing validation: drop adapter output that cannot be stored."""

import logging

from src.models.listing import RawListing

logger = logging.getLogger("aggregator.filters")


class ListingValidator:
    """Reject raw listings missing the fields a stored listing needs."""

    @staticmethod
    def validate(
        listings: list[RawListing],
        source_slug: str = "",
    ) -> tuple[list[RawListing], int]:
        """Drop listings with a blank title, no URL or a non-positive price.

        Returns the valid listings and the count of rejected ones.  Every
        rejection is logged so nothing disappears silently.
        """
        valid: list[RawListing] = []
        rejected = 0

        for listing in listings:
            reason = ""
            if not listing.title.strip():
                reason = "empty title"
            elif not listing.url.strip():
                reason = "missing url"
            elif listing.price <= 0:
                reason = f"non-positive price {listing.price}"

            if reason:
                logger.warning(
                    "[%s] Rejected listing (%s): title=%r url=%r",
                    source_slug,
                    reason,
                    listing.title,
                    listing.url,
                )
                rejected += 1
                continue
            valid.append(listing)

        return valid, rejected
