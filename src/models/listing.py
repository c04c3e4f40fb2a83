# src/models/listing.py

"""Listing records flowing from source adapters into storage."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class RawListing:
    """An unvalidated listing as returned by a source adapter."""

    title: str
    price: float
    currency: str = "USD"
    condition: str = ""
    in_stock: bool = True
    url: str = ""
    image_url: str | None = None
    shipping_cost: float | None = None
    shipping_estimate: str | None = None
    external_id: str | None = None
    seller_name: str | None = None
    location_country: str | None = None
    listing_type: str | None = None


@dataclass
class ExternalListing:
    """A listing resolved to a catalog product, ready to persist."""

    product_id: int
    source_id: int
    external_id: str | None
    title: str
    price: float
    currency: str
    condition: str
    in_stock: bool
    url: str
    image_url: str | None
    shipping_cost: float | None
    shipping_estimate: str | None
    location_country: str | None
    seller_name: str | None
    listing_type: str
    last_seen_at: datetime


@dataclass
class PricePoint:
    """One price-history observation for a (product, source) pair."""

    product_id: int
    source_id: int
    price: float
    in_stock: bool
    recorded_at: datetime
