# src/models/catalog.py

"""Read-only catalog records: canonical products and listing sources."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CanonicalProduct:
    """The authoritative catalog entry a listing resolves to.

    ``msrp`` is ``None`` when the manufacturer price is unknown, which
    is distinct from a price of zero.
    """

    id: int
    slug: str
    brand: str
    name: str
    category: str = ""
    tags: tuple[str, ...] = ()
    msrp: float | None = None


@dataclass(frozen=True)
class Source:
    """An external retailer or marketplace that provides listings."""

    id: int
    slug: str
    name: str
    source_type: str = "retail"  # "api" or "retail"
    is_active: bool = True
