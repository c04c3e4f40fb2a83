# src/filters/brand_resolver.py

"""Map informal brand tokens in listing titles to canonical brands."""

import logging
from collections.abc import Mapping
from types import MappingProxyType

from src.config.settings import Settings

logger = logging.getLogger("aggregator.matching")


class BrandResolver:
    """Resolve a canonical brand from a fixed, ordered alias table.

    Aliases are matched as lower-case substrings of the title.  When
    several aliases occur in one title the first alias in table order
    wins, so the table order is part of the resolver's behaviour.
    """

    def __init__(
        self, aliases: Mapping[str, str] | None = None,
    ) -> None:
        table = Settings.BRAND_ALIASES if aliases is None else aliases
        self._aliases: Mapping[str, str] = MappingProxyType(
            {alias.lower(): brand for alias, brand in table.items()}
        )

    @property
    def aliases(self) -> Mapping[str, str]:
        return self._aliases

    def resolve(self, title: str) -> str | None:
        """Return the canonical brand for *title*, or ``None``."""
        lowered = title.lower()
        for alias, brand in self._aliases.items():
            if alias in lowered:
                logger.debug(
                    "Alias '%s' resolved brand '%s' in '%s'",
                    alias,
                    brand,
                    title,
                )
                return brand
        return None
