# tests/test_settings.py

"""Tests for the Settings configuration class."""

import unittest
from pathlib import Path

from src.config.settings import Settings


class TestSettings(unittest.TestCase):
    """Verify Settings constants and source registry."""

    def test_request_delay_is_positive_float(self) -> None:
        """REQUEST_DELAY must be a positive number."""
        self.assertIsInstance(Settings.REQUEST_DELAY, float)
        self.assertGreater(Settings.REQUEST_DELAY, 0)

    def test_max_retries_is_positive(self) -> None:
        """MAX_RETRIES must be >= 1."""
        self.assertGreaterEqual(Settings.MAX_RETRIES, 1)

    def test_circuit_breaker_settings_positive(self) -> None:
        self.assertGreaterEqual(Settings.CIRCUIT_BREAKER_THRESHOLD, 1)
        self.assertGreater(Settings.CIRCUIT_BREAKER_COOLDOWN, 0)

    def test_match_threshold_within_unit_interval(self) -> None:
        self.assertGreaterEqual(Settings.MATCH_THRESHOLD, 0.0)
        self.assertLessEqual(Settings.MATCH_THRESHOLD, 1.0)

    def test_field_weights_cover_name_brand_tags(self) -> None:
        self.assertEqual(
            set(Settings.MATCH_FIELD_WEIGHTS), {"name", "brand", "tags"},
        )
        self.assertGreater(
            Settings.MATCH_FIELD_WEIGHTS["name"],
            Settings.MATCH_FIELD_WEIGHTS["brand"],
        )

    def test_brand_aliases_are_lower_case(self) -> None:
        """Aliases are matched against lower-cased titles."""
        for alias in Settings.BRAND_ALIASES:
            with self.subTest(alias=alias):
                self.assertEqual(alias, alias.lower())

    def test_brand_alias_order(self) -> None:
        """'crk' is checked before the shorter Benchmade alias."""
        aliases = list(Settings.BRAND_ALIASES)
        self.assertEqual(aliases[0], "crk")
        self.assertLess(aliases.index("bm"), aliases.index("mt"))

    def test_write_policy_is_known(self) -> None:
        self.assertIn(Settings.LISTING_WRITE_POLICY, ("upsert", "append"))

    def test_adapter_paths_are_dotted(self) -> None:
        """Every registered adapter is a module path plus class name."""
        for slug, dotted in Settings.SOURCE_ADAPTERS.items():
            with self.subTest(slug=slug):
                self.assertTrue(dotted.startswith("src.scrapers."))
                self.assertEqual(dotted.rsplit(".", 1)[1][0].isupper(), True)

    def test_source_classes(self) -> None:
        self.assertEqual(Settings.SOURCE_CLASSES, ["api", "retail"])

    def test_path_constants_are_paths(self) -> None:
        """Path-typed settings are Path instances."""
        self.assertIsInstance(Settings.BASE_DIR, Path)
        self.assertIsInstance(Settings.SELECTORS_PATH, Path)
        self.assertIsInstance(Settings.DB_PATH, Path)
        self.assertIsInstance(Settings.LOGS_DIR, Path)

    def test_selectors_path_exists(self) -> None:
        """The selectors.json file must exist on disk."""
        self.assertTrue(Settings.SELECTORS_PATH.exists())

    def test_default_headers_has_accept_language(self) -> None:
        """DEFAULT_HEADERS must include Accept-Language."""
        self.assertIn("Accept-Language", Settings.DEFAULT_HEADERS)


if __name__ == "__main__":
    unittest.main()
