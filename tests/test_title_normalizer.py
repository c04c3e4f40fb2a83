# tests/test_title_normalizer.py

"""Tests for listing title normalisation."""

import unittest

from src.filters.title_normalizer import normalize_title

SAMPLE_TITLES: list[str] = [
    "CRK Sebenza 31 LNIB free shipping",
    "Spyderco PM2 - NIB!!",
    "Benchmade Bugout 535 A+ condition",
    "free A shipping",
    "Microtech UTX-85 (BNIB) *FAST SHIP*",
    "ZT 0562 near mint, ships free",
    "",
    "   ",
    "NIB",
]


class TestNormalizeTitle(unittest.TestCase):
    """Noise removal from raw titles."""

    def test_strips_condition_and_shipping(self) -> None:
        self.assertEqual(
            normalize_title("CRK Sebenza 31 LNIB free shipping"),
            "CRK Sebenza 31",
        )

    def test_strips_punctuation(self) -> None:
        self.assertEqual(
            normalize_title("Spyderco PM2 - NIB!!"), "Spyderco PM2",
        )

    def test_strips_letter_grades(self) -> None:
        self.assertEqual(
            normalize_title("Benchmade Bugout 535 A+"),
            "Benchmade Bugout 535",
        )

    def test_keeps_letters_inside_model_numbers(self) -> None:
        """Steel names such as D2 are not grades."""
        self.assertEqual(
            normalize_title("Kershaw Launch D2 blade"),
            "Kershaw Launch D2 blade",
        )

    def test_case_insensitive(self) -> None:
        self.assertEqual(
            normalize_title("Microtech UTX-85 (BNIB) *FAST SHIP*"),
            "Microtech UTX 85",
        )

    def test_removal_repeats_until_stable(self) -> None:
        """Dropping a grade can join a new shipping phrase."""
        self.assertEqual(normalize_title("free A shipping"), "")

    def test_empty_and_blank(self) -> None:
        self.assertEqual(normalize_title(""), "")
        self.assertEqual(normalize_title("   "), "")
        self.assertEqual(normalize_title("NIB"), "")

    def test_idempotent(self) -> None:
        for title in SAMPLE_TITLES:
            with self.subTest(title=title):
                once = normalize_title(title)
                self.assertEqual(normalize_title(once), once)

    def test_never_longer_than_input(self) -> None:
        for title in SAMPLE_TITLES:
            with self.subTest(title=title):
                self.assertLessEqual(
                    len(normalize_title(title)), len(title),
                )


if __name__ == "__main__":
    unittest.main()
