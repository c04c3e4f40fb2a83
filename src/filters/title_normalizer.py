# src/filters/title_normalizer.py

"""Strip grading and shipping noise from raw listing titles."""

import re

# Condition grades sellers put in titles.  Single-letter grades lose their
# "+" suffix to the punctuation pass before this pattern runs.
_CONDITION_RE = re.compile(
    r"\b(?:like new in box|brand new in box|new in box|near mint"
    r"|lnib|bnib|nib|bnit|nit|[a-d])\b",
    re.IGNORECASE,
)

_SHIPPING_RE = re.compile(
    r"\b(?:free shipping|fast shipping|fast ship|ships free|priority)\b",
    re.IGNORECASE,
)

_SYMBOLS_RE = re.compile(r"[\W_]+")


def _strip_noise(text: str) -> str:
    text = _CONDITION_RE.sub(" ", text)
    text = _SHIPPING_RE.sub(" ", text)
    return " ".join(text.split())


def normalize_title(title: str) -> str:
    """Return *title* without grading tokens, shipping phrases or symbols.

    Removing a token can bring two words together into a new noise
    phrase ("free A shipping"), so removal repeats until the text stops
    changing.  The result is idempotent and never longer than the input.
    """
    text = " ".join(_SYMBOLS_RE.sub(" ", title).split())
    while True:
        stripped = _strip_noise(text)
        if stripped == text:
            return stripped
        text = stripped
