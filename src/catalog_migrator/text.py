"""Text helpers shared by the mappers and the reconciliation job."""

from __future__ import annotations

import math
import re
import unicodedata
from typing import Any, Optional

NON_ALNUM_RE = re.compile(r"[^a-z0-9]")

# Tried in order; the first pattern found anywhere in the text wins.
DOT_GROUPED_RE = re.compile(r"(?<![\d.,])\d{1,3}(?:\.\d{3})+(?:,\d+)?(?!\d)")
COMMA_GROUPED_RE = re.compile(r"(?<![\d.,])\d{1,3}(?:,\d{3})+(?:\.\d+)?(?!\d)")
BARE_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def normalize_text(value: Any) -> str:
    """Lowercase, drop diacritics and keep only ``[a-z0-9]``.

    ``"Intensivo Lencería Nivel I"`` becomes ``"intensivolencerianiveli"``.
    """
    if value is None:
        return ""
    return NON_ALNUM_RE.sub("", strip_accents(str(value).lower()))


def _canonical_number(token: str) -> Optional[float]:
    dot_groups = token.split(".")
    comma_groups = token.split(",")
    if len(dot_groups) >= 2 and DOT_GROUPED_RE.fullmatch(token):
        candidate = token.replace(".", "").replace(",", ".")
    elif len(comma_groups) >= 2 and COMMA_GROUPED_RE.fullmatch(token):
        candidate = token.replace(",", "")
    elif len(comma_groups) == 2 and len(comma_groups[1]) <= 2:
        candidate = token.replace(",", ".")
    else:
        candidate = token.replace(",", "")
    try:
        return float(candidate)
    except ValueError:
        return None


def parse_price_text(value: Any) -> int:
    """Extract the first price from free text such as ``"$5.000 en efectivo"``.

    Returns the amount rounded to the nearest integer, or 0 when the text holds
    no positive number. Never raises.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        amount: Optional[float] = float(value)
    else:
        text = str(value)
        match = None
        for pattern in (DOT_GROUPED_RE, COMMA_GROUPED_RE, BARE_NUMBER_RE):
            match = pattern.search(text)
            if match:
                break
        if match is None:
            return 0
        amount = _canonical_number(match.group(0))

    if amount is None or not math.isfinite(amount) or amount <= 0:
        return 0
    # Half-up rounding: 5.5 -> 6, 4.5 -> 5.
    return int(math.floor(amount + 0.5))
