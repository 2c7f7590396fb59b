"""Shared utilities for turning export items into typed document fields."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from dateutil import parser as dtparse

from ..models import RawItem

LOGGER = logging.getLogger("catalog_migrator.mappings")

Number = Union[int, float]

NUMBER_PREFIX_RE = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
DIGITS_RE = re.compile(r"^\s*\d+\s*$")


def extract_meta(raw_meta: Any) -> Dict[str, Any]:
    """Flatten ``{"key", "value"}`` pairs into a dict. Later keys win, None values are dropped."""
    meta: Dict[str, Any] = {}
    if not raw_meta:
        return meta

    items = raw_meta if isinstance(raw_meta, list) else [raw_meta]
    for pair in items:
        if not isinstance(pair, Mapping):
            continue
        key = pair.get("key")
        value = pair.get("value")
        if key and value is not None:
            meta[key] = value
    return meta


def _category_name(cat: Any) -> Optional[str]:
    if isinstance(cat, str):
        return cat
    if isinstance(cat, Mapping):
        return cat.get("nicename") or cat.get("#text")
    if cat is None:
        return None
    return str(cat)


def extract_categories(field: Any) -> List[str]:
    if not field:
        return []
    items = field if isinstance(field, list) else [field]
    return [name for name in (_category_name(cat) for cat in items) if name]


def parse_number(value: Any) -> Optional[Number]:
    """Parse a leading number out of ``value``.

    ``None`` means "absent": callers must not coerce it to zero.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    match = NUMBER_PREFIX_RE.match(text)
    if not match:
        return None
    token = match.group(1)
    try:
        parsed = float(token)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    if parsed.is_integer() and DIGITS_RE.match(token.lstrip("+-")):
        return int(parsed)
    return parsed


def parse_id_array(value: Any) -> List[Number]:
    if isinstance(value, list):
        candidates = value
    elif isinstance(value, str):
        candidates = [part.strip() for part in value.split(",")]
    else:
        return []
    return [n for n in (parse_number(c) for c in candidates) if n is not None]


def positive_int(value: Any) -> Optional[int]:
    """Media and post references: a positive integer or None."""
    number = parse_number(value)
    if number is None or number <= 0:
        return None
    return int(number)


def extract_indexed_group(
    meta: Mapping[str, Any],
    prefix: str,
    fields: Mapping[str, str],
    stop_field: str,
) -> List[Dict[str, Any]]:
    """Rebuild records stored as ``{prefix}{index}_{suffix}`` keys.

    ``fields`` maps output names to key suffixes. Scanning starts at index 0
    and stops at the first index whose ``stop_field`` key is absent, so only
    the contiguous prefix is returned. Optional fields that are absent are
    left out of the record instead of being stored as None.
    """
    records: List[Dict[str, Any]] = []
    index = 0
    while True:
        stop_value = meta.get(f"{prefix}{index}_{fields[stop_field]}")
        if stop_value is None or stop_value == "":
            break
        record: Dict[str, Any] = {"index": index}
        for name, suffix in fields.items():
            value = meta.get(f"{prefix}{index}_{suffix}")
            if value is None or value == "":
                continue
            record[name] = value
        records.append(record)
        index += 1
    return records


def map_status(value: Any) -> str:
    return "publish" if value == "publish" else "draft"


def parse_wp_date(value: Optional[str]) -> datetime:
    """Parse an export date; missing or unparseable values become the current time."""
    if value:
        try:
            parsed = dtparse.parse(value)
        except (ValueError, OverflowError):
            LOGGER.warning("Unparseable date %r, using current time", value)
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    return datetime.now(timezone.utc)


def rendered_content(content: Any) -> str:
    """Unwrap rendered HTML that may arrive as a CDATA/text node mapping."""
    if isinstance(content, str):
        return content
    if isinstance(content, Mapping):
        for key in ("__cdata", "#text"):
            value = content.get(key)
            if isinstance(value, str):
                return value
    return ""


def text(meta: Mapping[str, Any], key: str, default: str = "") -> str:
    value = meta.get(key)
    if value is None or value == "":
        return default
    return str(value)


def optional_text(meta: Mapping[str, Any], key: str) -> Optional[str]:
    value = text(meta, key)
    return value or None


def item_title(item: RawItem, meta: Mapping[str, Any], default: str = "Untitled") -> str:
    if item.title:
        return item.title
    return text(meta, "titulo", default)


def parse_legacy_id(value: Any) -> Optional[int]:
    """Return the numeric legacy id, or None when it is missing, non-numeric or zero."""
    if value is None:
        return None
    raw = str(value).strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    legacy_id = int(raw)
    return legacy_id or None
