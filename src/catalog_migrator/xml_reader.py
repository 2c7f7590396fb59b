"""Reader for WordPress WXR exports (RSS-shaped XML)."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Generic, Iterable, List, Optional, TypeVar, Union

from .errors import FormatError
from .models import RawItem

LOGGER = logging.getLogger("catalog_migrator.xml")

T = TypeVar("T")

# Namespace URIs vary across WXR versions (export/1.0 .. 1.2), so prefixes are
# resolved by URI fragment rather than exact match.
NAMESPACE_PREFIXES = (
    ("wordpress.org/export", "wp"),
    ("purl.org/rss/1.0/modules/content", "content"),
    ("wordpress.org/export/1.2/excerpt", "excerpt"),
    ("purl.org/dc/elements", "dc"),
)


@dataclass(frozen=True)
class Single(Generic[T]):
    value: T


@dataclass(frozen=True)
class Many(Generic[T]):
    values: List[T]


NodeSet = Union[Single[T], Many[T]]


def decode_nodes(nodes: List[T]) -> NodeSet:
    return Single(nodes[0]) if len(nodes) == 1 else Many(list(nodes))


def as_list(nodes: NodeSet) -> List[T]:
    if isinstance(nodes, Single):
        return [nodes.value]
    return list(nodes.values)


def qualified_name(tag: str) -> str:
    """Turn ``{http://wordpress.org/export/1.2/}post_id`` into ``wp:post_id``."""
    if not tag.startswith("{"):
        return tag
    uri, _, local = tag[1:].partition("}")
    prefix = None
    for fragment, candidate in NAMESPACE_PREFIXES:
        if fragment in uri:
            prefix = candidate
    return f"{prefix}:{local}" if prefix else local


Children = Dict[str, NodeSet[ET.Element]]


def _children(element: ET.Element) -> Children:
    """Group child elements by qualified name, decoding each group once."""
    grouped: Dict[str, List[ET.Element]] = {}
    for child in element:
        grouped.setdefault(qualified_name(child.tag), []).append(child)
    return {name: decode_nodes(nodes) for name, nodes in grouped.items()}


def _scalar(children: Children, name: str) -> Optional[ET.Element]:
    nodes = children.get(name)
    if nodes is None:
        return None
    if isinstance(nodes, Many):
        LOGGER.debug("Repeated <%s> element, using the first one", name)
        return nodes.values[0]
    return nodes.value


def _repeated(children: Children, name: str) -> List[ET.Element]:
    nodes = children.get(name)
    return as_list(nodes) if nodes is not None else []


def _text(children: Children, name: str) -> Optional[str]:
    node = _scalar(children, name)
    if node is None or node.text is None:
        return None
    return node.text.strip()


def _raw_text(children: Children, name: str) -> Optional[str]:
    node = _scalar(children, name)
    return node.text if node is not None else None


def _postmeta(nodes: Iterable[ET.Element]) -> List[dict]:
    pairs = []
    for node in nodes:
        fields = _children(node)
        key = _text(fields, "wp:meta_key")
        if not key:
            continue
        pairs.append({"key": key, "value": _raw_text(fields, "wp:meta_value")})
    return pairs


def _categories(nodes: Iterable[ET.Element]) -> List[dict]:
    categories = []
    for node in nodes:
        entry = {"#text": (node.text or "").strip()}
        for attr in ("domain", "nicename"):
            if node.get(attr):
                entry[attr] = node.get(attr)
        categories.append(entry)
    return categories


def parse_item(element: ET.Element) -> Optional[RawItem]:
    children = _children(element)
    post_id = _text(children, "wp:post_id")
    if not post_id:
        LOGGER.warning(
            "Skipping item without wp:post_id (title: %s)", _text(children, "title")
        )
        return None

    return RawItem(
        post_id=post_id,
        post_type=_text(children, "wp:post_type"),
        slug=_text(children, "wp:post_name") or "",
        status=_text(children, "wp:status"),
        title=_text(children, "title"),
        content=_raw_text(children, "content:encoded"),
        postmeta=_postmeta(_repeated(children, "wp:postmeta")),
        categories=_categories(_repeated(children, "category")),
        post_date=_text(children, "wp:post_date") or _text(children, "pubDate"),
        post_modified=_text(children, "wp:post_modified"),
    )


def read_feed(path: Union[str, Path]) -> List[RawItem]:
    """Parse a WXR export into raw items.

    Raises FormatError when the file cannot be parsed or has no ``rss/channel``.
    """
    try:
        tree = ET.parse(path)
    except (ET.ParseError, OSError) as exc:
        raise FormatError(f"Cannot read export {path}: {exc}") from exc

    root = tree.getroot()
    channel = root.find("channel") if root.tag == "rss" else None
    if channel is None:
        raise FormatError(f"No rss/channel element found in {path}")

    nodes = channel.findall("item")
    if not nodes:
        LOGGER.warning("Export %s contains no items", path)
        return []

    items = []
    for element in nodes:
        item = parse_item(element)
        if item is not None:
            items.append(item)
    LOGGER.info("Read %s items from %s", len(items), path)
    return items


def filter_items(items: Iterable[RawItem], post_types: Iterable[str]) -> List[RawItem]:
    wanted = set(post_types)
    return [item for item in items if item.post_type in wanted]
