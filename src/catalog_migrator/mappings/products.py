"""Mapping helpers for shop products (workshops, courses for sale, gift cards)."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import List, Optional, Sequence, Tuple

import yaml

from ..errors import FatalConfigError
from ..models import ProductDocument, RawItem
from ..text import parse_price_text
from .common import (extract_categories, extract_meta, item_title, map_status,
                     optional_text, parse_id_array, parse_number, parse_wp_date,
                     positive_int, rendered_content, text)

LOCATION_RULES_RESOURCE = "location_rules.yaml"
STOCK_STATUSES = {"instock", "outofstock", "onbackorder"}


@dataclass(frozen=True)
class LocationRules:
    rules: Tuple[Tuple[str, Tuple[str, ...]], ...]
    fallback: Optional[str]

    def infer(self, categories: Sequence[str]) -> Optional[str]:
        if not categories:
            return None
        main = categories[0].lower()
        for sede, patterns in self.rules:
            if any(pattern in main for pattern in patterns):
                return sede
        return self.fallback


@lru_cache(maxsize=1)
def load_location_rules(resource: str = LOCATION_RULES_RESOURCE) -> LocationRules:
    with (
        resources.files("catalog_migrator")
        .joinpath(resource)
        .open("r", encoding="utf-8") as fh
    ):
        raw = yaml.safe_load(fh) or {}

    rules = []
    for entry in raw.get("rules") or []:
        sede = entry.get("sede") if isinstance(entry, dict) else None
        patterns = entry.get("patterns") if isinstance(entry, dict) else None
        if not sede or not patterns:
            raise FatalConfigError(f"Invalid location rule in {resource}: {entry!r}")
        rules.append((sede, tuple(str(p).lower() for p in patterns)))
    return LocationRules(rules=tuple(rules), fallback=raw.get("fallback"))


def resolve_local_price(meta: dict) -> float:
    """Explicit local price, else the first amount found in the price text, else 0."""
    explicit = parse_number(meta.get("precio_local"))
    if explicit is not None and explicit > 0:
        return explicit
    return parse_price_text(meta.get("precio"))


def _media_ids(value) -> List[int]:
    return [int(n) for n in parse_id_array(value) if n > 0]


def map_product(item: RawItem) -> ProductDocument:
    meta = extract_meta(item.postmeta)
    categories = extract_categories(item.categories)
    stock_status = text(meta, "_stock_status", "instock")

    return ProductDocument(
        wpId=int(item.post_id),
        slug=item.slug or "",
        sku=optional_text(meta, "_sku"),
        name=item_title(item, meta),
        shortDescription=text(meta, "descripcion_corta"),
        description=rendered_content(item.content) or text(meta, "descripcion_corta"),
        priceText=text(meta, "precio"),
        localPriceNumber=resolve_local_price(meta),
        internacionalPriceNumber=parse_number(meta.get("precio_internacional")) or None,
        durationText=text(meta, "duracion"),
        locationText=text(meta, "lugar"),
        detailsHtml=text(meta, "detalles_del_taller"),
        thumbnailMediaId=positive_int(meta.get("imagen_principal")),
        galleryMediaIds=_media_ids(meta.get("_product_image_gallery")),
        category=categories[0] if categories else "",
        subcategory=categories[1] if len(categories) > 1 else None,
        tipoMadera=optional_text(meta, "tipo_madera"),
        sede=load_location_rules().infer(categories),
        stockStatus=stock_status if stock_status in STOCK_STATUSES else "instock",
        status=map_status(item.status),
        relatedCourseId=None,
        createdAt=parse_wp_date(item.post_date),
        updatedAt=parse_wp_date(item.post_modified),
    )
