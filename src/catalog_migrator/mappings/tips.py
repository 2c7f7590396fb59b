"""Mapping helpers for tips (blog articles)."""

from __future__ import annotations

from ..models import RawItem, TipDocument
from .common import (extract_categories, extract_meta, item_title, map_status,
                     parse_wp_date, positive_int, rendered_content, text)


def map_tip(item: RawItem) -> TipDocument:
    meta = extract_meta(item.postmeta)
    categories = extract_categories(item.categories)

    return TipDocument(
        wpId=int(item.post_id),
        slug=item.slug or "",
        title=item_title(item, meta),
        shortDescription=text(meta, "descripcion_corta"),
        contentHtml=rendered_content(item.content),
        category=categories[0] if categories else "",
        coverMediaId=positive_int(meta.get("imagen_portada")),
        downloadMediaId=positive_int(meta.get("archivo_descargable")),
        seoDescription=text(meta, "_yoast_wpseo_metadesc"),
        status=map_status(item.status),
        createdAt=parse_wp_date(item.post_date),
        updatedAt=parse_wp_date(item.post_modified),
    )
