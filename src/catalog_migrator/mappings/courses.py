"""Mapping helpers for online courses and their lesson/info-block groups."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from ..models import CourseDocument, InfoBlock, Lesson, RawItem
from .common import (extract_indexed_group, extract_meta, item_title,
                     map_status, parse_wp_date, positive_int, text)

# (prefix, output field -> key suffix). The first family that yields records wins.
LESSON_KEY_FAMILIES: Tuple[Tuple[str, Dict[str, str]], ...] = (
    (
        "clases_",
        {
            "title": "titulo",
            "descriptionHtml": "contenido",
            "videoUrl": "link_video",
            "videoPassword": "contrasena_de_video",
            "duration": "duracion",
        },
    ),
    (
        "lessons_",
        {
            "title": "title",
            "descriptionHtml": "content",
            "videoUrl": "link_video",
            "videoPassword": "video_password",
            "duration": "duration",
        },
    ),
)

INFO_BLOCK_KEY_FAMILIES: Tuple[Tuple[str, Dict[str, str]], ...] = (
    ("informacion_util_", {"title": "titulo", "contentHtml": "contenido"}),
    ("info_blocks_", {"title": "title", "contentHtml": "content"}),
)


def _first_group(
    meta: Mapping[str, Any], families: Tuple[Tuple[str, Dict[str, str]], ...]
) -> List[Dict[str, Any]]:
    for prefix, fields in families:
        records = extract_indexed_group(meta, prefix, fields, "title")
        if records:
            return records
    return []


def extract_lessons(meta: Mapping[str, Any]) -> List[Lesson]:
    return [Lesson(**record) for record in _first_group(meta, LESSON_KEY_FAMILIES)]


def extract_info_blocks(meta: Mapping[str, Any]) -> List[InfoBlock]:
    return [
        InfoBlock(**record) for record in _first_group(meta, INFO_BLOCK_KEY_FAMILIES)
    ]


def map_course(item: RawItem) -> CourseDocument:
    meta = extract_meta(item.postmeta)
    title = item_title(item, meta)

    return CourseDocument(
        wpId=int(item.post_id),
        slug=item.slug or "",
        title=text(meta, "titulo", title),
        shortDescription=text(meta, "descripcion_corta"),
        seoDescription=text(meta, "_yoast_wpseo_metadesc"),
        thumbnailMediaId=positive_int(meta.get("imagen_principal")),
        status=map_status(item.status),
        relatedProductWpId=positive_int(meta.get("producto_relacionado")),
        relatedProductId=None,
        lessons=extract_lessons(meta),
        infoBlocks=extract_info_blocks(meta),
        createdAt=parse_wp_date(item.post_date),
        updatedAt=parse_wp_date(item.post_modified),
    )
