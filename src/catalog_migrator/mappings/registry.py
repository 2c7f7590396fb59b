"""Registry of mappers per migrated content type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from pydantic import ValidationError

from ..errors import FatalConfigError, ItemMappingError
from ..models import (COURSES_COLLECTION, PRODUCTS_COLLECTION,
                      TIPS_COLLECTION, CatalogDocument, RawItem)
from .courses import map_course
from .products import map_product
from .tips import map_tip

Mapper = Callable[[RawItem], CatalogDocument]


@dataclass(frozen=True)
class MappingSpec:
    name: str
    collection: str
    post_types: Tuple[str, ...]
    mapper: Mapper
    # Relationship field owned by the link job; kept on re-migration.
    link_field: Optional[str] = None


MAPPING_SPECS: Dict[str, MappingSpec] = {
    "products": MappingSpec(
        name="products",
        collection=PRODUCTS_COLLECTION,
        post_types=("product",),
        mapper=map_product,
        link_field="relatedCourseId",
    ),
    "courses": MappingSpec(
        name="courses",
        collection=COURSES_COLLECTION,
        post_types=("curso-online", "cursos_online", "course"),
        mapper=map_course,
        link_field="relatedProductId",
    ),
    "tips": MappingSpec(
        name="tips",
        collection=TIPS_COLLECTION,
        post_types=("tips",),
        mapper=map_tip,
    ),
}


def map_item(spec: MappingSpec, item: RawItem) -> CatalogDocument:
    """Run the content type's mapper, reporting any failure as an ItemMappingError."""
    try:
        return spec.mapper(item)
    except FatalConfigError:
        raise
    except ValidationError as exc:
        raise ItemMappingError(item.post_id, f"invalid document: {exc}") from exc
    except Exception as exc:
        raise ItemMappingError(item.post_id, f"{type(exc).__name__}: {exc}") from exc
