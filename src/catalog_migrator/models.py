from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, FrozenSet, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

PRODUCTS_COLLECTION = "products"
COURSES_COLLECTION = "onlineCourses"
TIPS_COLLECTION = "tips"

Status = Literal["draft", "publish"]
StockStatus = Literal["instock", "outofstock", "onbackorder"]
Sede = Literal["ciudad-jardin", "almagro", "online", "mixto"]


@dataclass
class RawItem:
    """One ``<item>`` of the export, before any normalisation."""

    post_id: Optional[str]
    post_type: Optional[str]
    slug: str = ""
    status: Optional[str] = None
    title: Optional[str] = None
    content: Union[str, Mapping[str, Any], None] = None
    postmeta: List[Mapping[str, Any]] = field(default_factory=list)
    categories: List[Union[str, Mapping[str, Any]]] = field(default_factory=list)
    post_date: Optional[str] = None
    post_modified: Optional[str] = None


class CatalogDocument(BaseModel):
    """Base for documents written to the store, keyed by ``wpId``."""

    # Fields left out of the stored document entirely when they are None.
    OMIT_WHEN_NONE: ClassVar[FrozenSet[str]] = frozenset()

    model_config = ConfigDict(extra="forbid")

    wpId: int
    slug: str
    status: Status
    createdAt: datetime
    updatedAt: datetime

    @property
    def doc_id(self) -> str:
        return str(self.wpId)

    def to_document(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        for name in self.OMIT_WHEN_NONE:
            if data.get(name) is None:
                data.pop(name, None)
        return data


class Lesson(BaseModel):
    index: int
    title: str
    descriptionHtml: Optional[str] = None
    videoUrl: Optional[str] = None
    videoPassword: Optional[str] = None
    duration: Optional[str] = None


class InfoBlock(BaseModel):
    index: int
    title: str
    contentHtml: Optional[str] = None


class ProductDocument(CatalogDocument):
    OMIT_WHEN_NONE: ClassVar[FrozenSet[str]] = frozenset({"tipoMadera"})

    sku: Optional[str] = None
    name: str
    shortDescription: str = ""
    description: str = ""
    priceText: str = ""
    localPriceNumber: float = 0
    internacionalPriceNumber: Optional[float] = None
    durationText: str = ""
    locationText: str = ""
    detailsHtml: str = ""
    thumbnailMediaId: Optional[int] = None
    galleryMediaIds: List[int] = []
    category: str = ""
    subcategory: Optional[str] = None
    tipoMadera: Optional[str] = None
    sede: Optional[Sede] = None
    stockStatus: StockStatus = "instock"
    relatedCourseId: Optional[str] = None


class CourseDocument(CatalogDocument):
    OMIT_WHEN_NONE: ClassVar[FrozenSet[str]] = frozenset({"relatedProductWpId"})

    title: str
    shortDescription: str = ""
    seoDescription: str = ""
    thumbnailMediaId: Optional[int] = None
    relatedProductWpId: Optional[int] = None
    relatedProductId: Optional[str] = None
    lessons: List[Lesson] = []
    infoBlocks: List[InfoBlock] = []

    def to_document(self) -> dict[str, Any]:
        data = super().to_document()
        # Lesson/info-block records never carry null-valued optional fields.
        data["lessons"] = [
            lesson.model_dump(mode="json", exclude_none=True) for lesson in self.lessons
        ]
        data["infoBlocks"] = [
            block.model_dump(mode="json", exclude_none=True) for block in self.infoBlocks
        ]
        return data


class TipDocument(CatalogDocument):
    OMIT_WHEN_NONE: ClassVar[FrozenSet[str]] = frozenset({"downloadMediaId"})

    title: str
    shortDescription: str = ""
    contentHtml: str = ""
    category: str = ""
    coverMediaId: Optional[int] = None
    downloadMediaId: Optional[int] = None
    seoDescription: str = ""


class MatchMethod(str, Enum):
    EXISTING_REFERENCE = "existing-reference"
    SLUG_EQUALS_ID = "slug-equals-id"
    LEGACY_ID_CROSS_REFERENCE = "legacy-id-cross-reference"
    EXACT_NAME = "exact-name"
    PARTIAL_NAME = "partial-name"


@dataclass
class MatchResult:
    product: Mapping[str, Any]
    course: Mapping[str, Any]
    method: MatchMethod
    needs_update: bool


@dataclass
class RunStats:
    processed: int = 0
    created: int = 0
    updated: int = 0
    errors: int = 0
    skipped: int = 0
    # Documents actually committed to the store; stays 0 in dry-run.
    written: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)
