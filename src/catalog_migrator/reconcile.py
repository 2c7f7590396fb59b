"""Link products with online courses.

There is no foreign key between the two collections, so each product is
matched against the courses through a cascade of tiers, most trusted first:

1. the product's stored ``relatedCourseId`` points at an existing course;
2. a course slug equals the product id;
3. a course's ``relatedProductWpId`` equals the product's ``wpId``;
4. normalised names are equal, or one contains the other and the longer
   normalised name has more than ``PARTIAL_NAME_MIN_LENGTH`` characters.

Only published courses take part (``load_courses``). The first course
satisfying a tier wins, in collection order. Matching is
recomputed on every run; the write phase is the only writer of the
``relatedCourseId`` / ``relatedProductId`` pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import StoreWriteError
from .mappings.common import parse_number
from .models import (COURSES_COLLECTION, PRODUCTS_COLLECTION, MatchMethod,
                     MatchResult)
from .store import DocumentStore
from .text import normalize_text

LOGGER = logging.getLogger("catalog_migrator.reconcile")

PARTIAL_NAME_MIN_LENGTH = 10
PUBLISHED_STATUS = "publish"

Document = Mapping[str, Any]


@dataclass
class LinkPlan:
    matches: List[MatchResult] = field(default_factory=list)
    unmatched: List[Document] = field(default_factory=list)

    @property
    def to_update(self) -> List[MatchResult]:
        return [match for match in self.matches if match.needs_update]

    def counts_by_method(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for match in self.matches:
            counts[match.method.value] = counts.get(match.method.value, 0) + 1
        return counts


@dataclass
class LinkOutcome:
    products_updated: int
    courses_updated: int
    committed: bool


@dataclass
class VerificationEntry:
    product: Document
    course: Optional[Document]
    method: Optional[MatchMethod]


@dataclass
class VerificationReport:
    entries: List[VerificationEntry]
    courses: List[Document]

    def by_method(self, method: Optional[MatchMethod]) -> List[VerificationEntry]:
        return [entry for entry in self.entries if entry.method == method]

    def linked_course_ids(self) -> set:
        return {entry.course["id"] for entry in self.entries if entry.course is not None}


def _match_by_name(product: Document, courses: Sequence[Document]):
    product_name = normalize_text(product.get("name"))
    if not product_name:
        return None
    for course in courses:
        course_title = normalize_text(course.get("title"))
        if not course_title:
            continue
        if product_name == course_title:
            return course, MatchMethod.EXACT_NAME
        if product_name in course_title or course_title in product_name:
            # Only the longer operand is bounded; short acronyms can still match long titles.
            if max(len(product_name), len(course_title)) > PARTIAL_NAME_MIN_LENGTH:
                return course, MatchMethod.PARTIAL_NAME
    return None


def find_match(
    product: Document,
    courses: Sequence[Document],
    courses_by_id: Optional[Mapping[str, Document]] = None,
    include_name_tiers: bool = True,
):
    """Return ``(course, method)`` for the first tier that matches, or None."""
    if courses_by_id is None:
        courses_by_id = {course["id"]: course for course in courses}

    related = product.get("relatedCourseId")
    if related:
        course = courses_by_id.get(str(related))
        if course is not None:
            return course, MatchMethod.EXISTING_REFERENCE

    product_id = product.get("id")
    for course in courses:
        if product_id and course.get("slug") == product_id:
            return course, MatchMethod.SLUG_EQUALS_ID

    wp_id = parse_number(product.get("wpId"))
    if wp_id:
        for course in courses:
            if parse_number(course.get("relatedProductWpId")) == wp_id:
                return course, MatchMethod.LEGACY_ID_CROSS_REFERENCE

    if include_name_tiers:
        return _match_by_name(product, courses)
    return None


def needs_update(product: Document, course: Document) -> bool:
    related = product.get("relatedCourseId")
    return not related or related != course["id"]


def plan_links(products: Sequence[Document], courses: Sequence[Document]) -> LinkPlan:
    courses_by_id = {course["id"]: course for course in courses}
    plan = LinkPlan()
    for product in products:
        found = find_match(product, courses, courses_by_id)
        if found is None:
            plan.unmatched.append(product)
            continue
        course, method = found
        plan.matches.append(
            MatchResult(
                product=product,
                course=course,
                method=method,
                needs_update=needs_update(product, course),
            )
        )
    return plan


def course_claims(matches: Sequence[MatchResult]) -> Dict[str, MatchResult]:
    """One claim per course: the first matching product in this run wins."""
    claims: Dict[str, MatchResult] = {}
    for match in matches:
        claims.setdefault(match.course["id"], match)
    return claims


def apply_links(
    store: DocumentStore,
    plan: LinkPlan,
    dry_run: bool = True,
    now: Optional[datetime] = None,
) -> LinkOutcome:
    """Write ``relatedCourseId`` on products, then ``relatedProductId`` on courses."""
    timestamp = (now or datetime.now(timezone.utc)).isoformat()

    product_batch = store.batch()
    for match in plan.to_update:
        product_batch.update(
            PRODUCTS_COLLECTION,
            match.product["id"],
            {"relatedCourseId": match.course["id"], "updatedAt": timestamp},
        )
        LOGGER.info(
            "Product %s (%s) -> course %s (%s) [%s]",
            match.product.get("name"),
            match.product["id"],
            match.course.get("title"),
            match.course["id"],
            match.method.value,
        )

    course_batch = store.batch()
    for course_id, match in course_claims(plan.matches).items():
        product_id = match.product["id"]
        current = match.course.get("relatedProductId")
        if current and current == product_id:
            continue
        course_batch.update(
            COURSES_COLLECTION,
            course_id,
            {"relatedProductId": product_id, "updatedAt": timestamp},
        )
        LOGGER.info(
            "Course %s (%s) -> product %s", match.course.get("title"), course_id, product_id
        )

    outcome = LinkOutcome(
        products_updated=len(product_batch),
        courses_updated=len(course_batch),
        committed=not dry_run,
    )
    if dry_run:
        LOGGER.info(
            "Dry run: %s product and %s course updates not written",
            outcome.products_updated,
            outcome.courses_updated,
        )
        return outcome

    products_written = 0
    try:
        products_written = product_batch.commit()
        course_batch.commit()
    except StoreWriteError as exc:
        # Batches commit independently; a failed course batch leaves product links in place.
        exc.counters = {
            "products updated": products_written,
            "courses updated": 0,
            "products pending": outcome.products_updated - products_written,
            "courses pending": outcome.courses_updated,
        }
        raise
    return outcome


def verify_links(
    products: Sequence[Document], courses: Sequence[Document]
) -> VerificationReport:
    """Read-only audit using the reference tiers only (no name matching)."""
    courses_by_id = {course["id"]: course for course in courses}
    entries = []
    for product in products:
        found = find_match(product, courses, courses_by_id, include_name_tiers=False)
        course, method = found if found is not None else (None, None)
        entries.append(VerificationEntry(product=product, course=course, method=method))
    return VerificationReport(entries=entries, courses=list(courses))


def load_products(
    store: DocumentStore, product_ids: Sequence[str] = ()
) -> tuple[List[Dict[str, Any]], List[str]]:
    """Products to reconcile and the requested ids that were not found."""
    if not product_ids:
        return store.list_all(PRODUCTS_COLLECTION), []
    products = store.batch_get(PRODUCTS_COLLECTION, product_ids)
    found = {product["id"] for product in products}
    missing = [product_id for product_id in product_ids if product_id not in found]
    for product_id in missing:
        LOGGER.warning("Product %s not found", product_id)
    return products, missing


def load_courses(store: DocumentStore) -> List[Dict[str, Any]]:
    """Published courses only; drafts are never link candidates."""
    return store.query(COURSES_COLLECTION, "status", PUBLISHED_STATUS)
