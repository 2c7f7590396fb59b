"""Tests for product/course reconciliation."""

import io
from datetime import datetime, timezone

import pytest
from rich.console import Console

from catalog_migrator.errors import StoreWriteError
from catalog_migrator.ingest import Migrator
from catalog_migrator.mappings.registry import MAPPING_SPECS
from catalog_migrator.models import MatchMethod
from catalog_migrator.reconcile import (apply_links, find_match, load_courses,
                                        load_products, plan_links,
                                        verify_links)
from catalog_migrator.xml_reader import filter_items, read_feed

from .conftest import SpyStore

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def product(doc_id, name="", wp_id=None, related=None):
    return {
        "id": doc_id,
        "name": name,
        "wpId": wp_id if wp_id is not None else int(doc_id),
        "relatedCourseId": related,
    }


def course(doc_id, title="", slug="", related_wp_id=None, related_product=None):
    doc = {"id": doc_id, "title": title, "slug": slug, "relatedProductId": related_product}
    if related_wp_id is not None:
        doc["relatedProductWpId"] = related_wp_id
    return doc


class TestFindMatch:
    """Tiers are tried in order and the first course per tier wins"""

    def test_existing_reference(self):
        courses = [course("5", slug="1"), course("9")]
        match, method = find_match(product("1", related="9"), courses)
        assert match["id"] == "9"
        assert method is MatchMethod.EXISTING_REFERENCE

    def test_dangling_reference_falls_through(self):
        courses = [course("5", title="Otro"), course("6", slug="1")]
        match, method = find_match(product("1", related="999"), courses)
        assert match["id"] == "6"
        assert method is MatchMethod.SLUG_EQUALS_ID

    def test_legacy_id_cross_reference(self):
        courses = [course("5", related_wp_id=100), course("6", related_wp_id="101")]
        match, method = find_match(product("101"), courses)
        assert match["id"] == "6"
        assert method is MatchMethod.LEGACY_ID_CROSS_REFERENCE

    def test_slug_beats_legacy_id(self):
        courses = [course("5", related_wp_id=1), course("6", slug="1")]
        match, method = find_match(product("1"), courses)
        assert match["id"] == "6"

    def test_exact_name_ignores_accents_and_case(self):
        courses = [course("5", title="Intensivo LENCERIA nivel I")]
        match, method = find_match(product("1", name="Intensivo Lencería Nivel I"), courses)
        assert method is MatchMethod.EXACT_NAME

    def test_exact_name_has_no_length_guard(self):
        _, method = find_match(product("1", name="Tejido"), [course("5", title="tejido")])
        assert method is MatchMethod.EXACT_NAME

    def test_partial_name_when_longer_operand_is_long(self):
        courses = [course("5", title="Intensivo Lencería Nivel I")]
        match, method = find_match(product("1", name="Lencería"), courses)
        assert method is MatchMethod.PARTIAL_NAME

    @pytest.mark.parametrize("name, title", [("Bordado", "Bordado I"), ("Corte 1", "Corte 1 B")])
    def test_partial_name_guard_for_short_titles(self, name, title):
        assert find_match(product("1", name=name), [course("5", title=title)]) is None

    def test_no_name_tiers(self):
        courses = [course("5", title="Tejido")]
        assert find_match(product("1", name="Tejido"), courses, include_name_tiers=False) is None

    def test_nothing_matches(self):
        assert find_match(product("1", name="Nada"), []) is None


class TestPlanLinks:
    def test_needs_update_only_when_link_differs(self):
        courses = [course("5", slug="1"), course("6", slug="2")]
        plan = plan_links([product("1", related="5"), product("2"), product("3", name="x")], courses)

        assert [(m.product["id"], m.needs_update) for m in plan.matches] == [
            ("1", False),
            ("2", True),
        ]
        assert [p["id"] for p in plan.unmatched] == ["3"]
        assert plan.counts_by_method() == {"existing-reference": 1, "slug-equals-id": 1}


class TestApplyLinks:
    def _store(self, products, courses):
        return SpyStore({"products": products, "onlineCourses": courses})

    def test_dry_run_makes_no_write_calls(self):
        products = [product(str(n), name=f"Curso numero {n}") for n in range(1, 6)]
        courses = [course(str(n + 100), title=f"Curso numero {n}") for n in range(1, 6)]
        store = self._store(products, courses)

        outcome = apply_links(store, plan_links(products, courses))

        assert outcome.products_updated == 5
        assert not outcome.committed
        assert store.commits == []

    def test_products_then_courses(self):
        products = [product("1"), product("2")]
        courses = [course("10", slug="1"), course("20", slug="2", related_product="2")]
        store = self._store(products, courses)

        apply_links(store, plan_links(products, courses), dry_run=False, now=NOW)

        assert len(store.commits) == 2
        assert {op.collection for op in store.commits[0]} == {"products"}
        assert [op.doc_id for op in store.commits[1]] == ["10"]
        assert store.get_by_id("products", "1")["relatedCourseId"] == "10"
        assert store.get_by_id("products", "1")["updatedAt"] == NOW.isoformat()
        assert store.get_by_id("onlineCourses", "10")["relatedProductId"] == "1"

    def test_first_product_wins_each_course(self):
        products = [product("1", name="Moldería avanzada"), product("2", name="Molderia Avanzada")]
        courses = [course("10", title="Moldería Avanzada")]
        store = self._store(products, courses)

        outcome = apply_links(store, plan_links(products, courses), dry_run=False, now=NOW)

        assert outcome.products_updated == 2
        assert outcome.courses_updated == 1
        assert store.get_by_id("products", "2")["relatedCourseId"] == "10"
        assert store.get_by_id("onlineCourses", "10")["relatedProductId"] == "1"

    def test_linked_pair_is_left_alone(self):
        products = [product("1", related="10")]
        courses = [course("10", related_product="1")]
        store = self._store(products, courses)

        outcome = apply_links(store, plan_links(products, courses), dry_run=False)

        assert (outcome.products_updated, outcome.courses_updated) == (0, 0)
        assert store.commits == []


class TestVerifyAndScope:
    def test_verify_groups_by_relation(self):
        products = [
            product("1", related="10"),
            product("2"),
            product("3"),
            product("4", name="Moldería avanzada"),
        ]
        courses = [
            course("10"),
            course("20", slug="2"),
            course("30", related_wp_id=3),
            course("40", title="Moldería avanzada"),
        ]
        report = verify_links(products, courses)

        assert [e.product["id"] for e in report.by_method(MatchMethod.EXISTING_REFERENCE)] == ["1"]
        assert [e.product["id"] for e in report.by_method(MatchMethod.SLUG_EQUALS_ID)] == ["2"]
        assert [
            e.product["id"] for e in report.by_method(MatchMethod.LEGACY_ID_CROSS_REFERENCE)
        ] == ["3"]
        assert [e.product["id"] for e in report.by_method(None)] == ["4"]
        assert report.linked_course_ids() == {"10", "20", "30"}

    def test_load_products_by_id_reports_missing(self):
        store = SpyStore({"products": [product("1"), product("2")]})
        products, missing = load_products(store, ("2", "7"))
        assert [p["id"] for p in products] == ["2"]
        assert missing == ["7"]

    def test_load_all_products(self):
        store = SpyStore({"products": [product("1"), product("2")]})
        products, missing = load_products(store)
        assert [p["id"] for p in products] == ["1", "2"]
        assert missing == []


class TestPublishedCourses:
    """Draft courses never take part in linking"""

    def test_draft_course_is_not_matched(self):
        store = SpyStore(
            {
                "onlineCourses": [
                    {"id": "10", "title": "Intensivo Lenceria Nivel I", "status": "draft"},
                    {"id": "20", "title": "Otro curso", "status": "publish"},
                ]
            }
        )
        courses = load_courses(store)
        plan = plan_links([product("1", name="Intensivo Lenceria Nivel I")], courses)

        assert [c["id"] for c in courses] == ["20"]
        assert plan.matches == []

    def test_reference_to_draft_falls_through(self):
        store = SpyStore(
            {
                "onlineCourses": [
                    {"id": "10", "slug": "", "status": "draft"},
                    {"id": "20", "slug": "1", "status": "publish"},
                ]
            }
        )
        match, method = find_match(product("1", related="10"), load_courses(store))
        assert match["id"] == "20"
        assert method is MatchMethod.SLUG_EQUALS_ID

    def test_sql_store_filters_by_status(self, sql_store):
        batch = sql_store.batch()
        batch.set("onlineCourses", "10", {"title": "A", "status": "draft"})
        batch.set("onlineCourses", "20", {"title": "B", "status": "publish"})
        batch.commit()
        assert [c["id"] for c in load_courses(sql_store)] == ["20"]


class TestFailedLinkWrites:
    def test_course_batch_failure_reports_committed_products(self):
        class CourseCommitFails(SpyStore):
            def commit(self, ops):
                if ops[0].collection == "onlineCourses":
                    raise StoreWriteError("timeout")
                super().commit(ops)

        products = [product("1"), product("2")]
        courses = [course("10", slug="1"), course("20", slug="2")]
        store = CourseCommitFails({"products": products, "onlineCourses": courses})

        with pytest.raises(StoreWriteError) as excinfo:
            apply_links(store, plan_links(products, courses), dry_run=False, now=NOW)

        assert excinfo.value.counters == {
            "products updated": 2,
            "courses updated": 0,
            "products pending": 0,
            "courses pending": 2,
        }
        assert store.get_by_id("products", "1")["relatedCourseId"] == "10"

class TestLinkAfterMigration:
    def test_sample_export_links_by_legacy_id(self, sql_store, sample_feed):
        items = read_feed(sample_feed)
        console = Console(file=io.StringIO())
        for name in ("products", "courses"):
            spec = MAPPING_SPECS[name]
            Migrator(sql_store, spec, dry_run=False).run(
                filter_items(items, spec.post_types), console=console
            )

        products, _ = load_products(sql_store)
        courses = load_courses(sql_store)
        plan = plan_links(products, courses)
        assert [m.method for m in plan.matches] == [MatchMethod.LEGACY_ID_CROSS_REFERENCE]

        apply_links(sql_store, plan, dry_run=False, now=NOW)
        assert sql_store.get_by_id("products", "101")["relatedCourseId"] == "202"
        assert sql_store.get_by_id("onlineCourses", "202")["relatedProductId"] == "101"

        # Re-migrating products keeps the link.
        spec = MAPPING_SPECS["products"]
        Migrator(sql_store, spec, dry_run=False).run(
            filter_items(items, spec.post_types), console=console
        )
        assert sql_store.get_by_id("products", "101")["relatedCourseId"] == "202"
        assert plan_links(sql_store.list_all("products"), courses).to_update == []
