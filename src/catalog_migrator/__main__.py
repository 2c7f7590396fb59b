from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from dotenv import load_dotenv
from rich.console import Console

from .config import Settings
from .db_connector import DatabaseSession, SqlDocumentStore
from .errors import FatalConfigError, MigratorError, StoreWriteError
from .ingest import Migrator
from .logging_utils import setup_logging
from .mappings.registry import MAPPING_SPECS
from .models import PRODUCTS_COLLECTION
from .reconcile import (apply_links, load_courses, load_products, plan_links,
                        verify_links)
from .report import (render_link_plan, render_summary, render_verification,
                     write_json_report)
from .store import DocumentStore
from .xml_reader import filter_items, read_feed

console = Console()
LOGGER = logging.getLogger("catalog_migrator.cli")


def _feed_path(settings: Settings, name: str) -> str:
    return {
        "products": settings.products_xml,
        "courses": settings.courses_xml,
        "tips": settings.tips_xml,
    }[name]


def migrate(store: DocumentStore, settings: Settings, name: str) -> None:
    spec = MAPPING_SPECS[name]
    path = _feed_path(settings, name)
    items = filter_items(read_feed(path), spec.post_types)
    LOGGER.info("Found %s %s in %s", len(items), name, path)

    migrator = Migrator(
        store,
        spec,
        batch_size=settings.batch_size,
        dry_run=settings.dry_run,
        keep_documents=bool(settings.report_dir),
    )
    stats = migrator.run(items, console=console)

    if settings.report_dir:
        write_json_report(Path(settings.report_dir) / f"{name}.json", migrator.documents)
    render_summary(console, f"{name} migration", stats.as_dict())


def migrate_all(store: DocumentStore, settings: Settings) -> None:
    for name in ("products", "courses", "tips"):
        migrate(store, settings, name)


def link(store: DocumentStore, settings: Settings) -> None:
    products, missing = load_products(store, settings.link_product_ids)
    courses = load_courses(store)
    LOGGER.info("Reconciling %s products against %s courses", len(products), len(courses))

    plan = plan_links(products, courses)
    render_link_plan(console, plan, missing)
    outcome = apply_links(store, plan, dry_run=settings.dry_run)

    counters = {
        "products": len(products),
        "matched": len(plan.matches),
        "unmatched": len(plan.unmatched),
        "not found": len(missing),
        **plan.counts_by_method(),
        "products updated": outcome.products_updated,
        "courses updated": outcome.courses_updated,
        "written": "yes" if outcome.committed else "no (dry run)",
    }
    render_summary(console, "Product ↔ course links", counters)


def verify(store: DocumentStore, settings: Settings) -> None:
    report = verify_links(store.list_all(PRODUCTS_COLLECTION), load_courses(store))
    render_verification(console, report)
    render_summary(
        console,
        "Link verification",
        {
            "products": len(report.entries),
            "linked": sum(1 for entry in report.entries if entry.course is not None),
            "courses": len(report.courses),
        },
    )


JOBS: Dict[str, Callable[[DocumentStore, Settings], None]] = {
    "migrate-products": lambda store, settings: migrate(store, settings, "products"),
    "migrate-courses": lambda store, settings: migrate(store, settings, "courses"),
    "migrate-tips": lambda store, settings: migrate(store, settings, "tips"),
    "migrate-all": migrate_all,
    "link": link,
    "verify": verify,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-migrator",
        description="Migrate a WordPress export into the catalog document store.",
    )
    parser.add_argument("job", choices=sorted(JOBS))
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    load_dotenv()

    session: Optional[DatabaseSession] = None
    try:
        settings = Settings.from_env()
        setup_logging(settings.log_level, console=console)
        if settings.dry_run:
            LOGGER.warning("DRY_RUN is on: nothing will be written (set DRY_RUN=false)")

        session = DatabaseSession(settings.db_url, settings.db_connect_timeout)
        engine = session.open()
        if settings.apply_schema:
            session.ensure_schema()

        JOBS[args.job](SqlDocumentStore(engine), settings)
    except FatalConfigError as exc:
        LOGGER.error("Fatal error: %s", exc)
        print(f"Fatal error: {exc}", file=sys.stderr)
        sys.exit(1)
    except StoreWriteError as exc:
        LOGGER.error("Store write failed: %s", exc)
        if exc.counters:
            render_summary(console, f"{args.job} (aborted)", exc.counters)
        print(f"Store write failed: {exc}", file=sys.stderr)
        sys.exit(1)
    except MigratorError as exc:
        LOGGER.exception("Migration failed")
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:  # pragma: no cover - guard for CLI usage
        LOGGER.exception("Job %s failed", args.job)
        print(f"Job {args.job} failed: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        if session is not None:
            session.dispose()


if __name__ == "__main__":
    main()
