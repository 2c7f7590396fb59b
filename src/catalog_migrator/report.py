"""Run summaries and optional JSON dumps of migrated documents."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from rich.console import Console
from rich.table import Table

from .models import MatchMethod
from .reconcile import LinkPlan, VerificationReport

LOGGER = logging.getLogger("catalog_migrator.report")

RELATION_LABELS = (
    (MatchMethod.EXISTING_REFERENCE, "direct (relatedCourseId)"),
    (MatchMethod.SLUG_EQUALS_ID, "by slug"),
    (MatchMethod.LEGACY_ID_CROSS_REFERENCE, "by legacy id"),
    (None, "no relation"),
)


def write_json_report(
    path: Union[str, Path], documents: Sequence[Mapping[str, Any]]
) -> Optional[Path]:
    """Dump ``documents`` as a JSON array. Failures are logged, never raised."""
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as fh:
            json.dump(list(documents), fh, indent=2, default=str, ensure_ascii=False)
    except (OSError, TypeError, ValueError) as exc:
        LOGGER.warning("Could not write report %s: %s", target, exc)
        return None
    LOGGER.info("Wrote %s documents to %s", len(documents), target)
    return target


def render_summary(
    console: Console, title: str, counters: Mapping[str, Any]
) -> None:
    table = Table(title=title, min_width=len(title) + 4)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", justify="right")
    for name, value in counters.items():
        table.add_row(str(name), str(value))
    console.print(table)


def render_link_plan(console: Console, plan: LinkPlan, missing: Iterable[str] = ()) -> None:
    table = Table(title="Product ↔ course links")
    table.add_column("Product", style="cyan")
    table.add_column("Course", style="green")
    table.add_column("Method", style="dim")
    table.add_column("Update", justify="center")
    for match in plan.matches:
        table.add_row(
            f"{match.product.get('name', '')} ({match.product['id']})",
            f"{match.course.get('title', '')} ({match.course['id']})",
            match.method.value,
            "yes" if match.needs_update else "",
        )
    console.print(table)

    if plan.unmatched:
        console.print(f"[yellow]{len(plan.unmatched)} products without a course:[/yellow]")
        for product in plan.unmatched:
            console.print(f"  - {product.get('name', '')} ({product['id']})")
    missing = list(missing)
    if missing:
        console.print(f"[red]Products not found: {', '.join(missing)}[/red]")


def render_verification(console: Console, report: VerificationReport) -> None:
    for method, label in RELATION_LABELS:
        entries = report.by_method(method)
        console.print(f"[bold]{label}: {len(entries)}[/bold]")
        table = Table()
        table.add_column("Product", style="cyan")
        table.add_column("Course", style="green")
        for entry in entries:
            course = (
                f"{entry.course.get('title', '')} ({entry.course['id']})"
                if entry.course is not None
                else ""
            )
            table.add_row(f"{entry.product.get('name', '')} ({entry.product['id']})", course)
        console.print(table)

    linked = report.linked_course_ids()
    courses = Table(title="Online courses")
    courses.add_column("Course", style="cyan")
    courses.add_column("relatedProductId", style="dim")
    courses.add_column("Linked", justify="center")
    for course in report.courses:
        courses.add_row(
            f"{course.get('title', '')} ({course['id']})",
            str(course.get("relatedProductId") or ""),
            "yes" if course["id"] in linked else "no",
        )
    console.print(courses)
