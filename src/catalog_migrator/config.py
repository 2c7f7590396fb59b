"""Configuration loading for the catalog migrator."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import FatalConfigError

DEFAULT_PRODUCTS_XML = "public/productos.xml"
DEFAULT_COURSES_XML = "public/cursos_online.xml"
DEFAULT_TIPS_XML = "public/tips.xml"
DEFAULT_BATCH_SIZE = 500
DEFAULT_DB_CONNECT_TIMEOUT = 60.0


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _id_list(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    seen: dict[str, None] = {}
    for part in value.split(","):
        part = part.strip()
        if part:
            seen.setdefault(part, None)
    return tuple(seen)


@dataclass(frozen=True)
class Settings:
    db_url: str
    db_connect_timeout: float
    apply_schema: bool
    dry_run: bool
    products_xml: str
    courses_xml: str
    tips_xml: str
    batch_size: int
    link_product_ids: Tuple[str, ...]
    report_dir: Optional[str]
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        db_url = os.getenv("DATABASE_URL")
        if not db_url:
            # Compose a psycopg URL from the individual POSTGRES_* vars when no full URL is given.
            db = os.getenv("POSTGRES_DB", "catalog")
            user = os.getenv("POSTGRES_USER", "postgres")
            password = os.getenv("POSTGRES_PASSWORD", "postgres")
            host = os.getenv("POSTGRES_HOST", "localhost")
            port = os.getenv("POSTGRES_PORT", "5432")
            db_url = f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db}"
        if "://" not in db_url:
            raise FatalConfigError(f"DATABASE_URL is not a database URL: {db_url!r}")

        return cls(
            db_url=db_url,
            db_connect_timeout=_float(
                os.getenv("DATABASE_CONNECT_TIMEOUT"), DEFAULT_DB_CONNECT_TIMEOUT
            ),
            apply_schema=_flag(os.getenv("DATABASE_APPLY_SCHEMA"), True),
            # Writes only happen when DRY_RUN is literally "false".
            dry_run=os.getenv("DRY_RUN") != "false",
            products_xml=os.getenv("PRODUCTS_XML", DEFAULT_PRODUCTS_XML),
            courses_xml=os.getenv("COURSES_XML", DEFAULT_COURSES_XML),
            tips_xml=os.getenv("TIPS_XML", DEFAULT_TIPS_XML),
            batch_size=max(1, _int(os.getenv("BATCH_SIZE"), DEFAULT_BATCH_SIZE)),
            link_product_ids=_id_list(os.getenv("LINK_PRODUCT_IDS")),
            report_dir=os.getenv("REPORT_DIR") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
