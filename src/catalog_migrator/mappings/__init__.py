"""Mappers turning export items into catalog documents."""

from . import common, courses, products, registry, tips

__all__ = [
    "common",
    "courses",
    "products",
    "registry",
    "tips",
]
