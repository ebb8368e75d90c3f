"""Test fixtures for BibSonomy API responses and library files."""

from .sample_posts import (
    INTRAHASH,
    INTERHASH,
    OTHER_INTRAHASH,
    make_post_json,
    make_document_json,
    SAMPLE_LIBRARY_YAML,
)

__all__ = [
    "INTRAHASH",
    "INTERHASH",
    "OTHER_INTRAHASH",
    "make_post_json",
    "make_document_json",
    "SAMPLE_LIBRARY_YAML",
]
