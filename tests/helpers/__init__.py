"""Test helper modules for bibsync testing.

This package provides utilities for unit and integration testing:
- fake_bibsonomy: In-memory stand-in for the BibSonomy API wrapper
"""

from .fake_bibsonomy import FakeBibSonomy

__all__ = [
    'FakeBibSonomy',
]
