"""bibsync: two-way synchronization between a local library and BibSonomy."""

__version__ = "0.1.0"
