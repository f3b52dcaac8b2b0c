"""
SQLPlay - playground execution engine for embedded SQL databases.

This package runs a user-authored playground (schema, optional utilities,
optional seed, entry script) against a disposable embedded SQL engine:

    ┌──────────────┐    ┌────────────────┐    ┌──────────────────┐
    │   Dialect    │───▶│ Engine Session │───▶│ Playground Runner│───▶ events
    │   Registry   │    │    Manager     │    │ utils→seed→index │
    └──────────────┘    └───────┬────────┘    └──────────────────┘
                                │
                        ┌───────▼────────┐
                        │ sqlite3/DuckDB │
                        └────────────────┘

Invariants:
    - Schema DDL is fully applied before any seed/entry code runs
    - utils, seed and index run strictly in that order, never interleaved
    - Every statement executed during a run is surfaced as a log event
    - A run error aborts the run, never the session

How to change safely:
    - New dialects register an engine factory, a DDL renderer and core files
    - Persisted image generations are append-only (see persistence.images)
"""

from ._version import __version__

__all__ = ["__version__"]
