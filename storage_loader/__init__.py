"""
Storage Loader - bulk loads Snowplow-style event files into PostgreSQL.

Finds the ``part-*`` event files under a directory, loads them with
``COPY`` (directly on the server, or piped through ``psql`` for managed
hosts), then optionally runs ``ANALYZE`` / ``VACUUM`` on the target table.

Usage:
    python -m storage_loader.main

Environment Variables:
    EVENTS_DIR: Directory holding the event files
    TARGETS_PATH: YAML file or directory with target definitions
    SKIP_STEPS: Comma-separated steps to skip (e.g. "analyze")
    INCLUDE_STEPS: Comma-separated optional steps (e.g. "vacuum")
    PSQL_PATH: psql binary used for managed hosts (default: psql)
"""

__version__ = "0.1.0"
