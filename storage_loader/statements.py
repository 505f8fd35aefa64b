"""
SQL text for the load.

Everything here is pure string building - no connections, no I/O - so
the exact statements sent to PostgreSQL can be checked in isolation.
"""

import re
from collections.abc import Iterable

from storage_loader.settings import LoadSettings

# Plain or schema-qualified identifier, e.g. "events" or "atomic.events"
TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*)?$")

BEGIN = "BEGIN;"
COMMIT = "COMMIT;"


def validate_table_name(table: str) -> str:
    """
    Check that a table name is safe to interpolate into SQL.

    Raises:
        ValueError: If the name is empty or not a plain identifier
    """
    if not table or not TABLE_NAME_PATTERN.match(table):
        raise ValueError(f"Invalid table name: {table!r}")
    return table


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_copy_statement(table: str, source: str | None, settings: LoadSettings) -> str:
    """
    Build a COPY statement for one source.

    Args:
        table: Target table name
        source: Server-local file path, or None to read from STDIN
        settings: Serialization constants

    Returns:
        The COPY statement text
    """
    validate_table_name(table)
    origin = "STDIN" if source is None else _quote_literal(source)
    return (
        f"COPY {table} FROM {origin} WITH CSV"
        f" ESCAPE E'{settings.escape_char}'"
        f" QUOTE E'{settings.quote_char}'"
        f" DELIMITER E'{settings.field_separator}'"
        f" NULL '{settings.null_string}';"
    )


def build_copy_statements(table: str, sources: Iterable[str], settings: LoadSettings) -> list[str]:
    """One COPY statement per source file, in the order given."""
    return [build_copy_statement(table, source, settings) for source in sources]


def build_transaction(statements: Iterable[str]) -> list[str]:
    """Bracket statements with BEGIN/COMMIT."""
    return [BEGIN, *statements, COMMIT]


def normalise_steps(steps: Iterable[str] | None) -> frozenset[str]:
    if not steps:
        return frozenset()
    return frozenset(s.strip().lower() for s in steps if s and s.strip())


def build_post_processing_statement(
    table: str,
    skip_steps: Iterable[str] | None,
    include_steps: Iterable[str] | None,
) -> str | None:
    """
    Build the maintenance statement to run after a load.

    ANALYZE runs unless "analyze" is skipped; VACUUM runs only when
    "vacuum" is included, and goes first when both apply.

    Returns:
        "ANALYZE t;", "VACUUM t;", "VACUUM ANALYZE t;", or None
    """
    validate_table_name(table)
    skip = normalise_steps(skip_steps)
    include = normalise_steps(include_steps)

    keywords = []
    if "vacuum" in include:
        keywords.append("VACUUM")
    if "analyze" not in skip:
        keywords.append("ANALYZE")

    if not keywords:
        return None
    return f"{' '.join(keywords)} {table};"
