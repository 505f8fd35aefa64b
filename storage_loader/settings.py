"""Serialization constants shared by every load."""

from dataclasses import dataclass


@dataclass(frozen=True)
class LoadSettings:
    """
    Fixed parameters for building COPY statements and finding files.

    The quote and escape characters are written as PostgreSQL escape-string
    text (used inside ``E'...'``), so ``\\x01`` reaches the server as the
    single byte 0x01. Neither byte occurs in encoded event data.
    """
    event_files: str = "part-*"                       # Glob for event files, applied recursively
    field_separator: str = "\t"                       # Literal tab inside E'...'
    null_string: str = ""                             # Empty field means NULL
    quote_char: str = "\\x01"                         # CSV quote byte
    escape_char: str = "\\x02"                        # CSV escape byte
    managed_host_marker: str = "rds.amazonaws.com"   # Host substring for managed databases


DEFAULT_SETTINGS = LoadSettings()
