"""
Configuration management for the Storage Loader.

This module handles:
- Loading environment variables into a typed Config dataclass
- Loading target definitions from a YAML file or a directory tree of them
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import structlog
import yaml

from storage_loader.settings import DEFAULT_SETTINGS
from storage_loader.statements import normalise_steps

log = structlog.get_logger()

POSTGRES_TYPE = "postgres"
DEFAULT_POSTGRES_PORT = 5432


@dataclass(frozen=True)
class Target:
    """
    A PostgreSQL table to load events into.

    Whether the host is a managed deployment (Remote Pipe mode) is not
    stored here; it is worked out per load from the host, unless
    ``connectivity`` pins it to "direct" or "remote_pipe".
    """
    name: str
    host: str
    port: int
    database: str
    username: str
    password: str = field(repr=False)
    table: str
    connectivity: str | None = None

    def connection_kwargs(self) -> dict[str, object]:
        """Keyword arguments for psycopg2.connect."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.username,
            "password": self.password,
        }


def _split_steps(raw: str | None) -> frozenset[str]:
    return normalise_steps(raw.split(",") if raw else None)


@dataclass(frozen=True)
class Config:
    """Loader configuration."""

    events_dir: str                 # Directory holding the part-* files
    targets_path: str               # YAML file or directory of target definitions
    skip_steps: frozenset[str]      # e.g. {"analyze"}
    include_steps: frozenset[str]   # e.g. {"vacuum"}
    psql_path: str                  # psql binary for Remote Pipe loads
    managed_host_marker: str        # Host substring that selects Remote Pipe mode

    @classmethod
    def from_env(cls) -> "Config":
        """
        Load configuration from environment variables.

        Required:
            EVENTS_DIR: Directory holding the event files
            TARGETS_PATH: YAML file or directory of YAML files

        Optional:
            SKIP_STEPS: Comma-separated steps to skip (default: none)
            INCLUDE_STEPS: Comma-separated optional steps (default: none)
            PSQL_PATH: psql binary (default: psql)
            MANAGED_HOST_MARKER: default rds.amazonaws.com
        """
        return cls(
            events_dir=os.environ["EVENTS_DIR"],
            targets_path=os.environ["TARGETS_PATH"],
            skip_steps=_split_steps(os.environ.get("SKIP_STEPS")),
            include_steps=_split_steps(os.environ.get("INCLUDE_STEPS")),
            psql_path=os.environ.get("PSQL_PATH", "psql"),
            managed_host_marker=os.environ.get(
                "MANAGED_HOST_MARKER", DEFAULT_SETTINGS.managed_host_marker
            ),
        )


def _parse_target(raw: dict) -> Target:
    """
    Build a Target from one YAML entry.

    The password is taken from ``password``, or from the environment
    variable named by ``password_env``.
    """
    password = raw.get("password")
    if password is None and raw.get("password_env"):
        password = os.environ[raw["password_env"]]

    return Target(
        name=raw["name"],
        host=raw["host"],
        port=int(raw.get("port", DEFAULT_POSTGRES_PORT)),
        database=raw["database"],
        username=raw["username"],
        password=password or "",
        table=raw["table"],
        connectivity=raw.get("connectivity"),
    )


def load_targets(path: str) -> list[Target]:
    """
    Load PostgreSQL targets from a YAML file or a directory tree of them.

    Each file holds a ``targets`` list. Entries whose ``type`` is not
    "postgres" belong to other loaders and are skipped.

    Example YAML:

        targets:
          - name: "My PostgreSQL database"
            type: postgres
            host: localhost
            port: 5432
            database: snowplow
            username: loader
            password_env: SNOWPLOW_PG_PASSWORD
            table: atomic.events

    Args:
        path: A .yaml/.yml file, or a directory searched recursively

    Returns:
        Targets in file order (files sorted by path)
    """
    root = Path(path)
    if root.is_dir():
        yaml_paths = sorted([*root.rglob("*.yaml"), *root.rglob("*.yml")])
    else:
        yaml_paths = [root]

    targets = []
    for yaml_path in yaml_paths:
        raw = yaml.safe_load(yaml_path.read_text())

        # Skip empty files
        if not raw:
            continue

        for entry in raw.get("targets") or []:
            target_type = entry.get("type", POSTGRES_TYPE)
            if target_type != POSTGRES_TYPE:
                log.info(
                    "target_skipped",
                    target=entry.get("name"),
                    type=target_type,
                    reason="not a postgres target",
                )
                continue
            targets.append(_parse_target(entry))

    return targets
