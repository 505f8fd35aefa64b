"""
Choosing how a target gets loaded.

Managed databases (e.g. Amazon RDS) cannot read files from the server's
filesystem, so their loads go through psql on the client instead. The
result of planning is one of two plain values, ``DirectLoad`` or
``RemotePipeLoad``, which the orchestrator dispatches on once.
"""

from dataclasses import dataclass
from enum import Enum

from storage_loader.config import Target
from storage_loader.settings import LoadSettings
from storage_loader.statements import build_copy_statement, build_copy_statements


class ConnectivityMode(str, Enum):
    DIRECT = "direct"
    REMOTE_PIPE = "remote_pipe"


def resolve_connectivity(target: Target, settings: LoadSettings) -> ConnectivityMode:
    """
    Decide how the database can be reached for loading.

    An explicit ``target.connectivity`` wins. Otherwise a host containing
    the managed-service marker means Remote Pipe.

    Raises:
        ValueError: If ``target.connectivity`` is not a known mode
    """
    if target.connectivity:
        try:
            return ConnectivityMode(target.connectivity.lower())
        except ValueError:
            raise ValueError(
                f"Unknown connectivity {target.connectivity!r} for target {target.name}"
            ) from None

    if settings.managed_host_marker and settings.managed_host_marker in target.host:
        return ConnectivityMode.REMOTE_PIPE
    return ConnectivityMode.DIRECT


@dataclass(frozen=True)
class DirectLoad:
    """All files loaded by the server in one BEGIN ... COMMIT transaction."""
    statements: list[str]   # One COPY per file

    mode = ConnectivityMode.DIRECT


@dataclass(frozen=True)
class RemotePipeLoad:
    """
    One FROM STDIN COPY, run by psql once per file.

    Each file is its own operation: a failure part way through leaves
    the earlier files loaded.
    """
    statement: str
    files: list[str]

    mode = ConnectivityMode.REMOTE_PIPE


LoadPlan = DirectLoad | RemotePipeLoad


def plan_load(target: Target, files: list[str], settings: LoadSettings) -> LoadPlan:
    """Build the load plan for a target and its event files."""
    if resolve_connectivity(target, settings) is ConnectivityMode.REMOTE_PIPE:
        return RemotePipeLoad(
            statement=build_copy_statement(target.table, None, settings),
            files=list(files),
        )

    return DirectLoad(
        statements=build_copy_statements(target.table, files, settings),
    )
