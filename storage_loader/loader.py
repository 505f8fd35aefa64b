"""
Load orchestration for one target.

Discover -> SelectStrategy -> Load -> PostProcess -> Done. Any failure
aborts the rest of the run and is reported in the returned LoadOutcome;
nothing is retried.

Atomicity depends on the mode:
- Direct: every file is loaded in one transaction, so a failure leaves
  the table as it was before the load.
- Remote Pipe: each file is a separate psql invocation. A failure stops
  the remaining files but the files already piped stay loaded.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from storage_loader.config import Target
from storage_loader.errors import DatabaseLoadError, ErrorKind, LoadFailure
from storage_loader.executors import execute_queries, execute_transaction, pipe_files
from storage_loader.files import get_event_files
from storage_loader.settings import DEFAULT_SETTINGS, LoadSettings
from storage_loader.statements import (
    build_post_processing_statement,
    build_transaction,
    validate_table_name,
)
from storage_loader.strategy import ConnectivityMode, DirectLoad, RemotePipeLoad, plan_load

log = structlog.get_logger()


@dataclass
class LoadOutcome:
    """Result of loading one target."""
    target: str                         # Target name
    mode: ConnectivityMode | None       # None if discovery failed
    files: int                          # Event files discovered
    post_processing: str | None         # Maintenance statement run, if any
    failure: LoadFailure | None         # The failure that aborted the load
    statements_run: int = 0             # Statements or psql invocations attempted, failed one included
    duration_seconds: float = 0

    @property
    def success(self) -> bool:
        return self.failure is None

    def raise_for_failure(self) -> None:
        """Raise DatabaseLoadError if the load failed."""
        if self.failure is not None:
            raise DatabaseLoadError(self.failure)


def _attempted(units: list[str], failure: LoadFailure | None, failed_unit: str | None) -> int:
    """Count the units sent before the chain stopped, the failing one included."""
    if failure is None:
        return len(units)
    if failure.kind is ErrorKind.CONNECTION_FAILURE:
        return 0
    return units.index(failed_unit) + 1


def run_post_processing(
    target: Target,
    skip_steps: Iterable[str] | None,
    include_steps: Iterable[str] | None,
) -> tuple[str | None, LoadFailure | None]:
    """
    Run ANALYZE and/or VACUUM on the target table after a load.

    Runs in its own connection, after the load transaction has committed.

    Returns:
        Tuple of (statement run or None, failure or None)
    """
    statement = build_post_processing_statement(target.table, skip_steps, include_steps)
    if statement is None:
        log.info("post_processing_skipped", target=target.name, reason="no steps selected")
        return None, None

    log.info("post_processing_started", target=target.name, statement=statement)
    return statement, execute_queries(target, [statement])


def _run_plan(
    target: Target, plan: DirectLoad | RemotePipeLoad, psql: str
) -> tuple[LoadFailure | None, int]:
    """Run the load and return (failure or None, statements or invocations attempted)."""
    if isinstance(plan, RemotePipeLoad):
        if len(plan.files) > 1:
            log.warning(
                "remote_pipe_not_atomic",
                target=target.name,
                files=len(plan.files),
                detail="files are loaded one at a time; a failure leaves earlier files loaded",
            )
        failure = pipe_files(target, plan.statement, plan.files, psql=psql)
        return failure, _attempted(plan.files, failure, failure.source if failure else None)

    failure = execute_transaction(target, plan.statements)
    statements = build_transaction(plan.statements)
    return failure, _attempted(statements, failure, failure.statement if failure else None)


def load_events(
    events_dir: str,
    target: Target,
    skip_steps: Iterable[str] | None = None,
    include_steps: Iterable[str] | None = None,
    settings: LoadSettings = DEFAULT_SETTINGS,
    psql: str = "psql",
) -> LoadOutcome:
    """
    Load the event files under a directory into a PostgreSQL target.

    Args:
        events_dir: Directory holding the event files
        target: Database and table to load into
        skip_steps: Steps to leave out (e.g. {"analyze"})
        include_steps: Optional steps to add (e.g. {"vacuum"})
        settings: Serialization constants and file pattern
        psql: psql binary used in Remote Pipe mode

    Returns:
        LoadOutcome; ``failure`` names the statement that stopped the load

    Raises:
        ValueError: If the target's table name is invalid
    """
    started_at = datetime.now(timezone.utc)
    validate_table_name(target.table)

    log.info("load_started", target=target.name, table=target.table, events_dir=events_dir)

    def finish(mode, files, post_processing, failure, statements_run=0) -> LoadOutcome:
        outcome = LoadOutcome(
            target=target.name,
            mode=mode,
            files=files,
            post_processing=post_processing,
            failure=failure,
            statements_run=statements_run,
            duration_seconds=(datetime.now(timezone.utc) - started_at).total_seconds(),
        )
        if failure is None:
            log.info(
                "load_complete",
                target=target.name,
                mode=mode.value,
                files=files,
                post_processing=post_processing,
                statements_run=statements_run,
                duration_seconds=outcome.duration_seconds,
            )
        else:
            log.error(
                "load_aborted",
                target=target.name,
                mode=mode.value if mode else None,
                error_kind=failure.kind.value,
                error_type=failure.category,
                statement=failure.statement,
                error=failure.message,
                file=failure.source,
                statements_run=statements_run,
            )
        return outcome

    # Discover
    try:
        files = get_event_files(events_dir, settings.event_files)
    except DatabaseLoadError as e:
        return finish(None, 0, None, e.failure)

    log.info("event_files_found", target=target.name, count=len(files))

    # Select strategy
    plan = plan_load(target, files, settings)
    log.info("load_strategy_selected", target=target.name, mode=plan.mode.value)

    # Load
    failure, statements_run = _run_plan(target, plan, psql)
    if failure is not None:
        return finish(plan.mode, len(files), None, failure, statements_run)

    # Post-process
    post_processing, failure = run_post_processing(target, skip_steps, include_steps)
    if post_processing is not None:
        statements_run += _attempted([post_processing], failure, post_processing)
    return finish(plan.mode, len(files), post_processing, failure, statements_run)
