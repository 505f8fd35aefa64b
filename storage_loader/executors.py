"""
Running load statements against PostgreSQL.

Two executors, one per load mode:
- execute_queries / execute_transaction: statements over a single
  psycopg2 connection, stopping at the first error
- pipe_files: one psql process per file, file contents on stdin

Both return None on success or the LoadFailure that stopped them. They
never retry.
"""

import os
import subprocess
from collections.abc import Sequence

import psycopg2
import structlog

from storage_loader.config import Target
from storage_loader.errors import ErrorKind, LoadFailure
from storage_loader.statements import build_transaction

log = structlog.get_logger()


def _error_message(err: Exception) -> str:
    # pgerror holds the server's message without psycopg2's decoration
    message = getattr(err, "pgerror", None) or str(err)
    return message.strip()


def execute_queries(target: Target, queries: Sequence[str]) -> LoadFailure | None:
    """
    Run statements in order over one connection, stopping at the first error.

    The connection is in autocommit mode so transaction control comes from
    the statements themselves (BEGIN;/COMMIT;), and VACUUM can run. If a
    statement fails inside an open transaction, closing the connection
    rolls it back.

    Args:
        target: Database to connect to
        queries: Statements to run, in order

    Returns:
        None if every statement succeeded, otherwise the failure
    """
    if not queries:
        return None

    try:
        conn = psycopg2.connect(**target.connection_kwargs())
    except psycopg2.Error as e:
        log.error(
            "connection_failed",
            target=target.name,
            host=target.host,
            error=_error_message(e),
            error_type=type(e).__name__,
        )
        return LoadFailure(
            statement=queries[0],
            kind=ErrorKind.CONNECTION_FAILURE,
            category=type(e).__name__,
            message=_error_message(e),
        )

    try:
        conn.autocommit = True
        with conn.cursor() as cursor:
            for index, query in enumerate(queries):
                try:
                    cursor.execute(query)
                except psycopg2.Error as e:
                    log.error(
                        "statement_failed",
                        target=target.name,
                        statement_index=index,
                        statement=query,
                        error=_error_message(e),
                        error_type=type(e).__name__,
                    )
                    return LoadFailure(
                        statement=query,
                        kind=ErrorKind.STATEMENT_EXECUTION_ERROR,
                        category=type(e).__name__,
                        message=_error_message(e),
                    )
                log.debug("statement_executed", target=target.name, statement_index=index)
    finally:
        conn.close()

    return None


def execute_transaction(target: Target, queries: Sequence[str]) -> LoadFailure | None:
    """
    Run statements as one transaction over one connection.

    Either every statement commits, or the first failure stops the chain
    before COMMIT and the whole transaction is rolled back.
    """
    return execute_queries(target, build_transaction(queries))


def psql_command(target: Target, statement: str, psql: str = "psql") -> list[str]:
    """
    Build the psql argument list for piping one file.

    The password is not part of the command; it goes in PGPASSWORD.
    """
    return [
        psql,
        "-w",
        "-h", target.host,
        "-p", str(target.port),
        "-U", target.username,
        "-d", target.database,
        "-v", "ON_ERROR_STOP=1",
        "-c", statement,
    ]


def pipe_files(
    target: Target,
    statement: str,
    files: Sequence[str],
    psql: str = "psql",
) -> LoadFailure | None:
    """
    Stream each file into psql running a FROM STDIN COPY.

    Files are piped one at a time, in order, and the first failing
    invocation stops the rest. There is no transaction across files:
    files piped before a failure stay loaded.

    Args:
        target: Database to connect to
        statement: COPY ... FROM STDIN statement
        files: Event files to pipe
        psql: psql binary to run

    Returns:
        None if every file loaded, otherwise the failure
    """
    cmd = psql_command(target, statement, psql)
    env = {**os.environ, "PGPASSWORD": target.password}

    for index, path in enumerate(files):
        try:
            with open(path, "rb") as stdin:
                result = subprocess.run(
                    cmd,
                    stdin=stdin,
                    capture_output=True,
                    env=env,
                )
        except OSError as e:
            # psql missing, or the event file could not be opened
            log.error(
                "pipe_invocation_failed",
                target=target.name,
                file=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            return LoadFailure(
                statement=statement,
                kind=ErrorKind.EXTERNAL_PROCESS_FAILURE,
                category=type(e).__name__,
                message=str(e),
                source=path,
            )

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip() if result.stderr else ""
            log.error(
                "pipe_invocation_failed",
                target=target.name,
                file=path,
                returncode=result.returncode,
                stderr=stderr[-2000:] or None,
                files_already_loaded=index,
            )
            return LoadFailure(
                statement=statement,
                kind=ErrorKind.EXTERNAL_PROCESS_FAILURE,
                category=f"exit status {result.returncode}",
                message=stderr or "psql returned non-zero exit code",
                source=path,
            )

        log.debug("file_piped", target=target.name, file=path)

    return None
