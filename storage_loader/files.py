"""Discovery of the event files to load."""

from pathlib import Path

import structlog

from storage_loader.errors import DatabaseLoadError, ErrorKind, LoadFailure

log = structlog.get_logger()


def get_event_files(events_dir: str, pattern: str) -> list[str]:
    """
    Return every event file under a directory, searched recursively.

    Directories whose names happen to match the pattern are skipped.
    Paths are absolute and sorted so repeat runs see the same order.

    Args:
        events_dir: Directory holding the event files
        pattern: Filename glob, e.g. "part-*"

    Returns:
        List of absolute file paths (possibly empty)

    Raises:
        DatabaseLoadError: If the directory is missing or unreadable
    """
    root = Path(events_dir)

    if not root.is_dir():
        raise DatabaseLoadError(LoadFailure(
            statement=f"list {events_dir}",
            kind=ErrorKind.DIRECTORY_UNREADABLE,
            category="NotADirectoryError" if root.exists() else "FileNotFoundError",
            message=f"events directory not found: {events_dir}",
        ))

    try:
        # rglob quietly skips unreadable directories, so probe the root first
        next(root.iterdir(), None)
        files = sorted(str(p.resolve()) for p in root.rglob(pattern) if p.is_file())
    except OSError as e:
        raise DatabaseLoadError(LoadFailure(
            statement=f"list {events_dir}",
            kind=ErrorKind.DIRECTORY_UNREADABLE,
            category=type(e).__name__,
            message=str(e),
        )) from e

    log.debug("event_files_listed", events_dir=events_dir, pattern=pattern, count=len(files))
    return files
