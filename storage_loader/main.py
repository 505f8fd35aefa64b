"""
Storage Loader entry point.

Loads the event files in EVENTS_DIR into every PostgreSQL target defined
under TARGETS_PATH, one target after another:
1. Find the part-* event files
2. COPY them in (directly, or piped through psql for managed hosts)
3. ANALYZE / VACUUM the table unless told otherwise

The first target that fails stops the run with exit code 1.
"""

import argparse
import sys
from dataclasses import replace

import structlog

from storage_loader.config import Config, load_targets
from storage_loader.loader import load_events
from storage_loader.settings import DEFAULT_SETTINGS
from storage_loader.statements import normalise_steps

log = structlog.get_logger()


def configure_logging() -> None:
    """JSON logs with level and ISO timestamp on every line."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load event files into PostgreSQL")
    parser.add_argument("--events-dir", help="Override EVENTS_DIR")
    parser.add_argument(
        "--skip",
        action="append",
        default=[],
        help="Step to skip, e.g. analyze (repeatable)",
    )
    parser.add_argument(
        "--include",
        action="append",
        default=[],
        help="Optional step to include, e.g. vacuum (repeatable)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main loader entry point."""
    configure_logging()
    args = parse_args(argv)
    config = Config.from_env()

    events_dir = args.events_dir or config.events_dir
    skip_steps = config.skip_steps | normalise_steps(args.skip)
    include_steps = config.include_steps | normalise_steps(args.include)
    settings = replace(DEFAULT_SETTINGS, managed_host_marker=config.managed_host_marker)

    targets = load_targets(config.targets_path)
    if not targets:
        log.warning("no_targets_configured", targets_path=config.targets_path)
        return 0

    log.info(
        "loader_started",
        events_dir=events_dir,
        targets=len(targets),
        skip_steps=sorted(skip_steps),
        include_steps=sorted(include_steps),
    )

    for target in targets:
        try:
            outcome = load_events(
                events_dir,
                target,
                skip_steps,
                include_steps,
                settings=settings,
                psql=config.psql_path,
            )
        except ValueError as e:
            log.error("target_invalid", target=target.name, error=str(e))
            return 1

        if not outcome.success:
            log.error(
                "loader_failed",
                target=target.name,
                error=outcome.failure.describe(),
            )
            return 1

    log.info("loader_complete", targets=len(targets))
    return 0


if __name__ == "__main__":
    sys.exit(main())
