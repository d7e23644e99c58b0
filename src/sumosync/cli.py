"""
Command-line interface for SumoSync.

Usage (examples):
  - Plan only (reads remote state, no changes):
      python -m sumosync.cli plan --sources ./sources.yml --collector web-01

  - Apply:
      python -m sumosync.cli apply --sources ./sources.yml --collector web-01 \
        --username "$SUMO_ACCESS_ID" --password "$SUMO_ACCESS_KEY"
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, Iterable, Optional

from .core.collector import Collector
from .core.config import ConfigError, load_config
from .core.logging_setup import build_logger
from .core.reconciler import CollectorNotFound, Reconciler
from .core.sources import ValidationError
from .core.sumo_client import SourceAPIError, SumoClient
from .utils.loaders import load_definitions
from .utils.reporting import count_statuses, print_results, summarize

EXIT_OK = 0
EXIT_GENERIC_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_VALIDATION_ERROR = 3
EXIT_API_ERROR = 4
EXIT_COLLECTOR_NOT_FOUND = 5

log = logging.getLogger("sumosync.cli")


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--sources", default=None, help="Desired sources file (.yml, .xlsx or .csv)")
    p.add_argument("--sheet", default=None, help="XLSX sheet name (default: Sources)")
    p.add_argument("--format", choices=["table", "json"], default="table", help="Output format")

    # Sumo API
    p.add_argument("--collector", default=None, help="Collector name (default: host name)")
    p.add_argument("--api-url", default=None, help="Sumo Logic API base URL")
    p.add_argument("--username", default=None, help="Access id")
    p.add_argument("--password", default=None, help="Access key")
    p.add_argument("--timeout-sec", type=int, default=None, help="HTTP timeout seconds")
    p.add_argument("--query-limit", type=int, default=None, help="Max collectors returned by the lookup")
    p.add_argument("--verify-tls", default=None, choices=["true", "false"], help="Verify TLS (https)")
    p.add_argument("--disabled", action="store_true", default=None, help="Skip reconciliation entirely")

    # Logging
    p.add_argument("--logs-dir", default=None, help="Logs base directory")
    p.add_argument("--console-level", default=None, help="Console log level (INFO..CRITICAL)")
    p.add_argument("--file-level", default=None, help="File log level (DEBUG..CRITICAL)")


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sumosync", description="Reconcile Sumo Logic collector sources")
    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("apply", help="Converge remote sources towards the desired file")
    _add_common(a)
    a.add_argument("--dry-run", action="store_true", default=None, help="Report changes without applying them")

    pl = sub.add_parser("plan", help="Show what apply would change")
    _add_common(pl)
    return p


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    dry_run = True if args.cmd == "plan" else args.dry_run
    return {
        "app": {"dry_run": dry_run, "disabled": args.disabled},
        "sumo": {
            "api_url": args.api_url,
            "username": args.username,
            "password": args.password,
            "timeout_sec": args.timeout_sec,
            "collector_query_limit": args.query_limit,
            "verify_tls": args.verify_tls,
        },
        "collector": {"name": args.collector},
        "logging": {
            "base_dir": args.logs_dir,
            "console_level": args.console_level,
            "file_level": args.file_level,
        },
        "inputs": {"sources_path": args.sources, "sheet": args.sheet},
    }


def _run(args: argparse.Namespace) -> int:
    cfg = load_config(_overrides(args))

    logger = build_logger(
        run_id=cfg.run_id,
        action=args.cmd,
        base_dir=cfg.logging.base_dir,
        console_level=cfg.logging.console_level,
        file_level=cfg.logging.file_level,
        collector=cfg.collector.name,
    )
    logger.info("Starting sumosync %s (dry_run=%s, disabled=%s)", args.cmd, cfg.app.dry_run, cfg.app.disabled)

    try:
        entries = load_definitions(cfg.inputs.sources_path, cfg.inputs.sheet)
    except (FileNotFoundError, ValidationError) as exc:
        if not cfg.app.disabled:
            raise
        logger.warning("Reconciliation disabled; ignoring unreadable sources file: %s", exc)
        entries = []
    logger.info("Loaded %d source definitions from %s", len(entries), cfg.inputs.sources_path)

    client = SumoClient(
        cfg.sumo.api_url,
        cfg.sumo.username,
        cfg.sumo.password,
        timeout_sec=cfg.sumo.timeout_sec,
        verify_tls=cfg.sumo.verify_tls,
    )
    collector = Collector(
        client,
        cfg.collector.name,
        query_limit=cfg.sumo.collector_query_limit,
        timeout_sec=cfg.sumo.timeout_sec,
    )
    reconciler = Reconciler(
        collector,
        disabled=cfg.app.disabled,
        dry_run=cfg.app.dry_run,
        api_timeout=cfg.sumo.timeout_sec,
        logger=logger,
    )

    results = reconciler.reconcile_all(entries)
    counts = count_statuses(results)
    print_results(results, args.format)
    print(summarize(counts))
    logger.info("Summary: %s", summarize(counts))
    return EXIT_OK


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        return _run(args)
    except ConfigError as exc:
        log.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR
    except FileNotFoundError as exc:
        log.error("File not found: %s", exc)
        return EXIT_VALIDATION_ERROR
    except ValidationError as exc:
        log.error("Validation error: %s", exc)
        return EXIT_VALIDATION_ERROR
    except CollectorNotFound as exc:
        log.error("%s", exc)
        return EXIT_COLLECTOR_NOT_FOUND
    except SourceAPIError as exc:
        log.error("Sumo API error: %s", exc)
        return EXIT_API_ERROR
    except Exception as exc:  # pragma: no cover (safety net)
        log.error("Unexpected error: %s", exc, exc_info=True)
        return EXIT_GENERIC_ERROR


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
