"""
Central logging for SumoSync.

- Console handler on stderr (INFO by default)
- Timed rotated file handler: DEBUG (<base_dir>/app.log, daily rotation, UTC)
- Per-run file handler: DEBUG (<base_dir>/YYYY-MM-DD/<action>_<run_id>.log)
- Secret redaction: masks access keys, passwords and basic-auth headers
- UTC timestamps in ISO-8601
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class MaskSecretsFilter(logging.Filter):
    """
    Redact credentials (basic auth, access keys, passwords) from log records.
    """

    _patterns = [
        re.compile(r"(Authorization:\s*Basic\s+)([A-Za-z0-9+/=]+)", re.IGNORECASE),
        re.compile(r"(access[_-]?key\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
        re.compile(r"(password\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
        re.compile(r"('password':\s*')([^']*)", re.IGNORECASE),
    ]

    @staticmethod
    def _mask(text: str) -> str:
        masked = text
        for pat in MaskSecretsFilter._patterns:
            masked = pat.sub(r"\1***REDACTED***", masked)
        return masked

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask(str(v)) for k, v in record.args.items()}
            else:
                record.args = tuple(
                    self._mask(a) if isinstance(a, str) else a for a in record.args
                )
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        return True


def _utc_formatter(fmt: str) -> logging.Formatter:
    f = logging.Formatter(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%SZ")
    f.converter = time.gmtime  # type: ignore[assignment]
    return f


def _level(name: str, default: int) -> int:
    return getattr(logging, str(name).upper(), default)


def _replace_console_handler(base: logging.Logger, level: str, formatter: logging.Formatter,
                             mask: logging.Filter) -> None:
    """
    Keep exactly ONE stderr StreamHandler on the base logger
    (pytest may swap stdio between tests).
    """
    for h in list(base.handlers):
        if type(h) is logging.StreamHandler:
            base.removeHandler(h)
            h.close()

    sh = logging.StreamHandler(stream=sys.stderr)
    sh.setLevel(_level(level, logging.INFO))
    sh.setFormatter(formatter)
    sh.addFilter(mask)
    base.addHandler(sh)


def _ensure_app_file_handler(base: logging.Logger, base_dir: str, level: str,
                             formatter: logging.Formatter, mask: logging.Filter) -> None:
    """
    Ensure a single TimedRotatingFileHandler points to <base_dir>/app.log.
    A handler left over for another directory is replaced.
    """
    os.makedirs(base_dir, exist_ok=True)
    desired = os.path.abspath(os.path.join(base_dir, "app.log"))

    keep = False
    for h in list(base.handlers):
        if isinstance(h, logging.handlers.TimedRotatingFileHandler):
            if os.path.abspath(h.baseFilename) == desired:
                keep = True
            else:
                base.removeHandler(h)
                h.close()
    if keep:
        return

    rh = logging.handlers.TimedRotatingFileHandler(
        desired,
        when="midnight",
        backupCount=14,
        encoding="utf-8",
        utc=True,
    )
    rh.setLevel(_level(level, logging.DEBUG))
    rh.setFormatter(formatter)
    rh.addFilter(mask)
    base.addHandler(rh)


def build_logger(
    *,
    name: str = "sumosync",
    run_id: str,
    action: str,
    base_dir: str = "logs",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    collector: Optional[str] = None,
) -> logging.LoggerAdapter:
    """
    Configure and return a LoggerAdapter.

    Design:
      - A base logger `<name>` holds console + rotating file handlers.
      - A child logger `<name>.<action>.<run_id>` holds a per-run file handler.
      - Records propagate to the base logger so they appear in all sinks.
      - Library loggers (`sumosync.http`, `sumosync.collector`, ...) are children
        of the base logger and share its sinks.
    """
    mask = MaskSecretsFilter()
    formatter = _utc_formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | "
        "run=%(run_id)s action=%(action)s collector=%(collector)s | "
        "%(message)s"
    )
    plain = _utc_formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    base = logging.getLogger(name)
    base.setLevel(logging.DEBUG)

    _replace_console_handler(base, console_level, plain, mask)
    _ensure_app_file_handler(base, base_dir, file_level, plain, mask)

    child = logging.getLogger(f"{name}.{action}.{run_id}")
    child.setLevel(logging.DEBUG)

    if not getattr(child, "_sumosync_run_file", False):
        dated_dir = os.path.join(base_dir, datetime.now(timezone.utc).strftime("%Y-%m-%d"))
        os.makedirs(dated_dir, exist_ok=True)
        run_file = Path(dated_dir) / f"{action}_{run_id}.log"
        fh = logging.FileHandler(run_file, encoding="utf-8")
        fh.setLevel(_level(file_level, logging.DEBUG))
        fh.setFormatter(formatter)
        fh.addFilter(mask)
        child.addHandler(fh)
        child._sumosync_run_file = True  # type: ignore[attr-defined]

    adapter = logging.LoggerAdapter(
        child,
        {"run_id": run_id, "action": action, "collector": collector or "-"},
    )
    adapter.debug("Logger initialised")
    return adapter
