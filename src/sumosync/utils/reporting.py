"""
Reporting helpers (table or JSON) for reconcile results.

`print_results` produces a compact table that fits CLI usage. JSON output is
also supported for machine consumption.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List

from ..core.reconciler import ReconcileResult

SUMMARY_KEYS = ("CREATED", "UPDATED", "DELETED", "UNCHANGED", "ABSENT", "SKIPPED")
_DRY_KEYS = ("WOULD_CREATE", "WOULD_UPDATE", "WOULD_DELETE")
_COLUMNS = ("name", "intent", "state", "status", "reason")


def to_rows(results: Iterable[ReconcileResult]) -> List[Dict[str, Any]]:
    rows = []
    for r in results:
        rows.append({
            "name": r.name,
            "intent": r.intent,
            "state": r.state,
            "status": r.status,
            "reason": r.reason,
            "changes": [{"attr": c.attr, "old": c.old, "new": c.new} for c in r.changes],
            "description": r.description,
        })
    return rows


def count_statuses(results: Iterable[ReconcileResult]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for r in results:
        counts[r.status] = counts.get(r.status, 0) + 1
    return counts


def summarize(counts: Dict[str, int]) -> str:
    keys = list(SUMMARY_KEYS)
    # dry-run statuses only when present
    keys += [k for k in _DRY_KEYS if counts.get(k)]
    return " | ".join(f"{k}={counts.get(k, 0)}" for k in keys)


def render_table(rows: List[Dict[str, Any]]) -> str:
    def _fmt(v: Any) -> str:
        s = "" if v is None else str(v)
        return s if s else "—"

    widths = {c: len(c) for c in _COLUMNS}
    for r in rows:
        for c in _COLUMNS:
            widths[c] = max(widths[c], len(_fmt(r.get(c))))

    lines = [
        "| " + " | ".join(c.ljust(widths[c]) for c in _COLUMNS) + " |",
        "| " + " | ".join("-" * widths[c] for c in _COLUMNS) + " |",
    ]
    for r in rows:
        lines.append("| " + " | ".join(_fmt(r.get(c)).ljust(widths[c]) for c in _COLUMNS) + " |")
    return "\n".join(lines)


def print_results(results: List[ReconcileResult], fmt: str = "table") -> None:
    """Render reconcile results as a table or JSON.

    Args:
        results: Results in processing order.
        fmt: Either ``"table"`` (default) or ``"json"``.
    """
    rows = to_rows(results)
    if fmt == "json":
        print(json.dumps(rows, indent=2, default=str))
        return
    print(render_table(rows))
    for r in rows:
        if r["description"] and r["changes"]:
            print(f"\n{r['name']}:\n{r['description']}")
