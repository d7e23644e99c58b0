"""
Desired-state loaders.

Supported inputs (auto-detected by extension):
  * YAML (.yml/.yaml): a top-level ``sources:`` list, or a bare list
  * XLSX (.xlsx/.xlsm): sheet ``Sources`` (or the first sheet), first row = headers
  * CSV: first row = headers

Each entry is one source; an optional ``action`` column/key selects the intent
(``create`` by default, or ``delete``).
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import yaml

from ..core.sources import INTENT_CREATE, INTENTS, SourceDefinition, ValidationError

Entry = Tuple[SourceDefinition, str]


def _clean(value: Any) -> Any:
    """Map spreadsheet blanks (NaN/None/"") to None."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _to_entry(row: Dict[str, Any], where: str) -> Entry:
    data = {str(k).strip(): _clean(v) for k, v in row.items() if str(k).strip()}
    intent = str(data.get("action") or data.get("intent") or INTENT_CREATE).strip().lower()
    if intent not in INTENTS:
        raise ValidationError(f"{where}: unknown action '{intent}' (expected one of: {', '.join(INTENTS)})")
    try:
        definition = SourceDefinition.from_mapping(data)
    except ValidationError as exc:
        raise ValidationError(f"{where}: {exc}") from exc
    return definition, intent


def _from_yaml(path: Path) -> List[Entry]:
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or []
    if isinstance(data, dict):
        data = data.get("sources") or []
    if not isinstance(data, list):
        raise ValidationError(f"{path}: expected a list of sources")
    out: List[Entry] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValidationError(f"{path}: entry #{i + 1} must be a mapping")
        out.append(_to_entry(item, f"{path.name} entry #{i + 1}"))
    return out


def _from_frame(df: pd.DataFrame, label: str) -> List[Entry]:
    df = df.dropna(how="all")
    return [
        _to_entry(row, f"{label} row {i + 2}")
        for i, row in enumerate(df.to_dict(orient="records"))
    ]


def _from_xlsx(path: Path, sheet: Optional[str]) -> List[Entry]:
    try:
        sheets = pd.read_excel(path, sheet_name=None, engine="openpyxl", dtype=object)
    except Exception as exc:
        raise ValidationError(f"Failed to read {path}: {exc}") from exc
    if not sheets:
        return []
    name = sheet if sheet in sheets else next(iter(sheets))
    return _from_frame(sheets[name], f"{path.name}[{name}]")


def _from_csv(path: Path) -> List[Entry]:
    df = pd.read_csv(path, dtype=object, keep_default_na=True, encoding="utf-8-sig")
    return _from_frame(df, path.name)


def load_definitions(path: str, sheet: Optional[str] = "Sources") -> List[Entry]:
    """Load desired source definitions from *path*.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValidationError: If an entry is malformed.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Sources file not found: {path}")
    ext = p.suffix.lower()
    if ext in (".yml", ".yaml"):
        return _from_yaml(p)
    if ext in (".xlsx", ".xlsm"):
        return _from_xlsx(p, sheet)
    return _from_csv(p)
