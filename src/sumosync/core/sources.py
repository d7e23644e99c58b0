"""
Source definitions for Sumo Logic local-file sources.

`ATTRIBUTES` is the fixed, ordered list of attributes that are compared when
deciding whether a remote source must be replaced. Each entry maps the
attribute name to its field in the Collector Management API and to the
accessor used to read it. Entries are checked against the dataclass fields on
import.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from operator import attrgetter
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

SOURCE_TYPE_LOCAL_FILE = "LocalFile"

INTENT_CREATE = "create"
INTENT_DELETE = "delete"
INTENTS = (INTENT_CREATE, INTENT_DELETE)

# (attribute, api field, accessor)
ATTRIBUTES: Tuple[Tuple[str, str, Callable[[Any], Any]], ...] = (
    ("path", "pathExpression", attrgetter("path")),
    ("category", "category", attrgetter("category")),
    ("default_timezone", "timeZone", attrgetter("default_timezone")),
    ("force_timezone", "forceTimeZone", attrgetter("force_timezone")),
    ("automatic_date_parsing", "automaticDateParsing", attrgetter("automatic_date_parsing")),
    ("multiline_processing_enabled", "multilineProcessingEnabled", attrgetter("multiline_processing_enabled")),
    ("use_autoline_matching", "useAutolineMatching", attrgetter("use_autoline_matching")),
    ("manual_prefix_regexp", "manualPrefixRegexp", attrgetter("manual_prefix_regexp")),
    ("default_date_format", "defaultDateFormat", attrgetter("default_date_format")),
)

_BOOL_ATTRS = {
    "force_timezone",
    "automatic_date_parsing",
    "multiline_processing_enabled",
    "use_autoline_matching",
}

# Aliases accepted in desired-state files (camelCase API names included)
_ALIASES: Dict[str, str] = {api: attr for attr, api, _ in ATTRIBUTES}
_ALIASES.update({
    "path_expression": "path",
    "timezone": "default_timezone",
    "time_zone": "default_timezone",
    "force_time_zone": "force_timezone",
})


class ValidationError(Exception):
    """Raised when a desired source definition is malformed."""
    pass


@dataclass(frozen=True)
class SourceDefinition:
    """One local-file source, desired or observed.

    Observed definitions also carry the remote ``source_id``.
    """
    name: str
    path: Optional[str] = None
    category: Optional[str] = None
    default_timezone: Optional[str] = None
    force_timezone: bool = False
    automatic_date_parsing: bool = True
    multiline_processing_enabled: bool = True
    use_autoline_matching: bool = True
    manual_prefix_regexp: Optional[str] = None
    default_date_format: Optional[str] = None
    source_id: Optional[int] = None
    source_type: str = SOURCE_TYPE_LOCAL_FILE

    def with_id(self, source_id: Any) -> "SourceDefinition":
        return replace(self, source_id=source_id)

    def to_api(self) -> Dict[str, Any]:
        """Build the API ``source`` payload. None-valued attributes are omitted."""
        payload: Dict[str, Any] = {"name": self.name, "sourceType": self.source_type}
        for _, api, get in ATTRIBUTES:
            val = get(self)
            if val is not None:
                payload[api] = val
        return payload

    @classmethod
    def from_api(cls, record: Mapping[str, Any]) -> "SourceDefinition":
        """Build an observed definition from an API source record."""
        kwargs: Dict[str, Any] = {attr: record.get(api) for attr, api, _ in ATTRIBUTES}
        return cls(
            name=str(record.get("name", "")),
            source_id=record.get("id"),
            source_type=str(record.get("sourceType") or SOURCE_TYPE_LOCAL_FILE),
            **kwargs,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SourceDefinition":
        """Build a desired definition from a loosely-typed mapping (YAML/XLSX row).

        Raises:
            ValidationError: On unknown keys or values of the wrong type.
        """
        known = {f.name for f in fields(cls)} - {"source_id", "source_type"}
        kwargs: Dict[str, Any] = {}
        for raw_key, val in data.items():
            key = str(raw_key).strip()
            key = _ALIASES.get(key, key)
            if key in ("action", "intent"):
                continue
            if key not in known:
                raise ValidationError(f"Unknown source attribute '{raw_key}'")
            if val is None:
                continue
            if key in _BOOL_ATTRS:
                val = _to_bool(key, val)
            elif isinstance(val, str):
                val = val.strip()
                if val == "" and key != "name":
                    continue
            kwargs[key] = val
        if "name" not in kwargs:
            raise ValidationError("Source definition is missing 'name'")
        return cls(**kwargs)


_FIELDS = {f.name for f in fields(SourceDefinition)}
_BLANK = SourceDefinition(name="")
for _attr, _, _get in ATTRIBUTES:
    # accessors must resolve on a real instance
    if _attr not in _FIELDS or _get(_BLANK) is not getattr(_BLANK, _attr):
        raise ImportError(f"ATTRIBUTES entry '{_attr}' does not match a SourceDefinition field")


def _to_bool(attr: str, val: Any) -> bool:
    if isinstance(val, bool):
        return val
    text = str(val).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise ValidationError(f"Attribute '{attr}' must be a boolean, got {val!r}")


def validate(definition: SourceDefinition, intent: str = INTENT_CREATE) -> None:
    """Check a desired definition before any API call is made.

    Raises:
        ValidationError: If the definition cannot be sent to the API.
    """
    if intent not in INTENTS:
        raise ValidationError(f"Unknown intent '{intent}' (expected one of: {', '.join(INTENTS)})")
    if not isinstance(definition.name, str) or not definition.name.strip():
        raise ValidationError("Source name must be a non-empty string")
    if intent == INTENT_DELETE:
        return

    prefix = f"source '{definition.name}': "
    if not isinstance(definition.path, str) or not definition.path.strip():
        raise ValidationError(prefix + "'path' is required")
    for attr, _, get in ATTRIBUTES:
        val = get(definition)
        if attr in _BOOL_ATTRS:
            if not isinstance(val, bool):
                raise ValidationError(prefix + f"'{attr}' must be a boolean")
        elif val is not None and not isinstance(val, str):
            raise ValidationError(prefix + f"'{attr}' must be a string")
    if definition.force_timezone and not definition.default_timezone:
        raise ValidationError(prefix + "'force_timezone' requires 'default_timezone'")
    if not definition.multiline_processing_enabled and definition.manual_prefix_regexp:
        raise ValidationError(prefix + "'manual_prefix_regexp' requires multiline processing")


def validate_all(items: Iterable[Tuple[SourceDefinition, str]]) -> List[Tuple[SourceDefinition, str]]:
    """Validate a batch and reject duplicate names."""
    out: List[Tuple[SourceDefinition, str]] = []
    seen = set()
    for definition, intent in items:
        validate(definition, intent)
        if definition.name in seen:
            raise ValidationError(f"Duplicate source name '{definition.name}'")
        seen.add(definition.name)
        out.append((definition, intent))
    return out
