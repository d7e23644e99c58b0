"""
Diff engine for SumoSync.

Provides a minimal decision model to determine whether a source should be
created, updated, deleted or left as-is (NOOP) based on an attribute-by-attribute
comparison between the **desired** and **observed** definitions.

The remote API only supports whole-record updates, so any single differing
attribute yields an UPDATE carrying the full desired definition.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional, Tuple

from .sources import ATTRIBUTES, INTENT_DELETE, SourceDefinition

Op = Literal["NOOP", "CREATE", "UPDATE", "DELETE"]


@dataclass(frozen=True)
class Change:
    """One differing attribute."""
    attr: str
    old: Any
    new: Any

    def describe(self) -> str:
        return f"value of {self.attr} will change from '{_fmt(self.old)}' to '{_fmt(self.new)}'"


@dataclass(frozen=True)
class Decision:
    """Represents a diff outcome for a single desired source.

    Attributes:
        op: One of ``"NOOP"``, ``"CREATE"``, ``"UPDATE"`` or ``"DELETE"``.
        reason: Human-friendly explanation of the decision.
        changes: Differing attributes (UPDATE only).
    """
    op: Op
    reason: str
    changes: Tuple[Change, ...] = field(default_factory=tuple)

    @property
    def description(self) -> str:
        return describe(self.changes)


def _fmt(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def diff(desired: SourceDefinition, observed: SourceDefinition) -> List[Change]:
    """Compare the fixed attribute list and return the differing attributes, in order."""
    changes: List[Change] = []
    for attr, _, get in ATTRIBUTES:
        old = get(observed)
        new = get(desired)
        if old != new:
            changes.append(Change(attr=attr, old=old, new=new))
    return changes


def describe(changes: List[Change] | Tuple[Change, ...]) -> str:
    """Render one line per change; empty string when nothing changes."""
    return "\n".join(c.describe() for c in changes)


def decide(desired: SourceDefinition, observed: Optional[SourceDefinition], *, intent: str) -> Decision:
    """Compute a :class:`Decision` from desired vs observed states."""
    if intent == INTENT_DELETE:
        if observed is None:
            return Decision(op="NOOP", reason="Already absent")
        return Decision(op="DELETE", reason="Marked for deletion")

    if observed is None:
        return Decision(op="CREATE", reason="Not found")

    changes = diff(desired, observed)
    if changes:
        names = ", ".join(c.attr for c in changes)
        return Decision(op="UPDATE", reason=f"Fields differ: {names}", changes=tuple(changes))
    return Decision(op="NOOP", reason="Identical")
