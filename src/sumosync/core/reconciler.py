"""
Source reconciler.

Lifecycle for one desired definition:
  validate -> ensure collector ready (once) -> load current state -> decide
  -> describe -> add / update / delete (unless dry-run) -> refresh

- Disabled runs short-circuit before any API call or validation.
- Mutations are always followed by `Collector.refresh()`.
- API errors propagate unmodified; nothing is retried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .collector import SYNC_MODE_JSON, Collector
from .diff_engine import Change, Decision, decide
from .sources import INTENT_CREATE, SourceDefinition, validate, validate_all

# States
DISABLED = "DISABLED"
ABSENT = "ABSENT"
PRESENT_MATCHING = "PRESENT_MATCHING"
PRESENT_DIVERGENT = "PRESENT_DIVERGENT"
DELETE_PRESENT = "DELETE_PRESENT"
DELETE_ABSENT = "DELETE_ABSENT"

_STATES = {
    ("create", "CREATE"): ABSENT,
    ("create", "UPDATE"): PRESENT_DIVERGENT,
    ("create", "NOOP"): PRESENT_MATCHING,
    ("delete", "DELETE"): DELETE_PRESENT,
    ("delete", "NOOP"): DELETE_ABSENT,
}

_DONE = {"CREATE": "CREATED", "UPDATE": "UPDATED", "DELETE": "DELETED"}


class CollectorNotFound(Exception):
    """Raised when the target collector is not registered (or not listed)."""

    def __init__(self, name: str, query_limit: int, api_url: str = "") -> None:
        self.name = name
        self.query_limit = query_limit
        super().__init__(self._message(name, query_limit, api_url))

    @staticmethod
    def _message(name: str, query_limit: int, api_url: str) -> str:
        where = f"{api_url.rstrip('/')}/collectors" if api_url else "the collectors API"
        return (
            f"Sumo Logic collector missing from: `{where}`\n"
            f"Either a collector named `{name}` does not exist, or it was not returned in the collector list\n"
            f"within the limit of `{query_limit}` collectors.\n"
            "\nLog into the Sumo Logic web UI and verify the collector exists.\n"
            "\nIf the collector does exist:"
            "\n\n\tIncrease `sumo.collector_query_limit` in the config file"
            "\n\t\tOR"
            "\n\tset `SUMOSYNC_SUMO__COLLECTOR_QUERY_LIMIT` / pass `--query-limit`."
            "\n\nIf the collector does not exist:"
            "\n\n\t1. Stop the collector process:"
            "\n\t\t`sudo /opt/SumoCollector/collector stop`"
            "\n\n\t2. Remove the collector directory:"
            "\n\t\t`sudo rm -r /opt/SumoCollector`"
            "\n\n\t3. Reinstall the collector so it registers again, then re-run sumosync.\n"
        )


@dataclass(frozen=True)
class ReconcileResult:
    name: str
    intent: str
    state: str
    status: str
    reason: str = ""
    changes: Tuple[Change, ...] = field(default_factory=tuple)
    description: str = ""

    @property
    def changed(self) -> bool:
        return self.status in _DONE.values()


class Reconciler:
    """Converges one collector's sources towards desired definitions.

    Args:
        collector: Collector handle owned by this run.
        disabled: Skip everything (no API calls).
        dry_run: Report intended changes without mutating anything.
        api_timeout: Timeout passed to add/update calls.
        logger: Optional logger or adapter.
    """

    def __init__(
        self,
        collector: Collector,
        *,
        disabled: bool = False,
        dry_run: bool = False,
        api_timeout: Optional[float] = None,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.collector = collector
        self.disabled = disabled
        self.dry_run = dry_run
        self.api_timeout = api_timeout
        self.log = logger or logging.getLogger("sumosync.reconciler")
        self._found = False
        self._ready = False
        self._warned = False

    # ---------------- preconditions ----------------

    def ensure_collector_ready(self, dry_run: Optional[bool] = None) -> None:
        """Collector must exist and be in UI sync mode.

        The existence check runs once. A dry-run pass never switches the sync
        mode, so a later real pass still performs the switch.

        Raises:
            CollectorNotFound: If the collector is not listed.
        """
        if self._ready:
            return
        dry = self.dry_run if dry_run is None else dry_run
        if not self._found:
            if not self.collector.exists():
                client = getattr(self.collector, "client", None)
                raise CollectorNotFound(
                    self.collector.name,
                    self.collector.query_limit,
                    getattr(client, "base_url", ""),
                )
            self._found = True
        if self.collector.sync_mode == SYNC_MODE_JSON:
            if dry:
                if not self._warned:
                    self.log.warning("Collector %s is in Json sourceSyncMode; would set it to UI.", self.collector.name)
                    self._warned = True
                return
            self.log.warning("Setting sumo collector sourceSyncMode to UI.")
            self.collector.set_ui_sync_mode()
        self._ready = True

    # ---------------- host contract ----------------

    def load_current_state(self, desired: SourceDefinition,
                           dry_run: Optional[bool] = None) -> Optional[SourceDefinition]:
        """Return the observed definition for `desired.name`, or None if absent."""
        if self.disabled:
            return None
        self.ensure_collector_ready(dry_run=dry_run)
        if not self.collector.source_exists(desired.name):
            return None
        return self.collector.get_source(desired.name)

    def apply(self, desired: SourceDefinition, intent: str = INTENT_CREATE,
              dry_run: Optional[bool] = None) -> ReconcileResult:
        """Converge one source.

        Raises:
            ValidationError: Malformed definition (before any API call).
            CollectorNotFound: Target collector missing.
            SourceAPIError: Any failed API call.
        """
        if self.disabled:
            self.log.debug("Skipping sumo source %s as reconciliation is disabled", desired.name)
            return ReconcileResult(desired.name, intent, DISABLED, "SKIPPED", reason="disabled")

        validate(desired, intent)
        dry = self.dry_run if dry_run is None else dry_run

        observed = self.load_current_state(desired, dry_run=dry)
        decision = decide(desired, observed, intent=intent)
        state = _STATES[(intent, decision.op)]

        if decision.op == "NOOP":
            status = "UNCHANGED" if intent == INTENT_CREATE else "ABSENT"
            self.log.debug("Source %s: %s", desired.name, decision.reason)
            return ReconcileResult(desired.name, intent, state, status, reason=decision.reason)

        description = self._describe(desired, decision)
        headline = self._headline(desired, decision)
        if dry:
            self.log.info("[dry-run] would %s\n%s", headline, description)
            return ReconcileResult(
                desired.name, intent, state, f"WOULD_{decision.op}",
                reason=decision.reason, changes=decision.changes, description=description,
            )

        self.log.info("%s\n%s", headline, description)
        self._execute(desired, observed, decision)
        self.collector.refresh()
        status = _DONE[decision.op]
        self.log.info("Source %s %s", desired.name, status.lower())
        return ReconcileResult(
            desired.name, intent, state, status,
            reason=decision.reason, changes=decision.changes, description=description,
        )

    def reconcile_all(self, items: Iterable[Tuple[SourceDefinition, str]]) -> List[ReconcileResult]:
        """Validate every definition, then converge them one at a time, in order.

        Disabled runs skip validation too and return one SKIPPED result per item.
        """
        if self.disabled:
            return [self.apply(definition, intent) for definition, intent in items]
        checked = validate_all(items)
        self.ensure_collector_ready()
        return [self.apply(definition, intent) for definition, intent in checked]

    # ---------------- internals ----------------

    def _execute(self, desired: SourceDefinition, observed: Optional[SourceDefinition], decision: Decision) -> None:
        if decision.op == "CREATE":
            self.collector.add_source(desired, self.api_timeout)
        elif decision.op == "UPDATE":
            assert observed is not None
            self.collector.update_source(observed.source_id, desired, self.api_timeout)
        elif decision.op == "DELETE":
            assert observed is not None
            self.collector.delete_source(observed.source_id)

    @staticmethod
    def _headline(desired: SourceDefinition, decision: Decision) -> str:
        if decision.op == "CREATE":
            return f"add {desired.name} via sumologic api"
        if decision.op == "UPDATE":
            return f"replace {desired.name} via api"
        return f"remove sumo source {desired.name}"

    @staticmethod
    def _describe(desired: SourceDefinition, decision: Decision) -> str:
        """Change text recorded on the result: payload for adds, changed attributes for updates."""
        if decision.op == "CREATE":
            return str(desired.to_api())
        if decision.op == "UPDATE":
            return decision.description
        return f"source {desired.name} will be deleted"
