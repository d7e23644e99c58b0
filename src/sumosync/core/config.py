from __future__ import annotations

import os
import socket
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv

from .sumo_client import DEFAULT_API_URL


class ConfigError(Exception):
    """Raised when runtime configuration cannot be resolved."""
    pass


# ---------- Typed sections ----------

@dataclass
class AppSection:
    run_id: Optional[str] = None
    dry_run: bool = False
    disabled: bool = False


@dataclass
class SumoSection:
    api_url: str = DEFAULT_API_URL
    username: str = ""       # access id
    password: str = ""       # access key – never log in clear text
    timeout_sec: int = 60
    collector_query_limit: int = 1000
    verify_tls: bool = True


@dataclass
class CollectorSection:
    name: str = ""


@dataclass
class LoggingSection:
    base_dir: str = "logs"
    console_level: str = "INFO"   # INFO..CRITICAL
    file_level: str = "DEBUG"     # DEBUG..CRITICAL


@dataclass
class InputsSection:
    sources_path: str = "./sources.yml"
    sheet: str = "Sources"


@dataclass
class AppConfig:
    """Typed configuration object built by `load_config`."""
    app: AppSection
    sumo: SumoSection
    collector: CollectorSection
    logging: LoggingSection
    inputs: InputsSection

    @property
    def run_id(self) -> str:
        """
        Return a stable run identifier for this process.
        Generated lazily when first accessed if not provided.
        """
        if not self.app.run_id:
            self.app.run_id = uuid.uuid4().hex[:12]
        return self.app.run_id


# ---------- Defaults ----------

_DEFAULT_FILES: Tuple[str, ...] = (
    "./sumosync.yml",
    os.path.expanduser("~/.config/sumosync/config.yml"),
    "/etc/sumosync/config.yml",
)


def _defaults() -> Dict[str, Any]:
    return {
        "app": {"run_id": None, "dry_run": False, "disabled": False},
        "sumo": {
            "api_url": DEFAULT_API_URL,
            "username": "",
            "password": "",
            "timeout_sec": 60,
            "collector_query_limit": 1000,
            "verify_tls": True,
        },
        "collector": {"name": socket.gethostname()},
        "logging": {"base_dir": "logs", "console_level": "INFO", "file_level": "DEBUG"},
        "inputs": {"sources_path": "./sources.yml", "sheet": "Sources"},
    }


# ---------- Utilities ----------

def _deep_merge(base: Dict[str, Any], ext: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge for dicts: maps merge recursively, lists/scalars override.
    `ext` wins over `base`. Returns a new dict.
    """
    if not ext:
        return dict(base)
    out: Dict[str, Any] = dict(base)
    for k, v in ext.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _read_yaml_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML must be a mapping: {path}")
    return data


def _load_first_existing(files: Tuple[str, ...]) -> Dict[str, Any]:
    for p in files:
        if os.path.exists(p):
            return _read_yaml_file(p)
    return {}


def _env_to_dict(prefix: str = "SUMOSYNC_") -> Dict[str, Any]:
    """
    Convert SUMOSYNC_FOO__BAR=val to {"foo": {"bar": "val"}} (lowercased keys).
    """
    out: Dict[str, Any] = {}
    plen = len(prefix)
    for key, val in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = key[plen:].lower().split("__")
        cursor = out
        for part in path[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[path[-1]] = val
    return out


def _drop_empty(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Remove None values so unset CLI options do not mask lower layers."""
    out: Dict[str, Any] = {}
    for k, v in cfg.items():
        if isinstance(v, dict):
            out[k] = _drop_empty(v)
        elif v is not None:
            out[k] = v
    return out


def _interpolate_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace values like "${VAR}" with os.environ["VAR"] when present.
    """
    def repl(v: Any) -> Any:
        if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
            return os.environ.get(v[2:-1], "")
        return v

    def walk(obj: Any) -> Any:
        if isinstance(obj, dict):
            return {k: walk(repl(v)) for k, v in obj.items()}
        if isinstance(obj, list):
            return [walk(x) for x in obj]
        return repl(obj)

    return walk(cfg)


def _coerce_types(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Minimal type coercion for booleans and integers in known keys.
    """
    def to_bool(x: Any) -> bool:
        return str(x).strip().lower() in {"1", "true", "yes", "y", "on"}

    def walk(obj: Any, key_path: Tuple[str, ...] = ()) -> Any:
        if isinstance(obj, dict):
            return {k: walk(v, key_path + (k,)) for k, v in obj.items()}
        if key_path[-1:] in [("verify_tls",), ("dry_run",), ("disabled",)]:
            return to_bool(obj)
        if key_path[-1:] in [("timeout_sec",), ("collector_query_limit",)]:
            try:
                return int(obj)
            except (TypeError, ValueError):
                raise ConfigError(f"{'.'.join(key_path)} must be an integer, got {obj!r}")
        return obj

    return walk(cfg)


def _validate(cfg: Dict[str, Any]) -> None:
    """
    Validate required fields unless reconciliation is disabled.
    """
    if bool(cfg.get("app", {}).get("disabled", False)):
        return
    missing = []
    if not cfg.get("sumo", {}).get("api_url"):
        missing.append("sumo.api_url")
    if not cfg.get("sumo", {}).get("username"):
        missing.append("sumo.username")
    if not cfg.get("sumo", {}).get("password"):
        missing.append("sumo.password")
    if not cfg.get("collector", {}).get("name"):
        missing.append("collector.name")
    if missing:
        hint = (
            " Set them in sumosync.yml, export them in your shell or put them in a .env file. "
            "Example:\n"
            "  SUMOSYNC_SUMO__USERNAME=<access id>\n"
            "  SUMOSYNC_SUMO__PASSWORD=***\n"
        )
        raise ConfigError("Missing required configuration: " + ", ".join(missing) + "." + hint)
    if int(cfg.get("sumo", {}).get("collector_query_limit", 0)) < 1:
        raise ConfigError("sumo.collector_query_limit must be >= 1")


# ---------- Public API ----------

def load_config(
    cli_overrides: Optional[Dict[str, Any]] = None,
    files: Tuple[str, ...] = _DEFAULT_FILES,
    env_prefix: str = "SUMOSYNC_",
    use_dotenv: bool = True,
) -> AppConfig:
    """
    Build an AppConfig from (in precedence order):
      1) CLI overrides (None values ignored)
      2) Environment variables (prefix SUMOSYNC_, nested via __), after loading .env
      3) YAML file (first existing)
      4) Built-in defaults

    Also performs:
      - ${ENV_VAR} interpolation
      - basic type coercion (bool/int)
      - validation of required fields unless app.disabled

    Raises:
        ConfigError: On unreadable files, bad values or missing required keys.
    """
    if use_dotenv:
        env_path = find_dotenv(usecwd=True) or ""
        if env_path:
            load_dotenv(env_path, override=False)

    file_cfg = _load_first_existing(files)
    env_cfg = _env_to_dict(env_prefix)

    merged = _deep_merge(_defaults(), file_cfg)
    merged = _deep_merge(merged, env_cfg)
    merged = _deep_merge(merged, _drop_empty(cli_overrides or {}))

    merged = _interpolate_env(merged)
    merged = _coerce_types(merged)

    _validate(merged)

    try:
        return AppConfig(
            app=AppSection(**merged.get("app", {})),
            sumo=SumoSection(**merged.get("sumo", {})),
            collector=CollectorSection(**merged.get("collector", {})),
            logging=LoggingSection(**merged.get("logging", {})),
            inputs=InputsSection(**merged.get("inputs", {})),
        )
    except TypeError as exc:
        raise ConfigError(f"Unknown configuration key: {exc}") from exc
