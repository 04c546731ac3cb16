"""
Runtime settings: built-in defaults, then an optional YAML file, then
environment variables (highest precedence).
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .pipeline.extractors import (
    DEFAULT_BARE_LIMIT,
    DEFAULT_BLOCK_LIMIT,
    DEFAULT_EXTRA_MAX_CHARS,
    DEFAULT_NAME_PATTERN,
)


DEFAULT_TARGET_URL = "https://dniperu.com/buscar-dni-por-nombres-y-apellidos/"


class ConfigError(Exception):
    """Config file missing, unreadable, or holding invalid values."""


@dataclass(frozen=True)
class Settings:
    target_url: str = DEFAULT_TARGET_URL
    proxy_url: str = ""
    port: int = 3000
    navigation_timeout_ms: int = 45000
    settle_timeout_ms: int = 12000
    headless: bool = True
    block_limit: int = DEFAULT_BLOCK_LIMIT
    bare_limit: int = DEFAULT_BARE_LIMIT
    extra_max_chars: int = DEFAULT_EXTRA_MAX_CHARS
    name_pattern: str = DEFAULT_NAME_PATTERN
    ops_log_path: Optional[str] = None
    ops_stdout: bool = False


def _section(cfg: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    sec = cfg.get(name, {})
    return sec if isinstance(sec, dict) else {}


def _as_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}")


def _as_pattern(value: Any, key: str) -> str:
    pattern = str(value)
    try:
        rx = re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"{key} is not a valid regular expression: {e}")
    if rx.groups < 1:
        raise ConfigError(f"{key} must have a capture group for the name")
    return pattern


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def read_yaml_config(path: Path) -> dict:
    if not path.exists() or not path.is_file():
        raise ConfigError(f"file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}")
    if not isinstance(cfg, dict):
        raise ConfigError(f"top-level YAML in {path} must be a mapping")
    return cfg


def settings_from_mapping(cfg: Mapping[str, Any], base: Optional[Settings] = None) -> Settings:
    s = base or Settings()
    target = _section(cfg, "target")
    server = _section(cfg, "server")
    browser = _section(cfg, "browser")
    extraction = _section(cfg, "extraction")
    ops = _section(cfg, "ops")

    updates: dict[str, Any] = {}
    if target.get("url"):
        updates["target_url"] = str(target["url"])
    if target.get("proxy") is not None:
        updates["proxy_url"] = str(target["proxy"] or "")
    if "port" in server:
        updates["port"] = _as_int(server["port"], "server.port")
    if "navigation_timeout_ms" in browser:
        updates["navigation_timeout_ms"] = _as_int(browser["navigation_timeout_ms"], "browser.navigation_timeout_ms")
    if "settle_timeout_ms" in browser:
        updates["settle_timeout_ms"] = _as_int(browser["settle_timeout_ms"], "browser.settle_timeout_ms")
    if "headless" in browser:
        updates["headless"] = _as_bool(browser["headless"])
    for key in ("block_limit", "bare_limit", "extra_max_chars"):
        if key in extraction:
            updates[key] = _as_int(extraction[key], f"extraction.{key}")
    if extraction.get("name_pattern"):
        updates["name_pattern"] = _as_pattern(extraction["name_pattern"], "extraction.name_pattern")
    if ops.get("log_path"):
        updates["ops_log_path"] = str(ops["log_path"])
    if "stdout" in ops:
        updates["ops_stdout"] = _as_bool(ops["stdout"])
    return replace(s, **updates)


def settings_from_env(env: Mapping[str, str], base: Optional[Settings] = None) -> Settings:
    s = base or Settings()
    updates: dict[str, Any] = {}
    if env.get("TARGET_URL"):
        updates["target_url"] = env["TARGET_URL"]
    if env.get("PROXY_URL"):
        updates["proxy_url"] = env["PROXY_URL"]
    if env.get("PORT"):
        updates["port"] = _as_int(env["PORT"], "PORT")
    if env.get("DNL_NAV_TIMEOUT_MS"):
        updates["navigation_timeout_ms"] = _as_int(env["DNL_NAV_TIMEOUT_MS"], "DNL_NAV_TIMEOUT_MS")
    if env.get("DNL_SETTLE_TIMEOUT_MS"):
        updates["settle_timeout_ms"] = _as_int(env["DNL_SETTLE_TIMEOUT_MS"], "DNL_SETTLE_TIMEOUT_MS")
    if env.get("DNL_HEADLESS"):
        updates["headless"] = _as_bool(env["DNL_HEADLESS"])
    if env.get("DNL_OPS_LOG"):
        updates["ops_log_path"] = env["DNL_OPS_LOG"]
    if env.get("DNL_OPS_JSON", "0") == "1":
        updates["ops_stdout"] = True
    return replace(s, **updates)


def load_settings(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings. An explicit ``path`` must exist."""
    settings = Settings()
    if path is not None:
        settings = settings_from_mapping(read_yaml_config(Path(path)), settings)
    return settings_from_env(os.environ if env is None else env, settings)
