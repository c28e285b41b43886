"""Configuration loader for scenario runs."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


ENV_PREFIX = "HARNESS_"
SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")

DEFAULTS: Dict[str, Any] = {
    "browser": "chromium",
    "base_url": "",
    "headless": True,
    "action_timeout_ms": 10000,
    "navigation_timeout_ms": 30000,
    "assertion_timeout_ms": 5000,
    "popup_timeout_ms": 10000,
    "dialog_timeout_ms": 5000,
    "scenario_timeout_ms": 60000,
    "poll_interval_ms": 100,
    "workers": 1,
    "log_root": "runs",
    "capture_on_failure": True,
    "check_http_status": False,
    "upload_allow_list": (),
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _as_extensions(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    normalised = []
    for item in items:
        ext = str(item).strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        normalised.append(ext)
    return tuple(normalised)


@dataclass(slots=True)
class HarnessConfig:
    browser: str = DEFAULTS["browser"]
    base_url: str = DEFAULTS["base_url"]
    headless: bool = DEFAULTS["headless"]
    action_timeout_ms: int = DEFAULTS["action_timeout_ms"]
    navigation_timeout_ms: int = DEFAULTS["navigation_timeout_ms"]
    assertion_timeout_ms: int = DEFAULTS["assertion_timeout_ms"]
    popup_timeout_ms: int = DEFAULTS["popup_timeout_ms"]
    dialog_timeout_ms: int = DEFAULTS["dialog_timeout_ms"]
    scenario_timeout_ms: int = DEFAULTS["scenario_timeout_ms"]
    poll_interval_ms: int = DEFAULTS["poll_interval_ms"]
    workers: int = DEFAULTS["workers"]
    log_root: Path = field(default_factory=lambda: Path(DEFAULTS["log_root"]))
    capture_on_failure: bool = DEFAULTS["capture_on_failure"]
    check_http_status: bool = DEFAULTS["check_http_status"]
    upload_allow_list: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.browser not in SUPPORTED_BROWSERS:
            raise ValueError(
                f"Unsupported browser {self.browser!r}; expected one of {', '.join(SUPPORTED_BROWSERS)}"
            )
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be > 0")

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "HarnessConfig":
        data = dict(DEFAULTS)
        data.update({k: v for k, v in mapping.items() if k in DEFAULTS and v is not None})
        return cls(
            browser=str(data["browser"]).strip().lower(),
            base_url=str(data["base_url"] or ""),
            headless=_as_bool(data["headless"]),
            action_timeout_ms=int(data["action_timeout_ms"]),
            navigation_timeout_ms=int(data["navigation_timeout_ms"]),
            assertion_timeout_ms=int(data["assertion_timeout_ms"]),
            popup_timeout_ms=int(data["popup_timeout_ms"]),
            dialog_timeout_ms=int(data["dialog_timeout_ms"]),
            scenario_timeout_ms=int(data["scenario_timeout_ms"]),
            poll_interval_ms=int(data["poll_interval_ms"]),
            workers=int(data["workers"]),
            log_root=Path(data["log_root"]),
            capture_on_failure=_as_bool(data["capture_on_failure"]),
            check_http_status=_as_bool(data["check_http_status"]),
            upload_allow_list=_as_extensions(data["upload_allow_list"]),
        )

    def with_overrides(self, **overrides: Any) -> "HarnessConfig":
        values = {k: v for k, v in overrides.items() if v is not None}
        if "upload_allow_list" in values:
            values["upload_allow_list"] = _as_extensions(values["upload_allow_list"])
        return replace(self, **values)


def _load_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        return tomllib.load(fh)


def load_config(config_path: Optional[Path] = None, *, environ: Optional[Dict[str, str]] = None) -> HarnessConfig:
    """Load configuration from defaults, an optional TOML file and the environment."""

    env = os.environ if environ is None else environ
    env_map: Dict[str, Any] = {}
    for key, value in env.items():
        if key.startswith(ENV_PREFIX):
            env_map[key[len(ENV_PREFIX):].lower()] = value

    file_map: Dict[str, Any] = {}
    path = config_path or Path("harness.toml")
    if path.exists():
        file_map = _load_toml(path).get("harness", {})
    elif config_path is not None:
        raise FileNotFoundError(f"Config file {config_path} does not exist")

    merged = {**file_map, **env_map}
    return HarnessConfig.from_mapping(merged)

