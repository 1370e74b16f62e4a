from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from overlay_notifier.core.config.settings import NotifierConfig, build_config

CONFIG_ENV_VAR = "OVERLAY_NOTIFIER_CONFIG"


@dataclass(frozen=True)
class DeviceConfig:
    """One configured renderer device: a name plus its notifier settings."""
    name: str
    notifier: NotifierConfig


@dataclass(frozen=True)
class AppConfig:
    """
    Root configuration loaded from YAML.

    Each device gets its own independent dispatcher.
    """
    devices: List[DeviceConfig]


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must contain a YAML mapping at the root")
    return data


def _resolve_default_config_path() -> Path:
    """
    Resolve config.yaml location.

    Priority:
    1) OVERLAY_NOTIFIER_CONFIG env var if provided
    2) config.yaml next to the executable
    3) ./config.yaml in current working directory
    """
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser().resolve()

    exe_dir = Path(sys.executable).resolve().parent
    candidate = exe_dir / "config.yaml"
    if candidate.exists():
        return candidate

    return Path("config.yaml").resolve()


def parse_app_config(raw: Mapping[str, Any]) -> AppConfig:
    """
    Convert a parsed YAML mapping into typed config objects.

    Two shapes are accepted: a ``devices`` list, or a single device given by
    a top-level ``notifier`` mapping. Top-level ``defaults`` apply to every
    device and are overridden per device.

    Raises
    ------
    ValueError
        If no device is configured or a device entry is not a mapping.
    """
    defaults = raw.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ValueError("'defaults' must be a mapping")

    entries = raw.get("devices")
    if entries is None and "notifier" in raw:
        entries = [dict(raw["notifier"] or {}, name=raw.get("name", "default"))]
    if not entries:
        raise ValueError("config must define at least one device")

    devices: List[DeviceConfig] = []
    seen = set()
    for index, item in enumerate(entries):
        if not isinstance(item, dict):
            raise ValueError(f"device #{index} must be a mapping")
        merged = {**defaults, **item}
        name = str(merged.pop("name", None) or merged.get("id") or f"device-{index}")
        if name in seen:
            raise ValueError(f"duplicate device name: {name}")
        seen.add(name)
        devices.append(DeviceConfig(name=name, notifier=build_config(merged)))

    return AppConfig(devices=devices)


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from YAML.

    Parameters
    ----------
    path
        Explicit path to config.yaml. If None, uses default resolution.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If required fields are missing or invalid.
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    return parse_app_config(_read_yaml(cfg_path))
