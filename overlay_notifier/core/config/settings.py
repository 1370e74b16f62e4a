"""
Dispatcher configuration.

A :class:`NotifierConfig` is an immutable snapshot of one device's settings.
:class:`SettingsStore` owns the current snapshot and swaps it atomically when
the host edits a value, so readers (the tick loop, the deliverer) always see a
consistent set of values.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, List, Mapping, Optional

from overlay_notifier.domain.models import Corner

logger = logging.getLogger(__name__)

DEFAULT_DURATION_S = 7.0
DEFAULT_CORNER = Corner.BOTTOM_END.value
DEFAULT_LARGE_ICON = "mdi:motion-sensor"
DEFAULT_SMALL_ICON = "mdi:camera"
DEFAULT_SMALL_ICON_COLOR = "#049cdb"
DEFAULT_REQUEST_TIMEOUT_S = 15.0
DEFAULT_IMAGE_FETCH_TIMEOUT_S = 10.0
DEFAULT_TICK_INTERVAL_S = 1.0


@dataclass(frozen=True)
class NotifierConfig:
    """
    Resolved settings for one renderer destination.

    Parameters
    ----------
    server_url
        Renderer endpoint, e.g. ``http://192.168.1.1:5001/notify``. An empty
        value is only reported when a delivery is attempted.
    id
        Identifier sent with every payload.
    duration
        Seconds a notification stays on screen. Also the minimum gap between
        two deliveries.
    corner, large_icon, small_icon, small_icon_color
        Styling defaults for fields the caller does not override.
    request_timeout_s
        Timeout for the POST to the renderer.
    image_fetch_timeout_s
        Timeout for downloading a remote image.
    allow_insecure_tls
        Accept self-signed or otherwise invalid certificates, both on the
        renderer and on remote image hosts. Renderers are LAN devices owned by
        the user and usually serve a self-signed certificate, so this is on
        unless a deployment turns it off.
    tick_interval_s
        Period of the scheduling loop. Clamped to ``duration`` when built
        through :func:`build_config`.
    auth_header
        Optional Authorization header value. A bare token gets a "Bearer " prefix.
    """

    server_url: str = ""
    id: Optional[str] = None
    duration: float = DEFAULT_DURATION_S
    corner: str = DEFAULT_CORNER
    large_icon: Optional[str] = DEFAULT_LARGE_ICON
    small_icon: Optional[str] = DEFAULT_SMALL_ICON
    small_icon_color: Optional[str] = DEFAULT_SMALL_ICON_COLOR
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    image_fetch_timeout_s: float = DEFAULT_IMAGE_FETCH_TIMEOUT_S
    allow_insecure_tls: bool = True
    tick_interval_s: float = DEFAULT_TICK_INTERVAL_S
    auth_header: Optional[str] = None

    @property
    def throttle_s(self) -> float:
        return self.duration

    @property
    def has_destination(self) -> bool:
        return bool(self.server_url and self.server_url.strip())


def coerce_seconds(value: Any, default: float, label: str = "duration") -> float:
    """
    Coerce a user-entered time span to a positive number of seconds.

    Anything unset, non-numeric, non-finite or not positive falls back to
    ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s %r, using %ss", label, value, default)
        return default
    if not math.isfinite(seconds) or seconds <= 0:
        logger.warning("Invalid %s %r, using %ss", label, value, default)
        return default
    return seconds


def coerce_duration(value: Any) -> float:
    return coerce_seconds(value, DEFAULT_DURATION_S, "duration")


def coerce_corner(value: Any) -> str:
    if value is None or value == "":
        return DEFAULT_CORNER
    try:
        return Corner(str(value)).value
    except ValueError:
        logger.warning("Unknown corner %r, using %s", value, DEFAULT_CORNER)
        return DEFAULT_CORNER


def coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def coerce_auth_header(value: Any) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    header = str(value).strip()
    if not header.startswith("Bearer "):
        header = f"Bearer {header}"
    return header


def _coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _coerce_url(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class SettingDefinition:
    """One user-editable setting as presented to the host's settings form."""

    key: str
    field_name: str
    title: str
    type: str = "string"
    placeholder: Optional[str] = None
    coerce: Callable[[Any], Any] = _coerce_text


# Host-facing keys, in the order the settings form shows them.
SETTING_DEFINITIONS: Dict[str, SettingDefinition] = {
    d.key: d
    for d in (
        SettingDefinition("id", "id", "Identifier"),
        SettingDefinition(
            "serverUrl",
            "server_url",
            "Server url",
            placeholder="http://192.168.1.1:5001/notify",
            coerce=_coerce_url,
        ),
        SettingDefinition(
            "duration",
            "duration",
            "Notification visibility duration in seconds",
            type="number",
            coerce=coerce_duration,
        ),
        SettingDefinition("corner", "corner", "Notification position", coerce=coerce_corner),
        SettingDefinition("largeIcon", "large_icon", "Large icon"),
        SettingDefinition("smallIcon", "small_icon", "Small icon"),
        SettingDefinition("smallIconColor", "small_icon_color", "Icon color"),
        SettingDefinition(
            "allowInsecureTls",
            "allow_insecure_tls",
            "Accept self-signed certificates",
            type="boolean",
            coerce=coerce_bool,
        ),
    )
}


def build_config(raw: Mapping[str, Any]) -> NotifierConfig:
    """
    Build a snapshot from a mapping of host keys or field names.

    Unknown keys are ignored. Missing keys keep their defaults. Invalid time
    spans fall back to their defaults, and a tick interval longer than the
    duration is clamped to it.
    """
    known = {f.name for f in fields(NotifierConfig)}
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        definition = SETTING_DEFINITIONS.get(key)
        if definition is not None:
            values[definition.field_name] = definition.coerce(value)
        elif key in known:
            values[key] = value

    cfg = NotifierConfig(**values)
    duration = coerce_duration(cfg.duration)
    tick = coerce_seconds(cfg.tick_interval_s, DEFAULT_TICK_INTERVAL_S, "tick interval")
    if tick > duration:
        logger.warning("Tick interval %ss exceeds duration %ss, using %ss", tick, duration, duration)
        tick = duration

    return replace(
        cfg,
        server_url=_coerce_url(cfg.server_url),
        duration=duration,
        corner=coerce_corner(cfg.corner),
        request_timeout_s=coerce_seconds(cfg.request_timeout_s, DEFAULT_REQUEST_TIMEOUT_S, "request timeout"),
        image_fetch_timeout_s=coerce_seconds(
            cfg.image_fetch_timeout_s, DEFAULT_IMAGE_FETCH_TIMEOUT_S, "image fetch timeout"
        ),
        allow_insecure_tls=coerce_bool(cfg.allow_insecure_tls),
        tick_interval_s=tick,
        auth_header=coerce_auth_header(cfg.auth_header),
    )


class SettingsStore:
    """
    Holder of the current :class:`NotifierConfig` with live updates.

    Concurrency Model
    -----------------
    Writers build a new frozen snapshot under a lock and replace the reference;
    readers take the reference without locking.
    """

    def __init__(self, initial: Optional[NotifierConfig] = None):
        self._lock = threading.Lock()
        self._config = initial or NotifierConfig()

    @property
    def config(self) -> NotifierConfig:
        return self._config

    def get_settings(self) -> List[Dict[str, Any]]:
        """
        Describe every editable setting with its current value.

        Returns
        -------
        list of dict
            Entries with ``key``, ``title``, ``type``, ``value`` and, where
            relevant, ``placeholder``.
        """
        cfg = self._config
        out: List[Dict[str, Any]] = []
        for definition in SETTING_DEFINITIONS.values():
            entry: Dict[str, Any] = {
                "key": definition.key,
                "title": definition.title,
                "type": definition.type,
                "value": getattr(cfg, definition.field_name),
            }
            if definition.placeholder:
                entry["placeholder"] = definition.placeholder
            out.append(entry)
        return out

    def put_setting(self, key: str, value: Any) -> NotifierConfig:
        """
        Update one setting and publish a new snapshot.

        Raises
        ------
        KeyError
            If ``key`` is not an editable setting.
        """
        definition = SETTING_DEFINITIONS.get(key)
        if definition is None:
            raise KeyError(f"Unknown setting: {key}")

        with self._lock:
            self._config = replace(self._config, **{definition.field_name: definition.coerce(value)})
            logger.debug("Setting %s updated", key)
            return self._config
