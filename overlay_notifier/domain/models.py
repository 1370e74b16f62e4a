"""
Domain models and enums.

This module defines the types that flow through the dispatcher:
- Corner positions understood by the overlay renderer
- NotificationOptions / NotificationRequest, the caller-facing input
- CanonicalPayload, the renderer-ready record held in the queue

Requests and payloads are frozen dataclasses so a payload can be queued on
one thread and delivered on another without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

# Key inside ``options["data"]`` whose mapping is merged into the wire payload.
OVERRIDES_NAMESPACE = "androidTvOverlay"

# Prefix of renderer-recognized icon keywords (Material Design Icons).
ICON_KEYWORD_PREFIX = "mdi:"

MediaInput = Union[str, bytes, bytearray, memoryview]


class Corner(str, Enum):
    """
    Screen corner where the renderer places the notification.

    Members
    -------
    TOP_START : str
    TOP_END : str
    BOTTOM_START : str
    BOTTOM_END : str
    """

    TOP_START = "top_start"
    TOP_END = "top_end"
    BOTTOM_START = "bottom_start"
    BOTTOM_END = "bottom_end"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NotificationOptions:
    """
    Display options passed alongside a notification title.

    Parameters
    ----------
    body
        Main notification text.
    body_with_subtitle
        Alternative text combining subtitle and body; used when ``body`` is None.
    subtitle
        Subtitle as supplied by the host. Informational only.
    data
        Free-form extension data. ``data[OVERRIDES_NAMESPACE]`` is merged
        verbatim into the outgoing payload.
    """

    body: Optional[str] = None
    body_with_subtitle: Optional[str] = None
    subtitle: Optional[str] = None
    data: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "NotificationOptions":
        """Build options from a host-style mapping (camelCase or snake_case keys)."""
        body_with_subtitle = raw.get("body_with_subtitle", raw.get("bodyWithSubtitle"))
        return cls(
            body=raw.get("body"),
            body_with_subtitle=body_with_subtitle,
            subtitle=raw.get("subtitle"),
            data=raw.get("data") or {},
        )

    def overrides(self) -> Dict[str, Any]:
        extra = self.data.get(OVERRIDES_NAMESPACE) if self.data else None
        if not isinstance(extra, Mapping):
            return {}
        return dict(extra)


@dataclass(frozen=True)
class NotificationRequest:
    """
    One caller request, alive only for the duration of a send call.

    Parameters
    ----------
    title
        Notification title.
    body
        Notification body text.
    body_with_subtitle
        Fallback text if ``body`` is None.
    media
        None, an icon keyword, a data URL, a remote URL, another string, or
        raw image bytes.
    overrides
        Extra wire fields; they win over every computed field on key collision.
    """

    title: str
    body: Optional[str] = None
    body_with_subtitle: Optional[str] = None
    media: Optional[MediaInput] = None
    overrides: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_call(
        cls,
        title: str,
        options: Union[NotificationOptions, Mapping[str, Any], None] = None,
        media: Optional[MediaInput] = None,
    ) -> "NotificationRequest":
        if options is None:
            opts = NotificationOptions()
        elif isinstance(options, NotificationOptions):
            opts = options
        else:
            opts = NotificationOptions.from_mapping(options)

        return cls(
            title=title,
            body=opts.body,
            body_with_subtitle=opts.body_with_subtitle,
            media=media,
            overrides=opts.overrides(),
        )


@dataclass(frozen=True)
class CanonicalPayload:
    """
    Renderer-ready notification record.

    ``image`` is None, an ``mdi:`` keyword, a base64 string, or a string the
    caller already prepared for the renderer. It never holds a URL that still
    needs fetching, nor raw bytes.
    """

    id: Optional[str]
    title: str
    message: Optional[str]
    corner: str
    duration: float
    large_icon: Optional[str]
    small_icon: Optional[str]
    small_icon_color: Optional[str]
    image: Optional[str] = None
    overrides: Mapping[str, Any] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        """
        Flatten into the JSON body posted to the renderer.

        Fields that are None are left out; overrides are applied last.
        """
        body: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "corner": self.corner,
            "duration": _wire_number(self.duration),
            "largeIcon": self.large_icon,
            "smallIcon": self.small_icon,
            "smallIconColor": self.small_icon_color,
            "image": self.image,
        }
        body = {k: v for k, v in body.items() if v is not None}
        body.update(self.overrides)
        return body


def summarize_wire(body: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of a wire body fit for logging, with long images replaced by their length."""
    shown = dict(body)
    image = shown.get("image")
    if isinstance(image, str) and len(image) > 64:
        shown["image"] = f"<{len(image)} chars>"
    return shown


def _wire_number(value: float) -> Union[int, float]:
    # renderers parse whole seconds as integers
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
