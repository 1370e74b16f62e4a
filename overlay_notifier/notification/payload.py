from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from overlay_notifier.core.config.settings import NotifierConfig
from overlay_notifier.domain.models import CanonicalPayload, NotificationRequest
from overlay_notifier.notification.media import resolve_media

logger = logging.getLogger(__name__)


def resolve_message(request: NotificationRequest) -> Optional[str]:
    """
    Pick the notification text.

    ``body`` wins; ``body_with_subtitle`` is the fallback; otherwise no message.
    """
    if request.body is not None:
        return request.body
    return request.body_with_subtitle


def json_safe_overrides(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy the caller overrides, dropping entries JSON cannot encode (bytes, NaN, ...)."""
    safe: Dict[str, Any] = {}
    for key, value in overrides.items():
        try:
            json.dumps({key: value}, allow_nan=False)
        except (TypeError, ValueError):
            logger.warning("Dropping override %r: value is not JSON serializable", key)
            continue
        safe[key] = value
    return safe


def normalize(request: NotificationRequest, config: NotifierConfig) -> CanonicalPayload:
    """
    Build the canonical payload for a notification request.

    Styling fields come from the configuration snapshot; the request's
    overrides are carried on the payload and win on key collision when the
    payload is serialized. Overrides JSON cannot encode are dropped.

    Parameters
    ----------
    request
        Caller request.
    config
        Configuration snapshot supplying id and styling defaults.

    Returns
    -------
    CanonicalPayload
        Renderer-ready payload.

    Raises
    ------
    MediaFetchError
        If the request's media is a remote URL that cannot be downloaded.
    """
    return CanonicalPayload(
        id=config.id,
        title=request.title,
        message=resolve_message(request),
        corner=config.corner,
        duration=config.duration,
        large_icon=config.large_icon,
        small_icon=config.small_icon,
        small_icon_color=config.small_icon_color,
        image=resolve_media(request.media, config),
        overrides=json_safe_overrides(request.overrides),
    )
