"""
Media resolution for notification images.

The renderer accepts a single ``image`` string that is either an icon keyword
or base64-encoded image bytes. Callers hand us media in several shapes; this
module collapses them into that one form.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

import requests

from overlay_notifier.core.config.settings import NotifierConfig
from overlay_notifier.domain.errors import MediaFetchError, TransformError
from overlay_notifier.domain.models import ICON_KEYWORD_PREFIX
from overlay_notifier.notification.http_deliverer import silence_insecure_tls_warning

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:"
REMOTE_URL_PREFIXES = ("http://", "https://")


def is_icon_keyword(value: str) -> bool:
    return value.startswith(ICON_KEYWORD_PREFIX)


def strip_data_url(value: str) -> str:
    """
    Return the part of a data URL after the first comma.

    Raises
    ------
    TransformError
        If there is no comma separating metadata from data.
    """
    _, sep, data = value.partition(",")
    if not sep:
        raise TransformError(f"malformed data URL: {value[:40]!r}")
    return data


def encode_bytes(data: Any) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def fetch_image(url: str, config: NotifierConfig) -> str:
    """
    Download a remote image and return it base64-encoded.

    Parameters
    ----------
    url
        http(s) URL of the image.
    config
        Supplies the fetch timeout and the TLS verification policy.

    Raises
    ------
    MediaFetchError
        On timeout, connection error or a non-2xx response.
    """
    verify = not config.allow_insecure_tls
    if not verify:
        silence_insecure_tls_warning(url)

    try:
        r = requests.get(url, timeout=config.image_fetch_timeout_s, verify=verify)
        r.raise_for_status()
    except requests.RequestException as e:
        raise MediaFetchError(f"failed to fetch image {url}: {e}") from e
    except ValueError as e:
        raise MediaFetchError(f"invalid fetch settings for {url}: {e}") from e

    return encode_bytes(r.content)


def resolve_media(media: Any, config: NotifierConfig) -> Optional[str]:
    """
    Turn a media input into the renderer's ``image`` field.

    Rules, first match wins:

    1. None: no image.
    2. ``mdi:`` keyword: passed through.
    3. data URL: everything after the first comma. No comma means no image.
    4. http(s) URL: downloaded and base64-encoded.
    5. bytes-like: base64-encoded.
    6. any other string: passed through.

    Raises
    ------
    MediaFetchError
        If a remote URL cannot be downloaded. The caller decides whether to
        drop the notification or send it without an image.
    """
    if media is None:
        return None

    if isinstance(media, str):
        if is_icon_keyword(media):
            return media
        if media.startswith(DATA_URL_PREFIX):
            try:
                return strip_data_url(media) or None
            except TransformError as e:
                logger.warning("Dropping image: %s", e)
                return None
        if media.lower().startswith(REMOTE_URL_PREFIXES):
            return fetch_image(media, config)
        return media

    if isinstance(media, (bytes, bytearray, memoryview)):
        return encode_bytes(media)

    logger.warning("Dropping image: unsupported media type %s", type(media).__name__)
    return None
