from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from overlay_notifier.core.config.settings import NotifierConfig, SettingsStore
from overlay_notifier.domain.errors import MediaFetchError
from overlay_notifier.domain.models import MediaInput, NotificationOptions, NotificationRequest
from overlay_notifier.notification.base import Deliverer
from overlay_notifier.notification.http_deliverer import HttpDeliverer
from overlay_notifier.notification.payload import normalize
from overlay_notifier.notification.throttled_queue import ThrottledQueue

logger = logging.getLogger(__name__)


class OverlayNotifier:
    """
    Per-device notification dispatcher.

    This is the surface the host calls into:

    - ``send_notification`` normalizes a request and queues it
    - ``get_settings`` / ``put_setting`` back the host's settings form
    - ``start`` / ``stop`` control the background delivery loop

    Delivery is asynchronous: ``send_notification`` returns once the payload
    is queued, and delivery problems only show up in the logs.

    Parameters
    ----------
    config
        Initial configuration snapshot.
    deliverer
        Delivery backend. Defaults to :class:`HttpDeliverer`.
    clock
        Monotonic clock passed to the queue. Injectable for tests.
    name
        Label used for the loop thread and log lines.
    """

    def __init__(
        self,
        config: Optional[NotifierConfig] = None,
        deliverer: Optional[Deliverer] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "overlay-notifier",
    ):
        self._settings = SettingsStore(config)
        self._queue = ThrottledQueue(
            deliverer=deliverer or HttpDeliverer(),
            config_provider=lambda: self._settings.config,
            clock=clock,
            name=name,
        )
        self.name = name

    @property
    def config(self) -> NotifierConfig:
        return self._settings.config

    @property
    def queue(self) -> ThrottledQueue:
        return self._queue

    @property
    def queue_depth(self) -> int:
        return self._queue.depth

    def start(self) -> None:
        self._queue.start()

    def stop(self, timeout: float | None = None) -> None:
        self._queue.stop(timeout)

    def send_notification(
        self,
        title: str,
        options: Union[NotificationOptions, Mapping[str, Any], None] = None,
        media: Optional[MediaInput] = None,
        icon: Optional[MediaInput] = None,
    ) -> None:
        """
        Queue a notification for delivery.

        Parameters
        ----------
        title
            Notification title.
        options
            Body text and extension data; see :class:`NotificationOptions`.
        media
            Image source: icon keyword, data URL, http(s) URL or raw bytes.
        icon
            Used as the image source when ``media`` is not given.

        Notes
        -----
        If a remote image cannot be downloaded, the notification is still
        queued without an image.
        """
        request = NotificationRequest.from_call(title, options, media if media is not None else icon)
        config = self._settings.config

        try:
            payload = normalize(request, config)
        except MediaFetchError as e:
            logger.warning("[%s] sending %r without image: %s", self.name, title, e)
            payload = normalize(replace(request, media=None), config)

        self._queue.enqueue(payload)

    def get_settings(self) -> List[Dict[str, Any]]:
        return self._settings.get_settings()

    def put_setting(self, key: str, value: Any) -> None:
        """
        Change one setting. Applies from the next scheduling tick.

        Raises
        ------
        KeyError
            If ``key`` is not an editable setting.
        """
        self._settings.put_setting(key, value)
