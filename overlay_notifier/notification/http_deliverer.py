from __future__ import annotations

import json
import logging
import re
import threading
import warnings
from typing import Set
from urllib.parse import urlsplit

import requests
from urllib3.exceptions import InsecureRequestWarning

from overlay_notifier.core.config.settings import NotifierConfig
from overlay_notifier.domain.errors import ConfigurationError, NetworkError, TransformError
from overlay_notifier.domain.models import CanonicalPayload, summarize_wire
from overlay_notifier.notification.base import DeliveryResult

logger = logging.getLogger(__name__)

_trusted_hosts: Set[str] = set()
_trusted_lock = threading.Lock()


def silence_insecure_tls_warning(url: str) -> None:
    """
    Suppress urllib3's unverified-HTTPS warning for the host of ``url``.

    Only called when ``allow_insecure_tls`` is on, where the warning would
    fire on every delivery. The filter lives in the process-wide warnings
    registry but matches this host only, so unverified requests to any other
    host still warn.
    """
    host = urlsplit(url).hostname
    if not host:
        return
    with _trusted_lock:
        if host in _trusted_hosts:
            return
        _trusted_hosts.add(host)
        warnings.filterwarnings(
            "ignore",
            message=rf"Unverified HTTPS request is being made to host '{re.escape(host)}'",
            category=InsecureRequestWarning,
        )


class HttpDeliverer:
    """
    Deliverer that POSTs canonical payloads to the renderer as JSON.

    Notes
    -----
    - This class performs side effects (network I/O).
    - Every request is bounded by ``config.request_timeout_s``. Deliveries run
      one at a time, so an unbounded call would stall the whole queue.
    - Certificate checks are skipped when ``config.allow_insecure_tls`` is set.
      This is a deliberate trust decision: renderers are on-LAN devices the
      user controls, and they typically present self-signed certificates.
    - Failures are returned as :class:`DeliveryResult`, never raised.
    """

    def __init__(self, user_agent: str = "overlay-notifier"):
        self._headers = {"Content-Type": "application/json", "User-Agent": user_agent}

    def send(self, payload: CanonicalPayload, config: NotifierConfig) -> DeliveryResult:
        """
        Send one payload to ``config.server_url``.

        Parameters
        ----------
        payload
            Payload to serialize and POST.
        config
            Configuration snapshot taken for this attempt.

        Returns
        -------
        DeliveryResult
            ``ok`` on a 2xx response. Otherwise ``error`` holds a
            ConfigurationError (no destination or unusable request settings),
            a TransformError (body not JSON serializable, no request made) or
            a NetworkError (timeout, connection failure, non-2xx status).
        """
        if not config.has_destination:
            err = ConfigurationError("server url is not configured")
            logger.error("Skipping notification %r: %s", payload.title, err)
            return DeliveryResult.failure(err)

        url = config.server_url.strip()
        body = payload.to_wire()
        try:
            json.dumps(body, allow_nan=False)
        except (TypeError, ValueError) as e:
            err = TransformError(f"payload is not JSON serializable: {e}")
            logger.error("Skipping notification %r: %s", payload.title, err)
            return DeliveryResult.failure(err)

        headers = dict(self._headers)
        if config.auth_header:
            headers["Authorization"] = config.auth_header
        verify = not config.allow_insecure_tls
        if not verify:
            silence_insecure_tls_warning(url)

        logger.info("Sending %s to %s", json.dumps(summarize_wire(body)), url)
        try:
            r = requests.post(
                url,
                json=body,
                headers=headers,
                timeout=config.request_timeout_s,
                verify=verify,
            )
            r.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error("Error in sending notification to %s: %s", url, e)
            return DeliveryResult.failure(NetworkError(str(e)), status_code=status)
        except requests.RequestException as e:
            logger.error("Error in sending notification to %s: %s", url, e)
            return DeliveryResult.failure(NetworkError(str(e)))
        except ValueError as e:
            # requests rejects a zero or negative timeout before connecting
            logger.error("Invalid request settings for %s: %s", url, e)
            return DeliveryResult.failure(ConfigurationError(str(e)))

        logger.info("Notification sent (%s) %s", r.status_code, r.text[:200])
        return DeliveryResult.success(status_code=r.status_code)
