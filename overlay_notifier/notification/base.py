from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from overlay_notifier.core.config.settings import NotifierConfig
from overlay_notifier.domain.errors import DispatchError
from overlay_notifier.domain.models import CanonicalPayload


@dataclass(frozen=True)
class DeliveryResult:
    """
    Outcome of one delivery attempt.

    Parameters
    ----------
    ok
        True if the renderer answered with a 2xx status.
    status_code
        HTTP status when a response was received.
    error
        Cause of the failure (ConfigurationError or NetworkError), None on success.

    Notes
    -----
    Failures are returned rather than raised so the scheduling loop can log
    them and move on; a failed payload is never requeued.
    """

    ok: bool
    status_code: Optional[int] = None
    error: Optional[DispatchError] = None

    @classmethod
    def success(cls, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(ok=True, status_code=status_code)

    @classmethod
    def failure(cls, error: DispatchError, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(ok=False, status_code=status_code, error=error)


class Deliverer(Protocol):
    """
    Protocol interface for payload delivery.

    Any object with a matching ``send`` method can be used, which keeps the
    throttled queue testable with fakes.
    """

    def send(self, payload: CanonicalPayload, config: NotifierConfig) -> DeliveryResult:
        """
        Deliver one payload to the destination named in ``config``.

        Parameters
        ----------
        payload
            Normalized payload to deliver.
        config
            Current configuration snapshot.
        """
        ...
