"""
Error taxonomy for the dispatcher.

None of these is fatal: the dispatcher catches them at the point of
normalization or delivery, logs them, and keeps ticking.
"""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for every dispatcher error."""


class ConfigurationError(DispatchError):
    """Missing or invalid destination settings. Skips one delivery."""


class TransformError(DispatchError):
    """Media input that cannot be turned into an image field. The image is omitted."""


class NetworkError(DispatchError):
    """Connection failure, timeout or non-2xx response."""


class MediaFetchError(NetworkError):
    """A remote image referenced by a notification could not be downloaded."""
