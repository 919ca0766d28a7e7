"""Exception taxonomy.

Exceptions are raised inside the generation driver, the encoder and the
storage layer; the driver's public ``run`` converts them into
:class:`~fluxy.generate.types.Failure` values before they reach the UI loop.
"""

from __future__ import annotations


class FluxyError(Exception):
    """Base class for all fluxy errors."""


class ConfigurationError(FluxyError):
    """Missing or invalid credential or option value."""


class TransportError(FluxyError):
    """Network failure while submitting, polling or fetching."""


class UnexpectedResponseError(TransportError):
    """The service answered, but not with anything we understand."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteJobFailure(FluxyError):
    """The service reported the job as failed."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"image generation failed: {reason}")
        self.reason = reason


class JobTimeoutError(FluxyError):
    """A job outlived the configured watchdog timeout."""


class ProtocolDecodeError(FluxyError):
    """Image bytes could not be prepared for the terminal graphics protocol."""


class LocalIOError(FluxyError):
    """Saving the image to disk failed."""
