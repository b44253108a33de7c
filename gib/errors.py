"""Exception types shared by the batch engine, the image provider and the CLI."""

from __future__ import annotations


class GibError(Exception):
    """Base class for all errors raised by this package."""


class BatchConfigError(GibError):
    """Raised when a batch configuration is missing, malformed or out of range.

    Always raised before scheduling starts; never retried.
    """


class ImageOperationError(GibError):
    """A single generate/edit call failed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RemoteError(ImageOperationError):
    """The image API answered with a non-success response (or could not be reached)."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status

    def __repr__(self) -> str:
        return f"RemoteError(status={self.status!r}, message={self.message!r})"


class LocalError(ImageOperationError):
    """A request was rejected before calling the API, or reading a source image or writing a result failed."""
