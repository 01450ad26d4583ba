"""Exception hierarchy shared by the matrix65 engine."""

from __future__ import annotations


class Matrix65Error(RuntimeError):
    """Base class for failures raised while talking to a MEGA65."""


class ProtocolError(Matrix65Error):
    """Raised when the monitor answers with a malformed or short frame."""


class TransportError(Matrix65Error):
    """Raised when the underlying byte stream fails."""


class ValidationError(Matrix65Error, ValueError):
    """Raised when a request is rejected before touching the device."""


class InvalidFormatError(ValidationError):
    """Raised for unrecognised program files or truncated images."""


class UnsupportedLoadAddressError(ValidationError):
    """Raised when no mode transition exists for a program's load address."""


class InvalidSelectionError(ValidationError):
    """Raised when a disk-image entry index does not name a candidate."""


__all__ = [
    "InvalidFormatError",
    "InvalidSelectionError",
    "Matrix65Error",
    "ProtocolError",
    "TransportError",
    "UnsupportedLoadAddressError",
    "ValidationError",
]
