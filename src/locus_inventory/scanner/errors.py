from __future__ import annotations

from locus_inventory.scanner.types import ErrorKind


class ScannerError(RuntimeError):
    """Base class for failures surfaced by the scanning pipeline."""

    kind: ErrorKind = ErrorKind.DEVICE_UNAVAILABLE


class PermissionDenied(ScannerError):
    """Raised when the operating system refuses access to the camera."""

    kind = ErrorKind.PERMISSION_DENIED


class DeviceUnavailable(ScannerError):
    """Raised when no camera satisfies the requested constraints."""

    kind = ErrorKind.DEVICE_UNAVAILABLE


class TargetMissing(ScannerError):
    """Raised when the preview surface is not ready at start time."""

    kind = ErrorKind.TARGET_MISSING


class EmptyInput(ScannerError, ValueError):
    """Raised when a manually entered code is blank after trimming."""

    kind = ErrorKind.EMPTY_INPUT


class SessionClosedError(RuntimeError):
    """Raised when an operation targets a session that already finished."""


class SessionBusyError(RuntimeError):
    """Raised when a session is asked to start while the camera is still being released."""
