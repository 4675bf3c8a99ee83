"""Project-specific exception types."""

from __future__ import annotations

from typing import Optional


class FBXError(RuntimeError):
    """Base class for every error raised while parsing an FBX buffer."""


class FormatError(FBXError):
    """Raised when a buffer is neither binary nor ASCII FBX."""


class UnsupportedVersionError(FBXError):
    """Raised when the file declares a version below the supported floor."""

    def __init__(self, version: int, minimum: int) -> None:
        super().__init__(f"FBX version not supported, FileVersion: {version} (minimum {minimum})")
        self.version = version
        self.minimum = minimum


class BinaryParseError(FBXError):
    """Raised when the binary container is truncated or corrupt."""

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = f"{message} (at byte offset {offset})"
        super().__init__(message)
        self.offset = offset


class TextParseError(FBXError):
    """Raised when the ASCII grammar cannot be decoded."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message)
        self.line = line


class GraphResolutionError(FBXError):
    """Raised when an internal connection-graph invariant is violated."""
