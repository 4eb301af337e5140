"""
Composition Error Codes and Exceptions.

Every error is raised where it is detected and aborts the whole
composition call. No partial buffer is ever returned.

Hierarchy:
    ComposeError                    INTERNAL_ERROR
    ├── FormatError                 FORMAT_ERROR
    ├── DecodeError                 DECODE_FAILED
    ├── NoInputError                NO_INPUT
    ├── UnsupportedOperationError   UNSUPPORTED_OPERATION
    ├── InvalidInputError           INVALID_INPUT
    ├── SampleRateMismatchError     SAMPLE_RATE_MISMATCH
    └── OutputTooLargeError         OUTPUT_TOO_LARGE

Callers surface `message` to the end user; `to_dict()` gives the same
error shape for JSON output.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Standardized error codes carried by ComposeError.code."""
    FORMAT_ERROR = "FORMAT_ERROR"                    # Malformed container
    DECODE_FAILED = "DECODE_FAILED"                  # Clip not decodable to PCM
    NO_INPUT = "NO_INPUT"                            # Nothing to compose
    UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"  # Needs structural knowledge we lack
    INVALID_INPUT = "INVALID_INPUT"                  # Bad arguments
    SAMPLE_RATE_MISMATCH = "SAMPLE_RATE_MISMATCH"    # Clips at different rates
    OUTPUT_TOO_LARGE = "OUTPUT_TOO_LARGE"            # Mixed output over the ceiling
    INTERNAL_ERROR = "INTERNAL_ERROR"                # Unexpected error


class ComposeError(Exception):
    """
    Base exception for composition errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode class.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a standardized error dict."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class FormatError(ComposeError):
    """Raised for a malformed or unsupported container (bad magic, no data chunk)."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.FORMAT_ERROR, details)


class DecodeError(ComposeError):
    """
    Raised when a clip's bytes cannot be decoded to PCM.

    Attributes:
        clip_index: Position of the failing clip in the input, or None
            when raised by a decoder that does not know it.
    """
    def __init__(self, message: str, clip_index: Optional[int] = None, details: Optional[Dict] = None):
        details = dict(details or {})
        if clip_index is not None:
            details.setdefault("clip_index", clip_index)
        super().__init__(message, ErrorCode.DECODE_FAILED, details)
        self.clip_index = clip_index


class NoInputError(ComposeError):
    """Raised for an empty clip list, or when every clip yields zero audio."""
    def __init__(self, message: str = "no audio to compose", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NO_INPUT, details)


class UnsupportedOperationError(ComposeError):
    """Raised when an opaque container reaches a path needing structural knowledge."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.UNSUPPORTED_OPERATION, details)


class InvalidInputError(ComposeError):
    """Raised for malformed arguments (gap count, negative durations, bad base64)."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class SampleRateMismatchError(ComposeError):
    """Raised when clips to be mixed were decoded at different sample rates."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SAMPLE_RATE_MISMATCH, details)


class OutputTooLargeError(ComposeError):
    """Raised when the mixed timeline would exceed the configured ceiling."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.OUTPUT_TOO_LARGE, details)
