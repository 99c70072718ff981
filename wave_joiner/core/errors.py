"""Format errors and the decode result type.

WHY: Malformed or incompatible WAVE headers are an expected outcome when
joining files from arbitrary sources. Decoders report them as values so the
joiner's validation pass can fail fast without relying on unwinding through
every chunk reader.

HOW: WaveFormatError describes what went wrong (and optionally which file
and which headers). DecodeResult carries either a decoded value or a
WaveFormatError; unwrap() turns the error back into an exception at the
public boundary.

RULES:
- WaveFormatError subclasses ValueError (bad input data, not an I/O fault)
- OSError is never wrapped; I/O failures propagate unchanged
- A DecodeResult holds exactly one of value / error
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class WaveFormatError(ValueError):
    """Raised (or returned) when WAVE header bytes cannot be accepted.

    WHY: Callers need one typed error for every format problem: a RIFF
    container that is not WAVE, an unexpected sub-chunk tag, a truncated
    header, or two files whose headers cannot be joined.

    RULES:
    - message is human readable and names the offending tag or headers
    - path is set once the error is attributed to an input file
    - expected / actual are set for header incompatibility only
    """

    def __init__(
        self,
        message: str,
        path: Optional[Path] = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        self.message = message
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(message if path is None else "{}: {}".format(path, message))

    def with_path(self, path: Path) -> WaveFormatError:
        """Return a copy of this error attributed to *path*."""
        return WaveFormatError(
            self.message, path=path, expected=self.expected, actual=self.actual
        )


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Outcome of a decode or validation step: a value or an error."""

    value: Optional[T] = None
    error: Optional[WaveFormatError] = None

    @classmethod
    def success(cls, value: T) -> DecodeResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: WaveFormatError) -> DecodeResult[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the carried WaveFormatError if any."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
