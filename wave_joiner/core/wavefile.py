"""A decoded WAVE header paired with the stream holding its payload.

WHY: Joined files can be far larger than memory. The joiner needs the
payload of each input as a lazy byte sequence it can pipe straight into
the output.

HOW: WaveFile decodes the header on construction, leaving the stream
positioned at the first payload byte. iter_payload() then yields blocks
until end of stream and closes the stream.

RULES:
- WaveFile owns the stream it is given; it closes it once drained
- The payload can be iterated exactly once
- Bytes after the header are treated as payload up to end of stream
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterator, Union

from wave_joiner.config import COPY_CHUNK_SIZE
from wave_joiner.core.header import WaveFileHeader


class WaveFile:
    """Header plus the live byte stream that follows it."""

    def __init__(self, stream: BinaryIO, chunk_size: int = COPY_CHUNK_SIZE) -> None:
        self._stream = stream
        self._chunk_size = chunk_size
        self._consumed = False
        try:
            self.header = WaveFileHeader.read(stream)
        except BaseException:
            stream.close()
            raise

    @classmethod
    def open(cls, path: Union[str, Path], chunk_size: int = COPY_CHUNK_SIZE) -> WaveFile:
        return cls(open(path, "rb"), chunk_size=chunk_size)

    def iter_payload(self) -> Iterator[bytes]:
        """Yield the payload in blocks of at most chunk_size bytes.

        Raises RuntimeError if the payload was already consumed.
        """
        if self._consumed:
            raise RuntimeError("WaveFile payload can only be read once")
        self._consumed = True
        return self._drain()

    def _drain(self) -> Iterator[bytes]:
        try:
            while True:
                block = self._stream.read(self._chunk_size)
                if not block:
                    break
                yield block
        finally:
            self._stream.close()

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_payload()

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> WaveFile:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def compatible_with(self, other: WaveFile) -> bool:
        return self.header.compatible_with(other.header)

    def __repr__(self) -> str:
        return "{}({})".format(type(self).__name__, self.header)
