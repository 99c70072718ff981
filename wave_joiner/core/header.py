"""The decoded WAVE file header: RIFF + fmt + optional fact + data.

WHY: The joiner never looks at audio samples. Everything it needs to
decide whether files can be concatenated, and to describe the joined
result, lives in the header that precedes the payload.

HOW: WaveFileHeader.decode() reads the chunks in file order and returns a
DecodeResult; read() is the raising convenience wrapper. The header can
check compatibility with another header, derive a header for a new payload
size (copy) and encode itself back to bytes.

RULES:
- Decode order: RIFF, fmt, then fact (optional) and data
- Only the data chunk's 8-byte header is consumed, never its payload
- size = 8 + (riff.size - data.size): bytes up to the end of the data header
- Headers are immutable; copy() returns a new header
- Two headers are equal when compatible and their RIFF sizes match
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, ClassVar, Optional

from wave_joiner.core.chunks import (
    U32_MAX,
    ChunkHeader,
    ChunkTag,
    DataSubChunk,
    FactSubChunk,
    FmtSubChunk,
    RIFFChunk,
)
from wave_joiner.core.errors import DecodeResult, WaveFormatError


@dataclass(frozen=True)
class WaveFileHeader:
    """All header chunks of one WAVE file."""

    riff_chunk: RIFFChunk
    fmt_sub_chunk: FmtSubChunk
    fact_sub_chunk: Optional[FactSubChunk]
    data_sub_chunk: DataSubChunk

    MIN_SIZE: ClassVar[int] = 44

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @classmethod
    def decode(cls, stream: BinaryIO) -> DecodeResult[WaveFileHeader]:
        """Decode a header from *stream*, leaving it positioned at the payload.

        RULES:
        - Fails if the RIFF format is not "WAVE"
        - The chunk after fmt is decoded as fact when tagged "fact";
          the data header is then read after it
        - Any other tag after fmt must be "data" or decoding fails
        """
        riff_header = ChunkHeader.decode(stream)
        if not riff_header.ok:
            return DecodeResult.failure(riff_header.error)
        riff = RIFFChunk.decode(riff_header.unwrap(), stream)
        if not riff.ok:
            return DecodeResult.failure(riff.error)

        fmt_header = ChunkHeader.decode(stream)
        if not fmt_header.ok:
            return DecodeResult.failure(fmt_header.error)
        fmt = FmtSubChunk.decode(fmt_header.unwrap(), stream)
        if not fmt.ok:
            return DecodeResult.failure(fmt.error)

        next_header = ChunkHeader.decode(stream)
        if not next_header.ok:
            return DecodeResult.failure(next_header.error)

        fact_sub_chunk = None  # type: Optional[FactSubChunk]
        data_header = next_header.unwrap()
        if data_header.tag == ChunkTag.FACT.value:
            fact = FactSubChunk.decode(data_header, stream)
            if not fact.ok:
                return DecodeResult.failure(fact.error)
            fact_sub_chunk = fact.unwrap()
            following = ChunkHeader.decode(stream)
            if not following.ok:
                return DecodeResult.failure(following.error)
            data_header = following.unwrap()

        data = DataSubChunk.decode(data_header)
        if not data.ok:
            return DecodeResult.failure(data.error)

        return DecodeResult.success(cls(
            riff_chunk=riff.unwrap(),
            fmt_sub_chunk=fmt.unwrap(),
            fact_sub_chunk=fact_sub_chunk,
            data_sub_chunk=data.unwrap(),
        ))

    @classmethod
    def read(cls, stream: BinaryIO) -> WaveFileHeader:
        """Decode a header, raising WaveFormatError on malformed input."""
        return cls.decode(stream).unwrap()

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        """Total header length, up to and including the data size field."""
        return 8 + (self.riff_chunk.size - self.data_sub_chunk.size)

    @property
    def is_pcm(self) -> bool:
        """True for plain PCM: a 16-byte fmt chunk and no fact chunk."""
        return (
            self.fmt_sub_chunk.size == FmtSubChunk.BASE_SIZE
            and self.fact_sub_chunk is None
        )

    @property
    def data_size(self) -> int:
        return self.data_sub_chunk.size

    # ------------------------------------------------------------------
    # Compatibility and derivation
    # ------------------------------------------------------------------

    def compatible_with(self, other: WaveFileHeader) -> bool:
        """Whether payloads of both files can be concatenated unchanged.

        RIFF and data sizes are not compared; they differ per file.
        """
        if (self.fact_sub_chunk is None) != (other.fact_sub_chunk is None):
            return False
        if self.fact_sub_chunk is not None and other.fact_sub_chunk is not None:
            if not self.fact_sub_chunk.compatible_with(other.fact_sub_chunk):
                return False
        return (
            self.riff_chunk.compatible_with(other.riff_chunk)
            and self.fmt_sub_chunk.compatible_with(other.fmt_sub_chunk)
            and self.data_sub_chunk.compatible_with(other.data_sub_chunk)
        )

    def check_compatible(self, other: WaveFileHeader) -> Optional[WaveFormatError]:
        """Return a WaveFormatError describing the mismatch, or None."""
        if self.compatible_with(other):
            return None
        return WaveFormatError(
            "Wave files with incompatible headers are not supported: "
            "{} ~ {}".format(other, self),
            expected=self,
            actual=other,
        )

    def copy(self, data_size: int) -> WaveFileHeader:
        """Return a header describing the same format with *data_size* payload bytes.

        HOW: Recomputes the RIFF size from the chunk sizes and the new
        payload size. When a fact chunk with a sample length is present it
        is carried forward with sample_length = riff size // num_channels.

        RULES:
        - Raises WaveFormatError if the result exceeds the u32 RIFF limit
        - Raises WaveFormatError if a sample length must be derived from
          a fmt chunk declaring zero channels
        """
        fmt = self.fmt_sub_chunk
        total_size = 4 + (8 + fmt.size) + (8 + data_size)
        if self.fact_sub_chunk is not None:
            total_size += 8 + self.fact_sub_chunk.size
        if data_size < 0 or total_size > U32_MAX:
            raise WaveFormatError(
                "Joined payload of {} bytes does not fit a RIFF container".format(
                    data_size
                )
            )

        fact = self.fact_sub_chunk
        if fact is not None and fact.sample_length is not None:
            if fmt.num_channels == 0:
                raise WaveFormatError(
                    "Cannot derive a fact sample length: fmt declares zero channels"
                )
            fact = fact.copy(total_size // fmt.num_channels)

        return WaveFileHeader(
            riff_chunk=self.riff_chunk.copy(total_size),
            fmt_sub_chunk=fmt,
            fact_sub_chunk=fact,
            data_sub_chunk=self.data_sub_chunk.copy(data_size),
        )

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        """Encode the header chunks in file order."""
        parts = [self.riff_chunk.encode(), self.fmt_sub_chunk.encode()]
        if self.fact_sub_chunk is not None:
            parts.append(self.fact_sub_chunk.encode())
        parts.append(self.data_sub_chunk.encode())
        return b"".join(parts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WaveFileHeader):
            return NotImplemented
        return (
            self.compatible_with(other)
            and self.riff_chunk.size == other.riff_chunk.size
        )

    def __hash__(self) -> int:
        return hash((
            self.riff_chunk.tag,
            self.riff_chunk.format,
            self.riff_chunk.size,
            self.fmt_sub_chunk,
            self.fact_sub_chunk is not None,
        ))

    def __str__(self) -> str:
        lines = ["WaveFileHeader(", "\t{}".format(self.riff_chunk), "\t{}".format(self.fmt_sub_chunk)]
        if self.fact_sub_chunk is not None:
            lines.append("\t{}".format(self.fact_sub_chunk))
        lines.append("\t{}".format(self.data_sub_chunk))
        lines.append(")")
        return "\n".join(lines)
