"""RIFF chunk header and the four WAVE chunk variants.

WHY: A WAVE file is a RIFF container: every unit starts with the same
8-byte prefix (4-byte ASCII tag + little-endian u32 size) followed by
tag-specific fields. Joining files needs byte-exact decoding and
re-encoding of exactly four of them: the outer RIFF descriptor and the
"fmt ", optional "fact" and "data" sub-chunks.

HOW: ChunkHeader is the shared 8-byte record. Each variant is its own
frozen dataclass (no common base class) exposing the same small surface:
  decode(chunk_header, stream) -> DecodeResult   read the variant's fields
  validate() -> Optional[WaveFormatError]        tag / field rule
  encode() -> bytes                              prefix + fields, in order
  compatible_with(other) -> bool                 joinability predicate
The size written by encode() is recomputed from the variant's fields,
except for RIFF and data, whose sizes describe content outside the chunk.

RULES:
- Numeric fields are unsigned little-endian, 16 or 32 bits wide
- Tags are 4 raw bytes, not null-terminated (latin-1 maps bytes 1:1)
- fmt carries an extension (u16 size + opaque bytes) iff its size > 16
- fact carries a sample length iff its size >= 4; any further bytes are
  kept opaque so the chunk re-encodes verbatim
- Payload bytes of the data chunk are never read here
"""

from __future__ import annotations

import dataclasses
import enum
import struct
from dataclasses import dataclass
from typing import BinaryIO, ClassVar, Optional

from wave_joiner.config import MAX_EXTENSION_SIZE, MAX_FACT_EXTRA_SIZE
from wave_joiner.core.errors import DecodeResult, WaveFormatError

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")

U32_MAX = 0xFFFFFFFF


class ChunkTag(str, enum.Enum):
    """Chunk identifiers (ckId) understood by the decoder."""

    RIFF = "RIFF"
    FMT = "fmt "
    FACT = "fact"
    DATA = "data"


WAVE_FORMAT = "WAVE"


# ---------------------------------------------------------------------------
# Byte helpers
# ---------------------------------------------------------------------------


def read_exact(stream: BinaryIO, count: int) -> Optional[bytes]:
    """Read exactly *count* bytes, or return None if the stream ends first."""
    buf = bytearray()
    while len(buf) < count:
        block = stream.read(count - len(buf))
        if not block:
            return None
        buf += block
    return bytes(buf)


def _tag_to_str(raw: bytes) -> str:
    return raw.decode("latin-1")


def _tag_to_bytes(tag: str) -> bytes:
    raw = tag.encode("latin-1")
    if len(raw) != 4:
        raise ValueError("Chunk tag must be exactly 4 bytes, got {!r}".format(tag))
    return raw


def _unexpected_tag(expected: str, actual: str) -> WaveFormatError:
    return WaveFormatError(
        'Unexpected RIFF sub-chunk "{}" (expected "{}")'.format(actual, expected)
    )


def _truncated(what: str) -> WaveFormatError:
    return WaveFormatError("Truncated {}: stream ended early".format(what))


# ---------------------------------------------------------------------------
# ChunkHeader
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChunkHeader:
    """The universal 8-byte chunk prefix: tag (ckId) and size (ckSize)."""

    tag: str
    size: int

    SIZE: ClassVar[int] = 8

    def __post_init__(self) -> None:
        _tag_to_bytes(self.tag)
        if not 0 <= self.size <= U32_MAX:
            raise ValueError("Chunk size out of u32 range: {}".format(self.size))

    @classmethod
    def decode(cls, stream: BinaryIO) -> DecodeResult[ChunkHeader]:
        raw = read_exact(stream, cls.SIZE)
        if raw is None:
            return DecodeResult.failure(_truncated("chunk header"))
        (size,) = _U32.unpack_from(raw, 4)
        return DecodeResult.success(cls(_tag_to_str(raw[:4]), size))

    @classmethod
    def read(cls, stream: BinaryIO) -> ChunkHeader:
        return cls.decode(stream).unwrap()

    def encode(self) -> bytes:
        return _tag_to_bytes(self.tag) + _U32.pack(self.size)

    def __str__(self) -> str:
        return 'tag="{}", size={}'.format(self.tag, self.size)


# ---------------------------------------------------------------------------
# RIFF descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RIFFChunk:
    """The outer RIFF descriptor: "RIFF" | size | "WAVE".

    size counts every byte after the size field, so it changes with every
    concatenation and is not compared by compatible_with().
    """

    size: int
    format: str = WAVE_FORMAT
    tag: str = ChunkTag.RIFF.value

    @property
    def chunk_header(self) -> ChunkHeader:
        return ChunkHeader(self.tag, self.size)

    @classmethod
    def decode(
        cls, chunk_header: ChunkHeader, stream: BinaryIO
    ) -> DecodeResult[RIFFChunk]:
        raw = read_exact(stream, 4)
        if raw is None:
            return DecodeResult.failure(_truncated("RIFF descriptor"))
        chunk = cls(size=chunk_header.size, format=_tag_to_str(raw), tag=chunk_header.tag)
        error = chunk.validate()
        if error is not None:
            return DecodeResult.failure(error)
        return DecodeResult.success(chunk)

    def validate(self) -> Optional[WaveFormatError]:
        if self.tag != ChunkTag.RIFF.value:
            return WaveFormatError(
                'Input is not a RIFF container (starts with "{}")'.format(self.tag)
            )
        if self.format != WAVE_FORMAT:
            return WaveFormatError(
                'Input is "{}", not WAVE format.'.format(self.format)
            )
        return None

    def encode(self) -> bytes:
        return self.chunk_header.encode() + _tag_to_bytes(self.format)

    def compatible_with(self, other: RIFFChunk) -> bool:
        return self.tag == other.tag and self.format == other.format

    def copy(self, size: int) -> RIFFChunk:
        return dataclasses.replace(self, size=size)

    def __str__(self) -> str:
        return 'RIFFChunk({}, format="{}")'.format(self.chunk_header, self.format)


# ---------------------------------------------------------------------------
# "fmt " sub-chunk
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FmtSubChunk:
    """The "fmt " sub-chunk describing how the payload is encoded.

    WHY: Two files can only be concatenated byte-for-byte when every
    format parameter matches, including any codec-specific extension.

    HOW: The six scalar fields are one fixed 16-byte struct. When the
    declared size exceeds 16, a u16 extension size and that many opaque
    bytes follow; they are kept verbatim and never interpreted.

    RULES:
    - extension is None for plain PCM (size == 16)
    - extension is b"" for a present but empty extension (size == 18)
    - declared size must equal 16 + 2 + extension size when extended
    - extension sizes above MAX_EXTENSION_SIZE are rejected
    """

    audio_format: int
    num_channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    extension: Optional[bytes] = None
    tag: str = ChunkTag.FMT.value

    BASE_SIZE: ClassVar[int] = 16
    _FIELDS: ClassVar[struct.Struct] = struct.Struct("<HHIIHH")

    @property
    def size(self) -> int:
        if self.extension is None:
            return self.BASE_SIZE
        return self.BASE_SIZE + _U16.size + len(self.extension)

    @property
    def extension_size(self) -> Optional[int]:
        return None if self.extension is None else len(self.extension)

    @property
    def chunk_header(self) -> ChunkHeader:
        return ChunkHeader(self.tag, self.size)

    @classmethod
    def decode(
        cls,
        chunk_header: ChunkHeader,
        stream: BinaryIO,
        max_extension_size: int = MAX_EXTENSION_SIZE,
    ) -> DecodeResult[FmtSubChunk]:
        if chunk_header.tag != ChunkTag.FMT.value:
            return DecodeResult.failure(_unexpected_tag(ChunkTag.FMT.value, chunk_header.tag))
        if chunk_header.size < cls.BASE_SIZE:
            return DecodeResult.failure(WaveFormatError(
                "fmt sub-chunk too small: {} bytes (minimum {})".format(
                    chunk_header.size, cls.BASE_SIZE
                )
            ))

        raw = read_exact(stream, cls.BASE_SIZE)
        if raw is None:
            return DecodeResult.failure(_truncated("fmt sub-chunk"))
        fields = cls._FIELDS.unpack(raw)

        extension = None  # type: Optional[bytes]
        if chunk_header.size > cls.BASE_SIZE:
            raw_ext_size = read_exact(stream, _U16.size)
            if raw_ext_size is None:
                return DecodeResult.failure(_truncated("fmt extension size"))
            (ext_size,) = _U16.unpack(raw_ext_size)
            if ext_size > max_extension_size:
                return DecodeResult.failure(WaveFormatError(
                    "fmt extension of {} bytes exceeds the limit of {}".format(
                        ext_size, max_extension_size
                    )
                ))
            expected = cls.BASE_SIZE + _U16.size + ext_size
            if expected != chunk_header.size:
                return DecodeResult.failure(WaveFormatError(
                    "fmt sub-chunk declares {} bytes but its extension "
                    "needs {}".format(chunk_header.size, expected)
                ))
            extension = read_exact(stream, ext_size)
            if extension is None:
                return DecodeResult.failure(_truncated("fmt extension"))

        chunk = cls(*fields, extension=extension, tag=chunk_header.tag)
        return DecodeResult.success(chunk)

    def validate(self) -> Optional[WaveFormatError]:
        if self.tag != ChunkTag.FMT.value:
            return _unexpected_tag(ChunkTag.FMT.value, self.tag)
        return None

    def encode(self) -> bytes:
        out = self.chunk_header.encode() + self._FIELDS.pack(
            self.audio_format,
            self.num_channels,
            self.sample_rate,
            self.byte_rate,
            self.block_align,
            self.bits_per_sample,
        )
        if self.extension is not None:
            out += _U16.pack(len(self.extension)) + self.extension
        return out

    def compatible_with(self, other: FmtSubChunk) -> bool:
        return (
            self.tag == other.tag
            and self.size == other.size
            and self.audio_format == other.audio_format
            and self.num_channels == other.num_channels
            and self.sample_rate == other.sample_rate
            and self.byte_rate == other.byte_rate
            and self.block_align == other.block_align
            and self.bits_per_sample == other.bits_per_sample
            and self.extension == other.extension
        )

    def __str__(self) -> str:
        text = (
            "FmtSubChunk({}, audio_format={}, num_channels={}, sample_rate={}, "
            "byte_rate={}, block_align={}, bits_per_sample={}".format(
                self.chunk_header,
                self.audio_format,
                self.num_channels,
                self.sample_rate,
                self.byte_rate,
                self.block_align,
                self.bits_per_sample,
            )
        )
        if self.extension is not None:
            text += ", extension_size={}".format(len(self.extension))
        return text + ")"


# ---------------------------------------------------------------------------
# "fact" sub-chunk
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FactSubChunk:
    """The optional "fact" sub-chunk used by non-PCM files.

    sample_length is derived from the payload size, so it is never part
    of compatibility. A zero-length fact chunk is legal.
    """

    sample_length: Optional[int] = None
    extra: bytes = b""
    tag: str = ChunkTag.FACT.value

    @property
    def size(self) -> int:
        base = _U32.size if self.sample_length is not None else 0
        return base + len(self.extra)

    @property
    def chunk_header(self) -> ChunkHeader:
        return ChunkHeader(self.tag, self.size)

    @classmethod
    def decode(
        cls,
        chunk_header: ChunkHeader,
        stream: BinaryIO,
        max_extra_size: int = MAX_FACT_EXTRA_SIZE,
    ) -> DecodeResult[FactSubChunk]:
        if chunk_header.tag != ChunkTag.FACT.value:
            return DecodeResult.failure(_unexpected_tag(ChunkTag.FACT.value, chunk_header.tag))

        sample_length = None  # type: Optional[int]
        remaining = chunk_header.size
        if chunk_header.size >= _U32.size:
            raw = read_exact(stream, _U32.size)
            if raw is None:
                return DecodeResult.failure(_truncated("fact sub-chunk"))
            (sample_length,) = _U32.unpack(raw)
            remaining -= _U32.size

        if remaining > max_extra_size:
            return DecodeResult.failure(WaveFormatError(
                "fact sub-chunk carries {} unexpected bytes (limit {})".format(
                    remaining, max_extra_size
                )
            ))
        extra = read_exact(stream, remaining)
        if extra is None:
            return DecodeResult.failure(_truncated("fact sub-chunk"))

        return DecodeResult.success(
            cls(sample_length=sample_length, extra=extra, tag=chunk_header.tag)
        )

    def validate(self) -> Optional[WaveFormatError]:
        if self.tag != ChunkTag.FACT.value:
            return _unexpected_tag(ChunkTag.FACT.value, self.tag)
        return None

    def encode(self) -> bytes:
        out = self.chunk_header.encode()
        if self.sample_length is not None:
            out += _U32.pack(self.sample_length)
        return out + self.extra

    def compatible_with(self, other: FactSubChunk) -> bool:
        return self.tag == other.tag

    def copy(self, sample_length: Optional[int]) -> FactSubChunk:
        return dataclasses.replace(self, sample_length=sample_length)

    def __str__(self) -> str:
        text = "FactSubChunk({}".format(self.chunk_header)
        if self.sample_length is not None:
            text += ", sample_length={}".format(self.sample_length)
        return text + ")"


# ---------------------------------------------------------------------------
# "data" sub-chunk
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DataSubChunk:
    """The "data" sub-chunk header; size is the payload byte count."""

    size: int
    tag: str = ChunkTag.DATA.value

    @property
    def chunk_header(self) -> ChunkHeader:
        return ChunkHeader(self.tag, self.size)

    @classmethod
    def decode(cls, chunk_header: ChunkHeader) -> DecodeResult[DataSubChunk]:
        chunk = cls(size=chunk_header.size, tag=chunk_header.tag)
        error = chunk.validate()
        if error is not None:
            return DecodeResult.failure(error)
        return DecodeResult.success(chunk)

    def validate(self) -> Optional[WaveFormatError]:
        if self.tag != ChunkTag.DATA.value:
            return _unexpected_tag(ChunkTag.DATA.value, self.tag)
        return None

    def encode(self) -> bytes:
        return self.chunk_header.encode()

    def compatible_with(self, other: DataSubChunk) -> bool:
        return self.tag == other.tag

    def copy(self, size: int) -> DataSubChunk:
        return dataclasses.replace(self, size=size)

    def __str__(self) -> str:
        return "DataSubChunk({})".format(self.chunk_header)
