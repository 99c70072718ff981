"""RIFF/WAVE header model and the streaming joiner.

WHY: The core package holds everything with byte-level precision: the
chunk codecs, the aggregate header, the payload stream wrapper and the
two-pass join. The CLI and HTTP service are thin layers over it.

HOW: chunks.py decodes and encodes individual chunks, header.py combines
them, wavefile.py pairs a header with its payload stream and joiner.py
validates and concatenates files.

RULES:
- Decoders return DecodeResult values; raising happens at public edges
- Header values are immutable; derived headers are new values
- No audio samples are ever decoded
"""

from wave_joiner.core.chunks import (
    ChunkHeader,
    ChunkTag,
    DataSubChunk,
    FactSubChunk,
    FmtSubChunk,
    RIFFChunk,
)
from wave_joiner.core.errors import DecodeResult, WaveFormatError
from wave_joiner.core.header import WaveFileHeader
from wave_joiner.core.joiner import ProgressHandler, join_wave_files
from wave_joiner.core.wavefile import WaveFile

__all__ = [
    "ChunkHeader",
    "ChunkTag",
    "DataSubChunk",
    "DecodeResult",
    "FactSubChunk",
    "FmtSubChunk",
    "ProgressHandler",
    "RIFFChunk",
    "WaveFile",
    "WaveFileHeader",
    "WaveFormatError",
    "join_wave_files",
]
