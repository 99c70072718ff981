"""Shared test fixtures for the wave_joiner test suite.

WHY: Nearly every test needs WAVE bytes with precise, known header fields.
Building them here with plain struct packing keeps the expected layout
independent of the encoder under test.

HOW: build_wav() assembles RIFF/fmt/fact/data bytes from keyword
arguments. The wav_bytes fixture exposes it; the wav_file fixture writes
the bytes under tmp_path and returns the path.

RULES:
- Default file: mono, 8-bit PCM, 8000 Hz, 100 payload bytes (44-byte header)
- fmt_extension=None means a plain 16-byte fmt chunk
- fact_sample_length is only written when include_fact is True
"""

import struct
from pathlib import Path
from typing import Optional

import pytest


def build_wav(
    payload: bytes = bytes(range(100)),
    channels: int = 1,
    sample_rate: int = 8000,
    bits_per_sample: int = 8,
    audio_format: int = 1,
    fmt_extension: Optional[bytes] = None,
    include_fact: bool = False,
    fact_sample_length: Optional[int] = None,
    riff_format: bytes = b"WAVE",
) -> bytes:
    """Return the bytes of a WAVE file with the given parameters."""
    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align

    fmt_body = struct.pack(
        "<HHIIHH",
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
    )
    if fmt_extension is not None:
        fmt_body += struct.pack("<H", len(fmt_extension)) + fmt_extension
    fmt_chunk = b"fmt " + struct.pack("<I", len(fmt_body)) + fmt_body

    fact_chunk = b""
    if include_fact:
        fact_body = b"" if fact_sample_length is None else struct.pack("<I", fact_sample_length)
        fact_chunk = b"fact" + struct.pack("<I", len(fact_body)) + fact_body

    data_chunk = b"data" + struct.pack("<I", len(payload)) + payload

    body = riff_format + fmt_chunk + fact_chunk + data_chunk
    return b"RIFF" + struct.pack("<I", len(body)) + body


@pytest.fixture
def wav_bytes():
    """The build_wav() builder."""
    return build_wav


@pytest.fixture
def wav_file(tmp_path):
    """Factory writing build_wav(**kwargs) to tmp_path/<name> and returning the path."""

    def _write(name: str = "clip.wav", **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(build_wav(**kwargs))
        return path

    return _write


class ProgressRecorder:
    """Progress handler that records calls and stops at a chosen call number."""

    def __init__(self, stop_on_call: Optional[int] = None) -> None:
        self.calls = []
        self.stop_on_call = stop_on_call

    def __call__(self, total_percent, current_file, file_percent):
        self.calls.append((total_percent, current_file, file_percent))
        return len(self.calls) != self.stop_on_call


@pytest.fixture
def progress():
    """A ProgressRecorder that never stops the join."""
    return ProgressRecorder()


@pytest.fixture
def stopping_progress():
    """Factory for ProgressRecorder instances that stop on a given call."""
    return ProgressRecorder
