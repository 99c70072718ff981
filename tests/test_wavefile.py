"""Unit tests for WaveFile payload streaming."""

import io

import pytest

from wave_joiner.core.errors import WaveFormatError
from wave_joiner.core.wavefile import WaveFile


class TestPayload:
    """The payload is a lazy, one-pass sequence of blocks."""

    def test_yields_payload_in_blocks(self, wav_bytes):
        payload = bytes(range(100))
        wave_file = WaveFile(io.BytesIO(wav_bytes(payload=payload)), chunk_size=30)
        blocks = list(wave_file.iter_payload())
        assert [len(b) for b in blocks] == [30, 30, 30, 10]
        assert b"".join(blocks) == payload

    def test_closes_stream_when_drained(self, wav_bytes):
        stream = io.BytesIO(wav_bytes())
        wave_file = WaveFile(stream)
        assert not wave_file.closed
        list(wave_file)
        assert stream.closed

    def test_second_iteration_raises(self, wav_bytes):
        wave_file = WaveFile(io.BytesIO(wav_bytes()))
        list(wave_file.iter_payload())
        with pytest.raises(RuntimeError):
            wave_file.iter_payload()

    def test_nothing_read_before_iteration(self, wav_bytes):
        stream = io.BytesIO(wav_bytes())
        WaveFile(stream).iter_payload()
        assert stream.tell() == 44

    def test_empty_payload(self, wav_bytes):
        wave_file = WaveFile(io.BytesIO(wav_bytes(payload=b"")))
        assert list(wave_file.iter_payload()) == []


class TestOpen:
    """WaveFile.open decodes the header and owns the file handle."""

    def test_open_path(self, wav_file):
        path = wav_file(payload=b"abc")
        with WaveFile.open(path) as wave_file:
            assert wave_file.header.data_size == 3
            assert b"".join(wave_file) == b"abc"
        assert wave_file.closed

    def test_context_exit_closes_unread_file(self, wav_file):
        with WaveFile.open(wav_file()) as wave_file:
            pass
        assert wave_file.closed

    def test_bad_header_closes_stream(self, wav_bytes):
        stream = io.BytesIO(wav_bytes(riff_format=b"AVI "))
        with pytest.raises(WaveFormatError):
            WaveFile(stream)
        assert stream.closed

    def test_compatible_with(self, wav_file):
        with WaveFile.open(wav_file("a.wav")) as a, WaveFile.open(wav_file("b.wav", payload=b"x")) as b:
            assert a.compatible_with(b)
        with WaveFile.open(wav_file("c.wav", sample_rate=11025)) as c, WaveFile.open(wav_file("d.wav")) as d:
            assert not c.compatible_with(d)
