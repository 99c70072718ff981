"""Tests for join_wave_files: validation pass, write pass, progress and cancellation.

WHY: The joiner's guarantees are what users rely on: incompatible inputs
never produce output, joined files are byte-exact, progress is monotonic,
and a stop request is honored at every checkpoint.

HOW: Inputs are small WAVE files written under tmp_path. Output goes to a
BytesIO sink or a path, depending on what the test checks.

RULES:
- Expected output bytes are built independently with build_wav()
- Progress calls are captured with the ProgressRecorder fixture
"""

import io
import struct

import pytest

from wave_joiner.core import joiner
from wave_joiner.core.errors import WaveFormatError
from wave_joiner.core.header import WaveFileHeader
from wave_joiner.core.joiner import join_wave_files, validate_headers


class TestEmptyInput:
    """An empty input list is a trivial success."""

    def test_returns_true_and_writes_nothing(self, progress):
        sink = io.BytesIO()
        assert join_wave_files([], sink, progress) is True
        assert sink.getvalue() == b""

    def test_progress_called_at_0_then_100(self, progress):
        join_wave_files([], io.BytesIO(), progress)
        assert progress.calls == [(0, None, 0), (100, None, 100)]

    def test_output_path_not_created(self, tmp_path, progress):
        out = tmp_path / "out.wav"
        join_wave_files([], out, progress)
        assert not out.exists()


class TestSingleFile:
    """Joining one file reproduces it exactly."""

    def test_output_equals_input(self, wav_file, progress):
        path = wav_file(payload=bytes(range(100)))
        sink = io.BytesIO()
        assert join_wave_files([path], sink, progress) is True
        assert sink.getvalue() == path.read_bytes()

    def test_output_path(self, wav_file, tmp_path, progress):
        path = wav_file()
        out = tmp_path / "out.wav"
        assert join_wave_files([str(path)], str(out), progress) is True
        assert out.read_bytes() == path.read_bytes()

    def test_caller_sink_left_open(self, wav_file, progress):
        sink = io.BytesIO()
        join_wave_files([wav_file()], sink, progress)
        assert not sink.closed


class TestTwoFiles:
    """Two compatible files: sizes summed, payloads concatenated."""

    def test_merged_sizes(self, wav_file, progress):
        f1 = wav_file("f1.wav", payload=bytes(100))
        f2 = wav_file("f2.wav", payload=bytes([1]) * 200)
        sink = io.BytesIO()
        assert join_wave_files([f1, f2], sink, progress) is True

        out = sink.getvalue()
        header = WaveFileHeader.read(io.BytesIO(out))
        assert header.data_sub_chunk.size == 300
        assert header.riff_chunk.size == 4 + 8 + 16 + 8 + 300
        assert len(out) == 8 + header.riff_chunk.size

    def test_payloads_concatenated_in_order(self, wav_file, wav_bytes, progress):
        f1 = wav_file("f1.wav", payload=b"\x01" * 100)
        f2 = wav_file("f2.wav", payload=b"\x02" * 200)
        sink = io.BytesIO()
        join_wave_files([f1, f2], sink, progress)
        assert sink.getvalue() == wav_bytes(payload=b"\x01" * 100 + b"\x02" * 200)

    def test_progress_monotonic_and_ends_at_100(self, wav_file, progress):
        f1 = wav_file("f1.wav", payload=bytes(100))
        f2 = wav_file("f2.wav", payload=bytes(200))
        join_wave_files([f1, f2], io.BytesIO(), progress)

        totals = [call[0] for call in progress.calls]
        assert totals == sorted(totals)
        assert totals[-1] == 100
        # 344 output bytes: header 44 -> 12%, after f1 144 -> 41%
        assert progress.calls == [
            (0, f1, 0),
            (12, f1, 0),
            (41, f1, 100),
            (41, f2, 0),
            (100, f2, 100),
        ]

    def test_small_chunk_size(self, wav_file, wav_bytes, progress):
        f1 = wav_file("f1.wav", payload=b"a" * 33)
        f2 = wav_file("f2.wav", payload=b"b" * 17)
        sink = io.BytesIO()
        join_wave_files([f1, f2], sink, progress, chunk_size=4)
        assert sink.getvalue() == wav_bytes(payload=b"a" * 33 + b"b" * 17)


class TestDuplicates:
    """Repeated inputs are decoded once but joined once per occurrence."""

    def test_duplicate_counted_per_occurrence(self, wav_file, wav_bytes, progress):
        f1 = wav_file("f1.wav", payload=b"xy")
        sink = io.BytesIO()
        join_wave_files([f1, f1, f1], sink, progress)
        assert sink.getvalue() == wav_bytes(payload=b"xyxyxy")

    def test_duplicate_header_decoded_once(self, wav_file, monkeypatch, progress):
        f1 = wav_file("f1.wav")
        f2 = wav_file("f2.wav")
        decoded = []
        original = joiner.decode_header_file

        def counting(path, *args, **kwargs):
            decoded.append(path)
            return original(path, *args, **kwargs)

        monkeypatch.setattr(joiner, "decode_header_file", counting)
        join_wave_files([f1, f2, f1, f2, f1], io.BytesIO(), progress)
        assert decoded == [f1, f2]

    def test_cache_keyed_on_resolved_path(self, wav_file, tmp_path, monkeypatch):
        f1 = wav_file("f1.wav")
        alias = tmp_path / "sub" / ".." / "f1.wav"
        (tmp_path / "sub").mkdir()
        calls = []
        original = joiner.decode_header_file
        monkeypatch.setattr(
            joiner, "decode_header_file",
            lambda path, *a, **kw: calls.append(path) or original(path, *a, **kw),
        )
        result = validate_headers([f1, alias])
        assert result.ok
        assert len(result.unwrap()) == 2
        assert len(calls) == 1


class TestIncompatibleInputs:
    """Format problems fail before any output is written."""

    def test_different_sample_rate_raises(self, wav_file, progress):
        f1 = wav_file("f1.wav")
        f3 = wav_file("f3.wav", sample_rate=16000)
        sink = io.BytesIO()
        with pytest.raises(WaveFormatError) as excinfo:
            join_wave_files([f1, f3], sink, progress)
        assert sink.getvalue() == b""
        assert excinfo.value.path == f3
        assert "incompatible headers" in str(excinfo.value)

    def test_output_path_not_created(self, wav_file, tmp_path, progress):
        f1 = wav_file("f1.wav")
        f3 = wav_file("f3.wav", channels=2)
        out = tmp_path / "out.wav"
        with pytest.raises(WaveFormatError):
            join_wave_files([f1, f3], out, progress)
        assert not out.exists()

    def test_invalid_file_raises_with_path(self, wav_file, tmp_path, progress):
        f1 = wav_file("f1.wav")
        bad = tmp_path / "bad.wav"
        bad.write_bytes(b"RIFF" + struct.pack("<I", 4) + b"AVI ")
        sink = io.BytesIO()
        with pytest.raises(WaveFormatError) as excinfo:
            join_wave_files([f1, bad], sink, progress)
        assert excinfo.value.path == bad
        assert sink.getvalue() == b""

    def test_fact_presence_mismatch_raises(self, wav_file, progress):
        f1 = wav_file("f1.wav", include_fact=True, fact_sample_length=10)
        f2 = wav_file("f2.wav")
        with pytest.raises(WaveFormatError):
            join_wave_files([f1, f2], io.BytesIO(), progress)

    def test_missing_file_raises_oserror(self, wav_file, tmp_path, progress):
        with pytest.raises(OSError):
            join_wave_files([wav_file(), tmp_path / "missing.wav"], io.BytesIO(), progress)

    def test_validate_headers_returns_error_value(self, wav_file):
        result = validate_headers([wav_file("a.wav"), wav_file("b.wav", bits_per_sample=16)])
        assert not result.ok
        assert isinstance(result.error, WaveFormatError)


class TestCancellation:
    """A False return from the progress handler stops the join."""

    def test_stop_at_first_call_writes_nothing(self, wav_file, tmp_path, stopping_progress):
        handler = stopping_progress(stop_on_call=1)
        out = tmp_path / "out.wav"
        assert join_wave_files([wav_file()], out, handler) is False
        assert not out.exists()
        assert len(handler.calls) == 1

    def test_stop_at_second_call_writes_only_header(self, wav_file, stopping_progress):
        f1 = wav_file("f1.wav", payload=bytes(100))
        f2 = wav_file("f2.wav", payload=bytes(200))
        sink = io.BytesIO()
        handler = stopping_progress(stop_on_call=2)
        assert join_wave_files([f1, f2], sink, handler) is False
        out = sink.getvalue()
        assert len(out) == 44
        assert WaveFileHeader.read(io.BytesIO(out)).data_size == 300

    def test_stop_after_first_file_keeps_partial_output(self, wav_file, stopping_progress):
        f1 = wav_file("f1.wav", payload=b"\x05" * 100)
        f2 = wav_file("f2.wav", payload=bytes(200))
        sink = io.BytesIO()
        handler = stopping_progress(stop_on_call=3)
        assert join_wave_files([f1, f2], sink, handler) is False
        out = sink.getvalue()
        assert len(out) == 144
        assert out[44:] == b"\x05" * 100
