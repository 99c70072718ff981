"""Validate and join WAVE files into one, streaming payload bytes.

WHY: Concatenating speech clips (or any PCM recordings) into a single WAVE
file only needs the payloads appended and one new header written. Reading
whole files into memory, or discovering a format mismatch halfway through
writing, are both avoidable.

HOW: Two passes over the input list:
  1. Validation: decode each distinct file's header through a small read
     buffer and check it against the first header. Nothing is written.
  2. Write: encode the merged header, then open one input at a time and
     stream its payload into the output.
The progress handler is called before any work and at each file's start
and end; returning False stops the join at that checkpoint.

RULES:
- A file listed several times is decoded once but counted per occurrence
- Format problems raise WaveFormatError before the output is touched
- Cancellation returns False and leaves partial output in place
- OSError from inputs or output propagates unchanged
- At most one input file is open at any time
- Progress percentages are floor(written / total * 100), capped at 100
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Sequence, Union

from wave_joiner.config import COPY_CHUNK_SIZE, HEADER_BUFFER_SIZE
from wave_joiner.core.errors import DecodeResult
from wave_joiner.core.header import WaveFileHeader
from wave_joiner.core.wavefile import WaveFile

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

ProgressHandler = Callable[[int, Optional[Path], int], bool]
"""(total_percent, current_file, file_percent) -> keep going."""


def _percent(written: int, total: int) -> int:
    if total <= 0:
        return 100
    return min(100, written * 100 // total)


def decode_header_file(path: Path, buffer_size: int = HEADER_BUFFER_SIZE) -> DecodeResult[WaveFileHeader]:
    """Decode only the header of the WAVE file at *path*.

    The file is opened with a small read buffer and closed before
    returning; the payload is never read.
    """
    with open(path, "rb", buffering=buffer_size) as stream:
        result = WaveFileHeader.decode(stream)
    if not result.ok:
        return DecodeResult.failure(result.error.with_path(path))
    return result


def validate_headers(
    paths: Sequence[Path],
    buffer_size: int = HEADER_BUFFER_SIZE,
) -> DecodeResult[List[WaveFileHeader]]:
    """Decode every header and check it against the first one.

    HOW: Headers are cached per resolved path so repeated entries are
    opened once. The first failure (decode or compatibility) is returned
    immediately.

    Returns:
        One header per entry of *paths* (repeats included), or the error.
    """
    headers: List[WaveFileHeader] = []
    cache: Dict[Path, WaveFileHeader] = {}

    for path in paths:
        key = path.resolve()
        header = cache.get(key)
        if header is not None:
            logger.debug("Reusing decoded header for %s", path)
            headers.append(header)
            continue

        result = decode_header_file(path, buffer_size)
        if not result.ok:
            return DecodeResult.failure(result.error)
        header = result.unwrap()
        cache[key] = header

        first = headers[0] if headers else header
        error = first.check_compatible(header)
        if error is not None:
            return DecodeResult.failure(error.with_path(path))
        headers.append(header)

    return DecodeResult.success(headers)


@contextlib.contextmanager
def _open_output(output: Union[PathLike, BinaryIO]) -> Iterator[BinaryIO]:
    """Yield a writable binary sink.

    Paths are opened here and closed on exit. File objects supplied by the
    caller are flushed but left open.
    """
    if isinstance(output, (str, Path)):
        with open(output, "wb") as sink:
            yield sink
    else:
        try:
            yield output
        finally:
            output.flush()


def join_wave_files(
    files: Sequence[PathLike],
    output: Union[PathLike, BinaryIO],
    on_progress: ProgressHandler,
    chunk_size: int = COPY_CHUNK_SIZE,
) -> bool:
    """Write the concatenation of *files* to *output* as one WAVE file.

    Args:
        files: Input WAVE files, in output order. Repeats are allowed.
        output: Destination path, or a writable binary file object.
        on_progress: Called as (total_percent, current_file, file_percent);
            returning False stops the join.
        chunk_size: Block size used when streaming payload bytes.

    Returns:
        True when every file was written, False when stopped by on_progress.

    Raises:
        WaveFormatError: An input is not a usable WAVE file, or inputs are
            incompatible. Raised before anything is written.
        OSError: Reading an input or writing the output failed.
    """
    paths = [Path(f) for f in files]
    first_path = paths[0] if paths else None

    if not on_progress(0, first_path, 0):
        logger.info("Join cancelled before start")
        return False

    if not paths:
        on_progress(100, first_path, 100)
        return True

    # Validation pass: every header is checked before any output exists.
    headers = validate_headers(paths).unwrap()

    data_size = 0
    for header in headers:
        data_size += header.data_size

    merged = headers[0].copy(data_size)
    total_size = 8 + merged.riff_chunk.size
    logger.info(
        "Joining %d file(s): %d payload bytes, %d bytes total",
        len(paths), data_size, total_size,
    )

    # Write pass.
    with _open_output(output) as sink:
        header_bytes = merged.to_bytes()
        sink.write(header_bytes)
        written = len(header_bytes)
        total_percent = _percent(written, total_size)

        for path, header in zip(paths, headers):
            if not on_progress(total_percent, path, 0):
                logger.info("Join cancelled before %s", path)
                return False

            streamed = 0
            with WaveFile.open(path, chunk_size=chunk_size) as wave_file:
                for block in wave_file.iter_payload():
                    sink.write(block)
                    streamed += len(block)
            if streamed != header.data_size:
                logger.warning(
                    "%s: streamed %d payload bytes but header declares %d",
                    path, streamed, header.data_size,
                )
            logger.debug("Streamed %d bytes from %s", streamed, path)

            written += streamed
            total_percent = _percent(written, total_size)
            if not on_progress(total_percent, path, 100):
                logger.info("Join cancelled after %s", path)
                return False

    logger.info("Join complete: %d bytes written", written)
    return True
