"""Command-line interface for joining WAVE files.

WHY: The most common use is a one-off join in a terminal or a shell
script: a list of clips in, one WAVE file out, with progress shown and a
non-zero exit status when something is wrong.

HOW: argparse collects the inputs and the output path. The join writes to
a temporary file next to the output, which is renamed into place only
after a complete join; failures and Ctrl-C remove it. --info prints the
decoded headers instead of joining.

RULES:
- Positional arguments: input WAVE files, in order (repeats allowed)
- -o/--output is required unless --info is given
- Refuses to overwrite an existing output unless --force
- Refuses an output path that is also one of the inputs
- Status and progress go to stderr; --info output goes to stdout
- Exit codes: 0 success, 1 error, 130 interrupted
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

from wave_joiner.core.errors import WaveFormatError
from wave_joiner.core.joiner import decode_header_file, join_wave_files

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _status(msg: str) -> None:
    """Print a status message to stderr, flushing immediately."""
    print(msg, file=sys.stderr, flush=True)


class _ProgressPrinter:
    """Progress handler that prints a line whenever the total percent changes."""

    def __init__(self, quiet: bool = False) -> None:
        self.quiet = quiet
        self.last_percent = -1

    def __call__(self, total_percent: int, current_file: Optional[Path], file_percent: int) -> bool:
        if not self.quiet and total_percent != self.last_percent:
            name = current_file.name if current_file is not None else "-"
            _status("  [{:3d}%] {}".format(total_percent, name))
        self.last_percent = total_percent
        return True


def _print_info(inputs: List[Path]) -> int:
    """Print each input's decoded header and whether it joins with the first."""
    first = None
    exit_code = EXIT_OK
    for path in inputs:
        result = decode_header_file(path)
        if not result.ok:
            print("{}: {}".format(path, result.error.message))
            exit_code = EXIT_ERROR
            continue
        header = result.unwrap()
        if first is None:
            first = header
            compatible = True
        else:
            compatible = first.compatible_with(header)
        print("{} ({} header bytes, {} payload bytes, {})".format(
            path, header.size, header.data_size, "PCM" if header.is_pcm else "non-PCM",
        ))
        print(header)
        if not compatible:
            print("  incompatible with {}".format(inputs[0]))
            exit_code = EXIT_ERROR
    return exit_code


def _check_paths(inputs: List[Path], output: Path, force: bool) -> Optional[str]:
    """Return an error message if the input/output paths cannot be used."""
    for path in inputs:
        if not path.is_file():
            return "File not found: {}".format(path)
    if not output.parent.is_dir():
        return "Output directory does not exist: {}".format(output.parent)
    if output.exists() and not force:
        return "Output file already exists: {} (use --force to overwrite)".format(output)
    resolved = output.resolve()
    for path in inputs:
        if path.resolve() == resolved:
            return "Output file is also an input: {}".format(output)
    return None


def run(args: argparse.Namespace) -> int:
    """Execute the join described by parsed *args* and return the exit code."""
    inputs = [Path(p) for p in args.inputs]

    if args.info:
        missing = [p for p in inputs if not p.is_file()]
        if missing:
            _status("Error: File not found: {}".format(missing[0]))
            return EXIT_ERROR
        return _print_info(inputs)

    output = Path(args.output)
    problem = _check_paths(inputs, output, args.force)
    if problem:
        _status("Error: {}".format(problem))
        return EXIT_ERROR

    if not args.quiet:
        _status("Joining {} file(s) into {}".format(len(inputs), output))

    fd, tmp_name = tempfile.mkstemp(
        prefix=".{}.".format(output.name), suffix=".part", dir=str(output.parent)
    )
    tmp_path = Path(tmp_name)
    joined = False
    completed = False
    try:
        with os.fdopen(fd, "wb") as sink:
            joined = join_wave_files(inputs, sink, _ProgressPrinter(args.quiet))
        if joined:
            os.replace(tmp_path, output)
            completed = True
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        return EXIT_INTERRUPTED
    except WaveFormatError as e:
        _status("Error: {}".format(e))
        return EXIT_ERROR
    except OSError as e:
        _status("Error: {}".format(e))
        return EXIT_ERROR
    finally:
        if not completed and tmp_path.exists():
            tmp_path.unlink()

    if not completed:
        _status("Join stopped before completion.")
        return EXIT_ERROR

    if not args.quiet:
        _status("Done! Wrote {} ({} bytes)".format(output, output.stat().st_size))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="wave-joiner",
        description="Validate WAVE files and join them into a single WAVE file "
                    "without decoding or re-encoding audio.",
    )

    parser.add_argument(
        "inputs",
        nargs="+",
        help="Input WAVE files, in output order.",
    )

    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Path of the joined WAVE file to write.",
    )

    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the output file if it already exists.",
    )

    parser.add_argument(
        "--info",
        action="store_true",
        help="Print the decoded header of each input and exit without joining.",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only print errors.",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``wave-joiner`` and ``python -m wave_joiner``.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Exits with a non-zero status on failure
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.info and not args.output:
        parser.error("the following arguments are required: -o/--output")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    exit_code = run(args)
    if exit_code != EXIT_OK:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
