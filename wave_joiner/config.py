"""Configuration constants and .env loading.

WHY: Buffer sizes, decoder safety limits and server settings should be easy
to find and override without touching the parsing or joining code.

HOW: python-dotenv loads the .env file on import. Constants are module-level
values read from environment variables with sensible defaults.
positive_int_env() gives a clear error when a numeric setting is malformed.

RULES:
- All defaults can be overridden via WAVE_JOINER_* environment variables
- Numeric settings must be positive integers
- HEADER_BUFFER_SIZE only sizes the read buffer; headers longer than it
  are still read completely
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def positive_int_env(name: str, default: int) -> int:
    """Read a positive integer setting from the environment.

    RULES:
    - Missing or blank variable → default
    - Non-integer or value < 1 raises ValueError naming the variable
    """
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            "{} must be an integer, got {!r}".format(name, raw)
        ) from None
    if value < 1:
        raise ValueError("{} must be at least 1, got {}".format(name, value))
    return value


# ---------------------------------------------------------------------------
# Decoding and streaming
# ---------------------------------------------------------------------------

HEADER_BUFFER_SIZE = positive_int_env("WAVE_JOINER_HEADER_BUFFER_SIZE", 60)
"""Read buffer used while decoding headers in the validation pass."""

COPY_CHUNK_SIZE = positive_int_env("WAVE_JOINER_COPY_CHUNK_SIZE", 64 * 1024)
"""Block size for streaming audio payload bytes into the output."""

MAX_EXTENSION_SIZE = positive_int_env("WAVE_JOINER_MAX_EXTENSION_SIZE", 0xFFFF)
"""Largest fmt extension (cbSize) accepted before a header is rejected."""

MAX_FACT_EXTRA_SIZE = positive_int_env("WAVE_JOINER_MAX_FACT_EXTRA_SIZE", 1024)
"""Largest number of opaque fact bytes kept beyond the sample length."""

WAVE_FILE_EXTENSIONS: set[str] = {".wav", ".wave"}
"""File extensions accepted for upload by the HTTP service (lowercase)."""

# ---------------------------------------------------------------------------
# HTTP service
# ---------------------------------------------------------------------------

API_HOST = os.getenv("WAVE_JOINER_API_HOST", "0.0.0.0")
API_PORT = positive_int_env("WAVE_JOINER_API_PORT", 8000)
JOB_TTL_SECONDS = positive_int_env("WAVE_JOINER_JOB_TTL", 3600)
MAX_JOBS = positive_int_env("WAVE_JOINER_MAX_JOBS", 100)
LOG_LEVEL = os.getenv("WAVE_JOINER_LOG_LEVEL", "INFO").upper()
