"""Pydantic response models for the HTTP API.

WHY: FastAPI endpoints need typed schemas for response serialization and
the generated OpenAPI documentation.

HOW: One model per response shape. All fields carry Field descriptions so
the /docs page explains them.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Response models never expose internal paths
- JobStatus values come from server.jobs (single source of truth)
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class JoinProgress(BaseModel):
    """Last progress report of a running or finished join."""

    total_percent: int = Field(ge=0, le=100, description="Overall progress, 0-100.")
    current_file: Optional[str] = Field(
        default=None,
        description="Input file being processed, if any.",
    )
    file_percent: int = Field(ge=0, le=100, description="Progress within current_file (0 or 100).")


class JobResponse(BaseModel):
    """Join job status response.

    RULES:
    - error is only set when status is 'failed'
    - output_file is only set when status is 'completed'
    """

    id: str = Field(description="Unique job identifier (UUID).")
    status: str = Field(description="Current job status.")
    input_files: List[str] = Field(description="Uploaded input filenames, in join order.")
    created_at: float = Field(description="Job creation timestamp (Unix epoch seconds).")
    progress: Optional[JoinProgress] = Field(
        default=None,
        description="Most recent progress report.",
    )
    cancel_requested: bool = Field(description="Whether cancellation was requested.")
    error: Optional[str] = Field(
        default=None,
        description="Error message, only present when status is 'failed'.",
    )
    output_file: Optional[str] = Field(
        default=None,
        description="Joined output filename, only present when status is 'completed'.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "id": "550e8400e29b41d4a716446655440000",
                "status": "joining",
                "input_files": ["000-intro.wav", "001-chapter1.wav"],
                "created_at": 1739959200.0,
                "progress": {
                    "total_percent": 42,
                    "current_file": "001-chapter1.wav",
                    "file_percent": 0,
                },
                "cancel_requested": False,
                "error": None,
                "output_file": None,
            }
        ]
    }}


class JobCreatedResponse(BaseModel):
    """Response returned when a join job is submitted."""

    id: str = Field(description="Unique job identifier (UUID) for polling status.")
    status: str = Field(description="Initial job status (always 'pending').")
    input_files: List[str] = Field(description="Stored input filenames, in join order.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
