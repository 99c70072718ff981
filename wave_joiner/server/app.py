"""FastAPI application exposing WAVE joining as background jobs.

WHY: Other tools (TTS pipelines, n8n flows, curl scripts) produce clips on
one machine and want them joined without shell access. An HTTP API lets
them upload clips, poll progress, cancel, and download the result.

HOW: POST /joins stores the uploaded files in a job's temp directory, in
upload order, and schedules the join with FastAPI BackgroundTasks. The
join's progress handler writes progress into the job store and stops the
join once a cancel request is recorded.

RULES:
- Inputs must have a .wav/.wave extension; contents are validated by the join
- Uploaded files are stored as NNN-<name> so order and duplicates survive
- Format errors mark the job failed with the decoder's message
- Cancelled or failed joins delete their partial output
- The joined file is streamed back with FileResponse, never read into memory
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, List, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse, Response

from wave_joiner import __version__
from wave_joiner.config import API_HOST, API_PORT, LOG_LEVEL, WAVE_FILE_EXTENSIONS
from wave_joiner.core.errors import WaveFormatError
from wave_joiner.core.joiner import join_wave_files
from wave_joiner.server.jobs import TERMINAL_STATUSES, Job, JobStatus, JobStore
from wave_joiner.server.models import (
    ErrorResponse,
    HealthResponse,
    JobCreatedResponse,
    JobResponse,
    JoinProgress,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

job_store = JobStore()


async def _periodic_cleanup() -> None:
    """Run job cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="WAVE Joiner API",
    description=(
        "REST API for joining RIFF/WAVE files. Upload clips in order, poll "
        "the job for progress, cancel it if needed, and download the joined file."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _job_to_response(job: Job) -> JobResponse:
    """Convert an internal Job dataclass to a JobResponse model."""
    return JobResponse(
        id=job.id,
        status=job.status.value,
        input_files=list(job.input_files),
        created_at=job.created_at,
        progress=JoinProgress(**job.progress) if job.progress else None,
        cancel_requested=job.cancel_requested,
        error=job.error,
        output_file=job.output_name if job.status == JobStatus.COMPLETED else None,
    )


def _get_job_or_404(job_id: str) -> Job:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return job


def _validate_wave_filename(filename: str) -> None:
    """Raise HTTPException if the extension is not a WAVE extension."""
    ext = Path(filename).suffix.lower()
    if ext not in WAVE_FILE_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Unsupported file type '{}' for {}. Supported: {}".format(
                ext, filename, ", ".join(sorted(WAVE_FILE_EXTENSIONS))
            ),
        )


def _describe_format_error(exc: WaveFormatError) -> str:
    """Format error text without the job's temp directory in it."""
    if exc.path is not None:
        return "{}: {}".format(Path(exc.path).name, exc.message)
    return exc.message


def _join_task(job_id: str, store: JobStore) -> None:
    """Join the job's stored inputs into its output file.

    RULES:
    - Status goes pending → joining → completed | cancelled | failed
    - Progress reports are written to the store as they arrive
    - The output file only survives a completed join
    """
    job = store.get_job(job_id)
    if job is None:
        return

    store.update_job(job_id, status=JobStatus.JOINING)

    def on_progress(total_percent: int, current_file: Optional[Path], file_percent: int) -> bool:
        store.update_job(job_id, progress={
            "total_percent": total_percent,
            "current_file": current_file.name if current_file is not None else None,
            "file_percent": file_percent,
        })
        return not store.is_cancel_requested(job_id)

    output_path = job.output_path
    completed = False
    try:
        joined = join_wave_files(job.input_paths, output_path, on_progress)
        if not joined:
            logger.info("Job %s cancelled", job_id)
            store.update_job(job_id, status=JobStatus.CANCELLED)
            return
        completed = True
        store.update_job(job_id, status=JobStatus.COMPLETED)
    except WaveFormatError as exc:
        logger.warning("Job %s rejected: %s", job_id, exc)
        store.update_job(job_id, status=JobStatus.FAILED, error=_describe_format_error(exc))
    finally:
        if not completed and output_path.exists():
            output_path.unlink()


def _run_join_job(job_id: str, store: JobStore) -> None:
    """Background task entry point; unexpected errors mark the job failed."""
    store.run_in_background(job_id, _join_task)


# ---------------------------------------------------------------------------
# Endpoints: Joins
# ---------------------------------------------------------------------------


@app.post(
    "/joins",
    response_model=JobCreatedResponse,
    status_code=201,
    tags=["joins"],
    summary="Submit a join job",
    description=(
        "Upload one or more WAVE files; they are joined in upload order. "
        "Returns a job ID immediately. Poll GET /joins/{id} for progress."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid file type or output name"},
        429: {"model": ErrorResponse, "description": "Too many concurrent jobs"},
    },
)
async def create_join(
    background_tasks: BackgroundTasks,
    files: Annotated[
        List[UploadFile],
        File(description="WAVE files to join, in order"),
    ],
    output_name: Annotated[
        str,
        Form(description="Filename for the joined WAVE file."),
    ] = "joined.wav",
) -> JobCreatedResponse:
    # Sanitize filenames to prevent path traversal
    out_name = Path(output_name).name
    if not out_name:
        raise HTTPException(status_code=400, detail="Invalid output name")
    _validate_wave_filename(out_name)

    names = [Path(upload.filename or "upload.wav").name for upload in files]
    for name in names:
        _validate_wave_filename(name)

    try:
        job = job_store.create_job(output_name=out_name)
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    stored: List[str] = []
    for index, (upload, name) in enumerate(zip(files, names)):
        stored_name = "{:03d}-{}".format(index, name)
        with open(job.work_dir / stored_name, "wb") as dest:
            shutil.copyfileobj(upload.file, dest)
        stored.append(stored_name)
    job_store.update_job(job.id, input_files=stored)

    background_tasks.add_task(_run_join_job, job.id, job_store)

    return JobCreatedResponse(id=job.id, status=job.status.value, input_files=stored)


@app.get(
    "/joins/{job_id}",
    response_model=JobResponse,
    tags=["joins"],
    summary="Get join job status",
    description="Poll this endpoint for job status and the latest progress report.",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def get_join(job_id: str) -> JobResponse:
    return _job_to_response(_get_job_or_404(job_id))


@app.post(
    "/joins/{job_id}/cancel",
    response_model=JobResponse,
    status_code=202,
    tags=["joins"],
    summary="Cancel a join job",
    description=(
        "Request cancellation. The join stops at its next checkpoint "
        "(before or after an input file) and its partial output is removed."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
        409: {"model": ErrorResponse, "description": "Job already finished"},
    },
)
async def cancel_join(job_id: str) -> JobResponse:
    job = _get_job_or_404(job_id)
    if job.status in TERMINAL_STATUSES:
        raise HTTPException(
            status_code=409,
            detail="Job already finished (status: {}).".format(job.status.value),
        )
    job = job_store.request_cancel(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return _job_to_response(job)


@app.get(
    "/joins/{job_id}/output",
    tags=["joins"],
    summary="Download the joined WAVE file",
    responses={
        200: {"content": {"audio/wav": {}}, "description": "The joined file"},
        404: {"model": ErrorResponse, "description": "Job or file not found"},
        409: {"model": ErrorResponse, "description": "Job not completed"},
    },
)
async def download_join_output(job_id: str) -> FileResponse:
    job = _get_job_or_404(job_id)
    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail="Job is not completed (current status: {}).".format(job.status.value),
        )
    if not job.output_path.exists():
        raise HTTPException(
            status_code=404,
            detail="File '{}' not found on disk.".format(job.output_name),
        )
    return FileResponse(job.output_path, media_type="audio/wav", filename=job.output_name)


@app.delete(
    "/joins/{job_id}",
    status_code=204,
    tags=["joins"],
    summary="Delete a join job",
    description="Delete a job with its uploaded inputs and output file.",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def delete_join(job_id: str) -> Response:
    job = job_store.get_job(job_id)
    if job is not None and job.status not in TERMINAL_STATUSES:
        job_store.request_cancel(job_id)
    if not job_store.delete_job(job_id):
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api() -> None:
    """Entry point for the wave-joiner-api console script."""
    import uvicorn

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    logger.info("Starting WAVE Joiner API on %s:%d", API_HOST, API_PORT)
    uvicorn.run(app, host=API_HOST, port=API_PORT)
