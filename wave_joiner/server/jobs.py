"""In-memory join job store with background execution, cancellation and TTL cleanup.

WHY: The HTTP API accepts uploads and returns immediately; the join itself
can take a while for long recordings. Jobs must be trackable (status,
progress), cancellable while running, and cleaned up afterwards. An
in-memory store is enough for a single-process service.

HOW: Three components work together:
  JobStatus: enum of valid job states
  Job: dataclass holding job metadata, progress and temp directory
  JobStore: thread-safe dict-based store with create/update/get/list/delete,
    cancel requests, background execution and TTL cleanup

RULES:
- All store mutations are protected by threading.Lock
- Each job gets a dedicated temp directory for inputs and output
- request_cancel() only sets a flag; the running join polls it through
  its progress handler
- run_in_background() marks the job failed on unhandled exceptions
- TTL-based expiry removes finished jobs and their temp directories
"""

from __future__ import annotations

import enum
import logging
import shutil
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from wave_joiner.config import JOB_TTL_SECONDS, MAX_JOBS

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = JOB_TTL_SECONDS


class JobStatus(str, enum.Enum):
    """Valid states for a join job.

    RULES:
    - pending: job created, inputs stored, join not started
    - joining: validation or write pass running
    - completed: joined file ready for download
    - cancelled: stopped on request; partial output removed
    - failed: format or I/O error
    """

    PENDING = "pending"
    JOINING = "joining"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED})


@dataclass
class Job:
    """Metadata and state for a single join job.

    RULES:
    - id: UUID4 hex string, immutable after creation
    - input_files: stored input filenames inside work_dir, in join order
    - output_name: filename of the joined result inside work_dir
    - progress: last reported {"total_percent", "current_file", "file_percent"}
    - cancel_requested: set by request_cancel(), read by the join
    """

    id: str
    status: JobStatus
    output_name: str
    work_dir: Path
    created_at: float
    updated_at: float
    input_files: List[str] = field(default_factory=list)
    completed_at: Optional[float] = None
    error: Optional[str] = None
    progress: Optional[Dict[str, Any]] = None
    cancel_requested: bool = False

    @property
    def output_path(self) -> Path:
        return self.work_dir / self.output_name

    @property
    def input_paths(self) -> List[Path]:
        return [self.work_dir / name for name in self.input_files]


class JobStore:
    """Thread-safe in-memory store for join jobs."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_jobs: int = MAX_JOBS,
    ) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs

    def create_job(self, output_name: str) -> Job:
        """Create a new PENDING job with a dedicated temp directory.

        Raises ValueError when max_jobs jobs already exist.
        """
        with self._lock:
            if len(self._jobs) >= self.max_jobs:
                raise ValueError(
                    "Maximum number of concurrent jobs ({}) reached".format(
                        self.max_jobs
                    )
                )

            job_id = uuid.uuid4().hex
            now = time.time()
            work_dir = Path(tempfile.mkdtemp(prefix="wave_join_"))

            job = Job(
                id=job_id,
                status=JobStatus.PENDING,
                output_name=output_name,
                work_dir=work_dir,
                created_at=now,
                updated_at=now,
            )
            self._jobs[job_id] = job

        logger.info("Created job %s for output %s", job_id, output_name)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """Return the live Job for *job_id*, or None."""
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[Job]:
        """Return all jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        error: Optional[str] = None,
        progress: Optional[Dict[str, Any]] = None,
        input_files: Optional[List[str]] = None,
    ) -> Optional[Job]:
        """Apply non-None updates and bump updated_at.

        RULES:
        - Returns the updated Job, or None if job_id is unknown
        - completed_at is set when the job reaches a terminal state
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None

            now = time.time()

            if status is not None:
                job.status = status
            if error is not None:
                job.error = error
            if progress is not None:
                job.progress = progress
            if input_files is not None:
                job.input_files = input_files

            job.updated_at = now

            if job.status in TERMINAL_STATUSES:
                job.completed_at = now

            return job

    def request_cancel(self, job_id: str) -> Optional[Job]:
        """Flag a job for cancellation.

        RULES:
        - Returns None for unknown job IDs
        - Finished jobs are returned unchanged (nothing left to stop)
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if job.status not in TERMINAL_STATUSES:
                job.cancel_requested = True
                job.updated_at = time.time()

        logger.info("Cancel requested for job %s", job_id)
        return job

    def is_cancel_requested(self, job_id: str) -> bool:
        """True if cancel was requested or the job no longer exists."""
        with self._lock:
            job = self._jobs.get(job_id)
            return job is None or job.cancel_requested

    def run_in_background(
        self,
        job_id: str,
        task: Callable[[str, JobStore], None],
    ) -> None:
        """Run *task(job_id, store)*, marking the job failed if it raises."""
        try:
            task(job_id, self)
        except Exception as exc:
            logger.exception("Job %s failed", job_id)
            self.update_job(job_id, status=JobStatus.FAILED, error=str(exc))

    def delete_job(self, job_id: str) -> bool:
        """Remove a job and its temp directory. Returns False if unknown."""
        with self._lock:
            job = self._jobs.pop(job_id, None)

        if job is None:
            return False

        self._cleanup_work_dir(job.work_dir)
        logger.info("Deleted job %s", job_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove finished jobs older than the TTL; return how many were removed.

        RULES:
        - Only terminal-state jobs are candidates
        - TTL is measured from completed_at
        """
        now = time.time()
        expired_jobs: List[Job] = []

        with self._lock:
            for job_id, job in list(self._jobs.items()):
                if job.status not in TERMINAL_STATUSES:
                    continue
                if job.completed_at is None:
                    continue
                if now - job.completed_at > self._ttl_seconds:
                    expired_jobs.append(self._jobs.pop(job_id))

        for job in expired_jobs:
            self._cleanup_work_dir(job.work_dir)
            logger.info("Expired job %s (finished %.0fs ago)", job.id, now - job.completed_at)

        return len(expired_jobs)

    @staticmethod
    def _cleanup_work_dir(work_dir: Path) -> None:
        """Remove a job's temp directory tree; failures are logged, not raised."""
        if work_dir.exists():
            try:
                shutil.rmtree(work_dir)
            except OSError:
                logger.warning("Failed to clean up temp dir: %s", work_dir)
