import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    queued = "queued"
    running = "running"
    completed = "completed"
    failed = "failed"


@dataclass
class Job:
    id: str
    status: JobStatus = JobStatus.queued
    progress: float = 0.0
    message: str = "Queued"
    result: Optional[dict] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _sync_generate(scene_path: str, output_dir: str,
                   nx: int, ny: int,
                   granularity: str = "building",
                   offload: bool = False,
                   progress_callback=None) -> dict:
    """Run one full generation in a dedicated thread.

    Sampling is a long synchronous raycast loop, so it must not run on the
    event loop.
    """
    from citycollider import ColliderBuilder  # noqa: import here to avoid top-level side-effects

    builder = ColliderBuilder()
    return builder.generate(scene_path, output_dir, nx=nx, ny=ny,
                            offload=offload, granularity=granularity,
                            progress_callback=progress_callback)


class JobManager:
    def __init__(self) -> None:
        self.jobs: dict[str, Job] = {}

    def create_job(self) -> Job:
        job = Job(id=str(uuid.uuid4()))
        self.jobs[job.id] = job
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.jobs.get(job_id)

    async def run_generate(self, job: Job, scene_path: str, output_dir: str,
                           nx: int, ny: int, granularity: str = "building",
                           offload: bool = False) -> None:
        """Execute the generation pipeline, updating *job* with progress."""
        try:
            job.status = JobStatus.running
            job.progress = 1.0
            job.message = "Loading scene..."

            def _update_progress(pct: float, msg: str) -> None:
                job.progress = pct
                job.message = msg

            result = await asyncio.to_thread(
                _sync_generate,
                scene_path,
                output_dir,
                nx,
                ny,
                granularity=granularity,
                offload=offload,
                progress_callback=_update_progress,
            )

            job.progress = 100.0
            job.message = "Generation complete"
            job.status = JobStatus.completed
            job.result = result

        except Exception as exc:
            logger.exception("Generation failed for job %s", job.id)
            job.status = JobStatus.failed
            job.progress = 0.0
            job.message = f"Generation failed: {exc}"


# Singleton instance used across the application
job_manager = JobManager()
