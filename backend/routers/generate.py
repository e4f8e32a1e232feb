import asyncio
import logging

from fastapi import APIRouter, HTTPException

from backend import config
from backend.jobs import job_manager
from backend.models import GenerateRequest, JobResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/generate", tags=["generate"])


def _resolve_scene(name: str):
    """Map a scene filename onto SCENES_DIR, refusing anything outside it."""
    scenes_dir = config.SCENES_DIR.resolve()
    path = (scenes_dir / name).resolve()
    if path.parent != scenes_dir or path.suffix.lower() not in config.SCENE_SUFFIXES:
        return None
    if not path.is_file():
        return None
    return path


@router.post("", response_model=JobResponse)
async def start_generation(request: GenerateRequest):
    """Start heightfield + collider generation for a stored scene.

    The heavy lifting runs in a background task; the caller receives a job
    ID immediately and can poll ``/status/{job_id}`` for progress.
    """
    scene_path = _resolve_scene(request.scene)
    if scene_path is None:
        raise HTTPException(status_code=404, detail=f"Scene not found: {request.scene}")

    offload = config.OFFLOAD_DEFAULT if request.offload is None else request.offload

    job = job_manager.create_job()
    asyncio.create_task(job_manager.run_generate(
        job, str(scene_path), str(config.OUTPUT_DIR),
        request.nx, request.ny,
        granularity=request.granularity,
        offload=offload))

    return JobResponse(
        job_id=job.id,
        status=job.status.value,
        progress=job.progress,
        message=job.message,
        result=job.result,
    )


@router.get("/status/{job_id}", response_model=JobResponse)
async def get_generation_status(job_id: str):
    """Poll the status of a running or completed generation job."""
    job = job_manager.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    return JobResponse(
        job_id=job.id,
        status=job.status.value,
        progress=job.progress,
        message=job.message,
        result=job.result,
    )
