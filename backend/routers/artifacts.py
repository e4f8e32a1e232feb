import logging
from pathlib import Path
from typing import List

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from backend import config
from backend.models import ArtifactInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/artifacts", tags=["artifacts"])


def _kind(filename: str) -> str:
    if "heightfield" in filename:
        return "heightfield"
    if "collider" in filename:
        return "colliders"
    return "other"


@router.get("", response_model=List[ArtifactInfo])
async def list_artifacts():
    """Return metadata for every ``.json`` artifact in the output directory."""
    output_dir: Path = config.OUTPUT_DIR
    if not output_dir.exists():
        return []

    artifacts: list[ArtifactInfo] = []
    for json_file in sorted(output_dir.glob("*.json")):
        artifacts.append(
            ArtifactInfo(
                name=json_file.stem.replace("-", " ").title(),
                filename=json_file.name,
                kind=_kind(json_file.name),
                size_kb=round(json_file.stat().st_size / 1024, 1),
            )
        )
    return artifacts


@router.get("/{filename}")
async def get_artifact(filename: str):
    """Serve a specific artifact from the output directory."""
    file_path = config.OUTPUT_DIR / filename
    if Path(filename).name != filename or not file_path.is_file():
        raise HTTPException(status_code=404, detail="Artifact not found")

    return FileResponse(
        path=str(file_path),
        media_type="application/json",
        filename=filename,
    )
