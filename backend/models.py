from typing import Literal, Optional

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    scene: str                                   # filename inside SCENES_DIR
    nx: int = Field(default=128, ge=2, le=1024)
    ny: int = Field(default=128, ge=2, le=1024)
    granularity: Literal["building", "cell"] = "building"
    offload: Optional[bool] = None               # None -> server default


class JobResponse(BaseModel):
    job_id: str
    status: str
    progress: float
    message: str
    result: Optional[dict] = None


class ArtifactInfo(BaseModel):
    name: str
    filename: str
    kind: str
    size_kb: float
