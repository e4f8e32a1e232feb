"""FastAPI service for collision artifact generation.

Scenes are picked by filename from ``SCENES_DIR``; each generation runs as a
background job and writes its heightfield and collider JSON to
``OUTPUT_DIR``, which is also served read-only under ``/output``.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from backend import config
from backend.routers import artifacts, generate

app = FastAPI(
    title="CityCollider API",
    description="Backend API for generating city heightfields and building colliders",
    version="0.1.0",
)

# ---------------------------------------------------------------------------
# CORS -- the scene viewer dev server polls job status and fetches artifacts
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers -- job control and artifact listing
# ---------------------------------------------------------------------------
app.include_router(generate.router)
app.include_router(artifacts.router)

# ---------------------------------------------------------------------------
# Static files -- heightfield and collider JSON for direct loading by clients
# ---------------------------------------------------------------------------
config.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/output", StaticFiles(directory=str(config.OUTPUT_DIR)), name="output")


@app.get("/")
async def root():
    """Liveness check; artifacts are listed under /api/artifacts."""
    return {"status": "ok", "service": "CityCollider API"}
