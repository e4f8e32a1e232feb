import os
import pathlib

BASE_DIR = pathlib.Path(__file__).parent.parent.absolute()
SCENES_DIR = pathlib.Path(os.environ.get("CITYCOLLIDER_SCENES_DIR", BASE_DIR / "scenes"))
OUTPUT_DIR = pathlib.Path(os.environ.get("CITYCOLLIDER_OUTPUT_DIR", BASE_DIR / "output"))

SCENE_SUFFIXES = (".glb", ".gltf", ".obj")

# Set CITYCOLLIDER_OFFLOAD=1 to refine heightfields in a worker process
OFFLOAD_DEFAULT = os.environ.get("CITYCOLLIDER_OFFLOAD", "").strip() in ("1", "true", "yes")
