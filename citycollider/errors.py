"""Exception types raised by the generation pipeline."""


class CityColliderError(Exception):
    """Base class for pipeline errors."""


class SceneError(CityColliderError):
    """The scene is empty or has no usable extent."""


class GridShapeError(CityColliderError, ValueError):
    """Heightfield dimensions and data disagree."""


class WorkerProtocolError(CityColliderError):
    """A worker message had an unknown command or bad envelope."""
