"""Off-thread heightfield refinement via one-shot message passing.

The caller sends ``{"cmd": "processHeightfield", "payload": {...}}`` and
receives exactly one ``{"cmd": "done", "payload": {...}}`` back.  Payloads
are plain lists and numbers, so nothing is shared with the worker process.
"""

import asyncio
import logging
import multiprocessing
from concurrent.futures import Future, ProcessPoolExecutor

from .config import RefinerConfig
from .errors import GridShapeError, WorkerProtocolError
from .refiner import refine_heights

logger = logging.getLogger(__name__)

CMD_PROCESS = "processHeightfield"
CMD_DONE = "done"


def make_request(nx: int, ny: int, min_y: float, heights) -> dict:
    """Build a request message from a raw grid (copied to plain floats)."""
    return {
        'cmd': CMD_PROCESS,
        'payload': {
            'nx': int(nx),
            'ny': int(ny),
            'minY': float(min_y),
            'heights': [float(h) for h in heights],
        },
    }


def handle_message(message: dict, config: RefinerConfig | None = None) -> dict:
    """Worker entry point: one request in, one response out."""
    if not isinstance(message, dict) or 'cmd' not in message:
        raise WorkerProtocolError(f"Malformed worker message: {message!r:.80}")
    cmd = message['cmd']
    if cmd != CMD_PROCESS:
        raise WorkerProtocolError(f"Unknown worker command: {cmd!r}")

    payload = message.get('payload') or {}
    try:
        nx, ny = int(payload['nx']), int(payload['ny'])
        min_y = float(payload['minY'])
        heights = payload['heights']
    except (KeyError, TypeError, ValueError) as e:
        raise GridShapeError(f"Malformed heightfield payload: {e}") from e

    result = refine_heights(heights, nx, ny, min_y, config)
    return {'cmd': CMD_DONE, 'payload': result.to_payload()}


class RefinementWorker:
    """Process-pool backed refinement worker.

    Usable as a context manager; the pool is shut down on exit.  Workers are
    spawned, not forked, since the pool is often created from a job thread.
    """

    def __init__(self, config: RefinerConfig | None = None, max_workers: int = 1,
                 start_method: str = "spawn"):
        self.config = config or RefinerConfig()
        self.start_method = start_method
        self._pool = ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=multiprocessing.get_context(start_method))

    def submit(self, request: dict) -> Future:
        logger.debug(f"Dispatching {request.get('cmd')} to refinement worker")
        return self._pool.submit(handle_message, request, self.config)

    def process(self, request: dict, timeout: float | None = None) -> dict:
        """Send one request and block until its single response arrives."""
        return self.submit(request).result(timeout=timeout)

    async def process_async(self, request: dict) -> dict:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, handle_message,
                                          request, self.config)

    def close(self):
        self._pool.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
