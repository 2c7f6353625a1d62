"""Process-wide session runtime shared by the API routes."""

from threading import Lock

from loguru import logger

from breath.config.settings import settings
from breath.session.clock import SessionClock, SystemClock
from breath.session.events import GuidanceSink
from breath.session.guidance import log_guidance
from breath.session.history import SessionHistory
from breath.session.machine import SessionStateMachine


class SessionRuntime:
    """One clock, one history store and one state machine wired together."""

    def __init__(self, clock: SessionClock | None = None, guidance_sink: GuidanceSink | None = None):
        self.clock = clock or SystemClock()
        self.history = SessionHistory()
        self.machine = SessionStateMachine(
            self.clock,
            guidance_sink=guidance_sink,
            result_sink=self.history,
        )


_runtime: SessionRuntime | None = None
_runtime_lock = Lock()


def get_runtime() -> SessionRuntime:
    """FastAPI dependency returning the shared runtime, created on first use."""
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            guidance = log_guidance if settings.guidance_logging_enabled else None
            _runtime = SessionRuntime(guidance_sink=guidance)
            logger.info("Session runtime created", guidance_logging=settings.guidance_logging_enabled)
        return _runtime


def shutdown_runtime() -> None:
    """Emergency-stop any running session and drop the shared runtime."""
    global _runtime
    with _runtime_lock:
        if _runtime is not None:
            _runtime.machine.emergency_stop()
            _runtime = None
            logger.info("Session runtime shut down")
