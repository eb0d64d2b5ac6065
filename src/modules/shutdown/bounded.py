"""Time-bounded, exception-safe wrappers for resource cleanup."""

import asyncio
import inspect
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol, Set

from ..logging import BaseLogger

# Timed-out operations keep running; hold them here until they settle so the
# event loop does not garbage collect them mid-flight.
_abandoned_tasks: Set[asyncio.Future] = set()


class ShutdownableResource(Protocol):
    """Anything with a "begin shutdown, eventually settle" operation."""

    def shutdown(self) -> Awaitable[Any]:
        ...


class Renderer(Protocol):
    """Terminal output renderer with a synchronous shutdown."""

    def shutdown(self) -> None:
        ...


class CleanupOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class CleanupResult:
    """Result of one bounded cleanup operation."""
    name: str
    outcome: CleanupOutcome
    elapsed: float
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == CleanupOutcome.SUCCEEDED


class BoundedCleanup:
    """Runs a single cleanup operation under a fixed timeout.

    The caller always gets a CleanupResult within ``timeout`` seconds. If the
    timer wins the race the operation is abandoned, not cancelled: it may still
    finish later, and whatever it produces is only logged at debug level.
    """

    def __init__(self, logger: BaseLogger, timeout: float = 5.0):
        """
        Initialize the wrapper.

        Args:
            logger: Logger instance for cleanup outcomes
            timeout: Maximum number of seconds to wait for the operation
        """
        self.logger = logger
        self.timeout = timeout

    async def run(self, name: str, operation: Callable[[], Any]) -> CleanupResult:
        """
        Run ``operation`` and wait at most ``timeout`` seconds for it.

        Args:
            name: Label used in log lines
            operation: Zero-argument callable, may return an awaitable

        Returns:
            CleanupResult describing how the operation ended
        """
        started = time.monotonic()
        try:
            self.logger.log_debug(f"Shutting down {name}...")
            result = operation()
            if not inspect.isawaitable(result):
                self.logger.log_debug(f"{name} shutdown completed successfully")
                return CleanupResult(name, CleanupOutcome.SUCCEEDED, time.monotonic() - started)

            task = asyncio.ensure_future(result)
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
            elapsed = time.monotonic() - started

            if not done:
                self.logger.log_warning(
                    f"{name} shutdown timed out after {self.timeout} seconds, continuing..."
                )
                self._abandon(name, task)
                return CleanupResult(name, CleanupOutcome.TIMED_OUT, elapsed)

            if task.cancelled():
                self.logger.log_error(f"Error during {name} shutdown: operation was cancelled")
                return CleanupResult(name, CleanupOutcome.FAILED, elapsed, asyncio.CancelledError())

            error = task.exception()
            if error is not None:
                self.logger.log_error(f"Error during {name} shutdown: {error!r}")
                return CleanupResult(name, CleanupOutcome.FAILED, elapsed, error)

            self.logger.log_debug(f"{name} shutdown completed successfully")
            return CleanupResult(name, CleanupOutcome.SUCCEEDED, elapsed)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.log_error(f"Error during {name} shutdown: {e!r}")
            return CleanupResult(name, CleanupOutcome.FAILED, time.monotonic() - started, e)

    def _abandon(self, name: str, task: asyncio.Future) -> None:
        """Detach a timed-out task, logging whatever it eventually produces."""
        _abandoned_tasks.add(task)

        def _discard(finished: asyncio.Future) -> None:
            _abandoned_tasks.discard(finished)
            if finished.cancelled():
                self.logger.log_debug(f"Abandoned {name} shutdown was cancelled")
                return
            error = finished.exception()
            if error is not None:
                self.logger.log_debug(f"Abandoned {name} shutdown failed late: {error!r}")
            else:
                self.logger.log_debug(f"Abandoned {name} shutdown completed late")

        task.add_done_callback(_discard)


async def safe_resource_shutdown(
    resource: ShutdownableResource,
    logger: BaseLogger,
    timeout: float = 5.0,
    name: str = "resource"
) -> CleanupResult:
    """Shut ``resource`` down without ever hanging past ``timeout`` or raising."""
    return await BoundedCleanup(logger, timeout).run(name, resource.shutdown)


async def safe_store_shutdown(
    store: ShutdownableResource,
    logger: BaseLogger,
    timeout: float = 5.0
) -> CleanupResult:
    """Wrapper for store.shutdown() that ensures it won't hang."""
    return await safe_resource_shutdown(store, logger, timeout, name="store")


def safe_renderer_shutdown(renderer: Renderer, logger: BaseLogger, name: str = "renderer") -> bool:
    """Shut the renderer down, logging and swallowing any failure.

    Returns:
        True if the renderer shut down cleanly
    """
    try:
        renderer.shutdown()
        return True
    except Exception as e:
        logger.log_error(f"Error during {name} shutdown: {e!r}")
        return False
