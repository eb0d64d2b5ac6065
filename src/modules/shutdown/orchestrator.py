"""Shutdown orchestrator driving the process from first trigger to exit."""

import asyncio
import os
import sys
import threading
from enum import Enum
from typing import Callable, Optional, cast

from ..logging import BaseLogger
from .bounded import BoundedCleanup, Renderer, ShutdownableResource, safe_renderer_shutdown
from .config import TimeoutBudget
from .reason import FAILURE_EXIT_CODE, ShutdownReason
from .registry import CallbackRegistry, CleanupCallback, FanoutReport


class OrchestratorState(str, Enum):
    IDLE = "idle"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class ShutdownOrchestrator:
    """Coordinates graceful shutdown of the process.

    The first call to ``trigger`` starts exactly one shutdown sequence: every
    registered callback runs concurrently under ``budget.fanout_timeout`` and a
    watchdog thread guarantees the process exits after
    ``budget.force_exit_timeout`` even if the event loop is blocked. Later
    triggers only produce a debug log line.
    """

    def __init__(
        self,
        registry: CallbackRegistry,
        logger: BaseLogger,
        budget: Optional[TimeoutBudget] = None,
        exit_func: Callable[[int], None] = os._exit
    ):
        """
        Initialize the orchestrator.

        Args:
            registry: Registry holding the cleanup callbacks
            logger: Logger instance for logging shutdown events
            budget: Nested timeouts, defaults to 5s/6s/7s
            exit_func: Called once with the exit code to terminate the process
        """
        self.registry = registry
        self.logger = logger
        self.budget = budget or TimeoutBudget()
        self._exit_func = exit_func
        self._state = OrchestratorState.IDLE
        self._reason: Optional[ShutdownReason] = None
        self._watchdog: Optional[threading.Timer] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._started = asyncio.Event()
        self._terminate_lock = threading.Lock()
        self.exit_code: Optional[int] = None
        self.report: Optional[FanoutReport] = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def is_shutting_down(self) -> bool:
        """Check if shutdown is in progress or finished."""
        return self._state != OrchestratorState.IDLE

    @property
    def reason(self) -> Optional[ShutdownReason]:
        return self._reason

    @property
    def drain_task(self) -> Optional[asyncio.Task]:
        return self._drain_task

    def register_shutdown_callback(self, callback: CleanupCallback, name: Optional[str] = None) -> bool:
        """Register a callback to run during shutdown.

        Callbacks registered once shutdown has started are dropped.
        """
        return self.registry.register(callback, name)

    def register_resource(self, resource: ShutdownableResource, name: str = "store") -> bool:
        """Register a resource whose shutdown is bounded by ``budget.resource_timeout``."""
        bounded = BoundedCleanup(self.logger, self.budget.resource_timeout)

        async def _shutdown_resource() -> bool:
            result = await bounded.run(name, resource.shutdown)
            return result.succeeded

        return self.registry.register(_shutdown_resource, name)

    def register_renderer(self, renderer: Renderer, name: str = "renderer") -> bool:
        """Register a renderer whose synchronous shutdown must never raise."""
        return self.registry.register(
            lambda: safe_renderer_shutdown(renderer, self.logger, name), name
        )

    async def wait_for_shutdown(self) -> ShutdownReason:
        """Wait until a shutdown sequence has been started."""
        await self._started.wait()
        return cast(ShutdownReason, self._reason)

    def request_shutdown(self) -> Optional[asyncio.Task]:
        """Start an explicit, non-signal shutdown."""
        return self.trigger(ShutdownReason.EXPLICIT)

    def trigger(self, reason: ShutdownReason) -> Optional[asyncio.Task]:
        """
        Start the shutdown sequence, once.

        Must be called from the event loop thread, or from a thread without a
        running loop, in which case the sequence runs to completion before
        returning.

        Args:
            reason: What caused the shutdown

        Returns:
            The task draining the callbacks when started on a running loop,
            None otherwise
        """
        if self._state != OrchestratorState.IDLE:
            self.logger.log_debug(f"Shutdown already in progress, ignoring {reason.value}")
            return None

        self._state = OrchestratorState.SHUTTING_DOWN
        self._reason = reason
        self.registry.seal()
        self._started.set()
        self.logger.log_debug(f"Received {reason.value}, initiating graceful shutdown...")

        self._start_watchdog(reason)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            asyncio.run(self._drain(reason))
            return None

        self._drain_task = loop.create_task(self._drain(reason))
        return self._drain_task

    def _start_watchdog(self, reason: ShutdownReason) -> None:
        # A thread rather than a loop timer, so a blocked loop cannot delay it
        timeout = self.budget.force_exit_timeout
        self._watchdog = threading.Timer(timeout, self._force_exit, args=(reason,))
        self._watchdog.daemon = True
        self._watchdog.start()

    def _cancel_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()

    def _force_exit(self, reason: ShutdownReason) -> None:
        self.logger.log_warning(
            f"Force exiting after {self.budget.force_exit_timeout} seconds due to {reason.value}"
        )
        self._terminate(reason.forced_exit_code())

    async def _drain(self, reason: ShutdownReason) -> None:
        try:
            self.report = await self.registry.run_all(self.budget.fanout_timeout)
            self.logger.log_debug("Graceful shutdown completed")
            code = reason.completed_exit_code()
        except Exception as e:
            self.logger.log_error(f"Fatal error during shutdown: {e!r}")
            code = FAILURE_EXIT_CODE

        self._cancel_watchdog()
        self._terminate(code)

    def _terminate(self, code: int) -> None:
        """Exit the process, at most once."""
        with self._terminate_lock:
            if self._state == OrchestratorState.TERMINATED:
                return
            self._state = OrchestratorState.TERMINATED
            self.exit_code = code

        for stream in (sys.stdout, sys.stderr):
            try:
                stream.flush()
            except (OSError, ValueError):
                pass
        self.logger.flush()

        self._exit_func(code)

