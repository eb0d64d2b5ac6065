"""Factory wiring the shutdown components into one handle."""

import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..logging import BaseLogger
from .config import ShutdownConfig
from .listener import SignalFaultListener
from .orchestrator import ShutdownOrchestrator
from .registry import CallbackRegistry
from .runtime import run_with_graceful_shutdown


@dataclass
class ShutdownContext:
    """Everything a process needs to register cleanup and shut down.

    Built once at startup and passed to the components that register
    callbacks or trigger shutdown.
    """
    config: ShutdownConfig
    registry: CallbackRegistry
    orchestrator: ShutdownOrchestrator
    listener: SignalFaultListener

    def run(self, main: Callable[[], Awaitable[Any]]) -> Optional[int]:
        """Run ``main`` with the configured handlers installed."""
        return run_with_graceful_shutdown(
            main,
            self.orchestrator,
            self.listener,
            handle_signals=self.config.handle_signals,
            handle_faults=self.config.handle_faults
        )


def create_shutdown_context(
    logger: BaseLogger,
    config: Optional[ShutdownConfig] = None,
    exit_func: Callable[[int], None] = os._exit
) -> ShutdownContext:
    """
    Create the registry, orchestrator and listener for one process.

    Args:
        logger: Logger instance shared by all components
        config: Shutdown configuration, defaults when omitted
        exit_func: Function terminating the process with an exit code

    Returns:
        A ShutdownContext
    """
    config = config or ShutdownConfig()
    registry = CallbackRegistry(logger)
    orchestrator = ShutdownOrchestrator(registry, logger, config.budget, exit_func)
    listener = SignalFaultListener(orchestrator, logger)
    return ShutdownContext(config, registry, orchestrator, listener)
