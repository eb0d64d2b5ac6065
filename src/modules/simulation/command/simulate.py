import asyncio
from typing import Callable, List, Optional, TextIO

from ...logging import BaseLogger
from ...shutdown import ShutdownConfig, ShutdownConfigValidator, ShutdownContext, create_shutdown_context
from ..resources import SimulatedRenderer, SimulatedStore, SimulatedWork


class SimulateCommand:
    """Command class hosting synthetic cleanup work under the orchestrator."""

    def __init__(self, logger: BaseLogger, exit_func: Optional[Callable[[int], None]] = None):
        """
        Initialize the simulate command.

        Args:
            logger: Logger instance
            exit_func: Overrides the process exit, used by tests
        """
        self.logger = logger
        self.exit_func = exit_func

    def load_config(self, config_file: Optional[TextIO]) -> ShutdownConfig:
        """Load the shutdown configuration from a YAML file, or use defaults."""
        if config_file is None:
            return ShutdownConfig()
        return ShutdownConfigValidator.validate_and_load(config_file.read())

    def build_context(self, config: ShutdownConfig) -> ShutdownContext:
        if self.exit_func is None:
            return create_shutdown_context(self.logger, config)
        return create_shutdown_context(self.logger, config, self.exit_func)

    def register_work(
        self,
        context: ShutdownContext,
        callback_delays: List[float],
        failing_callbacks: int,
        store: Optional[SimulatedStore],
        renderer: Optional[SimulatedRenderer]
    ) -> None:
        """Register one cleanup callback per simulated collaborator."""
        orchestrator = context.orchestrator
        for index, delay in enumerate(callback_delays, start=1):
            work = SimulatedWork(self.logger, f"callback-{index}", delay)
            orchestrator.register_shutdown_callback(work, work.name)
        for index in range(1, failing_callbacks + 1):
            work = SimulatedWork(self.logger, f"failing-callback-{index}", 0.0, fail=True)
            orchestrator.register_shutdown_callback(work, work.name)
        if store is not None:
            orchestrator.register_resource(store, "store")
        if renderer is not None:
            orchestrator.register_renderer(renderer, "renderer")

    def run(
        self,
        config: ShutdownConfig,
        callback_delays: List[float],
        failing_callbacks: int = 0,
        store_delay: Optional[float] = None,
        store_hang: bool = False,
        store_fail: bool = False,
        renderer_fail: bool = False,
        wait_for_signal: bool = False
    ) -> Optional[int]:
        """
        Run the simulation until shutdown.

        Returns:
            The exit code chosen by the orchestrator
        """
        context = self.build_context(config)

        store = None
        if store_delay is not None or store_hang or store_fail:
            store = SimulatedStore(self.logger, store_delay or 0.0, store_hang, store_fail)
        renderer = SimulatedRenderer(self.logger, fail=renderer_fail)

        self.register_work(context, callback_delays, failing_callbacks, store, renderer)
        self.logger.log_info(
            f"Registered {len(context.registry)} shutdown callback(s), "
            f"budget {config.budget.resource_timeout}s/{config.budget.fanout_timeout}s/"
            f"{config.budget.force_exit_timeout}s"
        )

        async def main() -> None:
            if wait_for_signal:
                self.logger.log_info("Running, press Ctrl+C or send SIGTERM to shut down")
                await context.orchestrator.wait_for_shutdown()
            else:
                await asyncio.sleep(0)

        return context.run(main)
