"""Run a main coroutine under graceful shutdown supervision."""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from .listener import SignalFaultListener
from .orchestrator import ShutdownOrchestrator
from .reason import ShutdownReason


async def supervise(
    main: Callable[[], Awaitable[Any]],
    orchestrator: ShutdownOrchestrator,
    listener: SignalFaultListener,
    handle_signals: bool = True,
    handle_faults: bool = True
) -> Optional[int]:
    """
    Run ``main`` until it finishes or a shutdown is triggered, then shut down.

    A normal return from ``main`` counts as an explicit shutdown request, an
    exception escaping it as an uncaught exception.

    Args:
        main: Zero-argument coroutine function hosting the application
        orchestrator: The process orchestrator
        listener: Listener to install on the running loop
        handle_signals: Install SIGINT/SIGTERM handlers
        handle_faults: Install uncaught exception hooks

    Returns:
        The exit code handed to the orchestrator's exit function
    """
    loop = asyncio.get_running_loop()
    listener.install(loop, handle_signals=handle_signals, handle_faults=handle_faults)

    main_task = asyncio.ensure_future(main())
    shutdown_waiter = asyncio.ensure_future(orchestrator.wait_for_shutdown())
    try:
        await asyncio.wait({main_task, shutdown_waiter}, return_when=asyncio.FIRST_COMPLETED)

        if main_task.done() and not orchestrator.is_shutting_down:
            if main_task.cancelled():
                orchestrator.logger.log_info("Main task was cancelled, performing graceful shutdown")
                orchestrator.trigger(ShutdownReason.EXPLICIT)
            elif main_task.exception() is not None:
                orchestrator.logger.log_error(f"Uncaught exception: {main_task.exception()!r}")
                orchestrator.trigger(ShutdownReason.UNCAUGHT_EXCEPTION)
            else:
                orchestrator.request_shutdown()

        drain_task = orchestrator.drain_task
        if drain_task is not None:
            await drain_task
        return orchestrator.exit_code

    finally:
        shutdown_waiter.cancel()
        if not main_task.done():
            main_task.cancel()
        elif not main_task.cancelled():
            # Consumed so it is not reported again when the task is collected
            main_task.exception()
        listener.uninstall()


def run_with_graceful_shutdown(
    main: Callable[[], Awaitable[Any]],
    orchestrator: ShutdownOrchestrator,
    listener: SignalFaultListener,
    handle_signals: bool = True,
    handle_faults: bool = True
) -> Optional[int]:
    """Blocking entry point: create an event loop and supervise ``main`` on it."""
    return asyncio.run(supervise(main, orchestrator, listener, handle_signals, handle_faults))
