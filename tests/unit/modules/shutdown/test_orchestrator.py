"""Tests for the shutdown orchestrator."""

import asyncio
import time
from unittest.mock import AsyncMock, Mock, patch

import pytest

from src.modules.shutdown.config import TimeoutBudget
from src.modules.shutdown.orchestrator import OrchestratorState, ShutdownOrchestrator
from src.modules.shutdown.reason import ShutdownReason
from src.modules.shutdown.registry import CallbackRegistry


@pytest.fixture
def orchestrator(mock_logger, fast_budget, exit_codes):
    registry = CallbackRegistry(mock_logger)
    return ShutdownOrchestrator(registry, mock_logger, fast_budget, exit_codes.append)


def _sleeper(delay, finished):
    async def callback():
        await asyncio.sleep(delay)
        finished.append(delay)
    return callback


@pytest.mark.asyncio
async def test_clean_shutdown_exits_zero(orchestrator, exit_codes, mock_logger, log_messages):
    """Test an explicit shutdown whose callbacks all settle in time."""
    finished = []
    orchestrator.register_shutdown_callback(_sleeper(0.01, finished))
    orchestrator.register_shutdown_callback(_sleeper(0.02, finished))

    assert orchestrator.state == OrchestratorState.IDLE
    task = orchestrator.request_shutdown()
    assert orchestrator.state == OrchestratorState.SHUTTING_DOWN
    await task

    assert sorted(finished) == [0.01, 0.02]
    assert exit_codes == [0]
    assert orchestrator.exit_code == 0
    assert orchestrator.state == OrchestratorState.TERMINATED
    assert orchestrator.report.completed == 2
    assert "Received explicit, initiating graceful shutdown..." in log_messages(mock_logger.log_debug)
    assert "Graceful shutdown completed" in log_messages(mock_logger.log_debug)
    mock_logger.log_warning.assert_not_called()
    mock_logger.flush.assert_called_once()


@pytest.mark.asyncio
async def test_watchdog_cancelled_after_clean_shutdown(orchestrator, exit_codes, mock_logger):
    """Test that the watchdog never fires once the fan-out finished."""
    await orchestrator.trigger(ShutdownReason.SIGTERM)
    await asyncio.sleep(orchestrator.budget.force_exit_timeout + 0.1)

    assert exit_codes == [0]
    mock_logger.log_warning.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("reason,expected", [
    (ShutdownReason.SIGINT, 130),
    (ShutdownReason.SIGTERM, 0),
    (ShutdownReason.EXPLICIT, 0),
    (ShutdownReason.UNCAUGHT_EXCEPTION, 1),
    (ShutdownReason.UNHANDLED_REJECTION, 1),
])
async def test_exit_code_follows_reason(orchestrator, exit_codes, reason, expected):
    """Test the exit code chosen for each reason."""
    await orchestrator.trigger(reason)
    assert exit_codes == [expected]
    assert orchestrator.reason is reason


@pytest.mark.asyncio
async def test_trigger_is_idempotent(orchestrator, exit_codes, mock_logger):
    """Test that only the first trigger starts a watchdog and a fan-out."""
    calls = []
    orchestrator.register_shutdown_callback(lambda: calls.append(1), "counter")

    with patch("src.modules.shutdown.orchestrator.threading.Timer") as timer_cls:
        task = orchestrator.trigger(ShutdownReason.SIGINT)
        assert orchestrator.trigger(ShutdownReason.SIGINT) is None
        assert orchestrator.trigger(ShutdownReason.SIGTERM) is None
        await task

    assert timer_cls.call_count == 1
    timer_cls.return_value.cancel.assert_called_once()
    assert calls == [1]
    assert exit_codes == [130]
    assert orchestrator.reason is ShutdownReason.SIGINT
    mock_logger.log_debug.assert_any_call("Shutdown already in progress, ignoring SIGINT")
    mock_logger.log_debug.assert_any_call("Shutdown already in progress, ignoring SIGTERM")


@pytest.mark.asyncio
async def test_many_rapid_triggers_run_one_sequence(orchestrator, exit_codes):
    """Test that a burst of triggers results in exactly one shutdown."""
    calls = []
    orchestrator.register_shutdown_callback(lambda: calls.append(1), "counter")

    tasks = [orchestrator.trigger(ShutdownReason.SIGTERM) for _ in range(10)]
    started = [task for task in tasks if task is not None]
    assert len(started) == 1
    await started[0]

    # Triggers after termination are ignored as well
    assert orchestrator.trigger(ShutdownReason.EXPLICIT) is None
    assert calls == [1]
    assert exit_codes == [0]


@pytest.mark.asyncio
async def test_hanging_callback_exits_at_fanout_deadline(orchestrator, exit_codes, mock_logger, cancel_pending):
    """Test that a callback that never resolves does not delay exit past the fan-out timeout."""
    orchestrator.register_shutdown_callback(asyncio.Event().wait, "hanging")

    start = time.monotonic()
    await orchestrator.trigger(ShutdownReason.EXPLICIT)
    elapsed = time.monotonic() - start

    assert 0.25 <= elapsed < 0.6
    assert exit_codes == [0]
    assert orchestrator.report.abandoned == 1
    mock_logger.log_warning.assert_called_once_with(
        "Graceful shutdown timed out after 0.25 seconds, abandoning 1 shutdown callback(s)"
    )
    await cancel_pending()


@pytest.mark.asyncio
async def test_slow_callbacks_scenario(orchestrator, exit_codes, mock_logger, log_messages, cancel_pending):
    """Test callbacks of short, medium and too-long duration under an interrupt.

    Mirrors 1s/3s/8s callbacks against a 6s fan-out and 7s watchdog: exit
    happens at the fan-out deadline with the interrupt code, and the watchdog
    does not fire.
    """
    finished = []
    for delay in (0.05, 0.15, 2.0):
        orchestrator.register_shutdown_callback(_sleeper(delay, finished))

    start = time.monotonic()
    await orchestrator.trigger(ShutdownReason.SIGINT)
    elapsed = time.monotonic() - start

    assert 0.25 <= elapsed < orchestrator.budget.force_exit_timeout
    assert finished == [0.05, 0.15]
    assert exit_codes == [130]
    assert orchestrator.report.completed == 2
    assert orchestrator.report.abandoned == 1
    assert not any("Force exiting" in message for message in log_messages(mock_logger.log_warning))
    await cancel_pending()


@pytest.mark.asyncio
async def test_watchdog_fires_when_loop_is_blocked(mock_logger, exit_codes):
    """Test that the watchdog exits even while a callback blocks the event loop."""
    budget = TimeoutBudget(resource_timeout=0.05, fanout_timeout=0.1, force_exit_timeout=0.2)
    orchestrator = ShutdownOrchestrator(CallbackRegistry(mock_logger), mock_logger, budget, exit_codes.append)
    orchestrator.register_shutdown_callback(lambda: time.sleep(0.5), "blocking")

    await orchestrator.trigger(ShutdownReason.SIGTERM)

    # The watchdog wins; the drain finishing afterwards must not exit again
    assert exit_codes == [1]
    mock_logger.log_warning.assert_any_call("Force exiting after 0.2 seconds due to SIGTERM")


@pytest.mark.asyncio
async def test_watchdog_keeps_interrupt_exit_code(mock_logger, exit_codes):
    """Test that a forced exit after an interrupt still reports 130."""
    budget = TimeoutBudget(resource_timeout=0.05, fanout_timeout=0.1, force_exit_timeout=0.2)
    orchestrator = ShutdownOrchestrator(CallbackRegistry(mock_logger), mock_logger, budget, exit_codes.append)
    orchestrator.register_shutdown_callback(lambda: time.sleep(0.4), "blocking")

    await orchestrator.trigger(ShutdownReason.SIGINT)
    assert exit_codes == [130]


@pytest.mark.asyncio
async def test_internal_error_exits_one(mock_logger, fast_budget, exit_codes):
    """Test that an unexpected error from the fan-out itself exits with 1."""
    registry = Mock(spec=CallbackRegistry)
    registry.run_all = AsyncMock(side_effect=RuntimeError("registry corrupted"))
    orchestrator = ShutdownOrchestrator(registry, mock_logger, fast_budget, exit_codes.append)

    with patch("src.modules.shutdown.orchestrator.threading.Timer") as timer_cls:
        await orchestrator.trigger(ShutdownReason.SIGINT)

    assert exit_codes == [1]
    timer_cls.return_value.cancel.assert_called_once()
    mock_logger.log_error.assert_called_once_with(
        "Fatal error during shutdown: RuntimeError('registry corrupted')"
    )


@pytest.mark.asyncio
async def test_failing_resource_does_not_block_shutdown(orchestrator, exit_codes, mock_logger):
    """Test that a store failing to close is recorded and shutdown completes."""
    store = Mock()
    store.shutdown = AsyncMock(side_effect=OSError("lock held"))
    orchestrator.register_resource(store, "store")

    await orchestrator.trigger(ShutdownReason.SIGTERM)

    assert exit_codes == [0]
    assert orchestrator.report.failed == 1
    assert orchestrator.report.completed == 0
    mock_logger.log_error.assert_called_once_with("Error during store shutdown: OSError('lock held')")


@pytest.mark.asyncio
async def test_hanging_resource_times_out_before_fanout(orchestrator, exit_codes, mock_logger, cancel_pending):
    """Test that a store that never settles is reported as timed out at the resource timeout."""
    store = Mock()
    store.shutdown = asyncio.Event().wait
    orchestrator.register_resource(store, "store")

    start = time.monotonic()
    await orchestrator.trigger(ShutdownReason.EXPLICIT)
    elapsed = time.monotonic() - start

    assert 0.1 <= elapsed < 0.25
    assert exit_codes == [0]
    assert orchestrator.report.failed == 1
    assert orchestrator.report.completed == 0
    mock_logger.log_warning.assert_called_once_with(
        "store shutdown timed out after 0.1 seconds, continuing..."
    )
    await cancel_pending()


@pytest.mark.asyncio
async def test_failing_renderer_is_swallowed(orchestrator, exit_codes, mock_logger):
    """Test that a renderer failure is logged and siblings still run."""
    renderer = Mock()
    renderer.shutdown.side_effect = RuntimeError("tty closed")
    calls = []
    orchestrator.register_renderer(renderer)
    orchestrator.register_shutdown_callback(lambda: calls.append(1), "sibling")

    await orchestrator.trigger(ShutdownReason.EXPLICIT)

    assert calls == [1]
    assert exit_codes == [0]
    assert orchestrator.report.completed == 1
    assert orchestrator.report.failed == 1
    mock_logger.log_error.assert_called_once_with("Error during renderer shutdown: RuntimeError('tty closed')")


@pytest.mark.asyncio
async def test_failing_store_and_renderer_are_counted_as_failed(orchestrator, exit_codes, mock_logger):
    """Test that failures swallowed by the store and renderer adapters still show in the report."""
    store = Mock()
    store.shutdown = AsyncMock(side_effect=OSError("disk full"))
    renderer = Mock()
    renderer.shutdown.side_effect = RuntimeError("tty closed")
    orchestrator.register_resource(store, "store")
    orchestrator.register_renderer(renderer)

    await orchestrator.trigger(ShutdownReason.SIGTERM)

    assert exit_codes == [0]
    assert orchestrator.report.completed == 0
    assert orchestrator.report.failed == 2
    assert orchestrator.report.timed_out is False


@pytest.mark.asyncio
async def test_callbacks_registered_after_trigger_are_dropped(orchestrator, exit_codes):
    """Test that late registrations never run."""
    calls = []
    task = orchestrator.trigger(ShutdownReason.EXPLICIT)

    assert orchestrator.register_shutdown_callback(lambda: calls.append("late"), "late") is False
    await task

    assert calls == []
    assert exit_codes == [0]


@pytest.mark.asyncio
async def test_wait_for_shutdown(orchestrator):
    """Test shutdown start signaling."""
    waiter = asyncio.create_task(orchestrator.wait_for_shutdown())

    await asyncio.sleep(0.05)
    assert not waiter.done()

    task = orchestrator.trigger(ShutdownReason.SIGTERM)
    assert await waiter is ShutdownReason.SIGTERM
    await task


def test_trigger_without_running_loop_runs_to_completion(orchestrator, exit_codes):
    """Test triggering from a context with no event loop, such as an excepthook."""
    calls = []

    async def callback():
        calls.append(1)

    orchestrator.register_shutdown_callback(callback)

    assert orchestrator.trigger(ShutdownReason.UNCAUGHT_EXCEPTION) is None
    assert calls == [1]
    assert exit_codes == [1]
    assert orchestrator.state == OrchestratorState.TERMINATED
