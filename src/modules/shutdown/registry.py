"""Registry of cleanup callbacks run concurrently during shutdown."""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from ..logging import BaseLogger

CleanupCallback = Callable[[], Any]


@dataclass
class ShutdownCallback:
    """A registered cleanup callback."""
    name: str
    callback: CleanupCallback


@dataclass
class FanoutReport:
    """Summary of one run_all invocation."""
    completed: int = 0
    failed: int = 0
    abandoned: int = 0
    timed_out: bool = False

    @property
    def total(self) -> int:
        return self.completed + self.failed + self.abandoned


class CallbackRegistry:
    """Holds cleanup callbacks and runs them all at once under a deadline."""

    def __init__(self, logger: BaseLogger):
        self._callbacks: List[ShutdownCallback] = []
        self._sealed = False
        # Callbacks still running past the deadline, held until they settle
        self._abandoned: Set[asyncio.Future] = set()
        self.logger = logger

    def __len__(self) -> int:
        return len(self._callbacks)

    @property
    def callbacks(self) -> List[ShutdownCallback]:
        return list(self._callbacks)

    @property
    def abandoned(self) -> int:
        """Number of abandoned callbacks that have not settled yet."""
        return len(self._abandoned)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def register(self, callback: CleanupCallback, name: Optional[str] = None) -> bool:
        """Register a cleanup callback.

        Args:
            callback: Zero-argument callable, sync or async. Returning
                ``False`` reports a failure it already handled
            name: Label used in log lines, defaults to the callable's name

        Returns:
            False if shutdown already started and the callback was dropped
        """
        if name is None:
            name = getattr(callback, "__qualname__", None) or repr(callback)

        if self._sealed:
            self.logger.log_warning(
                f"Shutdown already in progress, dropping shutdown callback {name}"
            )
            return False

        self._callbacks.append(ShutdownCallback(name, callback))
        return True

    def seal(self) -> None:
        """Refuse any further registrations."""
        self._sealed = True

    async def run_all(self, deadline: float) -> FanoutReport:
        """
        Run every registered callback concurrently.

        Returns once all callbacks have settled or ``deadline`` seconds have
        passed, whichever comes first. Callbacks still running at the deadline
        are abandoned, not cancelled.

        Args:
            deadline: Seconds to wait for the whole fan-out

        Returns:
            FanoutReport with per-outcome counts
        """
        report = FanoutReport()
        try:
            tasks: Dict[asyncio.Future, ShutdownCallback] = {
                asyncio.ensure_future(self._invoke(entry)): entry
                for entry in self._callbacks
            }
            if not tasks:
                return report

            done, pending = await asyncio.wait(tasks, timeout=deadline)

            for task in done:
                if not task.cancelled() and task.result():
                    report.completed += 1
                else:
                    report.failed += 1

            if pending:
                report.timed_out = True
                report.abandoned = len(pending)
                self.logger.log_warning(
                    f"Graceful shutdown timed out after {deadline} seconds, "
                    f"abandoning {len(pending)} shutdown callback(s)"
                )
                for task in pending:
                    self._abandon(tasks[task].name, task)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.log_error(f"Error running shutdown callbacks: {e!r}")

        return report

    async def _invoke(self, entry: ShutdownCallback) -> bool:
        """Run one callback, converting any failure into a log line."""
        try:
            result = entry.callback()
            if inspect.isawaitable(result):
                result = await result
            # An explicit False marks a failure the callback already handled
            return result is not False
        except Exception as e:
            self.logger.log_error(f"Error in shutdown callback {entry.name}: {e!r}")
            return False

    def _abandon(self, name: str, task: asyncio.Future) -> None:
        """Detach a callback past the deadline, logging whatever it eventually produces."""
        self._abandoned.add(task)

        def _discard(finished: asyncio.Future) -> None:
            self._abandoned.discard(finished)
            if finished.cancelled():
                self.logger.log_debug(f"Abandoned shutdown callback {name} was cancelled")
            elif finished.result():
                self.logger.log_debug(f"Abandoned shutdown callback {name} completed late")
            else:
                self.logger.log_debug(f"Abandoned shutdown callback {name} failed late")

        task.add_done_callback(_discard)
