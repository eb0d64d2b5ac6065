"""Routes termination signals and uncaught faults to the orchestrator."""

import asyncio
import signal
import sys
import threading
import types
from typing import Any, Callable, Dict, Optional, Type, Union

from ..logging import BaseLogger
from .orchestrator import ShutdownOrchestrator
from .reason import ShutdownReason

# Type for signal handlers
SignalHandlerType = Union[Callable[[int, Optional[types.FrameType]], Any], int, None]

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalFaultListener:
    """Installs signal and fault handlers that forward to ``trigger``.

    The listener does no cleanup itself. Repeated signals are forwarded too;
    the orchestrator ignores everything after the first trigger.
    """

    def __init__(self, orchestrator: ShutdownOrchestrator, logger: BaseLogger):
        self.orchestrator = orchestrator
        self.logger = logger
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_signals: list[signal.Signals] = []
        self._original_signals: Dict[signal.Signals, SignalHandlerType] = {}
        self._original_excepthook: Optional[Callable[..., Any]] = None
        self._original_threading_excepthook: Optional[Callable[..., Any]] = None
        self._original_loop_handler: Optional[Callable[..., Any]] = None
        self._signals_installed = False
        self._faults_installed = False

    @property
    def installed(self) -> bool:
        return self._signals_installed or self._faults_installed

    def install(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        handle_signals: bool = True,
        handle_faults: bool = True
    ) -> None:
        """
        Install handlers. Calling this again is a no-op.

        Signal handlers should be installed from the main thread.

        Args:
            loop: Event loop the orchestrator runs on
            handle_signals: Install SIGINT/SIGTERM handlers
            handle_faults: Install uncaught exception hooks
        """
        if loop is not None:
            self._loop = loop
        if handle_signals and not self._signals_installed:
            self._install_signal_handlers()
            self._signals_installed = True
        if handle_faults and not self._faults_installed:
            self._install_fault_handlers()
            self._faults_installed = True

    def uninstall(self) -> None:
        """Restore every handler replaced by install()."""
        if self._signals_installed:
            for sig in self._loop_signals:
                if self._loop is not None and not self._loop.is_closed():
                    self._loop.remove_signal_handler(sig)
            self._loop_signals = []
            for sig, handler in self._original_signals.items():
                signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
            self._original_signals = {}
            self._signals_installed = False

        if self._faults_installed:
            if self._original_excepthook is not None:
                sys.excepthook = self._original_excepthook
            if self._original_threading_excepthook is not None:
                threading.excepthook = self._original_threading_excepthook
            if self._loop is not None and not self._loop.is_closed():
                self._loop.set_exception_handler(self._original_loop_handler)
            self._faults_installed = False

    def _install_signal_handlers(self) -> None:
        for sig in SHUTDOWN_SIGNALS:
            if self._loop is not None:
                try:
                    self._loop.add_signal_handler(sig, self._handle_loop_signal, sig)
                    self._loop_signals.append(sig)
                    continue
                except (NotImplementedError, RuntimeError):
                    # add_signal_handler is unavailable on Windows
                    self.logger.log_debug(f"Falling back to signal.signal for {sig.name}")

            self._original_signals[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle_signal)
        self.logger.log_debug("Signal handlers installed for SIGINT and SIGTERM")

    def _install_fault_handlers(self) -> None:
        self._original_excepthook = sys.excepthook
        sys.excepthook = self._handle_uncaught_exception

        self._original_threading_excepthook = threading.excepthook
        threading.excepthook = self._handle_thread_exception

        if self._loop is not None:
            self._original_loop_handler = self._loop.get_exception_handler()
            self._loop.set_exception_handler(self._handle_loop_exception)

    def _handle_loop_signal(self, sig_num: int) -> None:
        """Signal callback scheduled by the event loop."""
        sig_name = signal.Signals(sig_num).name
        self.logger.log_debug(f"Received {sig_name} signal")
        self.orchestrator.trigger(ShutdownReason.from_signal(sig_num))

    def _handle_signal(self, sig_num: int, frame: Optional[types.FrameType]) -> None:
        """
        Handle termination signals installed with signal.signal.

        Args:
            sig_num: The signal number that was received
            frame: The current stack frame
        """
        reason = ShutdownReason.from_signal(sig_num)
        self._dispatch(reason)

    def _handle_uncaught_exception(
        self,
        exc_type: Type[BaseException],
        exc_value: BaseException,
        exc_traceback: Optional[types.TracebackType]
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            self._dispatch(ShutdownReason.SIGINT)
            return
        self.logger.log_error(f"Uncaught exception: {exc_value!r}")
        self._dispatch(ShutdownReason.UNCAUGHT_EXCEPTION)

    def _handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        if issubclass(args.exc_type, SystemExit):
            return
        thread_name = args.thread.name if args.thread is not None else "unknown"
        self.logger.log_error(f"Uncaught exception in thread {thread_name}: {args.exc_value!r}")
        self._dispatch(ShutdownReason.UNCAUGHT_EXCEPTION)

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        error = context.get("exception")
        if error is None:
            # Diagnostics such as "Task was destroyed but it is pending" carry no fault
            loop.default_exception_handler(context)
            return
        self.logger.log_error(f"Unhandled rejection: {context.get('message', '')} {error!r}")
        self.orchestrator.trigger(ShutdownReason.UNHANDLED_REJECTION)

    def _dispatch(self, reason: ShutdownReason) -> None:
        """Hand ``reason`` to the orchestrator on the loop thread when one is running."""
        loop = self._loop
        if loop is not None and loop.is_running() and not loop.is_closed():
            loop.call_soon_threadsafe(self.orchestrator.trigger, reason)
        else:
            self.orchestrator.trigger(reason)
