"""Shutdown reasons and the exit codes derived from them."""

import signal
from enum import Enum

# Conventional shell exit status for a process stopped by SIGINT
SIGINT_EXIT_CODE = 128 + signal.SIGINT.value
FAILURE_EXIT_CODE = 1
SUCCESS_EXIT_CODE = 0


class ShutdownReason(str, Enum):
    """What started the shutdown sequence."""
    SIGINT = "SIGINT"
    SIGTERM = "SIGTERM"
    UNCAUGHT_EXCEPTION = "uncaught_exception"
    UNHANDLED_REJECTION = "unhandled_rejection"
    EXPLICIT = "explicit"

    @classmethod
    def from_signal(cls, sig_num: int) -> 'ShutdownReason':
        """Map a signal number to its reason."""
        if sig_num == signal.SIGINT:
            return cls.SIGINT
        if sig_num == signal.SIGTERM:
            return cls.SIGTERM
        raise ValueError(f"Unsupported shutdown signal: {sig_num}")

    @property
    def is_signal(self) -> bool:
        return self in (ShutdownReason.SIGINT, ShutdownReason.SIGTERM)

    @property
    def is_fault(self) -> bool:
        return self in (ShutdownReason.UNCAUGHT_EXCEPTION, ShutdownReason.UNHANDLED_REJECTION)

    def completed_exit_code(self) -> int:
        """Exit code once the cleanup fan-out has finished."""
        if self is ShutdownReason.SIGINT:
            return SIGINT_EXIT_CODE
        if self.is_fault:
            return FAILURE_EXIT_CODE
        return SUCCESS_EXIT_CODE

    def forced_exit_code(self) -> int:
        """Exit code when the watchdog has to force the exit."""
        if self is ShutdownReason.SIGINT:
            return SIGINT_EXIT_CODE
        return FAILURE_EXIT_CODE
