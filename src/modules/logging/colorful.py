import click
from .base import BaseLogger
import sys
from typing import Any, Dict, Tuple

# Shutdown milestones stand out from the level colour; first match wins
SHUTDOWN_STYLES: Tuple[Tuple[str, Dict[str, Any]], ...] = (
    ("Force exiting", {"fg": "white", "bg": "red", "bold": True}),
    ("timed out", {"fg": "magenta", "bold": True}),
    ("initiating graceful shutdown", {"fg": "cyan", "bold": True}),
    ("Graceful shutdown completed", {"fg": "green", "bold": True}),
)

LEVEL_STYLES: Dict[str, Dict[str, Any]] = {
    "error": {"fg": "red", "bold": True},
    "warning": {"fg": "yellow", "bold": True},
    "info": {"fg": "white"},
    "debug": {"fg": "blue"},
}


class ColorfulLogger(BaseLogger):
    """Logger that outputs colorful text for interactive terminals."""

    def __init__(self, log_level: str = "INFO"):
        super().__init__(log_level)
        self.logger.configure(
            handlers=[{
                "sink": sys.stderr,
                "colorize": True,
                "format": "<cyan>{time:YYYY-MM-DD HH:mm:ss.SSS}</cyan> | "
                         "<level>{level: <8}</level> | "
                         "<white>{message}</white>",
                "level": log_level
            }]
        )

    def style(self, message: str, level: str) -> str:
        """Colour a message by shutdown milestone, falling back to its level."""
        for phrase, style in SHUTDOWN_STYLES:
            if phrase in message:
                return click.style(message, **style)
        return click.style(message, **LEVEL_STYLES[level])

    def log_error(self, message: str):
        self.logger.error(self.style(message, "error"))

    def log_warning(self, message: str):
        self.logger.warning(self.style(message, "warning"))

    def log_info(self, message: str):
        self.logger.info(self.style(message, "info"))

    def log_debug(self, message: str):
        self.logger.debug(self.style(message, "debug"))
