from typing import Dict, Type
from .base import BaseLogger
from .colorful import ColorfulLogger
from .plain import PlainLogger
from .json import JsonLogger

LOGGER_TYPES: Dict[str, Type[BaseLogger]] = {
    "colorful": ColorfulLogger,
    "plain": PlainLogger,
    "json": JsonLogger
}

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def create_logger(output_type: str, log_level: str = "INFO") -> BaseLogger:
    """Create the logger for an output format.

    Args:
        output_type: One of LOGGER_TYPES (colorful, plain, or json)
        log_level: One of LOG_LEVELS
    """
    logger_cls = LOGGER_TYPES.get(output_type.lower())
    if logger_cls is None:
        raise ValueError(f"Invalid output type: {output_type}. Must be one of: {', '.join(LOGGER_TYPES)}")
    if log_level.upper() not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {log_level}. Must be one of: {', '.join(LOG_LEVELS)}")

    return logger_cls(log_level.upper())

__all__ = ['BaseLogger', 'ColorfulLogger', 'PlainLogger', 'JsonLogger', 'LOGGER_TYPES', 'LOG_LEVELS', 'create_logger']
