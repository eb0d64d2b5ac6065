import asyncio
import sys
from pathlib import Path
from typing import List
from unittest.mock import Mock

import pytest

# Make the project root importable as ``src``
root_path = str(Path(__file__).parent.parent.parent)
if root_path not in sys.path:
    sys.path.append(root_path)

from src.modules.shutdown.config import TimeoutBudget


@pytest.fixture
def mock_logger():
    """Create a mock logger."""
    logger = Mock()
    logger.log_info = Mock()
    logger.log_error = Mock()
    logger.log_warning = Mock()
    logger.log_debug = Mock()
    logger.flush = Mock()
    return logger


@pytest.fixture
def exit_codes() -> List[int]:
    """Collects exit codes instead of terminating the test process."""
    return []


@pytest.fixture
def fast_budget() -> TimeoutBudget:
    """The 5s/6s/7s budget scaled down for tests."""
    return TimeoutBudget(resource_timeout=0.1, fanout_timeout=0.25, force_exit_timeout=1.0)


def _messages(mock_method) -> List[str]:
    return [call.args[0] for call in mock_method.call_args_list]


async def _cancel_pending_tasks() -> None:
    current = asyncio.current_task()
    pending = [task for task in asyncio.all_tasks() if task is not current]
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)


@pytest.fixture
def log_messages():
    """Returns every message a mocked logger method was called with."""
    return _messages


@pytest.fixture
def cancel_pending():
    """Cancels tasks a test deliberately left running."""
    return _cancel_pending_tasks
