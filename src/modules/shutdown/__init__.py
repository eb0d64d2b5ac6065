"""Graceful shutdown orchestration for long-running asyncio processes."""

from .bounded import (
    BoundedCleanup, CleanupOutcome, CleanupResult, Renderer, ShutdownableResource,
    safe_renderer_shutdown, safe_resource_shutdown, safe_store_shutdown
)
from .config import ShutdownConfig, ShutdownConfigValidator, TimeoutBudget
from .factory import ShutdownContext, create_shutdown_context
from .listener import SignalFaultListener
from .orchestrator import OrchestratorState, ShutdownOrchestrator
from .reason import ShutdownReason
from .registry import CallbackRegistry, FanoutReport, ShutdownCallback
from .runtime import run_with_graceful_shutdown, supervise

__all__ = [
    'BoundedCleanup', 'CleanupOutcome', 'CleanupResult', 'Renderer', 'ShutdownableResource',
    'safe_renderer_shutdown', 'safe_resource_shutdown', 'safe_store_shutdown',
    'ShutdownConfig', 'ShutdownConfigValidator', 'TimeoutBudget',
    'ShutdownContext', 'create_shutdown_context',
    'SignalFaultListener', 'OrchestratorState', 'ShutdownOrchestrator', 'ShutdownReason',
    'CallbackRegistry', 'FanoutReport', 'ShutdownCallback',
    'run_with_graceful_shutdown', 'supervise',
]
