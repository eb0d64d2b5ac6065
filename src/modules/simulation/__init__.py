"""Synthetic collaborators for exercising graceful shutdown from the CLI."""

from .resources import SimulatedRenderer, SimulatedStore

__all__ = ['SimulatedRenderer', 'SimulatedStore']
