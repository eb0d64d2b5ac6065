import asyncio
from typing import Optional

from ..logging import BaseLogger


class SimulatedStore:
    """Persistent store stand-in whose shutdown is slow, hangs, or fails."""

    def __init__(
        self,
        logger: BaseLogger,
        delay: float = 0.0,
        hang: bool = False,
        fail: bool = False
    ):
        self.logger = logger
        self.delay = delay
        self.hang = hang
        self.fail = fail
        self.closed = False

    async def shutdown(self) -> None:
        if self.hang:
            # Never settles
            await asyncio.Event().wait()
        await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("store refused to close")
        self.closed = True
        self.logger.log_info("Store flushed and closed")


class SimulatedRenderer:
    """Terminal renderer stand-in with a synchronous shutdown."""

    def __init__(self, logger: BaseLogger, fail: bool = False):
        self.logger = logger
        self.fail = fail
        self.closed = False

    def shutdown(self) -> None:
        if self.fail:
            raise RuntimeError("renderer teardown failed")
        self.closed = True
        self.logger.log_info("Renderer restored the terminal")


class SimulatedWork:
    """A cleanup callback that takes ``delay`` seconds and optionally fails."""

    def __init__(self, logger: BaseLogger, name: str, delay: float, fail: bool = False):
        self.logger = logger
        self.name = name
        self.delay = delay
        self.fail = fail
        self.finished: Optional[bool] = None

    async def __call__(self) -> None:
        await asyncio.sleep(self.delay)
        if self.fail:
            self.finished = False
            raise RuntimeError(f"{self.name} failed to clean up")
        self.finished = True
        self.logger.log_info(f"{self.name} finished after {self.delay} seconds")
