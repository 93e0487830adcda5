"""Configurable latency and failure injection for the HTTP layer.

Lets front-end developers exercise loading and error states. It wraps
requests at the API boundary only; the masking pipeline stays deterministic.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from pii_masker.core.config import SimulationConfig

logger = logging.getLogger(__name__)


class SimulatedServiceError(Exception):
    """Raised when the injector decides a request should fail."""


class FaultInjector:
    def __init__(
        self,
        config: SimulationConfig,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.rng = rng or random.Random()
        self.sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.config.failure_rate > 0 or self.config.max_delay_s > 0

    async def before_request(self) -> None:
        """Sleep for the configured delay, then maybe raise."""
        if not self.enabled:
            return
        delay = self.rng.uniform(self.config.min_delay_s, self.config.max_delay_s)
        # draw failure before sleeping so the outcome does not depend on timing
        fail = self.rng.random() < self.config.failure_rate
        if delay > 0:
            await self.sleep(delay)
        if fail:
            logger.info("Injected failure after %.2fs delay", delay)
            raise SimulatedServiceError(self.config.failure_message)


__all__ = ["FaultInjector", "SimulatedServiceError"]
