"""
Rotating status messages shown while a generation is in flight.
"""
import asyncio
import logging
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

LOADING_MESSAGES = (
    "Analyzing the pose and lighting of the photo...",
    "Tailoring the gown out of virtual fabric...",
    "Building an elegant graduation backdrop...",
    "Adjusting the blue sash for a perfect fit...",
    "Almost there! Adding the finishing touches...",
)

DEFAULT_INTERVAL = 3.0


class ProgressTicker:
    """
    Cycles through a fixed list of messages on the running event loop.

    `start()` always restarts from the first message; `cancel()` drops the
    pending timer so nothing fires after the caller has moved on.
    """

    def __init__(self, messages: Sequence[str] = LOADING_MESSAGES, interval: float = DEFAULT_INTERVAL):
        if not messages:
            raise ValueError("ProgressTicker needs at least one message")
        self.messages = tuple(messages)
        self.interval = interval
        self.index = 0
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def message(self) -> str:
        return self.messages[self.index]

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        """Restart the rotation from the first message. Needs a running loop."""
        self.cancel()
        self.index = 0
        self._schedule()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        self.index = (self.index + 1) % len(self.messages)
        logger.debug(f"Progress message: {self.message}")
        self._schedule()
