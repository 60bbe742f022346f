"""Audible cue emitted when a new notification arrives."""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class SoundCue:
    """Ask the client to play a short audio asset.

    Playback happens on the client, which may refuse it (for instance before a
    user gesture). Failures at any step are swallowed.
    """

    def __init__(
        self,
        emit: Callable[[dict[str, Any]], Any],
        *,
        url: str = "/sounds/notification.mp3",
        volume: float = 0.3,
    ) -> None:
        self._emit = emit
        self.url = url
        self.volume = volume

    def __call__(self) -> bool:
        try:
            self._emit({"url": self.url, "volume": self.volume})
        except Exception:
            logger.debug("Unable to emit notification sound", exc_info=True)
            return False
        return True


__all__ = ["SoundCue"]
