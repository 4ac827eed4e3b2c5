"""Side-effect dispatcher: named, caller-registered mutations fired once per segment."""

import logging
from typing import Callable

from meeting_playback.models import SideEffectResult

logger = logging.getLogger(__name__)

Handler = Callable[[], object]


class SideEffectDispatcher:
    """Maps side_effect_id → handler and remembers what has already fired.

    An unknown id or a failing handler is logged and skipped; neither stops
    the meeting.
    """

    def __init__(self, handlers: dict[str, Handler] | None = None):
        self._handlers: dict[str, Handler] = {}
        self._fired: set[str] = set()
        self.results: list[SideEffectResult] = []
        if handlers:
            self.register_many(handlers)

    def register(self, side_effect_id: str, handler: Handler) -> None:
        if not callable(handler):
            raise TypeError(f"Handler for {side_effect_id!r} is not callable")
        self._handlers[side_effect_id] = handler

    def register_many(self, handlers: dict[str, Handler]) -> None:
        for side_effect_id, handler in handlers.items():
            self.register(side_effect_id, handler)

    def has_handler(self, side_effect_id: str) -> bool:
        return side_effect_id in self._handlers

    def reset(self) -> None:
        """Forget fired segments and results. Call between runs only."""
        self._fired.clear()
        self.results = []

    def dispatch(self, side_effect_id: str, segment_id: str | None = None) -> SideEffectResult | None:
        """Invoke the handler for side_effect_id synchronously, at most once per segment.

        Returns the recorded result, or None if nothing ran.
        """
        key = segment_id or side_effect_id
        if key in self._fired:
            logger.debug("Side effect %s for %s already fired — skipping", side_effect_id, key)
            return None

        handler = self._handlers.get(side_effect_id)
        if handler is None:
            logger.warning("Unknown side effect %r (segment %s) — ignoring", side_effect_id, segment_id)
            return None

        self._fired.add(key)
        try:
            value = handler()
        except Exception:
            logger.exception("Side effect %r (segment %s) failed", side_effect_id, segment_id)
            return None

        result = SideEffectResult(segment_id=segment_id or "", side_effect_id=side_effect_id, result=value)
        self.results.append(result)
        logger.info("Applied side effect %s", side_effect_id)
        return result
