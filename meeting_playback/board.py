"""In-memory meeting board: the default target for scripted side effects.

Hosts with a real board inject their own handlers; this one backs the CLI
and keeps a move history for the meeting report.
"""

import logging

logger = logging.getLogger(__name__)


class BoardError(ValueError):
    """A board action references an unknown item or column."""


class MeetingBoard:
    def __init__(self, columns: dict[str, list[str]] | None = None):
        # Column order is preserved; the first column is the backlog
        self.columns: dict[str, list[str]] = {name: list(items) for name, items in (columns or {}).items()}
        self.history: list[dict] = []

    def column_of(self, item: str) -> str | None:
        for name, items in self.columns.items():
            if item in items:
                return name
        return None

    def move(self, item: str, column: str) -> dict:
        if column not in self.columns:
            raise BoardError(f"Unknown column: {column}")
        source = self.column_of(item)
        if source is None:
            raise BoardError(f"Unknown item: {item}")
        self.columns[source].remove(item)
        self.columns[column].append(item)
        change = {"action": "move", "item": item, "from": source, "to": column}
        self.history.append(change)
        logger.info("Board: %s %s → %s", item, source, column)
        return change

    def slice(self, item: str, new_item: str) -> dict:
        """Split off new_item next to item; the remainder returns to the backlog."""
        source = self.column_of(item)
        if source is None:
            raise BoardError(f"Unknown item: {item}")
        if self.column_of(new_item) is not None:
            raise BoardError(f"Item already on board: {new_item}")
        self.columns[source].append(new_item)
        backlog = next(iter(self.columns))
        if backlog != source:
            self.columns[source].remove(item)
            self.columns[backlog].append(item)
        change = {"action": "slice", "item": item, "as": new_item, "to": source}
        self.history.append(change)
        logger.info("Board: sliced %s into %s", item, new_item)
        return change


def board_handlers(board: MeetingBoard, actions: dict[str, dict]) -> dict:
    """Turn a script's board_actions table into side-effect handlers.

    {"move-x": {"move": "STORY-1", "to": "sprint"}} → board.move("STORY-1", "sprint")
    {"slice-x": {"slice": "STORY-1", "as": "STORY-1A"}} → board.slice(...)
    """
    handlers = {}
    for side_effect_id, spec in actions.items():
        if "move" in spec:
            handlers[side_effect_id] = lambda s=spec: board.move(s["move"], s["to"])
        elif "slice" in spec:
            handlers[side_effect_id] = lambda s=spec: board.slice(s["slice"], s["as"])
        else:
            logger.warning("Board action %r has no 'move' or 'slice' — skipped", side_effect_id)
    return handlers
