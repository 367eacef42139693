"""Shared board location with stale-corner retention."""

import logging
import threading
from typing import Optional

from .entities import BoardState, Quadrilateral

logger = logging.getLogger(__name__)


def next_board_state(previous: BoardState, quad: Optional[Quadrilateral],
                     timestamp: float, max_stale_misses: int = 0) -> BoardState:
    """
    Board state after one detection pass.

    A hit replaces the quad and resets the miss counter. A miss keeps the
    previous quad and its timestamp (stale-corner retention) until
    ``max_stale_misses`` consecutive misses, after which the board is dropped
    and the grid falls back to the frame rectangle. ``max_stale_misses=0``
    retains the last quad forever.
    """
    if quad is not None:
        return BoardState(quad=quad, last_updated=timestamp, misses=0)

    misses = previous.misses + 1
    if previous.quad is not None and max_stale_misses and misses >= max_stale_misses:
        logger.info(f"Board not seen for {misses} detection passes, reverting to full-frame grid")
        return BoardState(quad=None, last_updated=timestamp, misses=misses)
    return BoardState(quad=previous.quad, last_updated=previous.last_updated, misses=misses)


class BoardStateCell:
    """Single shared reference to the current BoardState, replaced whole."""

    def __init__(self, max_stale_misses: int = 0, initial: Optional[BoardState] = None):
        self.max_stale_misses = max_stale_misses
        self._state = initial or BoardState()
        self._write_lock = threading.Lock()

    @property
    def state(self) -> BoardState:
        return self._state

    def publish(self, quad: Optional[Quadrilateral], timestamp: float) -> BoardState:
        with self._write_lock:
            self._state = next_board_state(self._state, quad, timestamp, self.max_stale_misses)
            return self._state
