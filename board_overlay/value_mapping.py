"""
Per-cell tracked values.

The store owns the current row-major value array. Values are replaced as a
whole (an immutable tuple swapped behind one reference) so a renderer never
sees half of an update. A cell's identity is the value it carries: after a
reshuffle the highlighted identity is looked up again to find its new slot.
"""

import logging
import random
import threading
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence, Tuple

from .entities import GridSpec

logger = logging.getLogger(__name__)


class TrackedCell(NamedTuple):
    identity: int
    slot: int


@dataclass(frozen=True)
class ValueMapping:
    values: Tuple[int, ...]
    highlighted_identity: Optional[int] = None
    highlighted_slot: Optional[int] = None


def shuffle_in_place(values: List[int], rng: Optional[random.Random] = None) -> List[int]:
    """Fisher-Yates shuffle: walk down from the last index, swapping with a uniform index in [0, i]."""
    rng = rng or random
    for i in range(len(values) - 1, 0, -1):
        j = rng.randint(0, i)
        values[i], values[j] = values[j], values[i]
    return values


def init_dynamic_mapping(cell_count: int, rng: Optional[random.Random] = None) -> List[int]:
    """Values 1..cell_count in uniformly random order."""
    return shuffle_in_place(list(range(1, cell_count + 1)), rng)


def resolve_slot(values: Sequence[int], identity: Optional[int]) -> Optional[int]:
    """First slot holding ``identity``, or None when absent."""
    if identity is None:
        return None
    for slot, value in enumerate(values):
        if value == identity:
            return slot
    return None


class ValueMappingStore:
    """Owner of the shared ValueMapping.

    One writer (the value-update activity) calls ``replace``; any number of
    readers call ``read``/``snapshot`` and get the last published value.
    """

    def __init__(self, grid_spec: GridSpec, values: Optional[Sequence[int]] = None,
                 rng: Optional[random.Random] = None, highlighted_identity: Optional[int] = None):
        self.grid_spec = grid_spec
        self._write_lock = threading.Lock()
        if values is None:
            values = init_dynamic_mapping(grid_spec.cell_count, rng)
        values = self._checked(values)
        self._mapping = ValueMapping(
            values=values,
            highlighted_identity=highlighted_identity,
            highlighted_slot=resolve_slot(values, highlighted_identity),
        )

    def _checked(self, values: Sequence[int]) -> Tuple[int, ...]:
        values = tuple(int(v) for v in values)
        if len(values) != self.grid_spec.cell_count:
            raise ValueError(f"Expected {self.grid_spec.cell_count} values for a "
                             f"{self.grid_spec.rows}x{self.grid_spec.cols} grid, got {len(values)}")
        return values

    def read(self) -> Tuple[int, ...]:
        return self._mapping.values

    def snapshot(self) -> ValueMapping:
        return self._mapping

    def replace(self, new_values: Sequence[int]) -> ValueMapping:
        """Swap in a complete new value array and re-locate the highlighted identity."""
        values = self._checked(new_values)
        with self._write_lock:
            identity = self._mapping.highlighted_identity
            mapping = ValueMapping(values=values, highlighted_identity=identity,
                                   highlighted_slot=resolve_slot(values, identity))
            self._mapping = mapping
        if identity is not None and mapping.highlighted_slot is None:
            logger.debug(f"Highlighted identity {identity} not present after update")
        return mapping

    def set_highlight(self, identity: Optional[int]) -> ValueMapping:
        with self._write_lock:
            values = self._mapping.values
            self._mapping = ValueMapping(values=values, highlighted_identity=identity,
                                         highlighted_slot=resolve_slot(values, identity))
            return self._mapping

    def highlight_max(self) -> ValueMapping:
        """Highlight the identity currently carrying the highest value."""
        return self.set_highlight(max(self._mapping.values))

    def resolve_position(self, identity: int) -> Optional[int]:
        return resolve_slot(self._mapping.values, identity)

    def tracked_cells(self) -> List[TrackedCell]:
        return [TrackedCell(identity=value, slot=slot) for slot, value in enumerate(self._mapping.values)]


class ShuffleValueUpdater:
    """Simulated value producer: a fresh permutation of 1..rows*cols per call."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def produce_values(self, rows: int, cols: int) -> List[int]:
        return init_dynamic_mapping(rows * cols, self._rng)
