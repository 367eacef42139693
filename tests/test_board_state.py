"""Tests for stale-corner retention of the shared board state."""
from board_overlay.board_state import BoardStateCell, next_board_state
from board_overlay.entities import BoardState, Point, Quadrilateral

QUAD = Quadrilateral(Point(10, 10), Point(300, 12), Point(310, 250), Point(8, 240))
OTHER = Quadrilateral(Point(20, 20), Point(320, 22), Point(330, 260), Point(18, 250))


def test_hit_replaces_board():
    state = next_board_state(BoardState(), QUAD, timestamp=1.0)
    assert state == BoardState(quad=QUAD, last_updated=1.0, misses=0)


def test_miss_after_hit_retains_previous_corners():
    hit = next_board_state(BoardState(), QUAD, timestamp=1.0, max_stale_misses=5)
    miss = next_board_state(hit, None, timestamp=2.0, max_stale_misses=5)

    assert miss.quad == hit.quad
    assert miss.quad.corners == hit.quad.corners
    assert miss.last_updated == hit.last_updated
    assert miss.misses == 1


def test_staleness_bound_reverts_to_fallback():
    state = next_board_state(BoardState(), QUAD, timestamp=0.0, max_stale_misses=3)
    for t in (1.0, 2.0):
        state = next_board_state(state, None, timestamp=t, max_stale_misses=3)
        assert state.quad == QUAD
    state = next_board_state(state, None, timestamp=3.0, max_stale_misses=3)
    assert state.quad is None
    assert state.misses == 3


def test_zero_bound_retains_forever():
    state = next_board_state(BoardState(), QUAD, timestamp=0.0, max_stale_misses=0)
    for t in range(1, 200):
        state = next_board_state(state, None, timestamp=float(t), max_stale_misses=0)
    assert state.quad == QUAD
    assert state.misses == 199


def test_hit_resets_miss_counter():
    state = BoardState(quad=QUAD, last_updated=0.0, misses=4)
    state = next_board_state(state, OTHER, timestamp=5.0, max_stale_misses=5)
    assert state == BoardState(quad=OTHER, last_updated=5.0, misses=0)


def test_cell_publishes_new_objects():
    cell = BoardStateCell(max_stale_misses=2)
    initial = cell.state
    assert initial.quad is None

    published = cell.publish(QUAD, 1.0)
    assert cell.state is published
    assert initial.quad is None  # old snapshot untouched
