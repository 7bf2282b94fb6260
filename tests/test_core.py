"""Tests for the board graph, claim state and win detection.

Covers:
- Feed parsing and board validation
- The built-in triangle board
- GameState claims: unknown nodes, permanence, idempotence
- WinDetector: scenarios, corner cases, order independence
"""

import random

import pytest

from yconnect.config import GameDefaults
from yconnect.core import (
    BoardGraph,
    ClaimResult,
    GameSession,
    GameState,
    MalformedBoardError,
    Node,
    Occupancy,
    UnknownNodeError,
    WinDetector,
    parse_adjacency,
    parse_coordinates,
)

A = Occupancy.PLAYER_A
B = Occupancy.PLAYER_B


def ring_board(chords=((1, 5), (5, 9)), shuffle_seed=None) -> BoardGraph:
    """24-node ring with optional chords and the default side sets."""
    adjacency = {i: [i % 24 + 1, (i - 2) % 24 + 1] for i in range(1, 25)}
    for u, v in chords:
        adjacency[u].append(v)
        adjacency[v].append(u)
    if shuffle_seed is not None:
        rng = random.Random(shuffle_seed)
        for neighbors in adjacency.values():
            rng.shuffle(neighbors)
    nodes = [Node(i, (0.0, 0.0)) for i in range(1, 25)]
    return BoardGraph(nodes, adjacency)


class TestFeedParsing:
    """Tests for the coordinates and adjacency feeds."""

    def test_coordinates_define_ids_by_line(self):
        """Test node ids are the 1-based line numbers."""
        board = BoardGraph.from_feeds(
            "0.0 0.0\n0.5 1.0\n1.0 0.0\n",
            "2 3 0\n1 3 0\n1 2 0\n",
            sides=[{1}, {2}, {3}],
        )

        assert board.all_node_ids() == {1, 2, 3}
        assert board.nodes[2].position == (0.5, 1.0)
        assert board.neighbors(1) == {2, 3}

    def test_zero_filler_is_dropped(self):
        """Test 0 entries in the adjacency feed are not neighbors."""
        assert parse_adjacency("2 0 0\n0 1 0") == [[2], [1]]

    def test_coordinates_wrong_arity(self):
        """Test a coordinates line with three values is rejected."""
        with pytest.raises(MalformedBoardError):
            parse_coordinates("0 0\n1 2 3")

    def test_non_numeric_tokens(self):
        """Test garbage tokens are rejected in both feeds."""
        with pytest.raises(MalformedBoardError):
            parse_coordinates("0 x")
        with pytest.raises(MalformedBoardError):
            parse_adjacency("1 two")

    def test_empty_feeds(self):
        """Test empty feeds are rejected."""
        with pytest.raises(MalformedBoardError):
            parse_coordinates("  \n")
        with pytest.raises(MalformedBoardError):
            parse_adjacency("")

    def test_node_count_mismatch(self):
        """Test feeds disagreeing on node count are rejected."""
        with pytest.raises(MalformedBoardError):
            BoardGraph.from_feeds("0 0\n1 1\n", "2\n1\n2\n", sides=[{1}, {2}, {1}])

    def test_unknown_neighbor(self):
        """Test adjacency pointing outside the node set is rejected."""
        with pytest.raises(MalformedBoardError):
            BoardGraph.from_feeds("0 0\n1 1\n", "2\n7\n", sides=[{1}, {2}, {1}])

    def test_side_outside_board(self):
        """Test default sides are rejected on a board too small for them."""
        with pytest.raises(MalformedBoardError):
            BoardGraph.from_feeds("0 0\n1 1\n", "2\n1\n")

    def test_wrong_number_of_sides(self):
        """Test exactly three side sets are required."""
        nodes = [Node(1, (0, 0)), Node(2, (1, 1))]
        with pytest.raises(MalformedBoardError):
            BoardGraph(nodes, {1: [2], 2: [1]}, sides=[{1}, {2}])

    def test_from_files(self, tmp_path):
        """Test loading both feeds from disk."""
        coordinates = tmp_path / "coordinates.txt"
        adjacency = tmp_path / "adjacency.txt"
        coordinates.write_text("0 0\n1 0\n")
        adjacency.write_text("2 0\n1 0\n")

        board = BoardGraph.from_files(coordinates, adjacency, sides=[{1}, {1, 2}, {2}])

        assert len(board) == 2
        assert board.neighbors(2) == {1}

    def test_missing_file(self, tmp_path):
        """Test a missing feed is a malformed board, not an OSError."""
        with pytest.raises(MalformedBoardError):
            BoardGraph.from_files(tmp_path / "nope.txt", tmp_path / "nope2.txt")


class TestBoardGraph:
    """Tests for BoardGraph queries and the triangle generator."""

    def test_neighbors_unknown_node(self):
        """Test neighbors of a missing node raises UnknownNodeError."""
        board = ring_board()
        with pytest.raises(UnknownNodeError):
            board.neighbors(99)

    def test_adjacency_is_read_only(self):
        """Test the neighbor sets cannot be mutated."""
        board = ring_board()
        with pytest.raises(AttributeError):
            board.neighbors(1).add(3)

    def test_adjacency_not_symmetrized(self):
        """Test one-way adjacency is kept as given."""
        nodes = [Node(1, (0, 0)), Node(2, (1, 1))]
        board = BoardGraph(nodes, {1: [2], 2: []}, sides=[{1}, {2}, {1}])

        assert board.neighbors(1) == {2}
        assert board.neighbors(2) == frozenset()

    def test_standard_triangle_matches_default_sides(self):
        """Test the 9-per-edge triangle has the standard perimeter numbering."""
        board = BoardGraph.triangle(9)

        assert len(board) == 45
        assert board.sides == GameDefaults.SIDES
        assert board.neighbors(1) == {2, 24}

    def test_triangle_adjacency_symmetric(self):
        """Test generated adjacency is symmetric."""
        board = BoardGraph.triangle(6)
        for node_id in board.all_node_ids():
            for neighbor_id in board.neighbors(node_id):
                assert node_id in board.neighbors(neighbor_id)

    def test_triangle_interior_has_six_neighbors(self):
        """Test interior nodes are numbered after the perimeter and have 6 neighbors."""
        board = BoardGraph.triangle(9)
        perimeter = set().union(*board.sides)

        assert perimeter == set(range(1, 25))
        for node_id in range(25, 46):
            assert len(board.neighbors(node_id)) == 6

    def test_triangle_size_limits(self):
        """Test out-of-range sizes are rejected."""
        with pytest.raises(ValueError):
            BoardGraph.triangle(1)
        with pytest.raises(ValueError):
            BoardGraph.triangle(1000)


class TestGameState:
    """Tests for claims."""

    def test_all_nodes_start_unclaimed(self):
        """Test the state covers exactly the board's nodes, all unclaimed."""
        board = ring_board()
        state = GameState(board)
        snapshot = state.snapshot()

        assert set(snapshot) == board.all_node_ids()
        assert set(snapshot.values()) == {Occupancy.UNCLAIMED}

    @pytest.mark.parametrize("node_id", [0, -1, 25, 1000, "3", None])
    def test_unknown_nodes(self, node_id):
        """Test unknown ids fail for both reads and claims."""
        state = GameState(ring_board())

        with pytest.raises(UnknownNodeError):
            state.occupancy_of(node_id)
        with pytest.raises(UnknownNodeError):
            state.claim(node_id, A)

    def test_claim_is_permanent(self):
        """Test the first claim wins and later claims are reported no-ops."""
        state = GameState(ring_board())

        assert state.claim(3, A) is ClaimResult.CLAIMED
        assert state.claim(3, A) is ClaimResult.ALREADY_CLAIMED
        assert state.claim(3, B) is ClaimResult.ALREADY_CLAIMED
        assert state.occupancy_of(3) is A
        assert state.history == [(3, A)]

    def test_claim_for_nobody(self):
        """Test claiming for UNCLAIMED is a programming error."""
        state = GameState(ring_board())
        with pytest.raises(ValueError):
            state.claim(3, Occupancy.UNCLAIMED)

    def test_snapshot_is_detached(self):
        """Test a snapshot is read-only and does not follow later claims."""
        state = GameState(ring_board())
        snapshot = state.snapshot()
        state.claim(4, B)

        assert snapshot[4] is Occupancy.UNCLAIMED
        with pytest.raises(TypeError):
            snapshot[4] = A

    def test_claimed_by(self):
        state = GameState(ring_board())
        state.claim(1, A)
        state.claim(2, B)
        state.claim(3, A)

        assert state.claimed_by(A) == {1, 3}
        assert state.claimed_by(B) == {2}


class TestWinDetector:
    """Tests for win detection."""

    def test_ring_scenario(self):
        """Test claiming 1, 5, 9 with chords 1-5 and 5-9 wins at 9."""
        session = GameSession(ring_board())

        assert not session.apply_move(1, A).won
        assert not session.apply_move(5, A).won
        assert session.apply_move(9, A).won
        assert session.detector.has_won(A, 9)

    def test_disconnected_nodes_do_not_win(self):
        """Test nodes touching all sides but not connected don't win."""
        session = GameSession(ring_board(chords=()))
        session.apply_move(1, A)
        session.apply_move(9, A)

        assert not session.detector.has_won(A, 9)
        assert not session.detector.has_won(A, 1)

    def test_opponent_nodes_block(self):
        """Test traversal doesn't pass through the opponent's nodes."""
        session = GameSession(ring_board())
        session.apply_move(1, A)
        session.apply_move(5, B)

        assert not session.apply_move(9, A).won

    def test_seed_not_owned(self):
        """Test a seed that isn't the player's never wins."""
        session = GameSession(ring_board())
        for node_id in (1, 5, 9):
            session.apply_move(node_id, A)

        assert not session.detector.has_won(B, 9)

    def test_single_node_on_all_sides(self):
        """Test a start node in all three sides wins before expanding."""
        board = BoardGraph([Node(1, (0, 0)), Node(2, (1, 0))], {1: [2], 2: [1]},
                           sides=[{1}, {1, 2}, {1}])
        session = GameSession(board)

        assert session.apply_move(1, A).won

    def test_triangle_left_edge_wins_at_corner(self):
        """Test the left edge of the triangle wins when the bottom corner is claimed."""
        session = GameSession(BoardGraph.triangle(9))
        for node_id in range(1, 9):
            assert not session.apply_move(node_id, A).won

        assert session.apply_move(9, A).won

    def test_repeat_claim_does_not_recheck(self):
        """Test a no-op claim reports no win even on a winning chain."""
        session = GameSession(ring_board())
        for node_id in (1, 5, 9):
            session.apply_move(node_id, A)

        result = session.apply_move(9, A)
        assert not result.claimed
        assert not result.won

    def test_win_requires_every_side(self):
        """Test random games never report a win without a node from each side."""
        board = BoardGraph.triangle(7)
        rng = random.Random(1234)
        for _ in range(50):
            session = GameSession(board)
            order = sorted(board.all_node_ids())
            rng.shuffle(order)
            player = A
            for node_id in order:
                result = session.apply_move(node_id, player)
                if result.won:
                    claimed = session.state.claimed_by(player)
                    assert all(claimed & side for side in board.sides)
                    break
                player = player.opponent

    def test_order_independence(self):
        """Test shuffled adjacency lists give identical win results."""
        boards = [ring_board(chords=((1, 5), (5, 9), (9, 17), (13, 20)), shuffle_seed=seed)
                  for seed in (None, 1, 2, 3)]
        rng = random.Random(99)
        for _ in range(100):
            claimed = rng.sample(range(1, 25), rng.randint(1, 12))
            results = set()
            for board in boards:
                state = GameState(board)
                for node_id in claimed:
                    state.claim(node_id, A)
                results.add(WinDetector(board, state).has_won(A, claimed[-1]))
            assert len(results) == 1
