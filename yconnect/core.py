"""
Y Connection Game - Core Data Structures

This module contains the board graph, the claim state and the win detection
for a two-player connection game played on a fixed planar graph. A player
wins by forming a connected chain of their own nodes that touches all three
sides of the board.
"""

import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from yconnect.config import BoardConfig, GameDefaults


class GameError(Exception):
    """Base class for game engine errors."""


class MalformedBoardError(GameError):
    """Board geometry or adjacency data is inconsistent or missing."""


class UnknownNodeError(GameError):
    """A node id is not a member of the board."""

    def __init__(self, node_id):
        super().__init__(f"Node {node_id} is not on the board")
        self.node_id = node_id


class Occupancy(Enum):
    """Enumeration for node occupancy states."""
    UNCLAIMED = "unclaimed"
    PLAYER_A = "player_a"
    PLAYER_B = "player_b"

    @property
    def opponent(self) -> "Occupancy":
        """The other player. Undefined for UNCLAIMED."""
        if self is Occupancy.PLAYER_A:
            return Occupancy.PLAYER_B
        if self is Occupancy.PLAYER_B:
            return Occupancy.PLAYER_A
        raise ValueError("Unclaimed has no opponent")

    @property
    def color(self) -> str:
        """Color name used on the wire."""
        return _COLORS[self]


_COLORS = {
    Occupancy.UNCLAIMED: GameDefaults.COLOR_UNCLAIMED,
    Occupancy.PLAYER_A: GameDefaults.COLOR_PLAYER_A,
    Occupancy.PLAYER_B: GameDefaults.COLOR_PLAYER_B,
}


class ClaimResult(Enum):
    """Outcome of a claim attempt."""
    CLAIMED = "claimed"
    ALREADY_CLAIMED = "already_claimed"


@dataclass(frozen=True)
class Node:
    """
    Represents a claimable node of the board.

    Attributes:
        id: Unique, 1-based identifier
        position: (x, y) coordinates for visualization
    """
    id: int
    position: Tuple[float, float]

    def __post_init__(self):
        if self.id <= 0:
            raise ValueError("Node id must be positive")


class BoardGraph:
    """
    Immutable node set and adjacency relation of a board.

    Adjacency is kept as given by the source data; it is not made symmetric.
    """

    def __init__(self, nodes: Iterable[Node], adjacency: Mapping[int, Iterable[int]],
                 sides: Optional[Sequence[Iterable[int]]] = None):
        """
        Build a board.

        Args:
            nodes: All nodes of the board
            adjacency: Mapping from node id to the ids of its neighbors
            sides: Three side sets; defaults to GameDefaults.SIDES

        Raises:
            MalformedBoardError: If the adjacency or the sides reference unknown
                                 ids, or the two inputs disagree on node count
        """
        node_map: Dict[int, Node] = {}
        for node in nodes:
            if node.id in node_map:
                raise MalformedBoardError(f"Duplicate node id {node.id}")
            node_map[node.id] = node

        if not node_map:
            raise MalformedBoardError("Board has no nodes")
        if set(adjacency) != set(node_map):
            raise MalformedBoardError(
                f"Adjacency describes {len(adjacency)} nodes, geometry describes {len(node_map)}")

        adjacency_map: Dict[int, FrozenSet[int]] = {}
        for node_id, neighbor_ids in adjacency.items():
            neighbors = frozenset(neighbor_ids)
            unknown = neighbors - node_map.keys()
            if unknown:
                raise MalformedBoardError(
                    f"Node {node_id} references unknown neighbors {sorted(unknown)}")
            adjacency_map[node_id] = neighbors

        if sides is None:
            sides = GameDefaults.SIDES
        side_sets = tuple(frozenset(side) for side in sides)
        if len(side_sets) != 3:
            raise MalformedBoardError(f"Expected 3 side sets, got {len(side_sets)}")
        for index, side in enumerate(side_sets, start=1):
            if not side:
                raise MalformedBoardError(f"Side {index} is empty")
            unknown = side - node_map.keys()
            if unknown:
                raise MalformedBoardError(f"Side {index} references unknown nodes {sorted(unknown)}")

        self._nodes = MappingProxyType(node_map)
        self._adjacency = MappingProxyType(adjacency_map)
        self._node_ids = frozenset(node_map)
        self.sides: Tuple[FrozenSet[int], FrozenSet[int], FrozenSet[int]] = side_sets

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id) -> bool:
        return node_id in self._nodes

    @property
    def nodes(self) -> Mapping[int, Node]:
        return self._nodes

    def all_node_ids(self) -> FrozenSet[int]:
        """Get the ids of every node on the board."""
        return self._node_ids

    def neighbors(self, node_id: int) -> FrozenSet[int]:
        """
        Get all nodes adjacent to the given node.

        Args:
            node_id: ID of the node to get neighbors for

        Returns:
            Frozen set of adjacent node IDs

        Raises:
            UnknownNodeError: If node doesn't exist
        """
        try:
            return self._adjacency[node_id]
        except (KeyError, TypeError):
            raise UnknownNodeError(node_id) from None

    @classmethod
    def from_feeds(cls, coordinates_text: str, adjacency_text: str,
                   sides: Optional[Sequence[Iterable[int]]] = None) -> "BoardGraph":
        """
        Build a board from the raw text of the two geometry feeds.

        Line N of each feed describes node N (1-based).

        Raises:
            MalformedBoardError: If either feed is malformed or they disagree
        """
        positions = parse_coordinates(coordinates_text)
        neighbor_lists = parse_adjacency(adjacency_text)
        if len(positions) != len(neighbor_lists):
            raise MalformedBoardError(
                f"Coordinates list {len(positions)} nodes, adjacency lists {len(neighbor_lists)}")

        nodes = [Node(index, position) for index, position in enumerate(positions, start=1)]
        adjacency = {index: neighbors for index, neighbors in enumerate(neighbor_lists, start=1)}
        return cls(nodes, adjacency, sides)

    @classmethod
    def from_files(cls, coordinates_path, adjacency_path,
                   sides: Optional[Sequence[Iterable[int]]] = None) -> "BoardGraph":
        """Build a board from the coordinates and adjacency files."""
        try:
            coordinates_text = Path(coordinates_path).read_text()
            adjacency_text = Path(adjacency_path).read_text()
        except OSError as e:
            raise MalformedBoardError(f"Cannot read board feeds: {e}") from e
        return cls.from_feeds(coordinates_text, adjacency_text, sides)

    @classmethod
    def triangle(cls, size: int = GameDefaults.BOARD_SIZE) -> "BoardGraph":
        """
        Generate a triangular board where each node connects to up to 6 neighbors.

        Perimeter nodes are numbered first: down the left edge, along the bottom
        edge, then up the right edge. Interior nodes follow in row order. The
        three edges are the side sets.

        Args:
            size: Number of nodes along each edge

        Raises:
            ValueError: If size is outside the configured limits
        """
        if not (BoardConfig.MIN_SIZE <= size <= BoardConfig.MAX_SIZE):
            raise ValueError(f"Board size must be between {BoardConfig.MIN_SIZE} and {BoardConfig.MAX_SIZE}")

        last = size - 1
        perimeter = [(row, 0) for row in range(size)]
        perimeter += [(last, col) for col in range(1, size)]
        perimeter += [(row, row) for row in range(last - 1, 0, -1)]

        ids: Dict[Tuple[int, int], int] = {}
        for cell in perimeter:
            ids[cell] = len(ids) + 1
        for row in range(size):
            for col in range(row + 1):
                if (row, col) not in ids:
                    ids[(row, col)] = len(ids) + 1

        nodes = []
        adjacency = {}
        for (row, col), node_id in ids.items():
            # Rows are centered so that the board forms an equilateral triangle
            x = 0.5 + (col - row / 2) / max(last, 1)
            y = row / max(last, 1) * (math.sqrt(3) / 2)
            nodes.append(Node(node_id, (x, y)))
            adjacency[node_id] = [ids[cell] for cell in _triangle_neighbors(row, col, size)]

        sides = (
            [ids[(row, 0)] for row in range(size)],
            [ids[(last, col)] for col in range(size)],
            [ids[(row, row)] for row in range(size)],
        )
        return cls(nodes, adjacency, sides)


def _triangle_neighbors(row: int, col: int, size: int) -> List[Tuple[int, int]]:
    potential = [
        (row, col - 1),      # West
        (row, col + 1),      # East
        (row - 1, col - 1),  # Northwest
        (row - 1, col),      # Northeast
        (row + 1, col),      # Southwest
        (row + 1, col + 1),  # Southeast
    ]
    return [(r, c) for r, c in potential if 0 <= r < size and 0 <= c <= r]


def parse_coordinates(content: str) -> List[Tuple[float, float]]:
    """
    Parse the coordinates feed: one "x y" pair per line.

    Raises:
        MalformedBoardError: If a line is not exactly two numbers or the feed is empty
    """
    positions = []
    for line_number, line in enumerate(content.strip().splitlines(), start=1):
        parts = line.split()
        if len(parts) != 2:
            raise MalformedBoardError(f"Coordinates line {line_number}: expected 2 values, got {len(parts)}")
        try:
            x, y = float(parts[0]), float(parts[1])
        except ValueError:
            raise MalformedBoardError(f"Coordinates line {line_number}: not a number") from None
        positions.append((x, y))

    if not positions:
        raise MalformedBoardError("Coordinates feed is empty")
    return positions


def parse_adjacency(content: str) -> List[List[int]]:
    """
    Parse the adjacency feed: the neighbor ids of node N on line N.

    The filler id 0 is dropped.

    Raises:
        MalformedBoardError: If a token is not an integer or the feed is empty
    """
    neighbor_lists = []
    for line_number, line in enumerate(content.strip().splitlines(), start=1):
        try:
            ids = [int(token) for token in line.split()]
        except ValueError:
            raise MalformedBoardError(f"Adjacency line {line_number}: not an integer") from None
        neighbor_lists.append([i for i in ids if i != BoardConfig.ADJACENCY_FILLER])

    if not neighbor_lists:
        raise MalformedBoardError("Adjacency feed is empty")
    return neighbor_lists


class GameState:
    """
    Occupancy of every node of one board.

    Claims are permanent: a node never goes back to UNCLAIMED and a claimed
    node is never overwritten.

    Attributes:
        board: The board this state covers
        history: Applied claims as (node_id, player), oldest first
    """

    def __init__(self, board: BoardGraph):
        self.board = board
        self._occupancy: Dict[int, Occupancy] = {
            node_id: Occupancy.UNCLAIMED for node_id in board.all_node_ids()
        }
        self.history: List[Tuple[int, Occupancy]] = []

    def occupancy_of(self, node_id: int) -> Occupancy:
        """
        Get the occupancy of a node.

        Raises:
            UnknownNodeError: If node doesn't exist
        """
        try:
            return self._occupancy[node_id]
        except (KeyError, TypeError):
            raise UnknownNodeError(node_id) from None

    def is_unclaimed(self, node_id: int) -> bool:
        return self.occupancy_of(node_id) is Occupancy.UNCLAIMED

    def claim(self, node_id: int, player: Occupancy) -> ClaimResult:
        """
        Claim a node for a player.

        Claiming an already-claimed node is a reported no-op, so a redelivered
        move is harmless.

        Args:
            node_id: ID of the node to claim
            player: PLAYER_A or PLAYER_B

        Returns:
            CLAIMED if the node changed hands, ALREADY_CLAIMED otherwise

        Raises:
            UnknownNodeError: If node doesn't exist
            ValueError: If player is UNCLAIMED
        """
        if player is Occupancy.UNCLAIMED:
            raise ValueError("Cannot claim a node for nobody")

        if self.occupancy_of(node_id) is not Occupancy.UNCLAIMED:
            return ClaimResult.ALREADY_CLAIMED

        self._occupancy[node_id] = player
        self.history.append((node_id, player))
        return ClaimResult.CLAIMED

    def claimed_by(self, player: Occupancy) -> FrozenSet[int]:
        return frozenset(node_id for node_id, occupancy in self._occupancy.items()
                         if occupancy is player)

    def snapshot(self) -> Mapping[int, Occupancy]:
        """Read-only copy of the occupancy of every node."""
        return MappingProxyType(dict(self._occupancy))


class WinDetector:
    """Decides whether a player's chain touches all three sides."""

    def __init__(self, board: BoardGraph, state: GameState):
        self.board = board
        self.state = state

    def has_won(self, player: Occupancy, last_moved_node_id: int) -> bool:
        """
        Check whether the chain containing the last moved node wins.

        Breadth-first search from the last moved node through nodes of the same
        player. Stops as soon as all three sides have been touched.

        Args:
            player: Player who just moved
            last_moved_node_id: Node the player just claimed

        Returns:
            True if the chain touches every side, False otherwise

        Raises:
            UnknownNodeError: If the node doesn't exist
        """
        if self.state.occupancy_of(last_moved_node_id) is not player:
            return False

        side1, side2, side3 = self.board.sides
        touches_side1 = touches_side2 = touches_side3 = False

        queue = deque([last_moved_node_id])
        visited = {last_moved_node_id}

        while queue:
            node_id = queue.popleft()

            touches_side1 = touches_side1 or node_id in side1
            touches_side2 = touches_side2 or node_id in side2
            touches_side3 = touches_side3 or node_id in side3
            if touches_side1 and touches_side2 and touches_side3:
                return True

            for neighbor_id in self.board.neighbors(node_id):
                if neighbor_id in visited:
                    continue
                if self.state.occupancy_of(neighbor_id) is not player:
                    continue
                visited.add(neighbor_id)
                queue.append(neighbor_id)

        return False


@dataclass(frozen=True)
class MoveResult:
    """
    Result of applying a move to a session.

    Attributes:
        node_id: Node the move targeted
        player: Player who made the move
        claimed: Whether the node was newly claimed
        won: Whether the move completed a winning chain
    """
    node_id: int
    player: Occupancy
    claimed: bool
    won: bool


class GameSession:
    """
    One game on one board: the claim state plus its win detector.

    A session is created at game start and discarded on reload; nothing about
    a game lives outside of it.
    """

    def __init__(self, board: BoardGraph):
        self.board = board
        self.state = GameState(board)
        self.detector = WinDetector(board, self.state)

    def apply_move(self, node_id: int, player: Occupancy) -> MoveResult:
        """
        Claim a node and run the win check for the claiming player.

        The win check only runs when the claim actually changed the state.

        Raises:
            UnknownNodeError: If node doesn't exist
        """
        result = self.state.claim(node_id, player)
        if result is ClaimResult.ALREADY_CLAIMED:
            return MoveResult(node_id, player, claimed=False, won=False)

        won = self.detector.has_won(player, node_id)
        return MoveResult(node_id, player, claimed=True, won=won)
