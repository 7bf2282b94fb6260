"""
Client-side turn coordination.

Each client runs one TurnCoordinator. The two coordinators never talk to each
other directly: the local player's moves are pushed to the party server and
the opponent's moves are polled from it. Strict alternation is kept by the
state machine below, not by the server.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from yconnect.client import NO_MOVE, InvalidSessionError, PlayerRole, RemoteSession, TransportError
from yconnect.config import GameDefaults
from yconnect.core import BoardGraph, GameSession, MoveResult, Occupancy, UnknownNodeError

logger = logging.getLogger(__name__)


class TurnState(Enum):
    """Enumeration for coordinator states."""
    STARTING = "starting"
    AWAITING_LOCAL_MOVE = "awaiting_local_move"
    LOCAL_MOVE_PENDING = "local_move_pending"
    AWAITING_REMOTE_MOVE = "awaiting_remote_move"
    GAME_OVER = "game_over"


class Outcome(Enum):
    """How a game ended, seen from the local player."""
    LOCAL_WIN = "local_win"
    LOCAL_LOSS = "local_loss"
    INVALID_SESSION = "invalid_session"
    TRANSPORT_ERROR = "transport_error"
    TIMED_OUT = "timed_out"
    ABANDONED = "abandoned"

    @property
    def is_fatal(self) -> bool:
        """Whether the game ended without a winner being decided."""
        return self not in (Outcome.LOCAL_WIN, Outcome.LOCAL_LOSS)


class MoveVerdict(Enum):
    """Answer to a local move submission."""
    ACCEPTED = "accepted"
    UNKNOWN_NODE = "unknown_node"
    ALREADY_CLAIMED = "already_claimed"
    NOT_YOUR_TURN = "not_your_turn"


MoveSource = Callable[["TurnCoordinator"], Awaitable[int]]


class TurnCoordinator:
    """
    State machine tracking whose turn it is for one client.

    Typical use:
        coordinator = TurnCoordinator(SessionClient(code), BoardGraph.triangle())
        outcome = await coordinator.run(ask_user_for_node)

    Attributes:
        remote: Connection to the party server
        session: The game being played
        state: Current TurnState
        outcome: How the game ended, None while running
        local_player: Occupancy used for local moves, known after start()
    """

    def __init__(self, remote: RemoteSession, board: BoardGraph,
                 poll_interval: Optional[float] = None, max_polls: Optional[int] = None):
        """
        Initialize the coordinator.

        Args:
            remote: Connection to the party server
            board: Board to play on; a fresh GameSession is created for it
            poll_interval: Seconds to wait before each getMove poll
            max_polls: Polls allowed per remote move; None polls forever
        """
        self.remote = remote
        self.session = GameSession(board)
        self.poll_interval = GameDefaults.POLL_INTERVAL if poll_interval is None else poll_interval
        self.max_polls = GameDefaults.MAX_POLLS if max_polls is None else max_polls

        self.state = TurnState.STARTING
        self.outcome: Optional[Outcome] = None
        self.role: Optional[PlayerRole] = None
        self.local_player: Optional[Occupancy] = None

        # Callbacks
        self.on_state_changed: Optional[Callable[["TurnCoordinator"], None]] = None
        self.on_move_applied: Optional[Callable[[MoveResult], None]] = None
        self.on_game_over: Optional[Callable[[Outcome], None]] = None

    @property
    def party_code(self) -> str:
        return getattr(self.remote, "party_code", "?")

    @property
    def remote_player(self) -> Optional[Occupancy]:
        return self.local_player.opponent if self.local_player else None

    @property
    def is_my_turn(self) -> bool:
        return self.state is TurnState.AWAITING_LOCAL_MOVE

    @property
    def is_over(self) -> bool:
        return self.state is TurnState.GAME_OVER

    def _set_state(self, state: TurnState) -> None:
        self.state = state
        logger.debug(f"[{self.party_code}] State -> {state.value}")
        if self.on_state_changed:
            self.on_state_changed(self)

    def _finish(self, outcome: Outcome) -> None:
        if self.outcome is not None:
            return
        self.outcome = outcome
        log = logger.error if outcome in (Outcome.TRANSPORT_ERROR, Outcome.TIMED_OUT) else logger.info
        log(f"[{self.party_code}] Game over: {outcome.value}")
        self._set_state(TurnState.GAME_OVER)
        if self.on_game_over:
            self.on_game_over(outcome)

    def _applied(self, result: MoveResult) -> None:
        if self.on_move_applied:
            self.on_move_applied(result)

    async def start(self) -> TurnState:
        """
        Negotiate the seat with the server.

        Returns:
            AWAITING_LOCAL_MOVE for the first player, AWAITING_REMOTE_MOVE for
            the second, GAME_OVER on a transport failure

        Raises:
            InvalidSessionError: If the server doesn't know the party code
        """
        if self.state is not TurnState.STARTING:
            raise RuntimeError(f"Coordinator already started (state {self.state.value})")

        try:
            role = await self.remote.get_player_id()
        except TransportError as e:
            logger.error(f"[{self.party_code}] Failed to get player id: {e}")
            self._finish(Outcome.TRANSPORT_ERROR)
            return self.state

        self.role = role
        if role is PlayerRole.INVALID:
            logger.error(f"[{self.party_code}] Invalid party code")
            self._finish(Outcome.INVALID_SESSION)
            raise InvalidSessionError(f"Party code {self.party_code!r} is not valid")

        if role is PlayerRole.FIRST:
            self.local_player = Occupancy.PLAYER_A
            logger.info(f"[{self.party_code}] Joined as first player, share the party code with your opponent")
            self._set_state(TurnState.AWAITING_LOCAL_MOVE)
        else:
            self.local_player = Occupancy.PLAYER_B
            logger.info(f"[{self.party_code}] Joined as second player, waiting for the first move")
            self._set_state(TurnState.AWAITING_REMOTE_MOVE)
        return self.state

    async def submit_move(self, node_id: int) -> MoveVerdict:
        """
        Play a local move.

        Rejected moves leave the state untouched and make no remote call.

        Args:
            node_id: Node the local player wants to claim

        Returns:
            ACCEPTED if the move was applied, otherwise why it was rejected
        """
        if self.state is not TurnState.AWAITING_LOCAL_MOVE:
            logger.warning(f"[{self.party_code}] Move {node_id} rejected: not your turn")
            return MoveVerdict.NOT_YOUR_TURN

        try:
            unclaimed = self.session.state.is_unclaimed(node_id)
        except UnknownNodeError:
            logger.warning(f"[{self.party_code}] Move {node_id} rejected: no such node")
            return MoveVerdict.UNKNOWN_NODE
        if not unclaimed:
            logger.warning(f"[{self.party_code}] Move {node_id} rejected: already claimed")
            return MoveVerdict.ALREADY_CLAIMED

        self._set_state(TurnState.LOCAL_MOVE_PENDING)
        result = self.session.apply_move(node_id, self.local_player)
        self._applied(result)

        # A winning move is pushed too so the opponent sees the final position
        try:
            await self.remote.push_move(node_id, self.local_player.color)
        except TransportError as e:
            logger.error(f"[{self.party_code}] Failed to push move {node_id}: {e}")
            self._finish(Outcome.TRANSPORT_ERROR)
            return MoveVerdict.ACCEPTED

        if self.is_over:
            return MoveVerdict.ACCEPTED

        if result.won:
            self._finish(Outcome.LOCAL_WIN)
        else:
            self._set_state(TurnState.AWAITING_REMOTE_MOVE)
        return MoveVerdict.ACCEPTED

    async def poll_remote_move(self) -> Optional[MoveResult]:
        """
        Poll the server until the opponent's move arrives, then apply it.

        The sentinel, repeats of already-applied moves (including the echo of
        our own last move) and ids not on the board are skipped.

        Returns:
            The applied move, or None if the game ended without one
        """
        if self.state is not TurnState.AWAITING_REMOTE_MOVE:
            raise RuntimeError(f"Not waiting for a remote move (state {self.state.value})")

        polls = 0
        while True:
            if self.max_polls is not None and polls >= self.max_polls:
                logger.error(f"[{self.party_code}] No remote move after {polls} polls")
                self._finish(Outcome.TIMED_OUT)
                return None

            await asyncio.sleep(self.poll_interval)
            polls += 1
            if self.is_over:
                return None

            try:
                node_id = await self.remote.get_move()
            except TransportError as e:
                logger.error(f"[{self.party_code}] Failed to fetch remote move: {e}")
                self._finish(Outcome.TRANSPORT_ERROR)
                return None
            if self.is_over:
                return None

            if node_id == NO_MOVE:
                continue

            try:
                unclaimed = self.session.state.is_unclaimed(node_id)
            except UnknownNodeError:
                logger.warning(f"[{self.party_code}] Ignoring remote move on unknown node {node_id}")
                continue
            if not unclaimed:
                continue

            result = self.session.apply_move(node_id, self.remote_player)
            self._applied(result)
            logger.info(f"[{self.party_code}] Opponent claimed node {node_id}")

            if result.won:
                self._finish(Outcome.LOCAL_LOSS)
            else:
                self._set_state(TurnState.AWAITING_LOCAL_MOVE)
            return result

    async def run(self, move_source: MoveSource) -> Outcome:
        """
        Play a whole game.

        Args:
            move_source: Coroutine function returning the next local node id;
                         called again after every rejected move

        Returns:
            The outcome of the game
        """
        try:
            if self.state is TurnState.STARTING:
                try:
                    await self.start()
                except InvalidSessionError:
                    return self.outcome

            while not self.is_over:
                if self.state is TurnState.AWAITING_LOCAL_MOVE:
                    node_id = await move_source(self)
                    if self.is_over:
                        break
                    await self.submit_move(node_id)
                elif self.state is TurnState.AWAITING_REMOTE_MOVE:
                    await self.poll_remote_move()
                else:
                    raise RuntimeError(f"Unexpected state {self.state.value}")

            return self.outcome

        except (asyncio.CancelledError, Exception):
            self._finish(Outcome.ABANDONED)
            raise

    async def close(self) -> None:
        """Tear the session down. Pending polls are not resumed."""
        self._finish(Outcome.ABANDONED)
        await self.remote.close()
