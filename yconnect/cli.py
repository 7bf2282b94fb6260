#!/usr/bin/env python3
"""
Terminal client for the Y connection game.

Usage:
    yconnect-play <party_code> [server_url] [coordinates_file adjacency_file]

Use "new" as the party code to create a party on the server first. Without
board files, coordinates.txt and adjacency.txt are used when both exist in the
working directory, otherwise the built-in triangle board.
"""

import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

from yconnect.client import NO_MOVE, SessionClient, SessionError
from yconnect.config import BoardConfig, ServerConfig
from yconnect.coordinator import Outcome, TurnCoordinator
from yconnect.core import BoardGraph, GameError, MoveResult, Occupancy

# Set up logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

_MARKS = {
    Occupancy.UNCLAIMED: ".",
    Occupancy.PLAYER_A: "A",
    Occupancy.PLAYER_B: "B",
}

_MESSAGES = {
    Outcome.LOCAL_WIN: "You win!",
    Outcome.LOCAL_LOSS: "You lose!",
    Outcome.INVALID_SESSION: "Invalid party code",
    Outcome.TRANSPORT_ERROR: "An error occurred on the server",
    Outcome.TIMED_OUT: "Opponent did not answer in time",
    Outcome.ABANDONED: "Game abandoned",
}


def render_board(coordinator: TurnCoordinator) -> str:
    """Text view of the claims: one "id:mark" cell per node, ten per line."""
    snapshot = coordinator.session.state.snapshot()
    cells = [f"{node_id:>3}:{_MARKS[snapshot[node_id]]}" for node_id in sorted(snapshot)]
    lines = ["  ".join(cells[i:i + 10]) for i in range(0, len(cells), 10)]

    if coordinator.local_player is not None:
        lines.append(f"You are {_MARKS[coordinator.local_player]} ({coordinator.local_player.color})")
    return "\n".join(lines)


def _read_line(prompt: str) -> "asyncio.Future[str]":
    """
    Read one line of stdin on a daemon thread.

    A pending input() never holds up interpreter shutdown after Ctrl-C.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(setter, value) -> None:
        if not future.done():
            setter(value)

    def reader() -> None:
        try:
            line = input(prompt)
        except Exception as e:
            callback = (future.set_exception, e)
        else:
            callback = (future.set_result, line)
        try:
            loop.call_soon_threadsafe(deliver, *callback)
        except RuntimeError:
            # Loop already closed, nobody is waiting for the line
            pass

    threading.Thread(target=reader, name="stdin-reader", daemon=True).start()
    return future


async def prompt_for_move(coordinator: TurnCoordinator) -> int:
    """Read node ids from stdin until one parses. End of input abandons the game."""
    while True:
        try:
            text = await _read_line("Your move> ")
        except EOFError:
            print()
            await coordinator.close()
            return NO_MOVE
        try:
            return int(text.strip())
        except ValueError:
            print("Invalid node ID")


def load_board(args: List[str]) -> BoardGraph:
    """
    Board from the two files given, else from coordinates.txt and
    adjacency.txt in the working directory, else the generated triangle.
    """
    if len(args) >= 2:
        return BoardGraph.from_files(args[0], args[1])
    coordinates = Path(BoardConfig.COORDINATES_FILE)
    adjacency = Path(BoardConfig.ADJACENCY_FILE)
    if coordinates.is_file() and adjacency.is_file():
        logger.info(f"Loading board from {coordinates} and {adjacency}")
        return BoardGraph.from_files(coordinates, adjacency)
    return BoardGraph.triangle()


async def play(party_code: str, server_url: Optional[str], board: BoardGraph) -> Outcome:
    """Run one game in the terminal and return its outcome."""
    client = SessionClient(party_code, base_url=server_url)
    coordinator = TurnCoordinator(client, board)

    def on_state_changed(c: TurnCoordinator) -> None:
        if c.is_my_turn:
            print(render_board(c))

    def on_move_applied(result: MoveResult) -> None:
        who = "You" if result.player is coordinator.local_player else "Opponent"
        print(f"{who} claimed node {result.node_id}")

    coordinator.on_state_changed = on_state_changed
    coordinator.on_move_applied = on_move_applied

    try:
        if party_code == "new":
            party_code = await client.create_party()
            print(f"Share this party code with your friend: {party_code}")
        outcome = await coordinator.run(prompt_for_move)
    finally:
        await client.close()

    print(render_board(coordinator))
    print(_MESSAGES[outcome])
    return outcome


def main() -> None:
    """Run the terminal client."""
    if len(sys.argv) < 2:
        print(__doc__.strip())
        sys.exit(2)

    party_code = sys.argv[1]
    server_url = sys.argv[2] if len(sys.argv) > 2 else ServerConfig.BASE_URL

    try:
        board = load_board(sys.argv[3:])
    except GameError as e:
        logger.error(f"Cannot load board: {e}")
        sys.exit(1)

    try:
        outcome = asyncio.run(play(party_code, server_url, board))
    except SessionError as e:
        logger.error(f"Cannot create party: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Client shutting down...")
        sys.exit(130)

    sys.exit(1 if outcome.is_fatal else 0)


if __name__ == "__main__":
    main()
