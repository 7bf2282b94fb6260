"""
HTTP Party Server for the Y connection game.

Stores, per party code, how many seats were handed out and the last move
pushed. It does not know the board and does not validate moves; the clients
keep the game state.
"""

import asyncio
import logging
import random
import string
import sys
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from aiohttp import web

from yconnect.client import NO_MOVE, PlayerRole
from yconnect.config import ServerConfig

# Set up logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@dataclass
class Party:
    """
    One game between two clients.

    Attributes:
        code: Party code shared by both players
        seats_taken: Number of getPlayerID calls answered with a seat
        last_move: Node id of the last pushed move, NO_MOVE before the first
        last_color: Color sent with the last pushed move
        last_activity: time.monotonic() of the last request touching the party
    """
    code: str
    seats_taken: int = 0
    last_move: int = NO_MOVE
    last_color: Optional[str] = None
    last_activity: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_activity = time.monotonic()

    def should_be_cleaned_up(self, ttl_seconds: float) -> bool:
        return time.monotonic() - self.last_activity > ttl_seconds


class PartyServer:
    """In-memory registry of parties exposed over the JSON API."""

    def __init__(self, party_ttl: Optional[float] = None, cleanup_interval: Optional[float] = None):
        self.parties: Dict[str, Party] = {}
        self.party_ttl = ServerConfig.PARTY_TTL if party_ttl is None else party_ttl
        self.cleanup_interval = ServerConfig.CLEANUP_INTERVAL if cleanup_interval is None else cleanup_interval
        self.cleanup_task: Optional[asyncio.Task] = None
        logger.info("Party server initialized")

    def _new_code(self) -> str:
        alphabet = string.ascii_lowercase + string.digits
        while True:
            code = ''.join(random.choices(alphabet, k=ServerConfig.PARTY_CODE_LENGTH))
            if code not in self.parties:
                return code

    def create_party(self, code: Optional[str] = None) -> Party:
        """
        Create a new party.

        Args:
            code: Party code to use; a random one is generated if None

        Raises:
            ValueError: If the code is already in use
        """
        code = code or self._new_code()
        if code in self.parties:
            raise ValueError(f"Party {code} already exists")

        party = Party(code)
        self.parties[code] = party
        logger.info(f"Party {code}: created")
        return party

    def join(self, code: str) -> PlayerRole:
        """Hand out the next seat of a party; INVALID for unknown or full parties."""
        party = self.parties.get(code)
        if party is None:
            logger.warning(f"Party {code}: join refused, unknown code")
            return PlayerRole.INVALID
        party.touch()
        if party.seats_taken >= PlayerRole.SECOND:
            logger.warning(f"Party {code}: join refused, party is full")
            return PlayerRole.INVALID

        party.seats_taken += 1
        role = PlayerRole(party.seats_taken)
        logger.info(f"Party {code}: seat {role.value} taken")
        return role

    def push_move(self, code: str, node_id: int, color: str) -> bool:
        """
        Record a move. Pushing the current last move again changes nothing.

        Returns:
            False if the party doesn't exist
        """
        party = self.parties.get(code)
        if party is None:
            return False
        party.touch()
        if node_id == party.last_move and color == party.last_color:
            logger.debug(f"Party {code}: duplicate move {node_id} ignored")
            return True

        party.last_move = node_id
        party.last_color = color
        logger.info(f"Party {code}: {color} played {node_id}")
        return True

    def last_move(self, code: str) -> int:
        party = self.parties.get(code)
        if party is None:
            return NO_MOVE
        party.touch()
        return party.last_move

    def remove_party(self, code: str) -> bool:
        if self.parties.pop(code, None) is None:
            return False
        logger.info(f"Removed party {code}")
        return True

    # HTTP handlers

    async def handle_create_party(self, request: web.Request) -> web.Response:
        party = self.create_party()
        return web.json_response({"partyCode": party.code})

    async def handle_get_player_id(self, request: web.Request) -> web.Response:
        code = request.query.get("partyCode", "")
        role = self.join(code)
        return web.json_response({"playerId": int(role)})

    async def handle_push_move(self, request: web.Request) -> web.Response:
        try:
            data = await request.json()
            code = data["partyCode"]
            node_id = data["nodeId"]
            color = data["color"]
        except (ValueError, KeyError, TypeError) as e:
            return web.json_response({"error": f"Invalid move request: {e}"}, status=400)

        if not isinstance(node_id, int) or isinstance(node_id, bool) or node_id <= 0:
            return web.json_response({"error": "nodeId must be a positive integer"}, status=400)
        if not isinstance(code, str) or not isinstance(color, str):
            return web.json_response({"error": "partyCode and color must be strings"}, status=400)

        if not self.push_move(code, node_id, color):
            return web.json_response({"error": f"Unknown party {code}"}, status=404)
        return web.json_response({"success": True})

    async def handle_get_move(self, request: web.Request) -> web.Response:
        code = request.query.get("partyCode", "")
        return web.json_response({"nodeId": self.last_move(code)})

    def make_app(self) -> web.Application:
        """Build the aiohttp application serving the party API."""
        app = web.Application()
        prefix = ServerConfig.API_PREFIX
        app.router.add_post(f"{prefix}/createParty", self.handle_create_party)
        app.router.add_get(f"{prefix}/getPlayerID", self.handle_get_player_id)
        app.router.add_post(f"{prefix}/pushMove", self.handle_push_move)
        app.router.add_get(f"{prefix}/getMove", self.handle_get_move)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, app: web.Application) -> None:
        self.start_cleanup_task()

    async def _on_cleanup(self, app: web.Application) -> None:
        self.stop_cleanup_task()

    def start_cleanup_task(self) -> None:
        """Start the automatic party cleanup task."""
        if self.cleanup_task is None or self.cleanup_task.done():
            self.cleanup_task = asyncio.create_task(self.cleanup_loop())

    def stop_cleanup_task(self) -> None:
        """Stop the automatic party cleanup task."""
        if self.cleanup_task and not self.cleanup_task.done():
            self.cleanup_task.cancel()

    def cleanup_idle_parties(self) -> List[str]:
        """Remove parties idle for longer than the TTL and return their codes."""
        stale = [code for code, party in self.parties.items()
                 if party.should_be_cleaned_up(self.party_ttl)]
        for code in stale:
            logger.info(f"Cleaning up party {code} (idle)")
            self.remove_party(code)
        return stale

    async def cleanup_loop(self) -> None:
        """Periodically drop idle parties."""
        try:
            while True:
                await asyncio.sleep(self.cleanup_interval)
                self.cleanup_idle_parties()
        except asyncio.CancelledError:
            logger.info("Party cleanup loop cancelled")
            raise


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Run the party server until interrupted."""
    host = ServerConfig.HOST if host is None else host
    port = ServerConfig.PORT if port is None else port

    server = PartyServer()
    logger.info(f"Party server listening on http://{host}:{port}{ServerConfig.API_PREFIX}")
    web.run_app(server.make_app(), host=host, port=port, print=None)
    logger.info("Server shutdown complete")


USAGE = "Usage: yconnect-server [host] [port]"


def main() -> None:
    """Run the party server from the command line."""
    host = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        port = int(sys.argv[2]) if len(sys.argv) > 2 else None
    except ValueError:
        print(USAGE)
        sys.exit(2)
    run_server(host, port)


if __name__ == "__main__":
    main()
