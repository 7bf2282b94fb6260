"""
Remote session client for the party server.

The server is a plain request/response JSON API; it keeps no per-client
state beyond the seats handed out and the last move pushed for a party.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Dict, Optional

import aiohttp

from yconnect.config import ServerConfig

logger = logging.getLogger(__name__)

# getMove answer meaning "no move yet"
NO_MOVE = 0


class SessionError(Exception):
    """Base class for session and transport errors."""


class TransportError(SessionError):
    """The party server could not be reached or answered garbage."""


class InvalidSessionError(SessionError):
    """The party code is unknown to the server or the party is full."""


class PlayerRole(IntEnum):
    """Seat assigned by the server for a party code."""
    INVALID = 0
    FIRST = 1
    SECOND = 2


class RemoteSession(ABC):
    """
    The three calls a client makes against the party server.

    Every call raises TransportError on failure.
    """

    party_code: str

    @abstractmethod
    async def get_player_id(self) -> PlayerRole:
        """Ask the server which seat this client holds."""

    @abstractmethod
    async def push_move(self, node_id: int, color: str) -> None:
        """Record this client's move."""

    @abstractmethod
    async def get_move(self) -> int:
        """Return the latest move of the party, or NO_MOVE."""

    async def close(self) -> None:
        pass


class SessionClient(RemoteSession):
    """
    aiohttp implementation of RemoteSession.

    Usage:
        async with SessionClient("ab12cd") as client:
            role = await client.get_player_id()
    """

    def __init__(self, party_code: str, base_url: Optional[str] = None,
                 timeout: Optional[float] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize the client.

        Args:
            party_code: Code shared by both players of a game
            base_url: Server root URL, e.g. "http://127.0.0.1:5000"
            timeout: Per-request timeout in seconds
            session: Existing aiohttp session to reuse (not closed by us)
        """
        self.party_code = party_code
        self.base_url = (base_url or ServerConfig.BASE_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or ServerConfig.REQUEST_TIMEOUT)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{ServerConfig.API_PREFIX}/{endpoint}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session if we created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Perform one request and decode its JSON body.

        Raises:
            TransportError: On connection errors, timeouts, non-2xx answers
                            and bodies that are not a JSON object
        """
        url = self._url(endpoint)
        try:
            async with self._get_session().request(method, url, timeout=self.timeout, **kwargs) as resp:
                if resp.status >= 400:
                    raise TransportError(f"{method} {endpoint} failed with HTTP {resp.status}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {endpoint} failed: {e!r}") from e
        except ValueError as e:
            raise TransportError(f"{method} {endpoint} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise TransportError(f"{method} {endpoint} returned {type(data).__name__}, expected an object")
        return data

    @staticmethod
    def _read_int(data: Dict[str, Any], key: str) -> int:
        value = data.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise TransportError(f"Response field {key!r} missing or not an integer: {value!r}")
        return value

    async def get_player_id(self) -> PlayerRole:
        data = await self._request("GET", "getPlayerID", params={"partyCode": self.party_code})
        player_id = self._read_int(data, "playerId")
        try:
            role = PlayerRole(player_id)
        except ValueError:
            raise TransportError(f"Server assigned unknown player id {player_id}") from None
        logger.debug(f"[{self.party_code}] Assigned player id {player_id}")
        return role

    async def push_move(self, node_id: int, color: str) -> None:
        payload = {"partyCode": self.party_code, "nodeId": node_id, "color": color}
        await self._request("POST", "pushMove", json=payload)
        logger.debug(f"[{self.party_code}] Pushed move {node_id} ({color})")

    async def get_move(self) -> int:
        data = await self._request("GET", "getMove", params={"partyCode": self.party_code})
        node_id = self._read_int(data, "nodeId")
        if node_id < 0:
            raise TransportError(f"Server returned negative node id {node_id}")
        return node_id

    async def create_party(self) -> str:
        """
        Ask the server for a fresh party code and switch to it.

        Returns:
            The new party code
        """
        data = await self._request("POST", "createParty")
        code = data.get("partyCode")
        if not isinstance(code, str) or not code:
            raise TransportError(f"Server returned invalid party code: {code!r}")
        self.party_code = code
        logger.info(f"Created party {code}")
        return code
