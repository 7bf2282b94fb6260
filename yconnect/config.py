# ===== SERVER CONFIGURATION =====
class ServerConfig:
    """Party server and HTTP client configuration."""
    HOST = "127.0.0.1"
    PORT = 5000
    BASE_URL = f"http://{HOST}:{PORT}"
    API_PREFIX = "/api"

    # Per-request timeout for the client
    REQUEST_TIMEOUT = 10.0  # seconds

    # Idle parties are dropped after this long
    PARTY_TTL = 3600.0  # seconds
    CLEANUP_INTERVAL = 60.0  # seconds

    PARTY_CODE_LENGTH = 6


# ===== GAME DEFAULTS =====
class GameDefaults:
    """Default settings for a game session."""

    # Delay between two getMove polls
    POLL_INTERVAL = 1.0  # seconds

    # None polls until a move arrives or the transport fails
    MAX_POLLS = None

    # Side sets of the standard 9-per-edge board
    SIDES = (
        frozenset(range(1, 10)),
        frozenset(range(9, 18)),
        frozenset(list(range(17, 25)) + [1]),
    )

    BOARD_SIZE = 9

    # Wire colors
    COLOR_PLAYER_A = "blue"
    COLOR_PLAYER_B = "red"
    COLOR_UNCLAIMED = "black"


# ===== BOARD GEOMETRY =====
class BoardConfig:
    """Board loading and generation limits."""

    MIN_SIZE = 2
    MAX_SIZE = 30

    COORDINATES_FILE = "coordinates.txt"
    ADJACENCY_FILE = "adjacency.txt"

    # Adjacency filler meaning "no neighbor"
    ADJACENCY_FILLER = 0
