import os
import tempfile
import dotenv


dotenv.load_dotenv()


# Defaults
DEBUG = False
VERBOSE = False
LOG_PATH = "torrent_bridge.log"
LOG_LEVEL = "DEBUG" if DEBUG else "INFO"
LOG_ROTATION = "1 week"
LOG_RETENTION = "1 month"

HOME = os.path.expanduser("~")
STATE_DIR = os.path.join(HOME, ".torrent_bridge")
DOWNLOAD_DIR = os.path.join(HOME, "Downloads")
MOVIES_DIR = ""
TV_DIR = ""
AUTO_CLEANUP = False
CALLBACK_DIR = ""

# Reconciliation loop
POLL_INTERVAL = 1.0
MAX_TORRENTS = 200
SETTLE_DELAY = 0.4                     # Clamped to [0.25, 0.6]
COMPLETION_THRESHOLD = 0.999
ENRICH_MAX_ATTEMPTS = 6
ENRICH_INTERVAL = 0.3

# Transmission-compatible RPC
RPC_PATH = "/transmission/rpc"
RPC_USERNAME = ""
RPC_PASSWORD = ""

# Underlying engine
ENGINE_TYPE = "transmission"
TRANSMISSION_HOST = "localhost"
TRANSMISSION_PORT = 9091
TRANSMISSION_PATH = "/transmission/rpc"
TRANSMISSION_USERNAME = ""
TRANSMISSION_PASSWORD = ""

# Metadata services
TRAKT_CLIENT_ID = ""
FANART_API_KEY = ""
METADATA_TIMEOUT = 10.0


def _as_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


class Config:
    DEBUG = _as_bool(os.getenv("DEBUG", DEBUG))
    VERBOSE = _as_bool(os.getenv("VERBOSE", VERBOSE))

    LOG_PATH = os.getenv("LOG_PATH", LOG_PATH)
    LOG_LEVEL = os.getenv("LOG_LEVEL", LOG_LEVEL)
    LOG_ROTATION = os.getenv("LOG_ROTATION", LOG_ROTATION)
    LOG_RETENTION = os.getenv("LOG_RETENTION", LOG_RETENTION)

    STATE_DIR = os.getenv("STATE_DIR", STATE_DIR)
    DOWNLOAD_DIR = os.getenv("DOWNLOAD_DIR", DOWNLOAD_DIR)
    MOVIES_DIR = os.getenv("MOVIES_DIR", MOVIES_DIR)
    TV_DIR = os.getenv("TV_DIR", TV_DIR)
    AUTO_CLEANUP = _as_bool(os.getenv("AUTO_CLEANUP", AUTO_CLEANUP))
    CALLBACK_DIR = os.getenv("CALLBACK_DIR", CALLBACK_DIR)

    POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", POLL_INTERVAL))
    MAX_TORRENTS = int(os.getenv("MAX_TORRENTS", MAX_TORRENTS))
    SETTLE_DELAY = float(os.getenv("SETTLE_DELAY", SETTLE_DELAY))
    COMPLETION_THRESHOLD = float(os.getenv("COMPLETION_THRESHOLD", COMPLETION_THRESHOLD))
    ENRICH_MAX_ATTEMPTS = int(os.getenv("ENRICH_MAX_ATTEMPTS", ENRICH_MAX_ATTEMPTS))
    ENRICH_INTERVAL = float(os.getenv("ENRICH_INTERVAL", ENRICH_INTERVAL))

    RPC_PATH = os.getenv("RPC_PATH", RPC_PATH)
    RPC_USERNAME = os.getenv("RPC_USERNAME", RPC_USERNAME)
    RPC_PASSWORD = os.getenv("RPC_PASSWORD", RPC_PASSWORD)

    ENGINE_TYPE = os.getenv("ENGINE_TYPE", ENGINE_TYPE)
    TRANSMISSION_HOST = os.getenv("TRANSMISSION_HOST", TRANSMISSION_HOST)
    TRANSMISSION_PORT = int(os.getenv("TRANSMISSION_PORT", TRANSMISSION_PORT))
    TRANSMISSION_PATH = os.getenv("TRANSMISSION_PATH", TRANSMISSION_PATH)
    TRANSMISSION_USERNAME = os.getenv("TRANSMISSION_USERNAME", TRANSMISSION_USERNAME)
    TRANSMISSION_PASSWORD = os.getenv("TRANSMISSION_PASSWORD", TRANSMISSION_PASSWORD)

    TRAKT_CLIENT_ID = os.getenv("TRAKT_CLIENT_ID", TRAKT_CLIENT_ID)
    FANART_API_KEY = os.getenv("FANART_API_KEY", FANART_API_KEY)
    METADATA_TIMEOUT = float(os.getenv("METADATA_TIMEOUT", METADATA_TIMEOUT))

    # Server Configuration
    HOST = os.getenv("HOST", "127.0.0.1")
    PORT = int(os.getenv("PORT", "9091"))

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(self, key, value)

    @property
    def settle_delay(self) -> float:
        """Settle delay clamped to the window in which engine flags take effect."""
        return min(max(float(self.SETTLE_DELAY), 0.25), 0.6)

    @property
    def auth_required(self) -> bool:
        return bool(self.RPC_USERNAME or self.RPC_PASSWORD)

    @property
    def rpc_url(self) -> str:
        return f"http://{self.HOST}:{self.PORT}{self.RPC_PATH}"


class TestConfig(Config):
    LOG_PATH = tempfile.NamedTemporaryFile().name
    STATE_DIR = os.path.join(tempfile.gettempdir(), "torrent_bridge_test_state")
    DOWNLOAD_DIR = os.path.join(tempfile.gettempdir(), "torrent_bridge_test_downloads")
    POLL_INTERVAL = 0.05
    SETTLE_DELAY = 0.25
    ENRICH_MAX_ATTEMPTS = 6
    ENRICH_INTERVAL = 0.0
    TRAKT_CLIENT_ID = ""
    FANART_API_KEY = ""
    CALLBACK_DIR = ""
    AUTO_CLEANUP = False
    MOVIES_DIR = ""
    TV_DIR = ""
