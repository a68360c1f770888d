"""
Factory for creating torrent engine instances.

Selects the engine backend named by ENGINE_TYPE in the configuration.
"""

from .base_engine import BaseTorrentEngine
from .config import Config
from .transmission_engine import TransmissionEngine


def get_engine(config: Config) -> BaseTorrentEngine:
    """
    Create the torrent engine for the given configuration.

    Raises:
        ValueError: If the engine type is not supported
    """
    engine_type = (config.ENGINE_TYPE or "").lower()

    if engine_type == "transmission":
        return TransmissionEngine(
            host=config.TRANSMISSION_HOST,
            port=config.TRANSMISSION_PORT,
            path=config.TRANSMISSION_PATH,
            username=config.TRANSMISSION_USERNAME,
            password=config.TRANSMISSION_PASSWORD,
        )

    raise ValueError(f"Unknown engine type: {config.ENGINE_TYPE}")
