"""
torrent-bridge - A Transmission-compatible front end for a torrent engine.

Keeps a persisted set of magnet links reconciled against a torrent engine,
serves Transmission RPC for Sonarr/Radarr, and files completed downloads
into a media library.
"""

__version__ = "0.1.0"

from .client import TorrentBridgeClient
from .config import Config

__all__ = ["TorrentBridgeClient", "Config", "__version__"]
