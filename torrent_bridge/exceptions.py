"""
Exception hierarchy for torrent-bridge.

Engine failures are surfaced to the immediate caller as readable messages;
none of these are allowed to escape the reconciliation loop.
"""


class TorrentBridgeError(Exception):
    """Base class for all torrent-bridge errors."""


class EngineError(TorrentBridgeError):
    """A torrent engine command (add/pause/resume/remove/list) failed."""


class EngineUnavailableError(EngineError):
    """The torrent engine is unreachable or not initialised yet."""


class StoreError(TorrentBridgeError):
    """Persisted state could not be written."""


class RpcError(TorrentBridgeError):
    """A Transmission RPC method could not be carried out; maps to HTTP 400."""


class CleanupError(TorrentBridgeError):
    """A completed torrent could not be moved into the media library."""
