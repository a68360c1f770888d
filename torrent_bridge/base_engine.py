"""
Abstract base class defining the interface for torrent engines.

The reconciler only talks to the engine through this interface. Calls are
synchronous and are always made from the reconciler's single engine worker
thread, so implementations need no locking of their own.

Ordinal indexes returned by list_snapshot() are positions in that one
snapshot; stable_id_at() must be called against the same snapshot.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import EngineStatus


class BaseTorrentEngine(ABC):
    """Abstract base class for torrent engine implementations."""

    @abstractmethod
    def add(self, magnet_uri: str, save_path: str) -> None:
        """
        Add a torrent from a magnet link.

        Raises:
            EngineError: if the engine rejected the magnet
            EngineUnavailableError: if the engine cannot be reached
        """
        pass

    @abstractmethod
    def list_snapshot(self, max_items: int) -> List[EngineStatus]:
        """
        Take a snapshot of at most max_items torrents.

        The position of each status in the returned list is its ordinal
        index until the next call.

        Raises:
            EngineUnavailableError: if the engine cannot be reached
        """
        pass

    @abstractmethod
    def stable_id_at(self, ordinal_index: int) -> Optional[str]:
        """Lowercase hex info hash of the torrent at an ordinal of the last snapshot."""
        pass

    @abstractmethod
    def pause(self, stable_id: str) -> bool:
        """Pause a torrent. Returns False when the torrent is unknown (no-op)."""
        pass

    @abstractmethod
    def resume(self, stable_id: str) -> bool:
        """Resume a torrent. Returns False when the torrent is unknown (no-op)."""
        pass

    @abstractmethod
    def remove(self, stable_id: str, delete_files: bool = False) -> bool:
        """Remove a torrent, optionally with its data. Returns False when unknown."""
        pass
