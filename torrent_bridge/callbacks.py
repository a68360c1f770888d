"""
Torrent lifecycle callback system.

Provides a base class for custom callbacks that respond to torrent lifecycle
events (added, started, stopped, completed, removed). Callbacks receive a
TorrentInfo with the live row, the stored entry and any enriched metadata.

Callbacks are loaded from a configurable directory (CALLBACK_DIR in config)
or registered directly. Each callback file should define a class that
inherits from TorrentCallback.

Example callback implementation:

    from torrent_bridge.callbacks import TorrentCallback

    class MyCallback(TorrentCallback):
        async def on_completed(self, torrent_info):
            print(f"Torrent completed: {torrent_info.name}")

Completion is special: CallbackManager.run_completion() is the completion
action of the reconciler, and any exception from an on_completed hook
propagates so that the torrent is not marked as cleaned.
"""

import asyncio
import importlib.util
import sys
import traceback
from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .logger import logger
from .models import LiveRow, MediaMetadata, StoredEntry


class TorrentEvent(str, Enum):
    """Torrent lifecycle events."""
    ADDED = "added"
    STARTED = "started"
    STOPPED = "stopped"
    COMPLETED = "completed"
    REMOVED = "removed"


METHOD_MAP = {
    TorrentEvent.ADDED: "on_added",
    TorrentEvent.STARTED: "on_started",
    TorrentEvent.STOPPED: "on_stopped",
    TorrentEvent.COMPLETED: "on_completed",
    TorrentEvent.REMOVED: "on_removed",
}


@dataclass
class TorrentInfo:
    """
    Torrent information passed to callbacks.

    row is None when the torrent is not (or no longer) in the engine's
    snapshot, e.g. for an add that has not been listed yet.
    """
    stable_id: str
    name: str = ""
    save_path: str = ""
    category: Optional[str] = None
    progress: float = 0.0
    total_bytes: int = 0
    row: Optional[LiveRow] = None
    entry: Optional[StoredEntry] = None
    metadata: Optional[MediaMetadata] = None
    event: Optional[TorrentEvent] = None
    event_time: datetime = field(default_factory=datetime.now)

    @classmethod
    def build(
        cls,
        stable_id: str,
        event: TorrentEvent,
        row: Optional[LiveRow] = None,
        entry: Optional[StoredEntry] = None,
        metadata: Optional[MediaMetadata] = None,
    ) -> "TorrentInfo":
        name = row.name if row else ""
        if not name and entry is not None:
            name = entry.magnet
        save_path = (row.save_path if row else None) or (entry.save_path if entry else "")
        category = (row.category if row else None) or (entry.category if entry else None)
        return cls(
            stable_id=stable_id,
            name=name,
            save_path=save_path or "",
            category=category,
            progress=row.progress if row else 0.0,
            total_bytes=row.total_bytes if row else 0,
            row=row,
            entry=entry,
            metadata=metadata,
            event=event,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "stable_id": self.stable_id,
            "name": self.name,
            "save_path": self.save_path,
            "category": self.category,
            "progress": self.progress,
            "total_bytes": self.total_bytes,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "event": self.event.value if self.event else None,
            "event_time": self.event_time.isoformat(),
        }


class TorrentCallback(ABC):
    """
    Base class for torrent lifecycle callbacks.

    Subclass this and override the hooks you care about. Hooks for one event
    run concurrently across callbacks.
    """

    async def on_added(self, torrent_info: TorrentInfo) -> None:
        """Called when a torrent is added."""
        pass

    async def on_started(self, torrent_info: TorrentInfo) -> None:
        """Called when a torrent is resumed."""
        pass

    async def on_stopped(self, torrent_info: TorrentInfo) -> None:
        """Called when a torrent is paused."""
        pass

    async def on_completed(self, torrent_info: TorrentInfo) -> None:
        """Called once when a torrent crosses the completion threshold."""
        pass

    async def on_removed(self, torrent_info: TorrentInfo) -> None:
        """Called when a torrent is removed."""
        pass


class CallbackManager:
    """
    Manages loading and dispatching of torrent callbacks.

    Loads callback classes from Python files in the callback directory. Each
    file can define one or more TorrentCallback subclasses.
    """

    def __init__(self, callback_dir: Optional[str] = None):
        self._callbacks: List[TorrentCallback] = []
        self._callback_dir = callback_dir
        self._loaded = False

    @property
    def callbacks(self) -> List[TorrentCallback]:
        return list(self._callbacks)

    def load_callbacks(self) -> None:
        """
        Load all callback classes from the callback directory.

        Scans the directory for .py files, imports them, and instantiates
        any TorrentCallback subclasses found. Directly registered callbacks
        are kept.
        """
        self._loaded = True
        callback_dir = self._callback_dir

        if not callback_dir:
            logger.debug("No callback directory configured")
            return

        callback_path = Path(callback_dir)
        if not callback_path.is_dir():
            logger.warning(f"Callback directory does not exist: {callback_dir}")
            return

        py_files = sorted(callback_path.glob("*.py"))
        logger.info(f"Loading callbacks from {callback_dir}")

        for py_file in py_files:
            if py_file.name.startswith("_"):
                continue

            try:
                self._load_callback_file(py_file)
            except Exception as e:
                logger.error(f"Failed to load callback {py_file.name}: {e}")
                logger.debug(traceback.format_exc())

        logger.info(f"Loaded {len(self._callbacks)} callback(s)")

    def _load_callback_file(self, filepath: Path) -> None:
        module_name = f"torrent_bridge_callback_{filepath.stem}"

        spec = importlib.util.spec_from_file_location(module_name, filepath)
        if spec is None or spec.loader is None:
            logger.warning(f"Could not load spec for {filepath}")
            return

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module

        try:
            spec.loader.exec_module(module)
        except Exception:
            del sys.modules[module_name]
            raise

        for name in dir(module):
            obj = getattr(module, name)
            if (
                isinstance(obj, type)
                and issubclass(obj, TorrentCallback)
                and obj is not TorrentCallback
                and obj.__module__ == module_name
            ):
                try:
                    self._callbacks.append(obj())
                    logger.debug(f"Loaded callback: {name} from {filepath.name}")
                except Exception as e:
                    logger.error(f"Failed to instantiate {name}: {e}")

    def register(self, callback: TorrentCallback) -> None:
        if not isinstance(callback, TorrentCallback):
            raise TypeError("callback must be a TorrentCallback instance")
        self._callbacks.append(callback)
        logger.debug(f"Registered callback: {callback.__class__.__name__}")

    def unregister(self, callback: TorrentCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)
            logger.debug(f"Unregistered callback: {callback.__class__.__name__}")

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load_callbacks()

    async def dispatch(self, event: TorrentEvent, torrent_info: TorrentInfo) -> None:
        """
        Dispatch an event to all callbacks concurrently.

        A failing callback is logged and does not affect the others.
        """
        self._ensure_loaded()
        if not self._callbacks:
            return

        method_name = METHOD_MAP[event]
        torrent_info.event = event
        tasks = [
            self._safe_call(callback, getattr(callback, method_name), torrent_info)
            for callback in self._callbacks
        ]
        await asyncio.gather(*tasks)

    async def _safe_call(self, callback: TorrentCallback, method, torrent_info: TorrentInfo) -> None:
        try:
            await method(torrent_info)
        except Exception as e:
            logger.error(
                f"Callback {callback.__class__.__name__}.{method.__name__} "
                f"failed for {torrent_info.name}: {e}"
            )
            logger.debug(traceback.format_exc())

    async def run_completion(self, torrent_info: TorrentInfo) -> None:
        """
        Run every on_completed hook in registration order.

        Stops at and re-raises the first failure.
        """
        self._ensure_loaded()
        torrent_info.event = TorrentEvent.COMPLETED
        for callback in self._callbacks:
            await callback.on_completed(torrent_info)
