import dataclasses
import os
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from torrent_bridge.api.main import create_app
from torrent_bridge.base_engine import BaseTorrentEngine
from torrent_bridge.callbacks import CallbackManager, TorrentCallback
from torrent_bridge.config import TestConfig
from torrent_bridge.exceptions import EngineError, EngineUnavailableError
from torrent_bridge.magnet_link import MagnetLink, derive_key
from torrent_bridge.models import EngineStatus
from torrent_bridge.reconciler import Reconciler
from torrent_bridge.store import StateStore


HASH_A = "c12fe1c06bba254a9dc9f519b335aa7c1367a88a"
HASH_B = "dd8255ecdc7ca55fb0bbf81323d87062db1f6d1c"
MAGNET_A = f"magnet:?xt=urn:btih:{HASH_A}&dn=Some.Movie.2019.1080p.BluRay.x264"
MAGNET_B = f"magnet:?xt=urn:btih:{HASH_B.upper()}&dn=Some.Show.S02E05.720p.WEB"


class FakeEngine(BaseTorrentEngine):
    """In-memory engine; torrents are listed in insertion order."""

    def __init__(self):
        self.torrents: Dict[str, EngineStatus] = {}
        self.save_paths: Dict[str, str] = {}
        self.calls: List[tuple] = []
        self.available = True
        self.reject_adds = False
        self._ordinals: List[str] = []

    def _check(self):
        if not self.available:
            raise EngineUnavailableError("engine offline")

    def add(self, magnet_uri: str, save_path: str) -> None:
        self.calls.append(("add", magnet_uri, save_path))
        self._check()
        if self.reject_adds:
            raise EngineError("magnet rejected")
        key = derive_key(magnet_uri) or magnet_uri.strip()
        if key not in self.torrents:
            self.torrents[key] = EngineStatus(name=MagnetLink(magnet_uri).display_name())
            self.save_paths[key] = save_path

    def set_progress(self, key: str, progress: float) -> None:
        status = self.torrents[key]
        total = status.total_bytes or 1000
        self.torrents[key] = dataclasses.replace(
            status, progress=progress, total_bytes=total, done_bytes=int(total * progress)
        )

    def list_snapshot(self, max_items: int) -> List[EngineStatus]:
        self._check()
        keys = list(self.torrents)[:max_items]
        self._ordinals = keys
        return [self.torrents[k] for k in keys]

    def stable_id_at(self, ordinal_index: int) -> Optional[str]:
        if 0 <= ordinal_index < len(self._ordinals):
            return self._ordinals[ordinal_index]
        return None

    def _set_paused(self, action: str, key: str, paused: bool) -> bool:
        self.calls.append((action, key))
        self._check()
        if key not in self.torrents:
            return False
        self.torrents[key] = dataclasses.replace(self.torrents[key], paused=paused)
        return True

    def pause(self, stable_id: str) -> bool:
        return self._set_paused("pause", stable_id, True)

    def resume(self, stable_id: str) -> bool:
        return self._set_paused("resume", stable_id, False)

    def remove(self, stable_id: str, delete_files: bool = False) -> bool:
        self.calls.append(("remove", stable_id, delete_files))
        self._check()
        self.save_paths.pop(stable_id, None)
        return self.torrents.pop(stable_id, None) is not None


class RecordingCallback(TorrentCallback):
    def __init__(self, fail_completion: bool = False):
        self.fail_completion = fail_completion
        self.events = []
        self.completed = []

    async def on_added(self, torrent_info):
        self.events.append(("added", torrent_info.stable_id))

    async def on_started(self, torrent_info):
        self.events.append(("started", torrent_info.stable_id))

    async def on_stopped(self, torrent_info):
        self.events.append(("stopped", torrent_info.stable_id))

    async def on_removed(self, torrent_info):
        self.events.append(("removed", torrent_info.stable_id))

    async def on_completed(self, torrent_info):
        self.completed.append(torrent_info)
        if self.fail_completion:
            raise RuntimeError("library folder is read-only")


@pytest.fixture
def config(tmp_path):
    return TestConfig(
        STATE_DIR=str(tmp_path / "state"),
        DOWNLOAD_DIR=str(tmp_path / "downloads"),
        MOVIES_DIR=str(tmp_path / "library" / "Movies"),
        TV_DIR=str(tmp_path / "library" / "TV"),
    )


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def store(config):
    return StateStore(config.STATE_DIR)


@pytest.fixture
def recorder():
    return RecordingCallback()


@pytest.fixture
def callbacks(recorder):
    manager = CallbackManager()
    manager.register(recorder)
    return manager


@pytest_asyncio.fixture
async def reconciler(engine, store, config, callbacks):
    r = Reconciler(engine, store, config, callbacks=callbacks)
    yield r
    await r.shutdown()


@pytest_asyncio.fixture
async def async_client(config, reconciler):
    """Async test client against an app whose loop is driven by the test."""
    os.makedirs(config.DOWNLOAD_DIR, exist_ok=True)
    app = create_app(config, reconciler, run_reconciler=False)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
