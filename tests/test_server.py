"""
Tests for server wiring and the app lifespan.
"""

import asyncio
from unittest.mock import patch

import pytest

from torrent_bridge.api.main import create_app
from torrent_bridge.cleanup import CleanupCallback
from torrent_bridge.reconciler import Phase
from torrent_bridge.server import build_app

from conftest import FakeEngine, HASH_A, MAGNET_A


class TestBuildApp:
    def test_wires_reconciler_with_cleanup(self, config):
        with patch("torrent_bridge.server.get_engine", return_value=FakeEngine()):
            app = build_app(config)

        reconciler = app.state.reconciler
        assert app.state.config is config
        assert isinstance(reconciler.engine, FakeEngine)
        assert any(isinstance(c, CleanupCallback) for c in reconciler.callbacks.callbacks)
        assert reconciler.metadata_service.enabled is False


class TestLifespan:
    @pytest.mark.asyncio
    async def test_loop_runs_and_stops_with_app(self, config, reconciler, engine):
        engine.add(MAGNET_A, config.DOWNLOAD_DIR)
        app = create_app(config, reconciler)

        async with app.router.lifespan_context(app):
            for _ in range(100):
                if reconciler.phase == Phase.STEADY:
                    break
                await asyncio.sleep(0.02)
            assert reconciler.phase == Phase.STEADY
            assert [row.stable_id for row in reconciler.snapshot] == [HASH_A]
