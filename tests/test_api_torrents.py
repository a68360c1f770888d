"""
Tests for the REST API used by the CLI client.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from torrent_bridge import __version__
from torrent_bridge.api.main import create_app

from conftest import HASH_A, HASH_B, MAGNET_A, MAGNET_B


class TestPing:
    @pytest.mark.asyncio
    async def test_ping(self, async_client):
        response = await async_client.get("/api/ping")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}


class TestTorrents:
    @pytest.mark.asyncio
    async def test_add_and_list(self, async_client, config, store):
        response = await async_client.post("/api/torrents", json={"magnet": MAGNET_A, "category": "movies"})

        assert response.status_code == 201
        data = response.json()
        assert data["key"] == HASH_A
        assert data["torrent"]["stable_id"] == HASH_A
        assert data["torrent"]["category"] == "movies"
        assert store.load_entries()[0].save_path == config.DOWNLOAD_DIR

        listing = (await async_client.get("/api/torrents")).json()
        assert listing["phase"] == "starting"
        assert [t["stable_id"] for t in listing["torrents"]] == [HASH_A]
        assert listing["torrents"][0]["cleaned"] is False
        assert listing["torrents"][0]["metadata"] is None

    @pytest.mark.asyncio
    async def test_add_rejects_non_magnet(self, async_client):
        response = await async_client.post("/api/torrents", json={"magnet": "http://example.com/x.torrent"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_add_engine_failure_is_400(self, async_client, engine):
        engine.reject_adds = True
        response = await async_client.post("/api/torrents", json={"magnet": MAGNET_A})
        assert response.status_code == 400
        assert "magnet rejected" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_pause_resume(self, async_client, reconciler, engine, store):
        await reconciler.add_magnet(MAGNET_B, "/dl")

        response = await async_client.post(f"/api/torrents/{HASH_B}/pause")
        assert response.status_code == 200
        assert engine.torrents[HASH_B].paused is True
        assert store.load_paused() == {HASH_B}

        response = await async_client.post(f"/api/torrents/{HASH_B}/resume")
        assert response.status_code == 200
        assert engine.torrents[HASH_B].paused is False

    @pytest.mark.asyncio
    async def test_unknown_key_is_404(self, async_client, store):
        assert (await async_client.post(f"/api/torrents/{HASH_A}/pause")).status_code == 404
        assert (await async_client.delete(f"/api/torrents/{HASH_A}")).status_code == 404
        assert (await async_client.put(f"/api/torrents/{HASH_A}/category", json={"category": "x"})).status_code == 404
        assert (await async_client.delete(f"/api/cleaned/{HASH_A}")).status_code == 404
        assert store.load_paused() == set()

    @pytest.mark.asyncio
    async def test_engine_unavailable_is_400(self, async_client, reconciler, engine):
        await reconciler.add_magnet(MAGNET_A, "/dl")
        engine.available = False
        response = await async_client.post(f"/api/torrents/{HASH_A}/pause")
        assert response.status_code == 400
        assert "engine offline" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_remove_with_files(self, async_client, reconciler, engine, store):
        await reconciler.add_magnet(MAGNET_A, "/dl")

        response = await async_client.delete(f"/api/torrents/{HASH_A}", params={"delete_files": "true"})

        assert response.status_code == 200
        assert ("remove", HASH_A, True) in engine.calls
        assert store.load_entries() == []

    @pytest.mark.asyncio
    async def test_set_category_normalizes(self, async_client, reconciler, store):
        await reconciler.add_magnet(MAGNET_A, "/dl")

        response = await async_client.put(f"/api/torrents/{HASH_A}/category", json={"category": " Movies "})
        assert response.json()["category"] == "movies"
        assert store.load_entries()[0].category == "movies"

        response = await async_client.put(f"/api/torrents/{HASH_A}/category", json={"category": None})
        assert response.json()["category"] is None

    @pytest.mark.asyncio
    async def test_unmark_cleaned(self, async_client, reconciler, store):
        store.save_cleaned([HASH_A])
        await reconciler.start()

        response = await async_client.delete(f"/api/cleaned/{HASH_A}")
        assert response.status_code == 200
        assert store.load_cleaned() == set()


class TestRestAuth:
    @pytest_asyncio.fixture
    async def secured_client(self, config, reconciler):
        config.RPC_USERNAME = "admin"
        config.RPC_PASSWORD = "hunter2"
        app = create_app(config, reconciler, run_reconciler=False)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client

    @pytest.mark.asyncio
    async def test_requires_credentials(self, secured_client):
        response = await secured_client.get("/api/torrents")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == 'Basic realm="torrent-bridge"'

    @pytest.mark.asyncio
    async def test_accepts_credentials(self, secured_client):
        response = await secured_client.get("/api/torrents", auth=("admin", "hunter2"))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_malformed_credentials_get_401(self, secured_client):
        response = await secured_client.get("/api/torrents", headers={"Authorization": "Basic !!!notbase64"})
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == 'Basic realm="torrent-bridge"'

    @pytest.mark.asyncio
    async def test_ping_is_open(self, secured_client):
        assert (await secured_client.get("/api/ping")).status_code == 200


class TestRestAuthDisabled:
    @pytest.mark.asyncio
    async def test_authorization_header_is_ignored(self, async_client):
        response = await async_client.get("/api/torrents", headers={"Authorization": "Basic !!!notbase64"})
        assert response.status_code == 200


class TestNotAttached:
    @pytest.mark.asyncio
    async def test_returns_503(self, config):
        app = create_app(config, None, run_reconciler=False)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/torrents")
        assert response.status_code == 503
