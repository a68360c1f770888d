"""
Tests for the Transmission engine backend, with transmission-rpc mocked out.
"""

from unittest.mock import MagicMock, patch

import pytest
from transmission_rpc.error import TransmissionConnectError, TransmissionError

from torrent_bridge.config import TestConfig
from torrent_bridge.engine_factory import get_engine
from torrent_bridge.exceptions import EngineError, EngineUnavailableError
from torrent_bridge.transmission_engine import TransmissionEngine

from conftest import HASH_A, HASH_B, MAGNET_A


def make_torrent(torrent_id, info_hash, **fields):
    torrent = MagicMock()
    torrent.id = torrent_id
    torrent.hashString = info_hash
    torrent.fields = {"id": torrent_id, "hashString": info_hash, **fields}
    return torrent


@pytest.fixture
def rpc():
    return MagicMock()


@pytest.fixture
def transmission(rpc):
    engine = TransmissionEngine(host="localhost", port=9091)
    engine._client = rpc
    return engine


class TestSnapshot:
    def test_maps_fields_and_ordinals(self, transmission, rpc):
        rpc.get_torrents.return_value = [
            make_torrent(7, HASH_A.upper(), name="Some.Movie", status=4, percentDone=0.5,
                         sizeWhenDone=1000, leftUntilDone=500, rateDownload=20,
                         peersConnected=3, peersSendingToUs=2, metadataPercentComplete=1),
            make_torrent(9, HASH_B, name="Some.Show", status=0, percentDone=1.0,
                         sizeWhenDone=10, leftUntilDone=0, error=3, errorString="disk full"),
        ]

        statuses = transmission.list_snapshot(10)

        first, second = statuses
        assert (first.name, first.progress, first.done_bytes, first.state) == ("Some.Movie", 0.5, 500, 3)
        assert (first.peers, first.seeds, first.paused) == (3, 2, False)
        assert second.paused is True
        assert second.errored is True
        assert second.error_message == "disk full"
        assert transmission.stable_id_at(0) == HASH_A
        assert transmission.stable_id_at(1) == HASH_B
        assert transmission.stable_id_at(2) is None

    def test_respects_max_items(self, transmission, rpc):
        rpc.get_torrents.return_value = [make_torrent(1, HASH_A), make_torrent(2, HASH_B)]
        assert len(transmission.list_snapshot(1)) == 1
        assert transmission.stable_id_at(1) is None

    def test_fetching_metadata_state(self, transmission, rpc):
        rpc.get_torrents.return_value = [make_torrent(1, HASH_A, status=4, metadataPercentComplete=0)]
        assert transmission.list_snapshot(10)[0].state == 2

    def test_connection_loss_is_unavailable(self, transmission, rpc):
        rpc.get_torrents.side_effect = TransmissionConnectError("refused")
        with pytest.raises(EngineUnavailableError):
            transmission.list_snapshot(10)
        assert transmission._client is None


class TestCommands:
    def test_add_passes_download_dir(self, transmission, rpc):
        transmission.add(MAGNET_A, "/downloads/movies")
        rpc.add_torrent.assert_called_once_with(MAGNET_A, download_dir="/downloads/movies")

    def test_add_rejection_is_engine_error(self, transmission, rpc):
        rpc.add_torrent.side_effect = TransmissionError("invalid or corrupt torrent file")
        with pytest.raises(EngineError) as exc:
            transmission.add(MAGNET_A, "/dl")
        assert not isinstance(exc.value, EngineUnavailableError)

    def test_pause_resume_remove_by_hash(self, transmission, rpc):
        rpc.get_torrents.return_value = [make_torrent(7, HASH_A.upper())]

        assert transmission.pause(HASH_A) is True
        rpc.stop_torrent.assert_called_once_with(7)
        assert transmission.resume(HASH_A) is True
        rpc.start_torrent.assert_called_once_with(7)
        assert transmission.remove(HASH_A, delete_files=True) is True
        rpc.remove_torrent.assert_called_once_with(7, delete_data=True)

    def test_unknown_torrent_is_noop(self, transmission, rpc):
        rpc.get_torrents.return_value = []
        assert transmission.pause(HASH_B) is False
        rpc.stop_torrent.assert_not_called()


class TestConnect:
    def test_unreachable_daemon(self):
        engine = TransmissionEngine(host="localhost", port=1)
        with patch("torrent_bridge.transmission_engine.TransmissionRPCClient",
                   side_effect=TransmissionConnectError("refused")):
            with pytest.raises(EngineUnavailableError):
                engine.list_snapshot(10)


class TestFactory:
    def test_transmission(self):
        config = TestConfig(TRANSMISSION_HOST="seedbox", TRANSMISSION_PORT=9999)
        engine = get_engine(config)
        assert isinstance(engine, TransmissionEngine)
        assert (engine.host, engine.port) == ("seedbox", 9999)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            get_engine(TestConfig(ENGINE_TYPE="rtorrent"))
