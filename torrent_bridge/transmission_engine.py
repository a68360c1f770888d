"""
Transmission daemon backend for the torrent engine interface.

Drives a running transmission-daemon through transmission-rpc. The daemon's
torrent list order at the last list_snapshot() defines ordinal indexes.
Transmission's own integer ids are never exposed; everything above this
module addresses torrents by their lowercase info hash.
"""

from typing import List, Optional

from transmission_rpc import Client as TransmissionRPCClient
from transmission_rpc.error import TransmissionConnectError, TransmissionError, TransmissionTimeoutError
from transmission_rpc.torrent import Torrent as TransmissionTorrent

from .base_engine import BaseTorrentEngine
from .config import Config
from .exceptions import EngineError, EngineUnavailableError
from .logger import logger
from .models import EngineStatus


TRANSMISSION_HOST = Config.TRANSMISSION_HOST
TRANSMISSION_PORT = Config.TRANSMISSION_PORT
TRANSMISSION_PATH = Config.TRANSMISSION_PATH
TRANSMISSION_USERNAME = Config.TRANSMISSION_USERNAME
TRANSMISSION_PASSWORD = Config.TRANSMISSION_PASSWORD

# Transmission RPC status numbers
TR_STOPPED = 0
TR_CHECK_PENDING = 1
TR_CHECKING = 2
TR_DOWNLOAD_PENDING = 3
TR_DOWNLOADING = 4
TR_SEED_PENDING = 5
TR_SEEDING = 6

# Transmission status -> libtorrent-style state code
STATE_CODES = {
    TR_STOPPED: 4,
    TR_CHECK_PENDING: 0,
    TR_CHECKING: 1,
    TR_DOWNLOAD_PENDING: 0,
    TR_DOWNLOADING: 3,
    TR_SEED_PENDING: 0,
    TR_SEEDING: 5,
}

SNAPSHOT_FIELDS = [
    "id", "hashString", "name", "status", "percentDone", "totalSize",
    "sizeWhenDone", "leftUntilDone", "rateDownload", "rateUpload",
    "peersConnected", "peersSendingToUs", "error", "errorString",
    "isFinished", "metadataPercentComplete",
]


class TransmissionEngine(BaseTorrentEngine):
    def __init__(
        self,
        protocol: str = "http",
        host: str = TRANSMISSION_HOST,
        port: int = TRANSMISSION_PORT,
        path: str = TRANSMISSION_PATH,
        username: Optional[str] = TRANSMISSION_USERNAME,
        password: Optional[str] = TRANSMISSION_PASSWORD,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self._client_args = dict(
            protocol=protocol,
            host=host,
            port=port,
            path=path,
            username=username or None,
            password=password or None,
            timeout=timeout,
        )
        self._client: Optional[TransmissionRPCClient] = None
        self._ordinals: List[str] = []

    @property
    def client(self) -> TransmissionRPCClient:
        """Connect lazily; the daemon may come up after we do."""
        if self._client is None:
            try:
                self._client = TransmissionRPCClient(**self._client_args)
            except (TransmissionConnectError, TransmissionTimeoutError) as e:
                raise EngineUnavailableError(f"Transmission at {self.host}:{self.port} unreachable: {e}") from e
            except TransmissionError as e:
                raise EngineUnavailableError(f"Transmission at {self.host}:{self.port} not ready: {e}") from e
        return self._client

    def _find(self, stable_id: str) -> Optional[TransmissionTorrent]:
        try:
            torrents = self.client.get_torrents(arguments=["id", "hashString"])
        except (TransmissionConnectError, TransmissionTimeoutError) as e:
            self._client = None
            raise EngineUnavailableError(str(e)) from e
        except TransmissionError as e:
            raise EngineError(f"Failed to look up {stable_id}: {e}") from e
        for torrent in torrents:
            if torrent.hashString.lower() == stable_id.lower():
                return torrent
        return None

    def add(self, magnet_uri: str, save_path: str) -> None:
        try:
            self.client.add_torrent(magnet_uri, download_dir=save_path or None)
        except (TransmissionConnectError, TransmissionTimeoutError) as e:
            self._client = None
            raise EngineUnavailableError(str(e)) from e
        except TransmissionError as e:
            raise EngineError(f"Transmission rejected magnet: {e}") from e

    def list_snapshot(self, max_items: int) -> List[EngineStatus]:
        try:
            torrents = self.client.get_torrents(arguments=SNAPSHOT_FIELDS)
        except (TransmissionConnectError, TransmissionTimeoutError) as e:
            self._client = None
            raise EngineUnavailableError(str(e)) from e
        except TransmissionError as e:
            raise EngineError(f"Failed to list torrents: {e}") from e

        torrents = torrents[:max_items]
        self._ordinals = [t.hashString.lower() for t in torrents]
        return [self._status(t) for t in torrents]

    @staticmethod
    def _status(torrent: TransmissionTorrent) -> EngineStatus:
        fields = torrent.fields
        status = int(fields.get("status", TR_STOPPED))
        total = int(fields.get("sizeWhenDone") or fields.get("totalSize") or 0)
        left = int(fields.get("leftUntilDone") or 0)
        if not fields.get("metadataPercentComplete", 1):
            state = 2
        else:
            state = STATE_CODES.get(status, 0)
        return EngineStatus(
            name=fields.get("name", ""),
            progress=float(fields.get("percentDone", 0.0)),
            total_bytes=total,
            done_bytes=max(total - left, 0),
            down_rate=int(fields.get("rateDownload", 0)),
            up_rate=int(fields.get("rateUpload", 0)),
            peers=int(fields.get("peersConnected", 0)),
            seeds=int(fields.get("peersSendingToUs", 0)),
            state=state,
            paused=status == TR_STOPPED,
            seeding=status in (TR_SEEDING, TR_SEED_PENDING),
            errored=bool(fields.get("error", 0)),
            error_message=fields.get("errorString", "") or "",
        )

    def stable_id_at(self, ordinal_index: int) -> Optional[str]:
        if 0 <= ordinal_index < len(self._ordinals):
            return self._ordinals[ordinal_index]
        return None

    def _command(self, action: str, stable_id: str, **kwargs) -> bool:
        torrent = self._find(stable_id)
        if torrent is None:
            logger.debug(f"{action} ignored, {stable_id} not in Transmission")
            return False
        method = getattr(self.client, f"{action}_torrent")
        try:
            method(torrent.id, **kwargs)
        except (TransmissionConnectError, TransmissionTimeoutError) as e:
            self._client = None
            raise EngineUnavailableError(str(e)) from e
        except TransmissionError as e:
            raise EngineError(f"Failed to {action} {stable_id}: {e}") from e
        return True

    def pause(self, stable_id: str) -> bool:
        return self._command("stop", stable_id)

    def resume(self, stable_id: str) -> bool:
        return self._command("start", stable_id)

    def remove(self, stable_id: str, delete_files: bool = False) -> bool:
        return self._command("remove", stable_id, delete_data=delete_files)
