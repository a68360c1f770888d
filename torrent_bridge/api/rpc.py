"""
Transmission RPC emulation for Sonarr/Radarr style clients.

Only the handful of methods those clients rely on are implemented; any
other method succeeds with empty arguments. Torrents are addressed by their
ordinal index in the current snapshot, which is only stable between ticks.
"""

import base64
import binascii
import os
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from torrent_bridge import __version__
from torrent_bridge.config import Config
from torrent_bridge.exceptions import EngineError, RpcError
from torrent_bridge.logger import logger
from torrent_bridge.magnet_link import is_magnet
from torrent_bridge.models import LiveRow
from torrent_bridge.reconciler import Reconciler


SESSION_HEADER = "X-Transmission-Session-Id"
RPC_VERSION = 15
RPC_VERSION_MINIMUM = 1
TRANSMISSION_VERSION = "4.0.0"

# Transmission status numbers we report
STATUS_STOPPED = 0
STATUS_DOWNLOADING = 4


class RpcMethod(str, Enum):
    SESSION_GET = "session-get"
    TORRENT_GET = "torrent-get"
    TORRENT_START = "torrent-start"
    TORRENT_STOP = "torrent-stop"
    TORRENT_ADD = "torrent-add"


class SessionTokenKeeper:
    """Holds the current X-Transmission-Session-Id; a mismatch mints a new one."""

    def __init__(self):
        self.current = self._mint()

    @staticmethod
    def _mint() -> str:
        return secrets.token_hex(24)

    def matches(self, token: Optional[str]) -> bool:
        if token is None:
            return False
        # Header values may carry non-ASCII bytes
        return secrets.compare_digest(token.encode("utf-8"), self.current.encode("utf-8"))

    def rotate(self) -> str:
        self.current = self._mint()
        return self.current


@dataclass
class RpcContext:
    reconciler: Reconciler
    config: Config
    session_id: str


Handler = Callable[[Dict[str, Any], RpcContext], Awaitable[Dict[str, Any]]]


def torrent_fields(row: LiveRow, config: Config) -> Dict[str, Any]:
    """Render a live row in Transmission's torrent-get shape."""
    finished = row.progress >= config.COMPLETION_THRESHOLD
    return {
        "id": row.ordinal_index,
        "hashString": row.stable_id,
        "name": row.name,
        "status": STATUS_STOPPED if row.paused else STATUS_DOWNLOADING,
        "percentDone": row.progress,
        "rateDownload": row.down_rate,
        "rateUpload": row.up_rate,
        "peersConnected": row.peers,
        "peersGettingFromUs": 0,
        "peersSendingToUs": row.seeds,
        "isFinished": finished,
        "isStalled": False,
        "totalSize": row.total_bytes,
        "sizeWhenDone": row.total_bytes,
        "leftUntilDone": max(row.total_bytes - row.done_bytes, 0),
        "downloadDir": row.save_path or config.DOWNLOAD_DIR,
        "labels": [row.category] if row.category else [],
        "error": 3 if row.errored else 0,
        "errorString": row.error_message,
    }


def parse_ids(arguments: Dict[str, Any]) -> List[Any]:
    """Normalize `ids` to a list of ints and/or hash strings."""
    ids = arguments.get("ids")
    if ids is None:
        return []
    if isinstance(ids, (int, str)) and not isinstance(ids, bool):
        return [ids]
    if isinstance(ids, list):
        return [i for i in ids if isinstance(i, (int, str)) and not isinstance(i, bool)]
    return []


def resolve_keys(ids: List[Any], reconciler: Reconciler) -> List[str]:
    """Translate ordinals (and hash strings) against the current snapshot."""
    keys = []
    for value in ids:
        if isinstance(value, int):
            row = reconciler.row_for_ordinal(value)
        else:
            row = reconciler.row_for_key(value.strip().lower())
        if row is None:
            logger.debug(f"Ignoring unknown torrent id {value!r}")
            continue
        keys.append(row.stable_id)
    return keys


def derive_category(save_path: str, download_dir: str) -> Optional[str]:
    """Category is the last path segment when save_path is under the default root."""
    if not download_dir:
        return None
    root = os.path.abspath(download_dir)
    path = os.path.abspath(save_path)
    if path == root or not path.startswith(root.rstrip(os.sep) + os.sep):
        return None
    return os.path.basename(path).lower() or None


async def session_get(arguments: Dict[str, Any], ctx: RpcContext) -> Dict[str, Any]:
    return {
        "version": f"{TRANSMISSION_VERSION} (torrent-bridge {__version__})",
        "rpc-version": RPC_VERSION,
        "rpc-version-minimum": RPC_VERSION_MINIMUM,
        "download-dir": ctx.config.DOWNLOAD_DIR,
        "session-id": ctx.session_id,
    }


async def torrent_get(arguments: Dict[str, Any], ctx: RpcContext) -> Dict[str, Any]:
    return {"torrents": [torrent_fields(row, ctx.config) for row in ctx.reconciler.snapshot]}


async def torrent_start(arguments: Dict[str, Any], ctx: RpcContext) -> Dict[str, Any]:
    for key in resolve_keys(parse_ids(arguments), ctx.reconciler):
        try:
            await ctx.reconciler.resume(key)
        except EngineError as e:
            raise RpcError(f"Failed to start {key}: {e}") from e
    return {}


async def torrent_stop(arguments: Dict[str, Any], ctx: RpcContext) -> Dict[str, Any]:
    for key in resolve_keys(parse_ids(arguments), ctx.reconciler):
        try:
            await ctx.reconciler.pause(key)
        except EngineError as e:
            raise RpcError(f"Failed to stop {key}: {e}") from e
    return {}


async def torrent_add(arguments: Dict[str, Any], ctx: RpcContext) -> Dict[str, Any]:
    filename = arguments.get("filename")
    metainfo = arguments.get("metainfo")

    if not (isinstance(filename, str) and is_magnet(filename)):
        if isinstance(metainfo, str) and metainfo:
            try:
                base64.b64decode(metainfo, validate=True)
            except (binascii.Error, ValueError) as e:
                raise RpcError(f"torrent-add metainfo is not valid base64: {e}") from e
            raise RpcError("torrent-add metainfo (.torrent data) is not supported, send a magnet link")
        if isinstance(filename, str) and filename.strip():
            raise RpcError(f"torrent-add filename is not a magnet link: {filename.strip()[:120]}")
        raise RpcError("torrent-add needs a magnet filename")

    default_dir = ctx.config.DOWNLOAD_DIR
    requested = arguments.get("download-dir")
    save_path = requested.strip() if isinstance(requested, str) and requested.strip() else default_dir

    try:
        os.makedirs(save_path, exist_ok=True)
    except OSError as e:
        raise RpcError(f"Cannot create download dir {save_path}: {e}") from e

    category = derive_category(save_path, default_dir)

    try:
        key = await ctx.reconciler.add_magnet(filename, save_path, category=category, persist=True)
    except EngineError as e:
        raise RpcError(f"Failed to add magnet: {e}") from e

    await ctx.reconciler.refresh()

    row = ctx.reconciler.row_for_key(key)
    if row is None and ctx.reconciler.snapshot:
        row = ctx.reconciler.snapshot[-1]

    return {
        "torrent-added": {
            "id": row.ordinal_index if row else 0,
            "hashString": row.stable_id if row else key,
            "name": row.name if row else "",
        }
    }


HANDLERS: Dict[RpcMethod, Handler] = {
    RpcMethod.SESSION_GET: session_get,
    RpcMethod.TORRENT_GET: torrent_get,
    RpcMethod.TORRENT_START: torrent_start,
    RpcMethod.TORRENT_STOP: torrent_stop,
    RpcMethod.TORRENT_ADD: torrent_add,
}


async def dispatch(method: str, arguments: Dict[str, Any], ctx: RpcContext) -> Dict[str, Any]:
    """
    Run an RPC method and return its result arguments.

    Raises:
        RpcError: if the method could not be carried out
    """
    try:
        rpc_method = RpcMethod(method)
    except ValueError:
        logger.debug(f"Unhandled RPC method {method!r}, replying with empty arguments")
        return {}
    return await HANDLERS[rpc_method](arguments, ctx)
