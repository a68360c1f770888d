from fastapi import APIRouter, Depends, HTTPException, Query, status

from torrent_bridge import __version__
from torrent_bridge.config import Config
from torrent_bridge.exceptions import EngineError
from torrent_bridge.logger import logger
from torrent_bridge.magnet_link import is_magnet
from torrent_bridge.models import LiveRow
from torrent_bridge.reconciler import Reconciler
from ..dependencies import get_config, get_reconciler, require_auth
from ..schemas import AddTorrentRequest, CategoryRequest

router = APIRouter(prefix="/api", tags=["torrents"])


def row_payload(row: LiveRow, reconciler: Reconciler) -> dict:
    data = row.to_dict()
    metadata = reconciler.metadata_for(row.stable_id)
    data["metadata"] = metadata.to_dict() if metadata else None
    data["cleaned"] = reconciler.is_cleaned(row.stable_id)
    return data


def engine_failure(action: str, key: str, e: EngineError) -> HTTPException:
    logger.error(f"Failed to {action} {key}: {e}")
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Failed to {action} torrent: {e}",
    )


def not_found(key: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Torrent {key} not found",
    )


@router.get("/ping")
async def ping():
    return {"status": "ok", "version": __version__}


@router.get("/torrents", dependencies=[Depends(require_auth)])
async def list_torrents(reconciler: Reconciler = Depends(get_reconciler)):
    """
    List the published snapshot.

    Rows are keyed by stable_id; ordinal_index is only meaningful until
    the next tick.
    """
    return {
        "phase": reconciler.phase.value,
        "torrents": [row_payload(row, reconciler) for row in reconciler.snapshot],
    }


@router.post("/torrents", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_auth)])
async def add_torrent(
    request: AddTorrentRequest,
    reconciler: Reconciler = Depends(get_reconciler),
    config: Config = Depends(get_config),
):
    magnet = request.magnet.strip()
    if not is_magnet(magnet):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Input must be a magnet link",
        )

    save_path = request.save_path or config.DOWNLOAD_DIR
    try:
        key = await reconciler.add_magnet(magnet, save_path, category=request.category)
    except EngineError as e:
        raise engine_failure("add", magnet[:80], e)

    # Immediately poll so the new torrent shows up in the snapshot
    await reconciler.refresh()
    row = reconciler.row_for_key(key)

    return {
        "message": "Torrent added successfully",
        "key": key,
        "torrent": row_payload(row, reconciler) if row else None,
    }


@router.post("/torrents/{key}/pause", dependencies=[Depends(require_auth)])
async def pause_torrent(key: str, reconciler: Reconciler = Depends(get_reconciler)):
    try:
        found = await reconciler.pause(key)
    except EngineError as e:
        raise engine_failure("pause", key, e)
    if not found:
        raise not_found(key)
    return {"message": "Torrent paused", "key": key}


@router.post("/torrents/{key}/resume", dependencies=[Depends(require_auth)])
async def resume_torrent(key: str, reconciler: Reconciler = Depends(get_reconciler)):
    try:
        found = await reconciler.resume(key)
    except EngineError as e:
        raise engine_failure("resume", key, e)
    if not found:
        raise not_found(key)
    return {"message": "Torrent resumed", "key": key}


@router.delete("/torrents/{key}", dependencies=[Depends(require_auth)])
async def remove_torrent(
    key: str,
    delete_files: bool = Query(False, description="Also delete downloaded data"),
    reconciler: Reconciler = Depends(get_reconciler),
):
    try:
        found = await reconciler.remove(key, delete_files=delete_files)
    except EngineError as e:
        raise engine_failure("remove", key, e)
    if not found:
        raise not_found(key)
    return {"message": "Torrent removed", "key": key}


@router.put("/torrents/{key}/category", dependencies=[Depends(require_auth)])
async def set_category(key: str, request: CategoryRequest, reconciler: Reconciler = Depends(get_reconciler)):
    category = request.category.strip().lower() if request.category else None
    if not await reconciler.set_category(key, category or None):
        raise not_found(key)
    return {"message": "Category updated", "key": key, "category": category or None}


@router.delete("/cleaned/{key}", dependencies=[Depends(require_auth)])
async def unmark_cleaned(key: str, reconciler: Reconciler = Depends(get_reconciler)):
    """Allow the completion action to run again the next time the torrent completes."""
    if not await reconciler.unmark_cleaned(key):
        raise not_found(key)
    return {"message": "Cleaned mark removed", "key": key}
