import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from torrent_bridge import __version__
from torrent_bridge.config import Config
from torrent_bridge.logger import logger
from torrent_bridge.reconciler import Reconciler

from .routes import rpc, torrents
from .rpc import SessionTokenKeeper


def create_app(
    config: Optional[Config] = None,
    reconciler: Optional[Reconciler] = None,
    run_reconciler: bool = True,
) -> FastAPI:
    """
    Build the API app around a reconciler.

    With run_reconciler, the reconciliation loop is started on startup and
    cancelled on shutdown. Tests pass run_reconciler=False and drive ticks
    themselves.
    """
    config = config or Config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting torrent-bridge API (RPC at {config.RPC_PATH})")
        task = None
        if run_reconciler and app.state.reconciler is not None:
            task = asyncio.create_task(app.state.reconciler.run())
        try:
            yield
        finally:
            if task is not None:
                app.state.reconciler.stop()
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            logger.info("torrent-bridge API stopped")

    app = FastAPI(
        title="torrent-bridge",
        description="Transmission-compatible RPC and REST API over a reconciled torrent engine",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.reconciler = reconciler
    app.state.sessions = SessionTokenKeeper()

    app.include_router(rpc.build_router(config.RPC_PATH))
    app.include_router(torrents.router)
    return app
