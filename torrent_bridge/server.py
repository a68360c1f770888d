"""
torrent-bridge server

Runs the reconciliation loop and serves the Transmission-compatible RPC
endpoint plus the REST API from one process.

Usage:
    torrent-bridge-server                       # Listen on HOST:PORT from config
    torrent-bridge-server --port 9092           # Custom port
    torrent-bridge-server --state-dir ./state   # Custom state directory
"""

import argparse

import uvicorn
from fastapi import FastAPI

from .api.main import create_app
from .callbacks import CallbackManager
from .cleanup import CleanupCallback
from .config import Config
from .engine_factory import get_engine
from .logger import logger
from .metadata import MetadataService
from .reconciler import Reconciler
from .store import StateStore


def build_app(config: Config) -> FastAPI:
    """Wire engine, store, callbacks and reconciler into an app."""
    engine = get_engine(config)
    store = StateStore(config.STATE_DIR)

    callbacks = CallbackManager(config.CALLBACK_DIR)
    callbacks.load_callbacks()
    callbacks.register(CleanupCallback(config))

    reconciler = Reconciler(
        engine,
        store,
        config,
        callbacks=callbacks,
        metadata_service=MetadataService(config),
    )
    return create_app(config, reconciler)


def main():
    parser = argparse.ArgumentParser(
        description="torrent-bridge server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Endpoints:
  POST /transmission/rpc          Transmission RPC (Sonarr/Radarr)
  GET  /api/ping                  Health check
  GET  /api/torrents              Current torrent snapshot
  GET  /docs                      API documentation

Configuration is read from the environment and .env (see config.py).
        """
    )
    parser.add_argument("--host", type=str, default=None, help="Host to bind to (default: HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: PORT)")
    parser.add_argument("--state-dir", type=str, default=None, help="State directory (default: STATE_DIR)")
    parser.add_argument("--download-dir", type=str, default=None, help="Default download directory")

    args = parser.parse_args()

    overrides = {}
    if args.host:
        overrides["HOST"] = args.host
    if args.port:
        overrides["PORT"] = args.port
    if args.state_dir:
        overrides["STATE_DIR"] = args.state_dir
    if args.download_dir:
        overrides["DOWNLOAD_DIR"] = args.download_dir
    config = Config(**overrides)

    logger.info(f"Starting torrent-bridge on {config.HOST}:{config.PORT}")
    logger.info(f"Transmission RPC at {config.rpc_url}")
    if config.auth_required:
        logger.info("Basic auth enabled")

    uvicorn.run(build_app(config), host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
