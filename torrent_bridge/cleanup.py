"""
Post-completion cleanup: move finished downloads into the media library.

Movies go to MOVIES_DIR/"Title (Year)"/, shows to
TV_DIR/"Title (Year)"/"Season NN"/. When a torrent's content is a single
release folder, its contents are moved and the emptied folder is removed.
Name collisions are resolved by appending " (2)", " (3)", ...

Library roots are only touched while an authorized path handle is held.
PathAuthorizer.acquire() is a context manager, so handles are released on
every exit path, including errors raised by the mover.
"""

import asyncio
import os
import re
import shutil
from abc import ABC, abstractmethod
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .callbacks import TorrentCallback, TorrentInfo
from .config import Config
from .exceptions import CleanupError
from .logger import logger
from .models import MediaMetadata, MediaType


FORBIDDEN_CHARS = re.compile(r'[/\\:*?"<>|]')


@dataclass(frozen=True)
class PathHandle:
    """Proof that a path may be written to while the handle is held."""
    path: str


class PathAuthorizer(ABC):
    @contextmanager
    def acquire(self, path: str) -> Iterator[PathHandle]:
        handle = self.grant(path)
        try:
            yield handle
        finally:
            self.release(handle)

    @abstractmethod
    def grant(self, path: str) -> PathHandle:
        """Authorize access to path. Raises CleanupError if refused."""

    def release(self, handle: PathHandle) -> None:
        pass


class LocalPathAuthorizer(PathAuthorizer):
    """Plain filesystem access; only checks the root exists or can be created."""

    def grant(self, path: str) -> PathHandle:
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise CleanupError(f"Library root {path} is not usable: {e}") from e
        logger.debug(f"Granted access to {path}")
        return PathHandle(path)

    def release(self, handle: PathHandle) -> None:
        logger.debug(f"Released access to {handle.path}")


class CleanupMover(ABC):
    @abstractmethod
    def move(self, source: str, metadata: MediaMetadata, library_root: PathHandle) -> str:
        """Move downloaded content into the library. Returns the destination folder."""


def sanitize_filename(name: str) -> str:
    return re.sub(r"\s{2,}", " ", FORBIDDEN_CHARS.sub(" ", name)).strip()


def title_folder(metadata: MediaMetadata) -> str:
    if metadata.year:
        return sanitize_filename(f"{metadata.title} ({metadata.year})")
    return sanitize_filename(metadata.title)


def resolve_collision(path: str) -> str:
    if not os.path.exists(path):
        return path
    base, ext = os.path.splitext(path)
    i = 2
    while os.path.exists(f"{base} ({i}){ext}"):
        i += 1
    return f"{base} ({i}){ext}"


class LibraryMover(CleanupMover):
    def move(self, source: str, metadata: MediaMetadata, library_root: PathHandle) -> str:
        if not os.path.exists(source):
            raise CleanupError(f"Nothing to clean up at {source}")

        dest = os.path.join(library_root.path, title_folder(metadata))
        if metadata.media_type == MediaType.SHOW and metadata.season is not None:
            dest = os.path.join(dest, f"Season {metadata.season:02d}")
        os.makedirs(dest, exist_ok=True)

        if os.path.isdir(source):
            items: List[str] = sorted(os.listdir(source))
            if not items:
                raise CleanupError(f"No files to clean up in {source}")
            for item in items:
                shutil.move(os.path.join(source, item), resolve_collision(os.path.join(dest, item)))
            if not os.listdir(source):
                os.rmdir(source)
        else:
            shutil.move(source, resolve_collision(os.path.join(dest, os.path.basename(source))))

        logger.info(f"Moved {source} to {dest}")
        return dest


class CleanupCallback(TorrentCallback):
    """
    Completion hook that files finished downloads into the library.

    Does nothing unless AUTO_CLEANUP is enabled. Torrents without metadata
    are left in place.
    """

    def __init__(
        self,
        config: Config,
        mover: Optional[CleanupMover] = None,
        authorizer: Optional[PathAuthorizer] = None,
    ):
        self.config = config
        self.mover = mover or LibraryMover()
        self.authorizer = authorizer or LocalPathAuthorizer()

    def _root_for(self, media_type: MediaType) -> str:
        if media_type == MediaType.MOVIE:
            return self.config.MOVIES_DIR
        return self.config.TV_DIR

    def _run(self, source: str, metadata: MediaMetadata) -> str:
        roots = [r for r in (self.config.MOVIES_DIR, self.config.TV_DIR) if r]
        with ExitStack() as stack:
            handles = {root: stack.enter_context(self.authorizer.acquire(root)) for root in roots}
            return self.mover.move(source, metadata, handles[self._root_for(metadata.media_type)])

    async def on_completed(self, torrent_info: TorrentInfo) -> None:
        if not self.config.AUTO_CLEANUP:
            return

        metadata = torrent_info.metadata
        if metadata is None:
            logger.info(f"No metadata for {torrent_info.name}, leaving it in place")
            return

        if not self._root_for(metadata.media_type):
            logger.warning(f"No library folder configured for {metadata.media_type.value}s, skipping cleanup")
            return

        if not torrent_info.name or not torrent_info.save_path:
            raise CleanupError(f"Cannot locate content for {torrent_info.stable_id}")

        source = os.path.join(torrent_info.save_path, torrent_info.name)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._run, source, metadata)
