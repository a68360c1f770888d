"""
Reconciliation between persisted intent and the torrent engine.

The reconciler owns all mutable torrent state: stored entries, the
desired-pause set, the cleaned set, per-torrent progress history and the
published snapshot of live rows. It moves through three phases:

- STARTING: load persisted state and re-submit every stored magnet
- SETTLING: wait SETTLE_DELAY after the first successful tick, then
  re-apply the desired pause/resume state to every stored torrent
- STEADY: tick every POLL_INTERVAL for the life of the process

Ticks, settle and commands are serialized by one asyncio.Lock, and every
engine call runs on a single worker thread, so there is exactly one mutator
at a time. Readers get the published snapshot, an immutable tuple replaced
in one assignment per tick.

A torrent completes when its progress moves from below COMPLETION_THRESHOLD
to at or above it between two ticks. The completion action runs once per
torrent; success is recorded in the cleaned set, failure is logged and not
retried.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .base_engine import BaseTorrentEngine
from .callbacks import CallbackManager, TorrentEvent, TorrentInfo
from .config import Config
from .exceptions import EngineError, StoreError
from .logger import logger
from .magnet_link import key_for_magnet
from .matching import find_entry
from .metadata import MetadataService
from .models import EngineStatus, LiveRow, MediaMetadata, StoredEntry
from .retry import RetryPolicy, poll_until
from .store import StateStore


class Phase(str, Enum):
    STARTING = "starting"
    SETTLING = "settling"
    STEADY = "steady"


class Reconciler:
    def __init__(
        self,
        engine: BaseTorrentEngine,
        store: StateStore,
        config: Config,
        callbacks: Optional[CallbackManager] = None,
        metadata_service: Optional[MetadataService] = None,
    ):
        self.engine = engine
        self.store = store
        self.config = config
        self.callbacks = callbacks or CallbackManager(config.CALLBACK_DIR)
        self.metadata_service = metadata_service or MetadataService(config)
        self.retry_policy = RetryPolicy(config.ENRICH_MAX_ATTEMPTS, config.ENRICH_INTERVAL)

        self._lock = asyncio.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="engine")
        self._running = False

        self._phase = Phase.STARTING
        self._had_successful_tick = False
        self._entries: List[StoredEntry] = []
        self._paused: Set[str] = set()
        self._cleaned: Set[str] = set()
        self._progress: Dict[str, float] = {}
        self._snapshot: Tuple[LiveRow, ...] = ()
        self._metadata: Dict[str, MediaMetadata] = {}
        self._enriching: Set[str] = set()
        self._completing: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Read operations
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def snapshot(self) -> Tuple[LiveRow, ...]:
        return self._snapshot

    @property
    def entries(self) -> Tuple[StoredEntry, ...]:
        return tuple(self._entries)

    @property
    def paused_keys(self) -> Set[str]:
        return set(self._paused)

    def row_for_ordinal(self, ordinal_index: int) -> Optional[LiveRow]:
        for row in self._snapshot:
            if row.ordinal_index == ordinal_index:
                return row
        return None

    def row_for_key(self, key: str) -> Optional[LiveRow]:
        for row in self._snapshot:
            if row.stable_id == key:
                return row
        return None

    def metadata_for(self, key: str) -> Optional[MediaMetadata]:
        return self._metadata.get(key)

    def is_cleaned(self, key: str) -> bool:
        return key in self._cleaned

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    async def _engine_call(self, method, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(method, *args, **kwargs))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for detached completion, enrichment and settle tasks."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _save_entries(self) -> None:
        try:
            self.store.save_entries(self._entries)
        except StoreError as e:
            logger.error(str(e))

    def _save_paused(self) -> None:
        try:
            self.store.save_paused(self._paused)
        except StoreError as e:
            logger.error(str(e))

    def _save_cleaned(self) -> None:
        try:
            self.store.save_cleaned(self._cleaned)
        except StoreError as e:
            logger.error(str(e))

    def _list_sync(self) -> List[Tuple[int, str, EngineStatus]]:
        """List and resolve ids in one worker-thread call so ordinals stay consistent."""
        statuses = self.engine.list_snapshot(self.config.MAX_TORRENTS)
        listed = []
        for ordinal, status in enumerate(statuses):
            stable_id = self.engine.stable_id_at(ordinal)
            if stable_id:
                listed.append((ordinal, stable_id, status))
        return listed

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        async with self._lock:
            self._paused = self.store.load_paused()
            self._cleaned = self.store.load_cleaned()
            self._entries = self.store.load_entries()
            logger.info(
                f"Loaded {len(self._entries)} stored torrent(s), "
                f"{len(self._paused)} paused, {len(self._cleaned)} cleaned"
            )

            for entry in self._entries:
                try:
                    await self._engine_call(self.engine.add, entry.magnet, entry.save_path)
                except EngineError as e:
                    logger.warning(f"Could not re-submit {entry.key}: {e}")

            self._phase = Phase.SETTLING

    async def tick(self) -> bool:
        """
        Poll the engine once and publish a new snapshot.

        Returns False when the engine could not be listed; the published
        snapshot is then left as it was, or cleared if no tick has ever
        succeeded.
        """
        async with self._lock:
            try:
                listed = await self._engine_call(self._list_sync)
            except EngineError as e:
                if not self._had_successful_tick:
                    self._snapshot = ()
                logger.debug(f"Engine not listable: {e}")
                return False

            rows = []
            for ordinal, stable_id, status in listed:
                entry = find_entry(stable_id, self._entries)
                rows.append(LiveRow.from_status(
                    ordinal,
                    stable_id,
                    status,
                    category=entry.category if entry else None,
                    save_path=entry.save_path if entry else None,
                ))
            self._snapshot = tuple(rows)

            threshold = self.config.COMPLETION_THRESHOLD
            for row in rows:
                previous = self._progress.get(row.stable_id)
                if previous is None or not previous < threshold <= row.progress:
                    continue
                if row.stable_id in self._cleaned or row.stable_id in self._completing:
                    continue
                logger.info(f"{row.name} completed")
                self._completing.add(row.stable_id)
                self._spawn(self._complete(row.stable_id, row.name))

            self._progress = {row.stable_id: row.progress for row in rows}

            if not self._had_successful_tick:
                self._had_successful_tick = True
                self._spawn(self._settle_later())
            return True

    async def _settle_later(self) -> None:
        await asyncio.sleep(self.config.settle_delay)
        await self.settle()

    async def settle(self) -> None:
        """Re-apply desired pause state to every stored torrent. Safe to repeat."""
        async with self._lock:
            for entry in self._entries:
                paused = entry.key in self._paused
                try:
                    if paused:
                        await self._engine_call(self.engine.pause, entry.key)
                    else:
                        await self._engine_call(self.engine.resume, entry.key)
                except EngineError as e:
                    logger.warning(f"Could not {'pause' if paused else 'resume'} {entry.key}: {e}")
            if self._phase != Phase.STEADY:
                logger.info(f"Settled {len(self._entries)} torrent(s)")
                self._phase = Phase.STEADY

    async def run(self) -> None:
        """Main reconciliation loop."""
        self._running = True
        await self.start()
        logger.info(f"Reconciler started (interval: {self.config.POLL_INTERVAL}s)")

        while self._running:
            try:
                await self.tick()
                await asyncio.sleep(self.config.POLL_INTERVAL)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in reconciliation loop: {e}")
                await asyncio.sleep(self.config.POLL_INTERVAL)

        await self.shutdown()
        logger.info("Reconciler stopped")

    def stop(self) -> None:
        """Signal the reconciliation loop to stop."""
        self._running = False

    async def shutdown(self) -> None:
        """Cancel detached tasks and release the engine worker."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._executor.shutdown(wait=False)

    # -------------------------------------------------------------------------
    # Completion and enrichment
    # -------------------------------------------------------------------------

    def _start_enrichment(self, key: str, name: str) -> None:
        if key in self._metadata or key in self._enriching:
            return
        self._enriching.add(key)
        self._spawn(self._enrich(key, name))

    async def _enrich(self, key: str, name: str) -> None:
        try:
            metadata = await self.metadata_service.enrich(name)
            if metadata is not None:
                self._metadata[key] = metadata
        except Exception as e:
            logger.error(f"Metadata enrichment failed for {name}: {e}")
        finally:
            self._enriching.discard(key)

    async def _complete(self, key: str, name: str) -> None:
        try:
            metadata = self._metadata.get(key)
            if metadata is None and self.metadata_service.enabled:
                self._start_enrichment(key, name)
                metadata = await poll_until(self.retry_policy, lambda: self._metadata.get(key))
                if metadata is None:
                    logger.info(f"No metadata for {name} after {self.retry_policy.budget:.1f}s, completing anyway")

            row = self.row_for_key(key)
            entry = find_entry(key, self._entries)
            if row is None and entry is None:
                logger.info(f"{name} was removed before completion ran, skipping")
                return

            info = TorrentInfo.build(key, TorrentEvent.COMPLETED, row, entry, metadata)
            try:
                await self.callbacks.run_completion(info)
            except Exception as e:
                logger.error(f"Completion action failed for {name}: {e}")
                return

            async with self._lock:
                self._cleaned.add(key)
                self._save_cleaned()
            logger.info(f"Completion action finished for {name}")
        finally:
            self._completing.discard(key)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def add_magnet(
        self,
        magnet: str,
        save_path: str,
        category: Optional[str] = None,
        persist: bool = True,
    ) -> str:
        """
        Submit a magnet to the engine and record it as a stored entry.

        Returns the stable key. Raises EngineError if the engine refuses it,
        in which case nothing is stored.
        """
        magnet = magnet.strip()
        key = key_for_magnet(magnet)

        async with self._lock:
            await self._engine_call(self.engine.add, magnet, save_path)
            entry = None
            if persist:
                entry = self._upsert(key, magnet, save_path, category)
                self._save_entries()

        logger.info(f"Added torrent {key}")
        await self.callbacks.dispatch(
            TorrentEvent.ADDED, TorrentInfo.build(key, TorrentEvent.ADDED, self.row_for_key(key), entry)
        )
        return key

    def _upsert(self, key: str, magnet: str, save_path: str, category: Optional[str]) -> StoredEntry:
        for i, existing in enumerate(self._entries):
            if existing.key == key:
                entry = StoredEntry(
                    key=key,
                    magnet=magnet,
                    save_path=save_path,
                    category=category if category is not None else existing.category,
                )
                self._entries[i] = entry
                return entry
        entry = StoredEntry(key=key, magnet=magnet, save_path=save_path, category=category)
        self._entries.append(entry)
        return entry

    def _is_known(self, key: str) -> bool:
        return self.row_for_key(key) is not None or any(entry.key == key for entry in self._entries)

    async def pause(self, key: str) -> bool:
        """
        Record the wish to pause and pause in the engine.

        Keys with neither a stored entry nor a live row are only recorded
        when the engine knows them.
        """
        async with self._lock:
            known = self._is_known(key)
            if known:
                self._paused.add(key)
                self._save_paused()
            found = await self._engine_call(self.engine.pause, key)
            if found and not known:
                self._paused.add(key)
                self._save_paused()

        if found:
            await self.callbacks.dispatch(TorrentEvent.STOPPED, self._info(key, TorrentEvent.STOPPED))
        return found

    async def resume(self, key: str) -> bool:
        async with self._lock:
            if key in self._paused:
                self._paused.discard(key)
                self._save_paused()
            found = await self._engine_call(self.engine.resume, key)

        if found:
            await self.callbacks.dispatch(TorrentEvent.STARTED, self._info(key, TorrentEvent.STARTED))
        return found

    async def remove(self, key: str, delete_files: bool = False) -> bool:
        """Remove from the engine and forget everything stored about the torrent."""
        async with self._lock:
            info = self._info(key, TorrentEvent.REMOVED)
            found = await self._engine_call(self.engine.remove, key, delete_files)

            entry = find_entry(key, self._entries)
            if entry is not None:
                self._entries.remove(entry)
                self._save_entries()
            if key in self._paused:
                self._paused.discard(key)
                self._save_paused()
            self._progress.pop(key, None)
            self._metadata.pop(key, None)
            self._snapshot = tuple(row for row in self._snapshot if row.stable_id != key)

        if found or entry is not None:
            logger.info(f"Removed torrent {key}")
            await self.callbacks.dispatch(TorrentEvent.REMOVED, info)
            return True
        return False

    async def set_category(self, key: str, category: Optional[str]) -> bool:
        async with self._lock:
            entry = find_entry(key, self._entries)
            if entry is None:
                return False
            index = self._entries.index(entry)
            self._entries[index] = entry.model_copy(update={"category": category})
            self._save_entries()
        return True

    async def unmark_cleaned(self, key: str) -> bool:
        """Forget that a torrent's completion action ran, so it can run again."""
        async with self._lock:
            if key not in self._cleaned:
                return False
            self._cleaned.discard(key)
            self._save_cleaned()
        return True

    async def reset_cleaned(self) -> None:
        async with self._lock:
            self._cleaned.clear()
            self._save_cleaned()

    async def refresh(self) -> bool:
        """Run a tick right away instead of waiting for the next one."""
        return await self.tick()

    def _info(self, key: str, event: TorrentEvent) -> TorrentInfo:
        return TorrentInfo.build(
            key, event, self.row_for_key(key), find_entry(key, self._entries), self._metadata.get(key)
        )
