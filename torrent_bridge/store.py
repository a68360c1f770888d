"""
Persisted state: stored torrents, desired-pause set and cleaned set.

Each collection lives in its own JSON file under the state directory and is
saved by whole-file atomic overwrite (write to a temp file in the same
directory, then os.replace). Missing or unreadable files load as empty.

torrents.json has gone through several shapes; older ones are migrated on
load by deriving the key from the stored magnet:

- current:  [{key, magnet, savePath, category}]
- category: [{magnet, savePath, category}]
- tags:     [{magnet, savePath, tags: [...]}]   (first tag, sorted, wins)
- oldest:   [{magnet, savePath}]
"""

import json
import os
import tempfile
from typing import Any, Iterable, List, Set

from pydantic import ValidationError

from .exceptions import StoreError
from .logger import logger
from .magnet_link import derive_key
from .models import StoredEntry


ENTRIES_FILE = "torrents.json"
PAUSED_FILE = "paused.json"
CLEANED_FILE = "cleaned.json"


class StateStore:
    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, filename: str) -> str:
        return os.path.join(self.directory, filename)

    def _read_json(self, filename: str) -> Any:
        path = self._path(filename)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None

    def _write_json(self, filename: str, data: Any) -> None:
        path = self._path(filename)
        try:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{filename}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise StoreError(f"Failed to save {path}: {e}") from e

    # -------------------------------------------------------------------------
    # Stored torrents
    # -------------------------------------------------------------------------

    def load_entries(self) -> List[StoredEntry]:
        data = self._read_json(ENTRIES_FILE)
        if not isinstance(data, list):
            return []

        entries = []
        for item in data:
            entry = self._entry_from_json(item)
            if entry is not None:
                entries.append(entry)
        return entries

    def save_entries(self, entries: Iterable[StoredEntry]) -> None:
        self._write_json(ENTRIES_FILE, [entry.to_json() for entry in entries])

    @staticmethod
    def _entry_from_json(item: Any):
        if not isinstance(item, dict) or "magnet" not in item:
            logger.warning(f"Skipping malformed stored torrent: {item!r}")
            return None

        if "key" not in item:
            magnet = item["magnet"]
            category = item.get("category")
            if category is None and isinstance(item.get("tags"), list) and item["tags"]:
                category = sorted(item["tags"])[0]
            item = {
                "key": derive_key(magnet) or magnet.strip(),
                "magnet": magnet,
                "savePath": item.get("savePath", ""),
                "category": category,
            }

        try:
            return StoredEntry.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping invalid stored torrent: {e}")
            return None

    # -------------------------------------------------------------------------
    # Key sets
    # -------------------------------------------------------------------------

    def _load_keys(self, filename: str) -> Set[str]:
        data = self._read_json(filename)
        if not isinstance(data, list):
            return set()
        return {str(k) for k in data if isinstance(k, str) and k}

    def load_paused(self) -> Set[str]:
        return self._load_keys(PAUSED_FILE)

    def save_paused(self, keys: Iterable[str]) -> None:
        self._write_json(PAUSED_FILE, sorted(keys))

    def load_cleaned(self) -> Set[str]:
        return self._load_keys(CLEANED_FILE)

    def save_cleaned(self, keys: Iterable[str]) -> None:
        self._write_json(CLEANED_FILE, sorted(keys))
