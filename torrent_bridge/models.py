"""
Data models for the torrent bridge.

StoredEntry is persisted (pydantic, camelCase on disk to stay compatible
with existing torrents.json files). EngineStatus and LiveRow are ephemeral
per-tick values; a LiveRow's ordinal_index is only meaningful within the
snapshot that produced it.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoredEntry(BaseModel):
    """A torrent the user asked for, keyed by its stable id."""
    model_config = ConfigDict(populate_by_name=True)

    key: str
    magnet: str
    save_path: str = Field(alias="savePath")
    category: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class EngineStatus:
    """Raw per-torrent status as reported by the torrent engine."""
    name: str = ""
    progress: float = 0.0
    total_bytes: int = 0
    done_bytes: int = 0
    down_rate: int = 0
    up_rate: int = 0
    peers: int = 0
    seeds: int = 0
    state: int = 0
    paused: bool = False
    seeding: bool = False
    errored: bool = False
    error_message: str = ""


@dataclass(frozen=True)
class LiveRow:
    """One torrent in a published snapshot."""
    ordinal_index: int
    stable_id: str
    name: str
    progress: float
    total_bytes: int
    done_bytes: int
    down_rate: int
    up_rate: int
    peers: int
    seeds: int
    engine_state: int
    paused: bool
    seeding: bool
    errored: bool
    category: Optional[str] = None
    save_path: Optional[str] = None
    error_message: str = ""

    @classmethod
    def from_status(
        cls,
        ordinal_index: int,
        stable_id: str,
        status: EngineStatus,
        category: Optional[str] = None,
        save_path: Optional[str] = None,
    ) -> "LiveRow":
        return cls(
            ordinal_index=ordinal_index,
            stable_id=stable_id,
            name=status.name,
            progress=min(max(float(status.progress), 0.0), 1.0),
            total_bytes=status.total_bytes,
            done_bytes=status.done_bytes,
            down_rate=status.down_rate,
            up_rate=status.up_rate,
            peers=status.peers,
            seeds=status.seeds,
            engine_state=status.state,
            paused=status.paused,
            seeding=status.seeding,
            errored=status.errored,
            category=category,
            save_path=save_path,
            error_message=status.error_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MediaType(str, Enum):
    MOVIE = "movie"
    SHOW = "show"


@dataclass
class MediaMetadata:
    """Result of metadata enrichment for a torrent."""
    media_type: MediaType
    title: str
    year: Optional[int] = None
    ids: Dict[str, Any] = field(default_factory=dict)
    overview: Optional[str] = None
    poster_url: Optional[str] = None
    season: Optional[int] = None
    display_suffix: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["media_type"] = self.media_type.value
        return data
