"""
Tiered matching of live torrents against stored entries.

Each matcher takes a live stable id and the stored entries and returns the
matching entry or None. CATEGORY_MATCHERS is tried in order, first hit wins;
results from different tiers are never merged.

The substring tier only exists to tolerate legacy stored entries whose key
is a raw magnet or a partial identity. It is a heuristic, not a guarantee.
"""

from typing import Callable, Optional, Sequence, Tuple

from .magnet_link import derive_key
from .models import StoredEntry


Matcher = Callable[[str, Sequence[StoredEntry]], Optional[StoredEntry]]


def match_by_key(stable_id: str, entries: Sequence[StoredEntry]) -> Optional[StoredEntry]:
    for entry in entries:
        if entry.key == stable_id:
            return entry
    return None


def match_by_derived_key(stable_id: str, entries: Sequence[StoredEntry]) -> Optional[StoredEntry]:
    for entry in entries:
        if derive_key(entry.magnet) == stable_id:
            return entry
    return None


def match_by_magnet_substring(stable_id: str, entries: Sequence[StoredEntry]) -> Optional[StoredEntry]:
    if not stable_id:
        return None
    needle = stable_id.lower()
    for entry in entries:
        if needle in entry.magnet.lower():
            return entry
    return None


CATEGORY_MATCHERS: Tuple[Matcher, ...] = (
    match_by_key,
    match_by_derived_key,
    match_by_magnet_substring,
)


def find_entry(
    stable_id: str,
    entries: Sequence[StoredEntry],
    matchers: Sequence[Matcher] = CATEGORY_MATCHERS,
) -> Optional[StoredEntry]:
    """Return the stored entry for a live torrent, trying each tier in order."""
    for matcher in matchers:
        entry = matcher(stable_id, entries)
        if entry is not None:
            return entry
    return None


def resolve_category(stable_id: str, entries: Sequence[StoredEntry]) -> Optional[str]:
    entry = find_entry(stable_id, entries)
    return entry.category if entry else None
