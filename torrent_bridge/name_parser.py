"""
Release-name parsing for metadata lookups.

Turns a torrent name like "Some.Show.S02E05.1080p.WEB-DL.x265" into a search
query ("Some Show"), plus any plausible year, season and episode.
"""

import datetime
import re
from dataclasses import dataclass
from typing import Optional


SEPARATORS = re.compile(r"[._\-\[\](){}]")
DOTS = re.compile(r"[._]")
WHITESPACE = re.compile(r"\s{2,}")

YEAR = re.compile(r"\b(19\d{2}|20\d{2})\b")
SEASON_EPISODE = re.compile(r"\bs(\d{1,2})\s*e(\d{1,3})(?!\d)", re.IGNORECASE)
CROSS_EPISODE = re.compile(r"\b(\d{1,2})\s*x\s*(\d{1,3})\b", re.IGNORECASE)
SEASON_ONLY = [
    re.compile(r"\bseason\s*(\d{1,2})\b", re.IGNORECASE),
    re.compile(r"\bseries\s*(\d{1,2})\b", re.IGNORECASE),
    # Bounded so it never hits codec tokens like x265
    re.compile(r"\bs(\d{1,2})\b", re.IGNORECASE),
]

MULTI_EPISODE = re.compile(r"\bs\d{1,2}\s*e\d{1,3}(\s*-?\s*e\d{1,3})+(?!\d)", re.IGNORECASE)
SEASON_RANGE = re.compile(r"\b(s\d{1,2}\s*-\s*s\d{1,2}|season\s*\d{1,2}\s*-\s*\d{1,2})\b", re.IGNORECASE)
MULTI_SEASON = re.compile(r"\bseasons?\s*\d{1,2}(\s*[-,]\s*\d{1,2}|\s+\d{1,2})+\b", re.IGNORECASE)
COMPLETE_WORDS = ("complete", "season pack", "full season", "collection")

STRIP_PATTERNS = [
    re.compile(r"\bS\d{1,2}\s*E\d{1,3}(\s*-?\s*E\d{1,3})*(?!\d)", re.IGNORECASE),
    re.compile(r"\b\d{1,2}\s*x\s*\d{1,3}\b", re.IGNORECASE),
    re.compile(r"\bS\d{1,2}\s*-\s*S\d{1,2}\b", re.IGNORECASE),
    re.compile(r"\bSeason\s*\d{1,2}\s*-\s*\d{1,2}\b", re.IGNORECASE),
    re.compile(r"\bS\d{1,2}\b", re.IGNORECASE),
    re.compile(r"\bSeason\s*\d{1,2}\b", re.IGNORECASE),
    re.compile(r"\bSeries\s*\d{1,2}\b", re.IGNORECASE),
    re.compile(
        r"\b(480p|720p|1080p|2160p|4k|hdr|sdr|dv|dolby|vision|x264|x265|h264|h265|hevc|avc|"
        r"webrip|hdtv|web\-dl|webdl|web|dl|bluray|bdrip|dvdrip|hdrip|cam|ts|tc|aac|ac3|dts|truehd|atmos|"
        r"remux|repack|proper|extended|unrated|rarbg|yts|eztv)\b",
        re.IGNORECASE,
    ),
]


@dataclass(frozen=True)
class ParsedName:
    query: str
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    is_complete: bool = False

    @property
    def suffix(self) -> Optional[str]:
        if self.is_complete:
            return "Complete"
        if self.season is not None and self.episode is not None:
            return f"S{self.season:02d}E{self.episode:02d}"
        if self.season is not None:
            return f"S{self.season:02d}"
        return None

    @property
    def looks_like_show(self) -> bool:
        return self.season is not None or self.episode is not None


def _normalize(name: str) -> str:
    return WHITESPACE.sub(" ", SEPARATORS.sub(" ", name)).strip()


def _plausible_year(text: str) -> Optional[int]:
    match = YEAR.search(text)
    if not match:
        return None
    year = int(match.group(1))
    if 1950 <= year <= datetime.date.today().year + 1:
        return year
    return None


def parse_name(name: str) -> ParsedName:
    cleaned = _normalize(name)
    lower = cleaned.lower()
    # Ranges need their dashes
    dashed = WHITESPACE.sub(" ", DOTS.sub(" ", name)).strip().lower()

    year = _plausible_year(lower)
    is_complete = (
        any(word in lower for word in COMPLETE_WORDS)
        or bool(SEASON_RANGE.search(dashed))
        or bool(MULTI_SEASON.search(dashed))
    )

    season = episode = None
    match = SEASON_EPISODE.search(lower) or CROSS_EPISODE.search(lower)
    if match:
        season, episode = int(match.group(1)), int(match.group(2))
    else:
        for pattern in SEASON_ONLY:
            match = pattern.search(lower)
            if match:
                season = int(match.group(1))
                break

    # Packs never report a single episode
    if is_complete or MULTI_EPISODE.search(dashed):
        episode = None

    query = cleaned
    if year is not None:
        query = re.sub(rf"(?<!\d){year}(?!\d)", " ", query)
    for pattern in STRIP_PATTERNS:
        query = pattern.sub(" ", query)
    query = WHITESPACE.sub(" ", query).strip()

    return ParsedName(
        query=query or cleaned,
        year=year,
        season=season,
        episode=episode,
        is_complete=is_complete,
    )
