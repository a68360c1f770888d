"""
Metadata enrichment for torrents.

Looks up a torrent's parsed name on Trakt (title, year, ids, overview) and
fetches a poster URL from fanart.tv. Enrichment is best-effort: every
failure is logged and turns into None, never an exception.

Both clients accept an optional httpx transport so they can be pointed at a
mock in tests.
"""

from typing import Any, Dict, Optional

import httpx

from .config import Config
from .logger import logger
from .models import MediaMetadata, MediaType
from .name_parser import parse_name


TRAKT_API_URL = "https://api.trakt.tv"
FANART_API_URL = "https://webservice.fanart.tv/v3"


class TraktClient:
    def __init__(
        self,
        client_id: str,
        timeout: float = Config.METADATA_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "trakt-api-key": self.client_id,
            "trakt-api-version": "2",
        }

    async def search(
        self,
        query: str,
        year: Optional[int] = None,
        media_type: MediaType = MediaType.MOVIE,
    ) -> Optional[Dict[str, Any]]:
        """
        Search Trakt for a movie or show.

        Returns the first hit as {title, year, ids, overview}, or None.

        Raises:
            httpx.HTTPError: on transport or status errors
            ValueError: when the response is not JSON or not a result list
        """
        params: Dict[str, Any] = {"query": query, "extended": "full"}
        if year:
            params["years"] = str(year)

        async with httpx.AsyncClient(
            base_url=TRAKT_API_URL, timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.get(f"/search/{media_type.value}", params=params, headers=self._headers())
            response.raise_for_status()
            results = response.json()

        if not isinstance(results, list):
            raise ValueError(f"expected a list of results, got {type(results).__name__}")

        for result in results:
            if not isinstance(result, dict):
                continue
            item = result.get(media_type.value)
            if isinstance(item, dict):
                return {
                    "title": item.get("title", query),
                    "year": item.get("year"),
                    "ids": item["ids"] if isinstance(item.get("ids"), dict) else {},
                    "overview": item.get("overview"),
                }
        return None


class FanartClient:
    def __init__(
        self,
        api_key: str,
        timeout: float = Config.METADATA_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def poster_url(self, media_type: MediaType, ids: Dict[str, Any]) -> Optional[str]:
        """Movies are looked up by IMDb id, shows by TVDB id."""
        if media_type == MediaType.MOVIE:
            lookup_id = ids.get("imdb")
            path, poster_key = f"/movies/{lookup_id}", "movieposter"
        else:
            lookup_id = ids.get("tvdb")
            path, poster_key = f"/tv/{lookup_id}", "tvposter"

        if not lookup_id:
            return None

        async with httpx.AsyncClient(
            base_url=FANART_API_URL, timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.get(path, params={"api_key": self.api_key})
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        posters = data.get(poster_key) or []
        if isinstance(posters, list) and posters and isinstance(posters[0], dict) and posters[0].get("url"):
            return posters[0]["url"]
        return None


class MetadataService:
    """
    Resolve a torrent name into MediaMetadata.

    Disabled (always returns None) when no Trakt client id is configured.
    Poster lookups are skipped without a fanart.tv key.
    """

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.trakt = None
        self.fanart = None
        if config.TRAKT_CLIENT_ID:
            self.trakt = TraktClient(config.TRAKT_CLIENT_ID, config.METADATA_TIMEOUT, transport)
        if config.FANART_API_KEY:
            self.fanart = FanartClient(config.FANART_API_KEY, config.METADATA_TIMEOUT, transport)

    @property
    def enabled(self) -> bool:
        return self.trakt is not None

    async def enrich(self, name: str) -> Optional[MediaMetadata]:
        if not self.enabled or not name:
            return None

        parsed = parse_name(name)
        media_type = MediaType.SHOW if parsed.looks_like_show else MediaType.MOVIE

        try:
            found = await self.trakt.search(parsed.query, parsed.year, media_type)
        except httpx.HTTPError as e:
            logger.warning(f"Trakt lookup failed for {name!r}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Trakt returned unreadable data for {name!r}: {e}")
            return None

        if found is None:
            logger.debug(f"No Trakt match for {parsed.query!r} ({media_type.value})")
            return None

        metadata = MediaMetadata(
            media_type=media_type,
            title=found["title"],
            year=found["year"],
            ids=found["ids"],
            overview=found["overview"],
            season=parsed.season,
            display_suffix=parsed.suffix,
        )

        if self.fanart is not None:
            try:
                metadata.poster_url = await self.fanart.poster_url(media_type, metadata.ids)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Poster lookup failed for {metadata.title!r}: {e}")

        logger.info(f"Enriched {name!r} as {media_type.value} {metadata.title!r} ({metadata.year})")
        return metadata
