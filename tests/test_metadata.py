"""
Tests for Trakt / fanart.tv metadata enrichment, against a mock transport.
"""

import httpx
import pytest

from torrent_bridge.metadata import MetadataService
from torrent_bridge.models import MediaType


def make_transport(routes, seen):
    def handler(request):
        seen.append(request)
        for (host, path), response in routes.items():
            if request.url.host == host and request.url.path == path:
                return response
        return httpx.Response(404)
    return httpx.MockTransport(handler)


@pytest.fixture
def enabled_config(config):
    config.TRAKT_CLIENT_ID = "trakt-id"
    config.FANART_API_KEY = "fanart-key"
    return config


class TestMetadataService:
    @pytest.mark.asyncio
    async def test_disabled_without_trakt_id(self, config):
        service = MetadataService(config)
        assert not service.enabled
        assert await service.enrich("Some.Movie.2019") is None

    @pytest.mark.asyncio
    async def test_movie_lookup_with_poster(self, enabled_config):
        seen = []
        routes = {
            ("api.trakt.tv", "/search/movie"): httpx.Response(200, json=[{
                "type": "movie",
                "movie": {"title": "Some Movie", "year": 2019, "ids": {"trakt": 1, "imdb": "tt123"}, "overview": "Plot."},
            }]),
            ("webservice.fanart.tv", "/v3/movies/tt123"): httpx.Response(200, json={
                "movieposter": [{"url": "https://assets.fanart.tv/poster.jpg"}],
            }),
        }
        service = MetadataService(enabled_config, transport=make_transport(routes, seen))

        metadata = await service.enrich("Some.Movie.2019.1080p.BluRay.x264")

        assert metadata.media_type == MediaType.MOVIE
        assert (metadata.title, metadata.year) == ("Some Movie", 2019)
        assert metadata.poster_url == "https://assets.fanart.tv/poster.jpg"
        trakt_request = seen[0]
        assert trakt_request.headers["trakt-api-key"] == "trakt-id"
        assert trakt_request.headers["trakt-api-version"] == "2"
        assert trakt_request.url.params["query"] == "Some Movie"
        assert trakt_request.url.params["years"] == "2019"

    @pytest.mark.asyncio
    async def test_show_lookup_uses_tvdb_poster(self, enabled_config):
        seen = []
        routes = {
            ("api.trakt.tv", "/search/show"): httpx.Response(200, json=[{
                "type": "show",
                "show": {"title": "Some Show", "year": 2015, "ids": {"tvdb": 42}},
            }]),
            ("webservice.fanart.tv", "/v3/tv/42"): httpx.Response(200, json={"tvposter": []}),
        }
        service = MetadataService(enabled_config, transport=make_transport(routes, seen))

        metadata = await service.enrich("Some.Show.S02E05.720p")

        assert metadata.media_type == MediaType.SHOW
        assert metadata.season == 2
        assert metadata.display_suffix == "S02E05"
        assert metadata.poster_url is None

    @pytest.mark.asyncio
    async def test_http_failure_is_swallowed(self, enabled_config):
        routes = {("api.trakt.tv", "/search/movie"): httpx.Response(500)}
        service = MetadataService(enabled_config, transport=make_transport(routes, []))
        assert await service.enrich("Some.Movie.2019") is None

    @pytest.mark.asyncio
    async def test_no_match(self, enabled_config):
        routes = {("api.trakt.tv", "/search/movie"): httpx.Response(200, json=[])}
        service = MetadataService(enabled_config, transport=make_transport(routes, []))
        assert await service.enrich("Unknown.Thing.2020") is None

    @pytest.mark.asyncio
    async def test_error_object_instead_of_results_is_swallowed(self, enabled_config):
        routes = {("api.trakt.tv", "/search/movie"): httpx.Response(200, json={"error": "rate limited"})}
        service = MetadataService(enabled_config, transport=make_transport(routes, []))
        assert await service.enrich("Some.Movie.2019") is None

    @pytest.mark.asyncio
    async def test_malformed_results_and_poster_payload(self, enabled_config):
        routes = {
            ("api.trakt.tv", "/search/movie"): httpx.Response(200, json=[
                "junk",
                {"type": "movie", "movie": "junk"},
                {"type": "movie", "movie": {"title": "Some Movie", "year": 2019, "ids": {"imdb": "tt123"}}},
            ]),
            ("webservice.fanart.tv", "/v3/movies/tt123"): httpx.Response(200, json=["not", "an", "object"]),
        }
        service = MetadataService(enabled_config, transport=make_transport(routes, []))

        metadata = await service.enrich("Some.Movie.2019")

        assert metadata.title == "Some Movie"
        assert metadata.poster_url is None
