"""
Tests for release-name parsing.
"""

from torrent_bridge.name_parser import parse_name


class TestParseName:
    def test_movie_with_year_and_tags(self):
        parsed = parse_name("Dont.Look.Up.2021.1080p.WEBRip.x265-RARBG")
        assert parsed.query == "Dont Look Up"
        assert parsed.year == 2021
        assert parsed.season is None
        assert not parsed.looks_like_show
        assert parsed.suffix is None

    def test_show_episode(self):
        parsed = parse_name("Some.Show.S02E05.720p.WEB.h264")
        assert parsed.query == "Some Show"
        assert (parsed.season, parsed.episode) == (2, 5)
        assert parsed.suffix == "S02E05"
        assert parsed.looks_like_show

    def test_cross_notation(self):
        parsed = parse_name("Another Show 3x07 HDTV")
        assert (parsed.season, parsed.episode) == (3, 7)
        assert parsed.query == "Another Show"

    def test_season_pack(self):
        parsed = parse_name("Friends Season 4 Complete 1080p BluRay")
        assert parsed.season == 4
        assert parsed.episode is None
        assert parsed.is_complete
        assert parsed.suffix == "Complete"

    def test_season_range_is_complete(self):
        parsed = parse_name("The.Wire.S01-S05.720p")
        assert parsed.is_complete
        assert parsed.season == 1

    def test_multi_episode_drops_episode(self):
        parsed = parse_name("Show.Name.S01E01E02.720p")
        assert parsed.season == 1
        assert parsed.episode is None
        assert parsed.suffix == "S01"

    def test_implausible_year_is_ignored(self):
        parsed = parse_name("Blade.Runner.2099.2160p")
        assert parsed.year is None

    def test_query_never_empty(self):
        assert parse_name("1080p.x264").query
