"""Fixture and result retrieval from the football data provider."""

from fixturecast.etl.api_football import APIFootballSource
from fixturecast.etl.base import FinishedMatch, FixtureFetchError, FixtureMatch, FixtureSource
from fixturecast.etl.competitions import FEATURED_COMPETITIONS, FEATURED_LEAGUE_IDS, is_featured

__all__ = [
    "APIFootballSource",
    "FinishedMatch",
    "FixtureFetchError",
    "FixtureMatch",
    "FixtureSource",
    "FEATURED_COMPETITIONS",
    "FEATURED_LEAGUE_IDS",
    "is_featured",
]
