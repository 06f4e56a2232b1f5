"""Abstract fixture source and the match DTOs it returns."""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Optional


class FixtureFetchError(RuntimeError):
    """Raised when the fixture provider cannot be reached or answers with an error."""


@dataclass(frozen=True)
class FixtureMatch:
    """A scheduled match as returned by the fixture provider."""

    match_id: int
    league_id: int
    league_name: str
    season: Optional[int]
    home_team: str
    away_team: str
    kickoff: Optional[str] = None  # ISO-8601, provider timezone preserved
    venue: Optional[str] = None
    country: Optional[str] = None

    def context(self) -> dict:
        """Match context persisted alongside a prediction."""
        return {
            "league_id": self.league_id,
            "league_name": self.league_name,
            "season": self.season,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "kickoff": self.kickoff,
            "venue": self.venue,
            "country": self.country,
        }


@dataclass(frozen=True)
class FinishedMatch(FixtureMatch):
    """A match with its final result."""

    home_score: int = 0
    away_score: int = 0
    total_corners: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


class FixtureSource(ABC):
    """Abstract base class for fixture providers."""

    @abstractmethod
    async def get_fixtures(self, date: str, featured_only: bool = False) -> list[FixtureMatch]:
        """
        Fetch the fixtures scheduled on a date.

        Args:
            date: Target date (YYYY-MM-DD).
            featured_only: Query each featured competition instead of the whole day.

        Returns:
            List of FixtureMatch objects.

        Raises:
            FixtureFetchError: The unfiltered lookup failed.
        """
        pass

    @abstractmethod
    async def get_finished_matches(self, date: str) -> list[FinishedMatch]:
        """
        Fetch the matches that finished on a date, with corner totals when available.

        Raises:
            FixtureFetchError: The results lookup failed.
        """
        pass

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        return None
