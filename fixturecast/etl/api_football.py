"""API-Football (API-Sports direct) fixture source."""

import asyncio
import logging
import re
import time
from typing import Optional

import httpx

from fixturecast.config import ConfigurationError, get_settings
from fixturecast.etl.base import FinishedMatch, FixtureFetchError, FixtureMatch, FixtureSource
from fixturecast.etl.competitions import FEATURED_COMPETITIONS, Competition
from fixturecast.telemetry import record_fixture_request

logger = logging.getLogger(__name__)

_CORNER_RE = re.compile(r"corner", re.IGNORECASE)


class APIFootballSource(FixtureSource):
    """Fixture source backed by the API-Sports v3 REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        featured_concurrency: Optional[int] = None,
        corners_concurrency: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.FOOTBALL_API_KEY
        self.base_url = (base_url or settings.FOOTBALL_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.FOOTBALL_API_TIMEOUT_SECONDS
        self.featured_concurrency = featured_concurrency or settings.FEATURED_FETCH_CONCURRENCY
        self.corners_concurrency = corners_concurrency or settings.CORNERS_FETCH_CONCURRENCY
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if not self.api_key:
            raise ConfigurationError("FOOTBALL_API_KEY not configured")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"x-apisports-key": self.api_key},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request(self, endpoint: str, params: dict) -> list:
        """GET an endpoint and return its `response` array.

        Raises FixtureFetchError on transport errors, non-2xx statuses and
        API-level `errors` payloads.
        """
        client = self._get_client()
        start_time = time.time()
        try:
            response = await client.get(f"/{endpoint}", params=params)
        except httpx.HTTPError as e:
            record_fixture_request(endpoint, "transport_error", (time.time() - start_time) * 1000)
            raise FixtureFetchError(f"{endpoint} request failed: {type(e).__name__}: {e}") from e

        latency_ms = (time.time() - start_time) * 1000
        if response.status_code >= 400:
            record_fixture_request(endpoint, f"http_{response.status_code}", latency_ms)
            raise FixtureFetchError(f"Football API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            record_fixture_request(endpoint, "invalid_json", latency_ms)
            raise FixtureFetchError(f"{endpoint} returned invalid JSON") from e

        # API-Sports reports quota/auth problems as 200 with a non-empty `errors`
        if data.get("errors"):
            record_fixture_request(endpoint, "api_error", latency_ms)
            raise FixtureFetchError(f"Football API error: {data['errors']}")

        record_fixture_request(endpoint, "ok", latency_ms)
        return data.get("response") or []

    def _parse_fixture(self, raw: dict) -> FixtureMatch:
        fixture_info = raw.get("fixture") or {}
        league = raw.get("league") or {}
        teams = raw.get("teams") or {}
        venue = fixture_info.get("venue") or {}
        return FixtureMatch(
            match_id=int(fixture_info["id"]),
            league_id=int(league.get("id") or 0),
            league_name=league.get("name") or "",
            season=league.get("season"),
            home_team=(teams.get("home") or {}).get("name") or "",
            away_team=(teams.get("away") or {}).get("name") or "",
            kickoff=fixture_info.get("date"),
            venue=venue.get("name"),
            country=league.get("country"),
        )

    def _parse_fixtures(self, raw_fixtures: list) -> list[FixtureMatch]:
        matches = []
        for raw in raw_fixtures:
            try:
                matches.append(self._parse_fixture(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping fixture: {e}")
        return matches

    async def _fetch_competition(
        self, date: str, competition: Competition, semaphore: asyncio.Semaphore
    ) -> list[FixtureMatch]:
        async with semaphore:
            try:
                raw = await self._request("fixtures", {"date": date, "league": competition.league_id})
            except FixtureFetchError as e:
                logger.warning(f"Featured league fetch failed for {competition.league_id}: {e}")
                return []
        return self._parse_fixtures(raw)

    async def get_fixtures(self, date: str, featured_only: bool = False) -> list[FixtureMatch]:
        """Fetch the day's fixtures, globally or per featured competition."""
        if not featured_only:
            logger.info(f"Fetching all fixtures for {date}")
            matches = self._parse_fixtures(await self._request("fixtures", {"date": date}))
            logger.info(f"Received {len(matches)} fixtures for {date}")
            return matches

        # Fail fast on missing credentials before fanning out
        self._get_client()
        semaphore = asyncio.Semaphore(self.featured_concurrency)
        per_competition = await asyncio.gather(
            *(self._fetch_competition(date, comp, semaphore) for comp in FEATURED_COMPETITIONS)
        )

        matches: list[FixtureMatch] = []
        for competition_matches in per_competition:
            matches.extend(competition_matches)
        logger.info(
            f"Featured-only fetch: {len(matches)} fixtures across "
            f"{len(FEATURED_COMPETITIONS)} leagues for {date}"
        )
        return matches

    def _parse_finished(self, raw: dict) -> FinishedMatch:
        base = self._parse_fixture(raw)
        goals = raw.get("goals") or {}
        return FinishedMatch(
            **base.context(),
            match_id=base.match_id,
            home_score=goals.get("home") or 0,
            away_score=goals.get("away") or 0,
        )

    async def get_corner_total(self, fixture_id: int) -> Optional[int]:
        """Sum both teams' corner kicks. Returns None when unavailable."""
        raw = await self._request("fixtures/statistics", {"fixture": fixture_id})
        total = 0
        for side in raw:
            for stat in side.get("statistics") or []:
                if _CORNER_RE.search(stat.get("type") or ""):
                    value = stat.get("value")
                    if isinstance(value, int):
                        total += value
                    break
        return total if total > 0 else None

    async def _enrich_corners(
        self, match: FinishedMatch, semaphore: asyncio.Semaphore
    ) -> FinishedMatch:
        async with semaphore:
            try:
                corners = await self.get_corner_total(match.match_id)
            except FixtureFetchError as e:
                logger.debug(f"Corner stats unavailable for {match.match_id}: {e}")
                return match
        if corners is None:
            return match
        return FinishedMatch(**{**match.to_dict(), "total_corners": corners})

    async def get_finished_matches(self, date: str) -> list[FinishedMatch]:
        """Fetch finished (FT) matches for a date with best-effort corner totals."""
        raw = await self._request("fixtures", {"date": date, "status": "FT"})
        finished = []
        for item in raw:
            try:
                finished.append(self._parse_finished(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping finished fixture: {e}")
        logger.info(f"Found {len(finished)} finished matches for {date}")

        if finished:
            semaphore = asyncio.Semaphore(self.corners_concurrency)
            finished = list(
                await asyncio.gather(*(self._enrich_corners(m, semaphore) for m in finished))
            )
            with_corners = sum(1 for m in finished if m.total_corners is not None)
            logger.info(f"Corner stats enrichment complete ({with_corners}/{len(finished)} with totals)")

        return finished

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
