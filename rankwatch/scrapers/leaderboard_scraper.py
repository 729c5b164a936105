import asyncio
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import httpx
from loguru import logger

from rankwatch.models.leaderboard import SnapshotSet
from rankwatch.normalization.leaderboard_parser import parse_snapshot_set
from .base_scraper import BaseScraper, FetchError

BASE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,id;q=0.8",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class LeaderboardScraper(BaseScraper):
    """Fetches the hackathon dashboard and parses its contest tables."""

    source_name = "leaderboard"

    def __init__(
        self,
        url: str,
        contests: Sequence[str],
        session_cookie: Optional[str] = None,
        fetch_timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client=client, request_timeout=fetch_timeout)
        self.url = url
        self.contests: List[str] = list(contests)
        self.fetch_timeout = fetch_timeout

        headers = BASE_HEADERS.copy()
        if session_cookie:
            headers["Cookie"] = f"PHPSESSID={session_cookie}"
            logger.info(
                f"Using session cookie from settings (length: {len(session_cookie)})."
            )
        else:
            logger.warning("No session cookie configured; the dashboard may refuse us.")
        self.client.headers.update(headers)

    async def fetch_html(self) -> str:
        response = await self._make_request("GET", self.url)
        return response.text

    async def fetch_snapshot_set(self) -> SnapshotSet:
        logger.info(f"Fetching leaderboard from {self.url}")
        try:
            # Bounds the whole fetch, retries and backoff included
            html = await asyncio.wait_for(self.fetch_html(), timeout=self.fetch_timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Leaderboard fetch timed out after {self.fetch_timeout}s")
            raise FetchError(
                f"Fetching {self.url} timed out after {self.fetch_timeout}s"
            ) from e
        logger.debug(f"Fetched {len(html)} characters of HTML")

        snapshot_set = parse_snapshot_set(
            html, self.contests, observed_at=datetime.now(timezone.utc)
        )
        logger.info(
            "Finished fetching: "
            + ", ".join(f"{name} ({len(s)} teams)" for name, s in snapshot_set.contests.items())
        )
        return snapshot_set
