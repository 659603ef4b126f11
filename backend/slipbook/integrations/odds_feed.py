from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import requests

from slipbook.config import get_settings

logger = logging.getLogger(__name__)

QUOTA_HEADER_PREFIXES = ("x-ratelimit-", "x-requests-")


class FeedRateLimitedError(RuntimeError):
    def __init__(self, source: str, retry_after: str | None = None) -> None:
        self.source = source
        self.retry_after = retry_after
        message = f"{source} rate limited the request"
        if retry_after:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


def quota_headers(response: requests.Response) -> dict[str, str]:
    return {
        key: value
        for key, value in response.headers.items()
        if key.lower().startswith(QUOTA_HEADER_PREFIXES)
    }


def fetch_league_events(league: str, now: datetime | None = None) -> tuple[list[dict], dict]:
    """Fetch upcoming events with odds for one league, following the cursor.

    Paging stops at the first empty page, a missing cursor, the page cap or
    the event cap. HTTP 429 raises :class:`FeedRateLimitedError` so the caller
    can abandon this league only.
    """
    settings = get_settings()
    if not settings.odds_feed_api_key:
        raise ValueError("ODDS_FEED_API_KEY is required for ingestion")

    now = now or datetime.now(timezone.utc)
    today = now.date()
    params: dict[str, str | int] = {
        "leagueID": league,
        "type": "match",
        "oddsAvailable": "true",
        "startsAfter": today.isoformat(),
        "startsBefore": (today + timedelta(days=settings.ingest_lookahead_days)).isoformat(),
        "limit": settings.feed_page_limit,
    }

    events: list[dict] = []
    headers: dict[str, str] = {}
    cursor: str | None = None
    for page in range(1, settings.feed_max_pages + 1):
        page_params = dict(params, cursor=cursor) if cursor else params
        response = requests.get(
            f"{settings.odds_feed_base_url}/events",
            params=page_params,
            headers={"X-API-Key": settings.odds_feed_api_key},
            timeout=settings.feed_timeout_sec,
        )
        if response.status_code == 429:
            raise FeedRateLimitedError("odds feed", response.headers.get("Retry-After"))
        response.raise_for_status()
        headers.update(quota_headers(response))

        payload = response.json()
        data = payload.get("data") if isinstance(payload, dict) else None
        if not data:
            break
        events.extend(item for item in data if isinstance(item, dict))
        cursor = payload.get("nextCursor")
        if not cursor:
            break
        if len(events) >= settings.feed_max_events:
            logger.warning("%s hit the %d event cap after %d page(s)", league, settings.feed_max_events, page)
            break
    else:
        logger.warning("%s hit the %d page cap", league, settings.feed_max_pages)

    quota_info = {"headers": headers, "fetched_at": datetime.now(timezone.utc)}
    return events[: settings.feed_max_events], quota_info
