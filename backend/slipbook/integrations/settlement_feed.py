from __future__ import annotations

import requests

from slipbook.config import get_settings
from slipbook.integrations.odds_feed import FeedRateLimitedError


def fetch_bet_slips(bettor_id: str) -> list[dict]:
    settings = get_settings()
    if not settings.settlement_feed_api_key:
        raise ValueError("SETTLEMENT_FEED_API_KEY is required for settlement sync")

    response = requests.get(
        f"{settings.settlement_feed_base_url}/bettors/{bettor_id}/betSlips",
        headers={"Authorization": f"Token {settings.settlement_feed_api_key}"},
        timeout=settings.feed_timeout_sec,
    )
    if response.status_code == 429:
        raise FeedRateLimitedError("settlement feed", response.headers.get("Retry-After"))
    response.raise_for_status()

    payload = response.json()
    if isinstance(payload, dict):
        payload = payload.get("data", [])
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]
