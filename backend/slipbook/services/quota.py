from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

_quota_state: dict[str, dict[str, Any]] = {}


def record_quota(source: str, headers: dict[str, str], fetched_at: datetime) -> None:
    _quota_state[source] = {
        "headers": dict(headers),
        "fetched_at": fetched_at.astimezone(timezone.utc).isoformat(),
    }


def get_quota_state() -> dict[str, dict[str, Any]]:
    return {
        source: {"headers": dict(state["headers"]), "fetched_at": state["fetched_at"]}
        for source, state in _quota_state.items()
    }


def reset_quota_state() -> None:
    _quota_state.clear()
