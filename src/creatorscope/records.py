"""Map merged profiles onto the flat record shape the profile store expects."""

from __future__ import annotations

import logging
from typing import Any

from .capture.models import CreatorProfile

logger = logging.getLogger(__name__)


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def construct_percent_data(items: list[dict[str, Any]], data_key: str, key_item: str) -> list[dict[str, Any]]:
    """Turn ``{key_item: ..., "ratio": ...}`` rows into ``{"name", "value"}`` rows.

    ``ratio`` is coerced to float (0.0 when missing or unparseable). Rows for
    ``content_interest`` keep their own shape and only get ``value`` when
    they already had one. Any ``key`` entry is dropped.
    """
    if not items:
        return []

    logger.debug("Constructing percent data for key %s", data_key)
    result = []
    for item in items:
        value = _as_float(item.get("ratio"))
        key = item.get(key_item)

        row = dict(item)
        if data_key != "content_interest":
            row["name"] = "" if key is None else str(key)
        if "value" in row or data_key != "content_interest":
            row["value"] = value
        row.pop("key", None)
        result.append(row)
    return result


def profile_to_record(
    profile: CreatorProfile,
    is_full: bool,
    *,
    subject_id: str | None = None,
    username: str | None = None,
) -> dict[str, Any]:
    """Persistence-ready dict for one creator."""

    def dump(rows) -> list[dict[str, Any]]:
        return [row.model_dump(by_alias=True, exclude_none=True) for row in rows]

    return {
        "id": subject_id,
        "username": username,
        "is_full": is_full,
        "category_content": dump(profile.content_labels),
        "age_distri": construct_percent_data(dump(profile.age_distribution), "age_distri", "ageInterval"),
        "region_distri": construct_percent_data(dump(profile.region_distribution), "region_distri", "country"),
        "gender_distri": construct_percent_data(dump(profile.gender_distribution), "gender_distri", "gender"),
        "follower_trend": dump(profile.follower_history),
        "video_views": dump(profile.recent_videos),
    }
