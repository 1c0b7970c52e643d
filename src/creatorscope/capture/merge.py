"""Fold captured creator-card responses into one profile."""

from __future__ import annotations

from typing import Iterable

from .models import PROFILE_SECTIONS, CapturedResponse, CreatorCard, CreatorProfile


def creator_sections(card: CreatorCard) -> dict[str, list]:
    """The six tracked sections of one creator card, keyed by profile field."""
    stats = card.statistic_data
    return {
        "content_labels": card.content_labels,
        "age_distribution": stats.follower_distri_data.age,
        "region_distribution": stats.follower_distri_data.region,
        "gender_distribution": stats.follower_distri_data.gender,
        "follower_history": stats.follower_count_history.follower_count,
        "recent_videos": stats.video_performance.recent_videos,
    }


def merge_captures(captures: Iterable[CapturedResponse]) -> tuple[CreatorProfile, bool]:
    """Merge captures in arrival order; a section keeps the first non-empty value.

    Returns the profile and whether every section got filled. Stops reading
    as soon as the profile is full. An empty input gives an empty profile
    and ``False``.
    """
    gathered: dict[str, list] = {name: [] for name in PROFILE_SECTIONS}

    for capture in captures:
        payload = capture.payload
        if payload is None or not payload.creators:
            continue

        for name, value in creator_sections(payload.creators[0]).items():
            if not gathered[name] and value:
                gathered[name] = list(value)

        if all(gathered.values()):
            return CreatorProfile(**gathered), True

    return CreatorProfile(**gathered), False
