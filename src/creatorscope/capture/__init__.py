"""Network response capture and profile merging."""

from .aggregator import CaptureState, ResponseCaptureAggregator
from .merge import creator_sections, merge_captures
from .models import PROFILE_SECTIONS, CapturedResponse, CreatorCardResponse, CreatorProfile

__all__ = [
    "PROFILE_SECTIONS",
    "CaptureState",
    "CapturedResponse",
    "CreatorCardResponse",
    "CreatorProfile",
    "ResponseCaptureAggregator",
    "creator_sections",
    "merge_captures",
]
