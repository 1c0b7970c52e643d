"""Creator card API payloads, captured responses and merged profiles.

The creator marketplace answers ``MGetCreatorsCard`` calls with the same
envelope whatever the page asked for; individual calls simply leave
different parts of it empty. One schema with every field optional covers
them all. Unknown keys are ignored and ``null`` falls back to the field
default, so an upstream schema change shows up as missing data rather than
a decode error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ContentLabel(_Payload):
    label_id: str | None = Field(default=None, alias="labelID")
    label_name: str | None = Field(default=None, alias="labelName")


class AgeBucket(_Payload):
    age_interval: str | None = Field(default=None, alias="ageInterval")
    ratio: float | None = None


class GenderBucket(_Payload):
    gender: str | None = None
    ratio: float | None = None


class RegionBucket(_Payload):
    country: str | None = None
    ratio: float | None = None


class FollowerCountPoint(_Payload):
    count: int | None = None
    date: str | None = None


class GrowthRatePoint(_Payload):
    date: str | None = None
    rate: float | None = None


class ImageURL(_Payload):
    format: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")


class VideoItem(_Payload):
    item_id: str | None = Field(default=None, alias="itemID")
    title: str | None = None
    create_time: str | None = Field(default=None, alias="createTime")
    views: str | int | None = None
    heart: int | None = None
    comment: int | None = None
    share: int | None = None
    is_boosted: bool | None = Field(default=None, alias="isBoosted")
    is_sponsored_video: bool | None = Field(default=None, alias="isSponsoredVideo")
    video_url: str | None = Field(default=None, alias="videoURL")
    cover_url: str | None = Field(default=None, alias="coverURL")
    cover_url_list: list[ImageURL] = Field(default_factory=list, alias="coverURLList")


class FollowerDistribution(_Payload):
    age: list[AgeBucket] = Field(default_factory=list)
    gender: list[GenderBucket] = Field(default_factory=list)
    region: list[RegionBucket] = Field(default_factory=list)


class FollowerCountHistory(_Payload):
    follower_count: list[FollowerCountPoint] = Field(default_factory=list, alias="followerCount")
    follower_growth_rate: list[GrowthRatePoint] = Field(default_factory=list, alias="followerGrowthRate")


class VideoPerformance(_Payload):
    popular_videos: list[VideoItem] = Field(default_factory=list, alias="popularVideos")
    recent_videos: list[VideoItem] = Field(default_factory=list, alias="recentVideos")


class OverallPerformance(_Payload):
    follower_count: int | None = Field(default=None, alias="followerCount")
    followers_growth_rate: float | None = Field(default=None, alias="followersGrowthRate")
    engagement_rate: float | None = Field(default=None, alias="engagementRate")
    median_views: int | None = Field(default=None, alias="medianViews")
    video_complete_rate: float | None = Field(default=None, alias="videoCompleteRate")


class StatisticData(_Payload):
    follower_distri_data: FollowerDistribution = Field(
        default_factory=FollowerDistribution, alias="followerDistriData"
    )
    follower_count_history: FollowerCountHistory = Field(
        default_factory=FollowerCountHistory, alias="followerCountHistory"
    )
    video_performance: VideoPerformance = Field(default_factory=VideoPerformance, alias="videoPerformance")
    overall_performance: OverallPerformance = Field(
        default_factory=OverallPerformance, alias="overallPerformance"
    )


class CreatorTTInfo(_Payload):
    handle_name: str | None = Field(default=None, alias="handleName")
    nick_name: str | None = Field(default=None, alias="nickName")
    follower_cnt: int | None = Field(default=None, alias="followerCnt")
    bio: str | None = None
    avatar_url: str | None = Field(default=None, alias="avatarURL")
    living_region: str | None = Field(default=None, alias="livingRegion")
    store_region: str | None = Field(default=None, alias="storeRegion")
    tt_uid: str | None = Field(default=None, alias="ttUID")


class CreatorCard(_Payload):
    aio_creator_id: str | None = Field(default=None, alias="aioCreatorID")
    tt_uid: str | None = Field(default=None, alias="ttUID")
    content_labels: list[ContentLabel] = Field(default_factory=list, alias="contentLabels")
    industry_labels: list[ContentLabel] = Field(default_factory=list, alias="industryLabels")
    creator_tt_info: CreatorTTInfo = Field(default_factory=CreatorTTInfo, alias="creatorTTInfo")
    statistic_data: StatisticData = Field(default_factory=StatisticData, alias="statisticData")
    recent_items: list[VideoItem] = Field(default_factory=list, alias="recentItems")


class BaseResp(_Payload):
    status_code: int | None = Field(default=None, alias="StatusCode")
    status_message: str | None = Field(default=None, alias="StatusMessage")


class CreatorCardResponse(_Payload):
    base_resp: BaseResp = Field(default_factory=BaseResp, alias="baseResp")
    creators: list[CreatorCard] = Field(default_factory=list)


@dataclass(frozen=True)
class CapturedResponse:
    """One matching network response seen on a tab."""

    url: str
    status: int
    request_id: str | None = None
    body: str | None = None
    payload: CreatorCardResponse | None = None
    captured_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "status": self.status,
            "request_id": self.request_id,
            "captured_at": self.captured_at,
            "payload": self.payload.model_dump(by_alias=True) if self.payload else None,
        }


PROFILE_SECTIONS = (
    "content_labels",
    "age_distribution",
    "region_distribution",
    "gender_distribution",
    "follower_history",
    "recent_videos",
)


class CreatorProfile(BaseModel):
    """Merged profile of one creator; every section starts out empty."""

    content_labels: list[ContentLabel] = Field(default_factory=list)
    age_distribution: list[AgeBucket] = Field(default_factory=list)
    region_distribution: list[RegionBucket] = Field(default_factory=list)
    gender_distribution: list[GenderBucket] = Field(default_factory=list)
    follower_history: list[FollowerCountPoint] = Field(default_factory=list)
    recent_videos: list[VideoItem] = Field(default_factory=list)

    def missing_sections(self) -> list[str]:
        return [name for name in PROFILE_SECTIONS if not getattr(self, name)]

    @property
    def is_full(self) -> bool:
        return not self.missing_sections()

    @property
    def is_empty(self) -> bool:
        return len(self.missing_sections()) == len(PROFILE_SECTIONS)
