from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from backend.app.repositories.video_info_repository import VideoInfo


class VideoInfoPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    video_id: str
    channel_id: str | None = None
    title: str | None = None
    description: str | None = None
    category_id: str | None = None
    thumbnail: str | None = Field(default=None, description="Thumbnail URL.")
    published_at: str | None = Field(
        default=None,
        description="Publish time as `YYYY-MM-DD HH:MM:SS`, in the offset YouTube reported.",
    )

    @classmethod
    def from_video_info(cls, video: VideoInfo) -> VideoInfoPayload:
        return cls(**video.to_payload())
