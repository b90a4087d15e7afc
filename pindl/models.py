from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any


@dataclass(frozen=True)
class PinterestConfig:
    app_version: str
    user_id: str


@dataclass(frozen=True)
class Author:
    username: str
    name: str
    user_id: str
    avatar_url: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Author:
        return cls(
            username=data.get("username") or "-",
            name=data.get("name") or data.get("fullName") or data.get("full_name") or "-",
            user_id=str(data.get("userId") or data.get("entityId") or data.get("id") or "-"),
            avatar_url=data.get("avatarUrl") or data.get("image_large_url"),
        )

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "username": self.username,
            "name": self.name,
            "userId": self.user_id,
        }
        if self.avatar_url is not None:
            payload["avatarUrl"] = self.avatar_url
        return payload


@dataclass(frozen=True)
class VideoUrl:
    url: str
    thumbnail: str | None = None
    quality: str = "720P"
    width: int | None = None
    height: int | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any], quality: str = "720P") -> VideoUrl:
        width = data.get("width")
        height = data.get("height")
        return cls(
            url=data.get("url") or "",
            thumbnail=data.get("thumbnail"),
            quality=data.get("quality") or quality,
            width=width if isinstance(width, int) else None,
            height=height if isinstance(height, int) else None,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "thumbnail": self.thumbnail,
            "quality": self.quality,
            "width": self.width,
            "height": self.height,
        }


def _parse_upload_date(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return parsedate_to_datetime(value).astimezone(timezone.utc)
    except (TypeError, ValueError, IndexError):
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class PinItem:
    pin_id: str
    title: str
    image_url: str | None = None
    video_url: VideoUrl | None = None
    thumbnail: str | None = None
    upload_date: datetime | None = None
    has_image: bool = False
    has_video: bool = False

    @classmethod
    def from_user_pin_json(cls, data: dict[str, Any]) -> PinItem:
        """Build a pin from one row of the user activity pins resource.

        ``videos`` is either a dict with a ``video_list`` or an empty list.
        """

        image_url = None
        images = data.get("images")
        if isinstance(images, dict):
            orig = images.get("orig")
            if isinstance(orig, dict) and isinstance(orig.get("url"), str) and orig["url"]:
                image_url = orig["url"]

        video_url = None
        videos = data.get("videos")
        if isinstance(videos, dict):
            video_list = videos.get("video_list")
            if isinstance(video_list, dict) and video_list:
                preferred = video_list.get("V_720P")
                if isinstance(preferred, dict) and preferred.get("url"):
                    video_url = VideoUrl.from_json(preferred, "720P")
                else:
                    for quality, details in video_list.items():
                        if isinstance(details, dict) and details.get("url"):
                            video_url = VideoUrl.from_json(details, quality)
                            break

        pin_id = data.get("id") or data.get("pinId") or ""
        return cls(
            pin_id=str(pin_id),
            title=data.get("title") or "",
            image_url=image_url,
            video_url=video_url,
            thumbnail=video_url.thumbnail if video_url else None,
            upload_date=_parse_upload_date(data.get("created_at")),
            has_image=image_url is not None,
            has_video=video_url is not None,
        )

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> PinItem:
        """Rebuild a pin written by :meth:`to_json`."""

        video = data.get("videoUrl")
        video_url = None
        if isinstance(video, dict) and video.get("url"):
            video_url = VideoUrl.from_json(video)
        return cls(
            pin_id=str(data.get("pinId") or ""),
            title=data.get("title") or "",
            image_url=data.get("imageUrl"),
            video_url=video_url,
            thumbnail=data.get("thumbnail"),
            upload_date=_parse_upload_date(data.get("uploadDate")),
            has_image=bool(data.get("hasImage", data.get("imageUrl") is not None)),
            has_video=bool(data.get("hasVideo", video_url is not None)),
        )

    def download_url(self, prefer_video: bool) -> str | None:
        if prefer_video and self.has_video and self.video_url:
            return self.video_url.url
        return self.image_url

    @property
    def thumbnail_url(self) -> str | None:
        return self.thumbnail or self.image_url

    def to_json(self) -> dict[str, Any]:
        return {
            "pinId": self.pin_id,
            "title": self.title,
            "imageUrl": self.image_url,
            "videoUrl": self.video_url.to_json() if self.video_url else None,
            "thumbnail": self.thumbnail,
            "uploadDate": self.upload_date.isoformat() if self.upload_date else None,
            "hasImage": self.has_image,
            "hasVideo": self.has_video,
        }


@dataclass(frozen=True)
class MediaResult:
    author: Author
    title: str
    pin_id: str
    entity_id: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    thumbnail: str | None = None
    is_video: bool = False
    has_image: bool = False
    has_video_content: bool = False
    message: str | None = None
    raw_json: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    @property
    def download_url(self) -> str | None:
        return self.video_url if self.is_video else self.image_url

    @property
    def preview_url(self) -> str | None:
        return self.thumbnail or self.image_url

    @property
    def has_both_media(self) -> bool:
        return self.has_image and self.has_video_content

    @property
    def metadata_id(self) -> str:
        return self.entity_id or self.pin_id

    def image_download_url(self, use_thumbnail_for_video: bool = False) -> str | None:
        if self.has_image:
            return self.image_url
        if use_thumbnail_for_video and self.has_video_content and self.thumbnail:
            return self.thumbnail
        return None

    def to_json(self) -> dict[str, Any]:
        return {
            "author": self.author.to_json(),
            "title": self.title,
            "pinId": self.pin_id,
            "entityId": self.entity_id,
            "imageUrl": self.image_url,
            "videoUrl": self.video_url,
            "thumbnail": self.thumbnail,
            "isVideo": self.is_video,
            "hasImage": self.has_image,
            "hasVideoContent": self.has_video_content,
            "message": self.message,
        }


@dataclass(frozen=True)
class UserPinsResult:
    author: Author
    pins: list[PinItem]
    total_images: int = 0
    total_videos: int = 0
    bookmark: str | None = None
    has_more: bool = False

    @classmethod
    def from_api_response(
        cls,
        author: Author,
        pins: list[PinItem],
        bookmark: str | None = None,
    ) -> UserPinsResult:
        # a pin can count as both an image and a video
        return cls(
            author=author,
            pins=pins,
            total_images=sum(1 for pin in pins if pin.has_image),
            total_videos=sum(1 for pin in pins if pin.has_video),
            bookmark=bookmark,
            has_more=bool(bookmark),
        )

    @classmethod
    def from_metadata_json(cls, data: dict[str, Any]) -> UserPinsResult:
        author = data.get("author") if isinstance(data.get("author"), dict) else {}
        rows = data.get("pins") if isinstance(data.get("pins"), list) else []
        pins = [PinItem.from_json(row) for row in rows if isinstance(row, dict)]
        return cls.from_api_response(Author.from_json(author), pins)

    def to_metadata_json(
        self,
        success: int = 0,
        skipped: int = 0,
        failed: int = 0,
        last_index: int = -1,
        interrupted: bool = False,
    ) -> dict[str, Any]:
        return {
            "author": self.author.to_json(),
            "pins": [pin.to_json() for pin in self.pins],
            "totalImages": self.total_images,
            "totalVideos": self.total_videos,
            "bookmark": self.bookmark,
            "hasMore": self.has_more,
            "success_downloaded": success,
            "skip_downloaded": skipped,
            "failed_downloaded": failed,
            "last_index_downloaded": last_index,
            "was_interrupted": interrupted,
        }


def _count(value: object, default: int = 0) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else default


@dataclass(frozen=True)
class ProfileProgress:
    """Download counters saved alongside a profile's metadata."""

    success: int = 0
    skipped: int = 0
    failed: int = 0
    last_index: int = -1
    interrupted: bool = False

    @property
    def next_index(self) -> int:
        return max(self.last_index + 1, 0)

    @classmethod
    def from_metadata_json(cls, data: dict[str, Any]) -> ProfileProgress:
        return cls(
            success=_count(data.get("success_downloaded")),
            skipped=_count(data.get("skip_downloaded")),
            failed=_count(data.get("failed_downloaded")),
            last_index=_count(data.get("last_index_downloaded"), -1),
            interrupted=data.get("was_interrupted") is True,
        )
