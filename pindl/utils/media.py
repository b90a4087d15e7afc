from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

from pindl.constants import MIME_TYPES
from pindl.errors import PinterestError
from pindl.utils.paths import sanitize_filename

MEDIA_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".mp4",
    ".webm",
    ".mov",
    ".m3u8",
}

PIN_ROLES = ("video", "thumbnail", "image")


def infer_extension(url: str | None, default: str = ".jpg") -> str:
    if not url:
        return default
    try:
        path = urlparse(url).path
    except ValueError:
        return default

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return default

    suffix = PurePosixPath(unquote(segments[-1])).suffix.lower()
    if suffix in MEDIA_EXTENSIONS:
        return suffix
    return default


def is_hls_url(url: str | None) -> bool:
    return infer_extension(url, default="") == ".m3u8"


def pin_filename(
    pin_id: str,
    role: str,
    url: str | None = None,
    index: int | None = None,
) -> str:
    """Build the on-disk name for one media file of a pin.

    Videos are always saved as ``.mp4`` because HLS streams get converted.
    """

    if role not in PIN_ROLES:
        raise PinterestError.validation(f"Unknown media role: {role}")

    if role == "video":
        name = f"{pin_id}_video.mp4"
    elif role == "thumbnail":
        name = f"{pin_id}_thumbnail{infer_extension(url)}"
    elif index is not None:
        name = f"{pin_id}_image_{index}{infer_extension(url)}"
    else:
        name = f"{pin_id}_image{infer_extension(url)}"

    return sanitize_filename(name)


def mime_type_for(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix.lower()
    return MIME_TYPES.get(suffix, "application/octet-stream")
