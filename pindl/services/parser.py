"""Parsers for Pinterest HTML pages and resource API payloads.

Every function here returns ``None`` when the expected structure is missing;
raising is left to the extractor service.
"""

from __future__ import annotations

import json
import re
from typing import Any

from loguru import logger

from pindl.models import Author, MediaResult, PinItem, PinterestConfig

APP_VERSION_RE = re.compile(r"""['"]appVersion['"]\s*:\s*['"](\w+?)['"]""")
PROFILE_COVER_ID_RE = re.compile(
    r"""['"]profile_cover['"]\s*:\s*\{['"]id['"]\s*:\s*['"](\d+?)['"]""",
    re.IGNORECASE,
)
USERS_PINS_PATH_RE = re.compile(r"/users/(\d+)/pins")
INITIAL_PROPS_SCRIPT_RE = re.compile(
    r'<script\s+[^>]*id="__PWS_INITIAL_PROPS__"\s+[^>]*type="application/json"[^>]*>(.*?)</script>',
    re.DOTALL,
)
RELAY_REQUEST_RE = re.compile(
    r'window\.__PWS_RELAY_REGISTER_COMPLETED_REQUEST__\(\s*"(?:\\.|[^"\\])*"\s*,\s*(?=\{)'
)

END_BOOKMARK = "-end-"

_decoder = json.JSONDecoder()


def parse_config(html_text: str) -> PinterestConfig | None:
    match = APP_VERSION_RE.search(html_text)
    if not match:
        return None
    app_version = match.group(1)

    user_id = None
    cover_match = PROFILE_COVER_ID_RE.search(html_text)
    if cover_match:
        user_id = cover_match.group(1)

    if not user_id:
        path_match = USERS_PINS_PATH_RE.search(html_text)
        if path_match:
            user_id = path_match.group(1)

    if not user_id:
        user_id = _user_id_from_initial_props(html_text)

    if not user_id:
        return None
    return PinterestConfig(app_version=app_version, user_id=user_id)


def _user_id_from_initial_props(html_text: str) -> str | None:
    match = INITIAL_PROPS_SCRIPT_RE.search(html_text)
    if not match:
        return None
    try:
        payload = json.loads(match.group(1))
    except ValueError:
        return None

    state = payload.get("initialReduxState") if isinstance(payload, dict) else None
    users = state.get("users") if isinstance(state, dict) else None
    if not isinstance(users, dict):
        return None
    return next((key for key in users if key), None)


def _extract_pin_data(html_text: str) -> dict[str, Any] | None:
    match = RELAY_REQUEST_RE.search(html_text)
    if not match:
        return None
    try:
        payload, _ = _decoder.raw_decode(html_text, match.end())
    except ValueError:
        return None

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict) or not data:
        return None

    first_entry = next(iter(data.values()))
    pin_data = first_entry.get("data") if isinstance(first_entry, dict) else None
    if not isinstance(pin_data, dict):
        return None
    return pin_data


def _extract_video(pin_data: dict[str, Any]) -> tuple[str | None, str | None]:
    """Follow storyPinData.pages[0].blocks[0].videoDataV2.videoList720P.v720P."""

    node: Any = pin_data.get("storyPinData")
    for key in ("pages", 0, "blocks", 0, "videoDataV2", "videoList720P", "v720P"):
        if isinstance(key, int):
            if not isinstance(node, list) or not node:
                return None, None
            node = node[key]
        else:
            if not isinstance(node, dict):
                return None, None
            node = node.get(key)

    if not isinstance(node, dict):
        return None, None
    return node.get("url"), node.get("thumbnail")


def _pin_author(pin_data: dict[str, Any]) -> Author:
    pinner = pin_data.get("pinner") if isinstance(pin_data.get("pinner"), dict) else {}
    attribution = pin_data.get("closeupAttribution")
    attribution = attribution if isinstance(attribution, dict) else {}
    return Author(
        username=pinner.get("username") or "-",
        name=attribution.get("fullName") or "-",
        user_id=pinner.get("entityId") or "-",
    )


def parse_media_data(html_text: str, pin_id: str) -> MediaResult | None:
    pin_data = _extract_pin_data(html_text)
    if pin_data is None:
        return None

    image_url = pin_data.get("imageLargeUrl")
    if not isinstance(image_url, str) or not image_url:
        image_url = None
    video_url, thumbnail = _extract_video(pin_data)
    has_video = video_url is not None

    if image_url is None and video_url is None:
        return None

    return MediaResult(
        author=_pin_author(pin_data),
        title=pin_data.get("title") or "-",
        pin_id=pin_id,
        entity_id=pin_data.get("entityId"),
        image_url=image_url,
        video_url=video_url,
        thumbnail=thumbnail,
        is_video=has_video,
        has_image=image_url is not None,
        has_video_content=has_video,
        message=f"{'video' if has_video else 'image'} found for -> {pin_id}",
        raw_json=pin_data,
    )


def parse_image_data(html_text: str, pin_id: str) -> MediaResult | None:
    result = parse_media_data(html_text, pin_id)
    if result is None or not result.has_image:
        return None
    return MediaResult(
        author=result.author,
        title=result.title,
        pin_id=pin_id,
        entity_id=result.entity_id,
        image_url=result.image_url,
        has_image=True,
        message=f"image found for -> {pin_id}",
        raw_json=result.raw_json,
    )


def parse_video_data(html_text: str, pin_id: str) -> MediaResult | None:
    result = parse_media_data(html_text, pin_id)
    if result is None or not result.has_video_content:
        return None
    return MediaResult(
        author=result.author,
        title=result.title,
        pin_id=pin_id,
        entity_id=result.entity_id,
        video_url=result.video_url,
        thumbnail=result.thumbnail,
        is_video=True,
        has_video_content=True,
        message=f"video found for -> {pin_id}",
        raw_json=result.raw_json,
    )


def parse_user_pins_page(payload: object) -> dict[str, Any] | None:
    """Unpack one page of the user activity pins resource.

    Returns ``{"pins", "bookmark", "author"}``; an empty ``pins`` list is a
    valid page.
    """

    if not isinstance(payload, dict):
        return None
    resource_response = payload.get("resource_response")
    if not isinstance(resource_response, dict):
        logger.debug("No resource_response in response")
        return None

    status = resource_response.get("status")
    if not isinstance(status, str) or status.lower() != "success":
        logger.debug(
            "API returned non-success status: {}, code: {}, message: {}",
            status,
            resource_response.get("code"),
            resource_response.get("message"),
        )
        return None

    rows = resource_response.get("data")
    if not isinstance(rows, list):
        rows = []
    bookmark = resource_response.get("bookmark")
    if not isinstance(bookmark, str) or not bookmark or bookmark == END_BOOKMARK:
        bookmark = None

    author = None
    if rows and isinstance(rows[0], dict):
        creator = rows[0].get("native_creator")
        if isinstance(creator, dict):
            author = Author(
                username=creator.get("username") or "",
                name=creator.get("full_name") or "",
                user_id=str(creator.get("id") or ""),
                avatar_url=creator.get("image_large_url"),
            )

    pins = [PinItem.from_user_pin_json(row) for row in rows if isinstance(row, dict)]
    return {"pins": pins, "bookmark": bookmark, "author": author}
