from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable

import requests
from loguru import logger

from pindl.constants import (
    DEFAULT_MAX_PAGES,
    HOST,
    MAX_PAGES_LIMIT,
    REQUEST_TIMEOUT_SECONDS,
    SEC_CH_UA,
    USER_AGENT,
    USER_PINS_RESOURCE,
    oembed_url,
)
from pindl.errors import PinterestError
from pindl.models import Author, MediaResult, PinItem, PinterestConfig, UserPinsResult
from pindl.services import parser
from pindl.utils.pin_urls import (
    ParsedInput,
    ResolvedInput,
    canonical_pin_url,
    clean_redirected_url,
    is_username,
    normalize_username,
    parse_pin_input,
)
from pindl.utils.trace_ids import trace_headers

MEDIA_PARSERS = {
    "all": parser.parse_media_data,
    "image": parser.parse_image_data,
    "video": parser.parse_video_data,
}
MAX_EMPTY_PAGES = 3

ProgressCallback = Callable[[int, int, int], None]


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PinterestError.cancelled()


class PinterestExtractor:
    """Fetches pin media and profile pins from the Pinterest web app.

    The underlying ``requests.Session`` keeps the cookies Pinterest sets on the
    profile page, which the resource API requires on later calls.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        verbose: bool = False,
    ) -> None:
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})
        self.timeout_seconds = timeout_seconds
        self.verbose = verbose
        self.config: PinterestConfig | None = None
        self._config_username: str | None = None

    def __enter__(self) -> PinterestExtractor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def api_headers(self, source_url: str) -> dict[str, str]:
        headers = trace_headers()
        headers.update(
            {
                "x-requested-with": "XMLHttpRequest",
                "x-pinterest-source-url": source_url,
                "x-pinterest-appstate": "active",
                "x-pinterest-pws-handler": "www/[username].js",
                "accept": "application/json, text/javascript, */*, q=0.01",
                "sec-ch-ua-full-version-list": SEC_CH_UA,
                "sec-ch-ua-platform": "Windows",
                "sec-fetch-site": "same-origin",
                "sec-fetch-mode": "cors",
                "sec-fetch-dest": "empty",
                "referer": f"{HOST}/",
                "accept-language": "en-US,en;q=0.9",
            }
        )
        if self.config is not None:
            headers["x-app-version"] = self.config.app_version
        return headers

    def _get(self, url: str, action: str, **kwargs) -> requests.Response:
        try:
            response = self.session.get(url, timeout=self.timeout_seconds, **kwargs)
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise PinterestError.network(
                f"Failed to {action}: {exc}", status_code=status, cause=exc
            ) from exc
        except requests.RequestException as exc:
            raise PinterestError.network(f"Failed to {action}: {exc}", cause=exc) from exc
        return response

    def get_config_info(self, username: str) -> PinterestConfig:
        username = normalize_username(username)
        response = self._get(f"{HOST}/{username}", "fetch profile")
        if not response.text:
            raise PinterestError.extraction("Empty response from profile page")

        config = parser.parse_config(response.text)
        if config is None:
            raise PinterestError.extraction(
                "Could not extract config from profile page. "
                "Make sure the username is correct and the profile is public."
            )

        self.config = config
        self._config_username = username
        logger.info("appversion::{}", config.app_version)
        logger.info("userid::{}", config.user_id)
        return config

    def get_user_pins(
        self,
        username: str,
        bookmark: str | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> UserPinsResult:
        username = normalize_username(username)
        effective_max_pages = max(1, min(max_pages, MAX_PAGES_LIMIT))

        if self.config is None or self._config_username != username:
            _check_cancelled(cancel_event)
            self.get_config_info(username)

        pins: list[PinItem] = []
        author: Author | None = None
        current_bookmark = bookmark
        current_page = 0
        empty_pages = 0

        while current_page < effective_max_pages:
            _check_cancelled(cancel_event)
            current_page += 1

            page = self._fetch_user_pins_page(username, current_bookmark)
            if page is None:
                if not pins:
                    raise PinterestError.parse("Failed to parse user pins response")
                logger.info("no more page found for {} with last length: {}", username, len(pins))
                break

            if author is None and page["author"] is not None:
                author = page["author"]
            next_bookmark = page["bookmark"]

            if not page["pins"]:
                empty_pages += 1
                logger.debug("Empty data array in response")
                if next_bookmark and empty_pages < MAX_EMPTY_PAGES:
                    current_bookmark = next_bookmark
                    continue
                if next_bookmark:
                    logger.warning(
                        "empty page received while bookmark exists; stopping to avoid infinite loop"
                    )
                break

            empty_pages = 0
            pins.extend(page["pins"])
            logger.info(
                "User pins fetched -> {}, page: {}/{}", len(pins), current_page, effective_max_pages
            )
            if on_progress is not None:
                on_progress(len(pins), current_page, effective_max_pages)

            if not next_bookmark:
                logger.info("no more page found for {} with last length: {}", username, len(pins))
                break
            if self.verbose:
                logger.debug("fetching next page -> {}", next_bookmark)
            current_bookmark = next_bookmark
        else:
            logger.warning(
                "Reached maximum page limit ({}); stopping pagination", effective_max_pages
            )

        if author is None:
            raise PinterestError.parse("Could not extract author from any page")

        return UserPinsResult.from_api_response(author=author, pins=pins, bookmark=None)

    def _fetch_user_pins_page(self, username: str, bookmark: str | None) -> dict | None:
        options: dict = {
            "exclude_add_pin_rep": True,
            "field_set_key": "grid_item",
            "is_own_profile_pins": False,
            "redux_normalize_feed": True,
            "user_id": self.config.user_id if self.config else "",
            "username": username,
        }
        if bookmark is not None:
            options["bookmarks"] = [bookmark]

        source_url = f"/{username}/"
        params = {
            "source_url": source_url,
            "data": json.dumps({"options": options, "context": {}}, separators=(",", ":")),
            "_": str(int(time.time() * 1000)),
        }

        try:
            response = self._get(
                f"{HOST}{USER_PINS_RESOURCE}",
                "fetch user pins",
                params=params,
                headers=self.api_headers(source_url),
            )
        except PinterestError as exc:
            logger.error("Failed to fetch user pins: {}", exc)
            return None

        if not response.text:
            logger.error("Empty response from pins API")
            return None
        if self.verbose:
            logger.debug("Response preview: {}", response.text[:200])

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Response is not valid JSON: {}", exc)
            return None
        return parser.parse_user_pins_page(payload)

    def get_pin_media(
        self,
        pin_or_url: str,
        media: str = "all",
        cancel_event: threading.Event | None = None,
    ) -> MediaResult:
        if media not in MEDIA_PARSERS:
            raise PinterestError.validation(f"Unknown media type: {media}")

        pin_info = parse_pin_input(pin_or_url)
        if pin_info is None:
            raise PinterestError.validation(f"Invalid pin ID or URL: {pin_or_url}")

        _check_cancelled(cancel_event)
        if pin_info.is_short_url:
            pin_info = self._resolve_short_pin(pin_info.url)

        _check_cancelled(cancel_event)
        response = self._get(pin_info.url, "fetch pin")
        if not response.text:
            raise PinterestError.extraction("Empty response from pin page")

        result = MEDIA_PARSERS[media](response.text, pin_info.id)
        if result is None:
            label = "media" if media == "all" else media
            raise PinterestError.parse(f"No {label} found for pin: {pin_info.id}")
        return result

    def resolve_short_url(self, short_url: str) -> str:
        response = self._get(short_url, "resolve short URL", allow_redirects=True)
        return response.url

    def _resolve_short_pin(self, short_url: str) -> ParsedInput:
        final_url = self.resolve_short_url(short_url)

        cleaned = clean_redirected_url(final_url)
        if cleaned is not None and cleaned.type == "pin":
            parsed = parse_pin_input(cleaned.value)
            if parsed is not None:
                return parsed

        parsed = parse_pin_input(final_url)
        if parsed is None:
            raise PinterestError.validation(f"Could not parse redirected URL: {final_url}")
        return parsed

    def resolve_input(self, text: str) -> ResolvedInput | None:
        """Turn user input into a pin URL or a username, following short links."""

        pin_info = parse_pin_input(text)
        if pin_info is None:
            if is_username(text):
                return ResolvedInput(type="username", value=normalize_username(text))
            return None

        if not pin_info.is_short_url:
            return ResolvedInput(
                type="pin", value=canonical_pin_url(pin_info.id), pin_id=pin_info.id
            )

        final_url = self.resolve_short_url(pin_info.url)
        cleaned = clean_redirected_url(final_url)
        if cleaned is not None:
            return cleaned

        parsed = parse_pin_input(final_url)
        if parsed is not None and not parsed.is_short_url:
            return ResolvedInput(type="pin", value=canonical_pin_url(parsed.id), pin_id=parsed.id)
        return None

    def fetch_oembed(self, pin_id: str) -> dict:
        response = self._get(oembed_url(pin_id), "fetch oembed")
        try:
            payload = response.json()
        except ValueError as exc:
            raise PinterestError.parse("oEmbed response is not valid JSON", cause=exc) from exc
        if not isinstance(payload, dict):
            raise PinterestError.parse("oEmbed response is not an object")
        return payload
