from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

from pindl.constants import HOST

PIN_INPUT_RE = re.compile(
    r"^(?:"
    r"https?://(?:\w+\.)?pinterest\.[a-z.]+/pin/([0-9]{16,21})/?"
    r"|https?://(?:www\.)?pin\.it/([A-Za-z0-9]+)/?"
    r"|([0-9]{16,21})"
    r")$",
    re.ASCII,
)
PIN_ID_RE = re.compile(r"^[0-9]{16,21}$", re.ASCII)
USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$", re.ASCII)

RESERVED_PATH_SEGMENTS = frozenset(
    {"pin", "search", "ideas", "settings", "business", "_", "oauth", "resource"}
)


@dataclass(frozen=True)
class ParsedInput:
    format: str
    id: str
    url: str

    @property
    def is_long_url(self) -> bool:
        return self.format == "long"

    @property
    def is_short_url(self) -> bool:
        return self.format == "short"

    @property
    def is_id_only(self) -> bool:
        return self.format == "id"


@dataclass(frozen=True)
class ResolvedInput:
    type: str
    value: str
    pin_id: str | None = None


def canonical_pin_url(pin_id: str) -> str:
    return f"{HOST}/pin/{pin_id}/"


def parse_pin_input(text: str) -> ParsedInput | None:
    value = text.strip()
    match = PIN_INPUT_RE.fullmatch(value)
    if not match:
        return None

    long_id, short_code, bare_id = match.groups()
    if long_id is not None:
        return ParsedInput(format="long", id=long_id, url=value)
    if short_code is not None:
        return ParsedInput(format="short", id=short_code, url=value)
    return ParsedInput(format="id", id=bare_id, url=canonical_pin_url(bare_id))


def is_pin_id(value: str) -> bool:
    return bool(PIN_ID_RE.match(value))


def is_username(text: str) -> bool:
    value = normalize_username(text)
    if not value:
        return False
    if "/" in value or "." in value:
        return False
    if value.isdigit():
        return False
    return bool(USERNAME_RE.match(value))


def normalize_username(text: str) -> str:
    value = text.strip()
    if value.startswith("@"):
        return value[1:]
    return value


def detect_input_type(text: str) -> str | None:
    """Classify raw input as ``"pin"``, ``"username"`` or ``None``.

    Pin links and IDs win over usernames.
    """

    value = text.strip()
    if not value:
        return None
    if parse_pin_input(value) is not None:
        return "pin"
    if is_username(value):
        return "username"
    return None


def is_short_url(text: str) -> bool:
    parsed = parse_pin_input(text)
    return parsed is not None and parsed.is_short_url


def clean_redirected_url(raw_url: str) -> ResolvedInput | None:
    """Reduce a post-redirect Pinterest URL to a pin URL or a username.

    ``https://id.pinterest.com/pin/627830004345010675/sent/?invite_code=x``
    becomes the canonical pin URL, ``https://id.pinterest.com/someone/?x=1``
    becomes ``someone``.
    """

    try:
        parsed = urlparse(raw_url.strip())
        host = (parsed.hostname or "").lower()
    except ValueError:
        return None

    if "pinterest." not in host:
        return None

    segments = [unquote(segment) for segment in parsed.path.split("/") if segment]
    if not segments:
        return None

    if len(segments) >= 2 and segments[0] == "pin" and is_pin_id(segments[1]):
        pin_id = segments[1]
        return ResolvedInput(type="pin", value=canonical_pin_url(pin_id), pin_id=pin_id)

    first_segment = segments[0]
    if first_segment not in RESERVED_PATH_SEGMENTS and USERNAME_RE.match(first_segment):
        return ResolvedInput(type="username", value=first_segment)

    return None
