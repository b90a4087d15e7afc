from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlparse

from pindl.utils.pin_urls import detect_input_type, normalize_username


def is_valid_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def split_inputs(values: Iterable[str]) -> tuple[list[str], list[str]]:
    """Separate usable pin/username inputs from junk, dropping duplicates.

    Usernames are stored without their ``@`` so ``@foo`` and ``foo`` collapse.
    """

    valid_inputs: list[str] = []
    invalid_entries: list[str] = []
    seen: set[str] = set()

    for value in values:
        for line in value.splitlines():
            item = line.strip()
            if not item:
                continue

            input_type = detect_input_type(item)
            if input_type is None:
                invalid_entries.append(item)
                continue

            normalized = normalize_username(item) if input_type == "username" else item
            if normalized not in seen:
                valid_inputs.append(normalized)
                seen.add(normalized)

    return valid_inputs, invalid_entries
