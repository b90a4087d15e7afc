from __future__ import annotations

import re
from pathlib import Path

INVALID_FILENAME_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def ensure_directory(path_value: str | Path) -> Path:
    directory = Path(path_value).expanduser().resolve()
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def sanitize_filename(name: str) -> str:
    """Drop characters that Windows, macOS or Linux refuse in file names."""

    return INVALID_FILENAME_CHARS_RE.sub("", name)


def profile_folder(username: str) -> str:
    return sanitize_filename(f"@{username}")
