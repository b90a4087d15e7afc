from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import requests
from loguru import logger

from pindl.constants import DOWNLOAD_TIMEOUT_SECONDS, HTTP_HEADERS
from pindl.errors import PinterestError
from pindl.utils.formatting import human_size
from pindl.utils.paths import ensure_directory, sanitize_filename
from pindl.utils.validation import is_valid_http_url

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class DownloadProgress:
    filename: str
    received: int
    total: int

    @property
    def percentage(self) -> float:
        return self.received / self.total if self.total > 0 else 0.0

    @property
    def human_received(self) -> str:
        return human_size(self.received)

    @property
    def human_total(self) -> str:
        return human_size(self.total)


ProgressCallback = Callable[[DownloadProgress], None]


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove {}: {}", path, exc)


class MediaDownloader:
    """Streams media files to disk through a ``.part`` file."""

    def __init__(self, timeout_seconds: float = DOWNLOAD_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds

    def target_path(self, output_dir: str | Path, filename: str) -> Path:
        return Path(output_dir).expanduser() / sanitize_filename(filename)

    def exists(self, output_dir: str | Path, filename: str) -> bool:
        return self.target_path(output_dir, filename).exists()

    def download(
        self,
        url: str,
        output_dir: str | Path,
        filename: str,
        overwrite: bool = False,
        session: requests.Session | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        if not is_valid_http_url(url):
            raise PinterestError.validation(f"Invalid media URL: {url}")
        safe_name = sanitize_filename(filename)
        if not safe_name:
            raise PinterestError.validation(f"Unusable file name: {filename!r}")

        destination = ensure_directory(output_dir)
        path = destination / safe_name
        if path.exists() and not overwrite:
            raise PinterestError.download("File already exists", file_path=str(path))

        part_path = path.with_name(f"{path.name}.part")
        _remove_quietly(part_path)

        active_session = session or requests.Session()
        try:
            with active_session.get(
                url,
                headers=HTTP_HEADERS,
                timeout=self.timeout_seconds,
                stream=True,
            ) as response:
                response.raise_for_status()
                total = int(response.headers.get("Content-Length") or 0)
                received = 0
                with part_path.open("wb") as file_handle:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if cancel_event is not None and cancel_event.is_set():
                            raise PinterestError.cancelled()
                        if not chunk:
                            continue
                        file_handle.write(chunk)
                        received += len(chunk)
                        if on_progress is not None:
                            on_progress(DownloadProgress(safe_name, received, total))
            part_path.replace(path)
        except PinterestError:
            _remove_quietly(part_path)
            raise
        except requests.RequestException as exc:
            _remove_quietly(part_path)
            raise PinterestError.download(
                f"Download failed: {exc}", file_path=str(path), cause=exc
            ) from exc
        except OSError as exc:
            _remove_quietly(part_path)
            raise PinterestError.download(
                f"Failed to write file: {exc}", file_path=str(path), cause=exc
            ) from exc

        logger.debug("Saved {} ({})", path, human_size(path.stat().st_size))
        return path

    def save_metadata(self, output_dir: str | Path, filename: str, payload: dict) -> Path:
        destination = ensure_directory(output_dir)
        path = destination / sanitize_filename(filename)
        try:
            path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise PinterestError.download(
                f"Failed to write metadata: {exc}", file_path=str(path), cause=exc
            ) from exc
        return path

    def load_metadata(self, output_dir: str | Path, filename: str | None = None) -> dict | None:
        """Read a JSON export back, or return ``None`` when there is none.

        Without ``filename`` the first ``*.json`` file in ``output_dir`` is used,
        which is how a profile's ``<user_id>.json`` is found before the user id
        is known.
        """

        directory = Path(output_dir).expanduser()
        if filename is None:
            candidates = sorted(directory.glob("*.json")) if directory.is_dir() else []
            if not candidates:
                return None
            path = candidates[0]
        else:
            path = directory / sanitize_filename(filename)
            if not path.is_file():
                return None

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PinterestError.parse(f"Could not read metadata {path}: {exc}", cause=exc) from exc
        if not isinstance(payload, dict):
            raise PinterestError.parse(f"Metadata in {path} is not an object")
        logger.debug("Loaded metadata from {}", path)
        return payload
