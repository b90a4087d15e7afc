from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import requests
from loguru import logger

from pindl.config import ffmpeg_enabled
from pindl.constants import (
    DEFAULT_MAX_PAGES,
    IMAGES_FOLDER,
    METADATA_FOLDER,
    PINS_FOLDER,
    VIDEOS_FOLDER,
)
from pindl.errors import ErrorKind, PinterestError
from pindl.models import MediaResult, ProfileProgress, UserPinsResult
from pindl.services.downloader import MediaDownloader, ProgressCallback
from pindl.services.extractor import PinterestExtractor
from pindl.services.hls import HlsConverter, HlsService
from pindl.utils.media import is_hls_url, mime_type_for, pin_filename
from pindl.utils.paths import profile_folder


@dataclass(frozen=True)
class DownloadItem:
    pin_id: str
    role: str
    url: str
    folder: Path
    filename: str
    title: str = ""


@dataclass
class ProfileBatch:
    result: UserPinsResult
    folder: Path
    first_position: int
    last_position: int
    success: int = 0
    skipped: int = 0
    failed: int = 0
    processed: int = 0
    start_index: int = 0

    def covers(self, position: int) -> bool:
        return self.first_position <= position <= self.last_position

    def record(self, status: str) -> None:
        self.processed += 1
        if status == "Downloaded":
            self.success += 1
        elif status == "Skipped":
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def size(self) -> int:
        return self.last_position - self.first_position + 1

    @property
    def last_index(self) -> int:
        return self.start_index + self.processed - 1


RowCallback = Callable[[dict], None]
CountCallback = Callable[[int, int], None]
NoteCallback = Callable[[str], None]


class DownloadJob:
    """Downloads every pin behind a list of pin links, IDs and usernames."""

    def __init__(
        self,
        inputs: list[str],
        output_dir: str | Path,
        include_images: bool = True,
        include_videos: bool = True,
        include_thumbnails: bool = False,
        overwrite: bool = False,
        max_pages: int = DEFAULT_MAX_PAGES,
        save_metadata: bool = True,
        resume: bool = False,
        extractor: PinterestExtractor | None = None,
        downloader: MediaDownloader | None = None,
        hls_service: HlsService | None = None,
        hls_converter: HlsConverter | None = None,
        on_row: RowCallback | None = None,
        on_progress: CountCallback | None = None,
        on_note: NoteCallback | None = None,
        on_bytes: ProgressCallback | None = None,
    ) -> None:
        self.inputs = inputs
        self.output_dir = Path(output_dir).expanduser()
        self.include_images = include_images
        self.include_videos = include_videos
        self.include_thumbnails = include_thumbnails
        self.overwrite = overwrite
        self.max_pages = max_pages
        self.save_metadata = save_metadata
        self.resume = resume
        self.extractor = extractor or PinterestExtractor()
        self.downloader = downloader or MediaDownloader()
        self.hls_service = hls_service
        self.hls_converter = hls_converter
        self.on_row = on_row
        self.on_progress = on_progress
        self.on_note = on_note
        self.on_bytes = on_bytes
        self._cancel_event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def stop(self) -> None:
        self._cancel_event.set()

    def _note(self, message: str) -> None:
        logger.info(message)
        if self.on_note is not None:
            self.on_note(message)

    def _emit_row(self, index: int, item: DownloadItem, status: str, **extra: str) -> None:
        if self.on_row is None:
            return
        row = {
            "index": index,
            "pin_id": item.pin_id,
            "role": item.role,
            "filename": item.filename,
            "mime_type": mime_type_for(item.filename),
            "media_url": item.url,
            "status": status,
            "saved_path": "",
            "error": "",
        }
        row.update(extra)
        self.on_row(row)

    def run(self) -> dict:
        items, profiles, notes, discovered = self._build_download_queue()
        total = len(items)
        counts = {"Downloaded": 0, "Skipped": 0, "Failed": 0}

        if self.on_progress is not None:
            self.on_progress(0, total)

        for index, item in enumerate(items, start=1):
            if self.cancelled:
                break

            self._emit_row(index, item, "Processing")
            status = self._process_item(index, item)
            if status is None:
                break

            counts[status] += 1
            batch = next((batch for batch in profiles if batch.covers(index - 1)), None)
            if batch is not None:
                batch.record(status)
            if self.on_progress is not None:
                self.on_progress(index, total)

        if self.save_metadata:
            for batch in profiles:
                self._save_profile_metadata(batch)

        return {
            "total": total,
            "success": counts["Downloaded"],
            "skipped": counts["Skipped"],
            "failed": counts["Failed"],
            "cancelled": self.cancelled,
            "notes": notes,
            "discovered": discovered,
        }

    def _process_item(self, index: int, item: DownloadItem) -> str | None:
        if not self.overwrite and self.downloader.exists(item.folder, item.filename):
            self._emit_row(index, item, "Skipped", error="File exists")
            return "Skipped"

        try:
            saved_path = self._download_item(item)
        except PinterestError as exc:
            if exc.kind is ErrorKind.CANCELLED:
                self.stop()
                return None
            self._emit_row(index, item, "Failed", error=str(exc))
            return "Failed"
        except requests.RequestException as exc:
            self._emit_row(index, item, "Failed", error=str(exc))
            return "Failed"

        self._emit_row(index, item, "Downloaded", saved_path=str(saved_path))
        return "Downloaded"

    def _build_download_queue(self) -> tuple[list[DownloadItem], list[ProfileBatch], list[str], int]:
        items: list[DownloadItem] = []
        profiles: list[ProfileBatch] = []
        notes: list[str] = []
        discovered = 0
        seen: set[tuple[str, str]] = set()

        def add(new_items: list[DownloadItem]) -> None:
            for new_item in new_items:
                key = (new_item.pin_id, new_item.filename)
                if key not in seen:
                    seen.add(key)
                    items.append(new_item)

        for source in self.inputs:
            if self.cancelled:
                break

            try:
                resolved = self.extractor.resolve_input(source)
                if resolved is None:
                    notes.append(f"Unrecognized input: {source}")
                    continue

                if resolved.type == "pin":
                    media = self.extractor.get_pin_media(
                        resolved.pin_id or resolved.value, cancel_event=self._cancel_event
                    )
                    add(self._items_for_media(media))
                    if self.save_metadata:
                        self.downloader.save_metadata(
                            self.output_dir / METADATA_FOLDER,
                            f"{media.metadata_id}.json",
                            media.to_json(),
                        )
                    continue

                previous = self._load_previous_run(resolved.value) if self.resume else None
                if previous is not None:
                    result, progress = previous
                else:
                    if self.resume:
                        notes.append(f"No saved metadata for @{resolved.value}; starting over.")
                    result = self.extractor.get_user_pins(
                        resolved.value,
                        max_pages=self.max_pages,
                        cancel_event=self._cancel_event,
                    )
                    progress = ProfileProgress()

                folder = self.output_dir / profile_folder(result.author.username or resolved.value)
                profile_items = self._items_for_profile(result, folder)
                start_index = min(progress.next_index, len(profile_items))
                first_position = len(items)
                add(profile_items[start_index:])
                profiles.append(
                    ProfileBatch(
                        result,
                        folder,
                        first_position,
                        len(items) - 1,
                        success=progress.success,
                        skipped=progress.skipped,
                        failed=progress.failed,
                        start_index=start_index,
                    )
                )
                discovered += len(result.pins)
                if previous is not None:
                    notes.append(
                        f"Continuing @{resolved.value}: skipping first {start_index} item(s), "
                        f"{len(profile_items) - start_index} remaining."
                    )
                else:
                    notes.append(
                        f"Profile @{resolved.value}: discovered {len(result.pins)} pin(s) "
                        f"({result.total_images} image, {result.total_videos} video)."
                    )
            except PinterestError as exc:
                if exc.kind is ErrorKind.CANCELLED:
                    self.stop()
                    break
                notes.append(f"Failed to prepare {source}: {exc}")

        for note in notes:
            self._note(note)
        return items, profiles, notes, discovered

    def _items_for_media(self, media: MediaResult) -> list[DownloadItem]:
        folder = self.output_dir / PINS_FOLDER
        found: list[DownloadItem] = []
        if self.include_images and media.image_url:
            found.append(self._item(media.pin_id, "image", media.image_url, folder, media.title))
        if self.include_videos and media.video_url:
            found.append(self._item(media.pin_id, "video", media.video_url, folder, media.title))
        if self.include_thumbnails and media.thumbnail:
            found.append(self._item(media.pin_id, "thumbnail", media.thumbnail, folder, media.title))
        return found

    def _items_for_profile(self, result: UserPinsResult, folder: Path) -> list[DownloadItem]:
        found: list[DownloadItem] = []
        for pin in result.pins:
            if self.include_images and pin.image_url:
                found.append(
                    self._item(pin.pin_id, "image", pin.image_url, folder / IMAGES_FOLDER, pin.title)
                )
            if self.include_videos and pin.video_url and pin.video_url.url:
                found.append(
                    self._item(
                        pin.pin_id, "video", pin.video_url.url, folder / VIDEOS_FOLDER, pin.title
                    )
                )
            if self.include_thumbnails and pin.thumbnail:
                found.append(
                    self._item(
                        pin.pin_id, "thumbnail", pin.thumbnail, folder / IMAGES_FOLDER, pin.title
                    )
                )
        return found

    @staticmethod
    def _item(pin_id: str, role: str, url: str, folder: Path, title: str) -> DownloadItem:
        return DownloadItem(
            pin_id=pin_id,
            role=role,
            url=url,
            folder=folder,
            filename=pin_filename(pin_id, role, url),
            title=title,
        )

    def _download_item(self, item: DownloadItem) -> Path:
        if item.role == "video" and is_hls_url(item.url):
            return self._download_hls(item)
        return self.downloader.download(
            item.url,
            item.folder,
            item.filename,
            overwrite=self.overwrite,
            session=self.extractor.session,
            on_progress=self.on_bytes,
            cancel_event=self._cancel_event,
        )

    def _download_hls(self, item: DownloadItem) -> Path:
        if ffmpeg_enabled():
            hls_service = self.hls_service or HlsService(session=self.extractor.session)
            converter = self.hls_converter or HlsConverter()
            parsed = hls_service.fetch_and_parse(item.url)
            if not parsed.success or parsed.video_variant_url is None:
                raise PinterestError.download(f"HLS parse failed: {parsed.error_message}")
            logger.info(
                "HLS variant: {}x{} @ {} bps", parsed.width, parsed.height, parsed.bandwidth or 0
            )
            return converter.convert_to_mp4(
                parsed.video_variant_url,
                parsed.audio_url,
                item.folder / item.filename,
                cancel_event=self._cancel_event,
            )

        # without FFmpeg, fall back to the pin page hoping for a direct MP4
        logger.info("Lite mode: fetching direct video for {}", item.pin_id)
        media = self.extractor.get_pin_media(
            item.pin_id, media="video", cancel_event=self._cancel_event
        )
        if not media.video_url or is_hls_url(media.video_url):
            raise PinterestError.download(
                f"No direct MP4 available for {item.pin_id} and FFmpeg support is disabled"
            )
        return self.downloader.download(
            media.video_url,
            item.folder,
            item.filename,
            overwrite=self.overwrite,
            session=self.extractor.session,
            on_progress=self.on_bytes,
            cancel_event=self._cancel_event,
        )

    def _load_previous_run(self, username: str) -> tuple[UserPinsResult, ProfileProgress] | None:
        folder = self.output_dir / profile_folder(username)
        payload = self.downloader.load_metadata(folder)
        if payload is None:
            return None

        result = UserPinsResult.from_metadata_json(payload)
        progress = ProfileProgress.from_metadata_json(payload)
        logger.info(
            "Previous run for @{}: downloaded {}, skipped {}, failed {}, "
            "last index {}, interrupted {}",
            username,
            progress.success,
            progress.skipped,
            progress.failed,
            progress.last_index,
            progress.interrupted,
        )
        return result, progress

    def _save_profile_metadata(self, batch: ProfileBatch) -> None:
        author = batch.result.author
        payload = batch.result.to_metadata_json(
            success=batch.success,
            skipped=batch.skipped,
            failed=batch.failed,
            last_index=batch.last_index,
            interrupted=self.cancelled and batch.processed < batch.size,
        )
        try:
            self.downloader.save_metadata(batch.folder, f"{author.user_id}.json", payload)
        except PinterestError as exc:
            self._note(f"Could not save metadata for @{author.username}: {exc}")
