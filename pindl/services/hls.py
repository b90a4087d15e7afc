"""HLS master playlist handling and FFmpeg conversion.

Pinterest serves some videos only as HLS with separate audio renditions and
``.cmfv``/``.cmfa`` segments. Conversion needs a local ``ffmpeg`` binary and is
only allowed when the FFmpeg feature flag is on.
"""

from __future__ import annotations

import re
import shutil
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urljoin

import requests
from loguru import logger

from pindl.config import ffmpeg_enabled, get_settings
from pindl.constants import REQUEST_TIMEOUT_SECONDS, USER_AGENT
from pindl.errors import PinterestError
from pindl.utils.formatting import human_size

ATTRIBUTE_RE = re.compile(r'([A-Z0-9\-]+)=("[^"]*"|[^,]*)')
STREAM_INF_TAG = "#EXT-X-STREAM-INF:"
MEDIA_TAG = "#EXT-X-MEDIA:"
SEGMENT_EXTENSIONS = "m3u8,mp4,m4a,m4s,ts,cmfv,cmfa,key"
POLL_INTERVAL_SECONDS = 0.5
TERMINATE_GRACE_SECONDS = 5


@dataclass(frozen=True)
class HlsVariant:
    uri: str
    bandwidth: int = 0
    width: int | None = None
    height: int | None = None
    audio_group_id: str | None = None

    @property
    def pixels(self) -> int:
        return (self.width or 0) * (self.height or 0)


@dataclass(frozen=True)
class HlsAudioTrack:
    uri: str | None
    group_id: str | None = None
    name: str | None = None
    language: str | None = None
    is_default: bool = False


@dataclass(frozen=True)
class Playlist:
    variants: list[HlsVariant] = field(default_factory=list)
    audio_tracks: list[HlsAudioTrack] = field(default_factory=list)


@dataclass(frozen=True)
class HlsParseResult:
    success: bool
    video_variant_url: str | None = None
    audio_url: str | None = None
    width: int | None = None
    height: int | None = None
    bandwidth: int | None = None
    error_message: str | None = None


def parse_attributes(text: str) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for match in ATTRIBUTE_RE.finditer(text):
        value = match.group(2)
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        attributes[match.group(1)] = value
    return attributes


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_master_playlist(text: str) -> Playlist:
    lines = [line.strip() for line in text.splitlines()]
    variants: list[HlsVariant] = []
    audio_tracks: list[HlsAudioTrack] = []

    for position, line in enumerate(lines):
        if line.startswith(STREAM_INF_TAG):
            attributes = parse_attributes(line[len(STREAM_INF_TAG):])
            uri = next(
                (candidate for candidate in lines[position + 1:]
                 if candidate and not candidate.startswith("#")),
                None,
            )
            if uri is None:
                continue

            width = height = None
            resolution = attributes.get("RESOLUTION", "")
            if "x" in resolution:
                width_text, _, height_text = resolution.partition("x")
                width, height = _to_int(width_text), _to_int(height_text)

            variants.append(
                HlsVariant(
                    uri=uri,
                    bandwidth=_to_int(attributes.get("BANDWIDTH")) or 0,
                    width=width,
                    height=height,
                    audio_group_id=attributes.get("AUDIO"),
                )
            )
        elif line.startswith(MEDIA_TAG):
            attributes = parse_attributes(line[len(MEDIA_TAG):])
            if attributes.get("TYPE") != "AUDIO":
                continue
            audio_tracks.append(
                HlsAudioTrack(
                    uri=attributes.get("URI"),
                    group_id=attributes.get("GROUP-ID"),
                    name=attributes.get("NAME"),
                    language=attributes.get("LANGUAGE"),
                    is_default=attributes.get("DEFAULT") == "YES",
                )
            )

    return Playlist(variants=variants, audio_tracks=audio_tracks)


def select_best_variant(variants: list[HlsVariant]) -> HlsVariant:
    if not variants:
        raise ValueError("No variants to choose from.")
    return max(variants, key=lambda variant: (variant.pixels, variant.bandwidth))


def select_best_audio(
    audio_tracks: list[HlsAudioTrack],
    group_id: str | None,
) -> HlsAudioTrack | None:
    if not audio_tracks:
        return None
    if group_id is not None:
        matching = [track for track in audio_tracks if track.group_id == group_id]
        if matching:
            return next((track for track in matching if track.is_default), matching[0])
    return audio_tracks[0]


class HlsService:
    def __init__(
        self,
        session: requests.Session | None = None,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    def fetch_and_parse(self, master_url: str) -> HlsParseResult:
        try:
            response = self.session.get(
                master_url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            return HlsParseResult(success=False, error_message=f"Failed to fetch playlist: {exc}")

        if not response.text:
            return HlsParseResult(success=False, error_message="Empty playlist content")

        playlist = parse_master_playlist(response.text)
        if not playlist.variants:
            return HlsParseResult(
                success=False, error_message="No variants found in master playlist"
            )

        best = select_best_variant(playlist.variants)
        audio = select_best_audio(playlist.audio_tracks, best.audio_group_id)
        audio_url = urljoin(master_url, audio.uri) if audio and audio.uri else None

        return HlsParseResult(
            success=True,
            video_variant_url=urljoin(master_url, best.uri),
            audio_url=audio_url,
            width=best.width,
            height=best.height,
            bandwidth=best.bandwidth,
        )


class HlsConverter:
    def __init__(self, ffmpeg_binary: str | None = None) -> None:
        self.ffmpeg_binary = ffmpeg_binary or get_settings().ffmpeg_binary

    def build_command(
        self,
        video_url: str,
        audio_url: str | None,
        output_path: Path,
    ) -> list[str]:
        command = [
            self.ffmpeg_binary,
            "-y",
            "-protocol_whitelist", "file,http,https,tcp,tls,crypto",
            "-user_agent", USER_AGENT,
            "-headers", "Referer: https://www.pinterest.com/\r\nOrigin: https://www.pinterest.com\r\n",
            "-allowed_extensions", SEGMENT_EXTENSIONS,
            "-extension_picky", "0",
            "-i", video_url,
        ]
        if audio_url is not None:
            command += [
                "-allowed_extensions", SEGMENT_EXTENSIONS,
                "-extension_picky", "0",
                "-i", audio_url,
                "-map", "0:v:0", "-map", "1:a:0",
            ]
        else:
            command += ["-map", "0:v:0", "-map", "0:a?"]

        command += [
            "-c", "copy",
            "-bsf:a", "aac_adtstoasc",
            "-movflags", "+faststart",
            str(output_path),
        ]
        return command

    def convert_to_mp4(
        self,
        video_url: str,
        audio_url: str | None,
        output_path: str | Path,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """Remux an HLS rendition into ``output_path``.

        FFmpeg writes to ``<name>.part.mp4``, which is renamed only after a clean
        exit. ``cancel_event`` terminates a running conversion.
        """

        if not ffmpeg_enabled():
            raise PinterestError.validation(
                "HLS conversion requires FFmpeg support (set ENABLE_FFMPEG=true)."
            )
        if shutil.which(self.ffmpeg_binary) is None:
            raise PinterestError.validation(f"FFmpeg binary not found: {self.ffmpeg_binary}")

        target = Path(output_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        part_path = target.with_name(f"{target.stem}.part{target.suffix}")
        part_path.unlink(missing_ok=True)

        command = self.build_command(video_url, audio_url, part_path)
        logger.debug("FFmpeg command: {}", subprocess.list2cmdline(command))

        try:
            returncode, stderr = self._run(command, cancel_event)
            if returncode != 0:
                raise PinterestError.download(
                    f"FFmpeg failed with code {returncode}: {stderr.strip()[-500:]}",
                    file_path=str(target),
                )
            if not part_path.exists():
                raise PinterestError.download("Output file not created", file_path=str(target))
            part_path.replace(target)
        except PinterestError:
            part_path.unlink(missing_ok=True)
            raise
        except OSError as exc:
            part_path.unlink(missing_ok=True)
            raise PinterestError.download(
                f"Failed to write file: {exc}", file_path=str(target), cause=exc
            ) from exc

        logger.info("Conversion successful: {} ({})", target, human_size(target.stat().st_size))
        return target

    def _run(
        self,
        command: list[str],
        cancel_event: threading.Event | None,
    ) -> tuple[int, str]:
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as exc:
            raise PinterestError.download(f"Could not start FFmpeg: {exc}", cause=exc) from exc

        while True:
            try:
                _, stderr = process.communicate(timeout=POLL_INTERVAL_SECONDS)
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Stopping FFmpeg")
                    process.terminate()
                    try:
                        process.communicate(timeout=TERMINATE_GRACE_SECONDS)
                    except subprocess.TimeoutExpired:
                        process.kill()
                        process.communicate()
                    raise PinterestError.cancelled()
                continue
            return process.returncode, stderr or ""
