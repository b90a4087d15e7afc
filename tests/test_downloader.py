import threading

import pytest
import requests

from pindl.errors import ErrorKind, PinterestError
from pindl.services.downloader import DownloadProgress, MediaDownloader
from tests.utils import FakeResponse, FakeSession

MEDIA_URL = "https://i.pinimg.com/originals/a.jpg"


def test_download_streams_to_file(tmp_path):
    session = FakeSession(
        {MEDIA_URL: FakeResponse(content=b"0123456789", headers={"Content-Length": "10"})}
    )
    progress = []

    path = MediaDownloader().download(
        MEDIA_URL, tmp_path / "out", "a.jpg", session=session, on_progress=progress.append
    )

    assert path.read_bytes() == b"0123456789"
    assert not (tmp_path / "out" / "a.jpg.part").exists()
    assert [update.received for update in progress] == [4, 8, 10]
    assert progress[-1].percentage == 1.0
    assert session.calls[0][1]["stream"] is True


def test_existing_file_is_not_overwritten(tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"old")
    session = FakeSession({MEDIA_URL: FakeResponse(content=b"new")})

    with pytest.raises(PinterestError) as excinfo:
        MediaDownloader().download(MEDIA_URL, tmp_path, "a.jpg", session=session)

    assert excinfo.value.kind is ErrorKind.DOWNLOAD
    assert excinfo.value.message == "File already exists"
    assert (tmp_path / "a.jpg").read_bytes() == b"old"
    assert session.calls == []


def test_overwrite(tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"old")
    session = FakeSession({MEDIA_URL: FakeResponse(content=b"new")})

    MediaDownloader().download(MEDIA_URL, tmp_path, "a.jpg", overwrite=True, session=session)

    assert (tmp_path / "a.jpg").read_bytes() == b"new"


def test_http_error_leaves_nothing_behind(tmp_path):
    with pytest.raises(PinterestError) as excinfo:
        MediaDownloader().download(MEDIA_URL, tmp_path, "a.jpg", session=FakeSession())

    assert excinfo.value.kind is ErrorKind.DOWNLOAD
    assert isinstance(excinfo.value.cause, requests.HTTPError)
    assert list(tmp_path.iterdir()) == []


def test_cancel_removes_partial_file(tmp_path):
    event = threading.Event()
    event.set()
    session = FakeSession({MEDIA_URL: FakeResponse(content=b"0123456789")})

    with pytest.raises(PinterestError) as excinfo:
        MediaDownloader().download(
            MEDIA_URL, tmp_path, "a.jpg", session=session, cancel_event=event
        )

    assert excinfo.value.is_cancelled
    assert list(tmp_path.iterdir()) == []


def test_filename_is_sanitized(tmp_path):
    session = FakeSession({MEDIA_URL: FakeResponse(content=b"x")})

    path = MediaDownloader().download(MEDIA_URL, tmp_path, "a<b>.jpg", session=session)

    assert path.name == "ab.jpg"


def test_save_metadata(tmp_path):
    path = MediaDownloader().save_metadata(tmp_path / "metadata", "1.json", {"title": "Café"})

    assert path.read_text(encoding="utf-8") == '{\n  "title": "Café"\n}'


def test_progress_without_total():
    progress = DownloadProgress("a.jpg", 2048, 0)

    assert progress.percentage == 0.0
    assert progress.human_received == "2.00 KB"
    assert progress.human_total == "0 B"


def test_rejects_non_http_url(tmp_path):
    with pytest.raises(PinterestError) as excinfo:
        MediaDownloader().download("file:///etc/passwd", tmp_path, "a.jpg", session=FakeSession())

    assert excinfo.value.kind is ErrorKind.VALIDATION


def test_load_metadata(tmp_path):
    downloader = MediaDownloader()
    downloader.save_metadata(tmp_path / "@alice", "42.json", {"bookmark": None})

    assert downloader.load_metadata(tmp_path / "@alice") == {"bookmark": None}
    assert downloader.load_metadata(tmp_path / "@alice", "42.json") == {"bookmark": None}
    assert downloader.load_metadata(tmp_path / "@alice", "7.json") is None
    assert downloader.load_metadata(tmp_path / "@bob") is None


def test_load_broken_metadata(tmp_path):
    (tmp_path / "42.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(PinterestError) as excinfo:
        MediaDownloader().load_metadata(tmp_path)

    assert excinfo.value.kind is ErrorKind.PARSE
