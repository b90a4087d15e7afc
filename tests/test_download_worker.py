import json

from pindl.constants import HOST, USER_PINS_RESOURCE
from pindl.services.downloader import MediaDownloader
from pindl.services.extractor import PinterestExtractor
from pindl.workers.download_worker import DownloadJob
from tests.utils import (
    HLS_PIN_ID,
    PIN_ID,
    PROFILE_PIN_ID,
    FakeFfmpeg,
    FakeResponse,
    FakeSession,
    pin_data,
    pin_page,
    pins_response,
    pins_row,
    profile_page,
)

IMAGE_URL = "https://i.pinimg.com/originals/ab/cd/sunset.jpg"
VIDEO_URL = "https://v1.pinimg.com/videos/mc/720p/clip.mp4"
HLS_URL = "https://v1.pinimg.com/videos/iht/hls/master.m3u8"


def single_pin_routes():
    return {
        f"{HOST}/pin/{PIN_ID}/": FakeResponse(pin_page(pin_data())),
        IMAGE_URL: FakeResponse(content=b"jpeg-bytes"),
    }


def profile_routes(rows):
    routes = {
        f"{HOST}/alice": FakeResponse(profile_page()),
        f"{HOST}{USER_PINS_RESOURCE}": FakeResponse(pins_response(rows)),
    }
    for row in rows:
        routes[row["images"]["orig"]["url"]] = FakeResponse(content=b"img")
    return routes


def make_job(routes, output_dir, **kwargs):
    extractor = PinterestExtractor(session=FakeSession(routes))
    return DownloadJob(
        kwargs.pop("inputs"), output_dir, extractor=extractor, downloader=MediaDownloader(), **kwargs
    )


def test_single_pin(tmp_path):
    rows = []
    job = make_job(single_pin_routes(), tmp_path, inputs=[PIN_ID], on_row=rows.append)

    summary = job.run()

    image = tmp_path / "Pins" / f"{PIN_ID}_image.jpg"
    assert image.read_bytes() == b"jpeg-bytes"
    assert summary["total"] == 1
    assert summary["success"] == 1
    assert summary["cancelled"] is False
    assert [row["status"] for row in rows] == ["Processing", "Downloaded"]
    assert rows[-1]["saved_path"] == str(image)
    assert rows[-1]["mime_type"] == "image/jpeg"

    metadata = json.loads((tmp_path / "metadata" / f"{PIN_ID}.json").read_text(encoding="utf-8"))
    assert metadata["author"]["username"] == "alice"
    assert metadata["imageUrl"] == IMAGE_URL


def test_existing_files_are_skipped(tmp_path):
    make_job(single_pin_routes(), tmp_path, inputs=[PIN_ID]).run()

    summary = make_job(single_pin_routes(), tmp_path, inputs=[PIN_ID]).run()

    assert summary["skipped"] == 1
    assert summary["success"] == 0


def test_failed_download_is_reported(tmp_path):
    routes = single_pin_routes()
    del routes[IMAGE_URL]
    rows = []

    summary = make_job(routes, tmp_path, inputs=[PIN_ID], on_row=rows.append).run()

    assert summary["failed"] == 1
    assert rows[-1]["status"] == "Failed"
    assert "DownloadError" in rows[-1]["error"]


def test_unrecognized_input_becomes_note(tmp_path):
    notes = []

    summary = make_job({}, tmp_path, inputs=["???"], on_note=notes.append).run()

    assert summary["total"] == 0
    assert notes == ["Unrecognized input: ???"]


def test_profile_download_writes_metadata(tmp_path):
    rows = [pins_row(PROFILE_PIN_ID), pins_row("3333333333333333", VIDEO_URL)]
    routes = profile_routes(rows)
    routes[VIDEO_URL] = FakeResponse(content=b"mp4")

    summary = make_job(routes, tmp_path, inputs=["@alice"], save_metadata=True).run()

    folder = tmp_path / "@alice"
    assert (folder / "Images" / f"{PROFILE_PIN_ID}_image.jpg").exists()
    assert (folder / "Images" / "3333333333333333_image.jpg").exists()
    assert (folder / "Videos" / "3333333333333333_video.mp4").read_bytes() == b"mp4"
    assert summary["success"] == 3
    assert summary["discovered"] == 2

    metadata = json.loads((folder / "42.json").read_text(encoding="utf-8"))
    assert metadata["success_downloaded"] == 3
    assert metadata["last_index_downloaded"] == 2
    assert metadata["was_interrupted"] is False
    assert metadata["totalVideos"] == 1


def test_images_only(tmp_path):
    rows = [pins_row("3333333333333333", VIDEO_URL)]

    summary = make_job(
        profile_routes(rows), tmp_path, inputs=["alice"], include_videos=False, save_metadata=False
    ).run()

    assert summary["total"] == 1
    assert not (tmp_path / "@alice" / "Videos").exists()


def test_hls_video_in_lite_mode_uses_direct_mp4(tmp_path):
    rows = [pins_row(HLS_PIN_ID, HLS_URL)]
    routes = profile_routes(rows)
    routes[f"{HOST}/pin/{HLS_PIN_ID}/"] = FakeResponse(
        pin_page(pin_data(HLS_PIN_ID, video_url=VIDEO_URL))
    )
    routes[VIDEO_URL] = FakeResponse(content=b"direct")

    summary = make_job(routes, tmp_path, inputs=["alice"], include_images=False).run()

    video = tmp_path / "@alice" / "Videos" / f"{HLS_PIN_ID}_video.mp4"
    assert video.read_bytes() == b"direct"
    assert summary["success"] == 1


def test_hls_video_without_direct_mp4_fails(tmp_path):
    rows = [pins_row(HLS_PIN_ID, HLS_URL)]
    routes = profile_routes(rows)
    routes[f"{HOST}/pin/{HLS_PIN_ID}/"] = FakeResponse(
        pin_page(pin_data(HLS_PIN_ID, video_url=HLS_URL))
    )

    summary = make_job(routes, tmp_path, inputs=["alice"], include_images=False).run()

    assert summary["failed"] == 1


def test_stop_cancels_remaining_items(tmp_path):
    rows = [pins_row(PROFILE_PIN_ID), pins_row("3333333333333333")]
    job = None

    def stop_after_first(row):
        if row["status"] == "Downloaded":
            job.stop()

    job = make_job(profile_routes(rows), tmp_path, inputs=["alice"], on_row=stop_after_first)
    summary = job.run()

    assert summary["cancelled"] is True
    assert summary["success"] == 1
    metadata = json.loads((tmp_path / "@alice" / "42.json").read_text(encoding="utf-8"))
    assert metadata["was_interrupted"] is True
    assert metadata["last_index_downloaded"] == 0


MASTER_PLAYLIST = (
    "#EXTM3U\n"
    '#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aud",NAME="Main",DEFAULT=YES,URI="audio.m3u8"\n'
    "#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360\n"
    "low.m3u8\n"
    '#EXT-X-STREAM-INF:BANDWIDTH=2500000,RESOLUTION=1280x720,AUDIO="aud"\n'
    "hd.m3u8\n"
)


class RecordingConverter:
    def __init__(self):
        self.calls = []

    def convert_to_mp4(self, video_url, audio_url, output_path, cancel_event=None):
        self.calls.append((video_url, audio_url, output_path))
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"converted")
        return output_path


def hls_profile_routes():
    routes = profile_routes([pins_row(HLS_PIN_ID, HLS_URL)])
    routes[HLS_URL] = FakeResponse(MASTER_PLAYLIST)
    return routes


def test_hls_video_converted_with_ffmpeg(monkeypatch, tmp_path):
    monkeypatch.setenv("ENABLE_FFMPEG", "true")
    converter = RecordingConverter()

    summary = make_job(
        hls_profile_routes(),
        tmp_path,
        inputs=["alice"],
        include_images=False,
        hls_converter=converter,
    ).run()

    video = tmp_path / "@alice" / "Videos" / f"{HLS_PIN_ID}_video.mp4"
    assert converter.calls == [
        (
            "https://v1.pinimg.com/videos/iht/hls/hd.m3u8",
            "https://v1.pinimg.com/videos/iht/hls/audio.m3u8",
            video,
        )
    ]
    assert video.read_bytes() == b"converted"
    assert summary["success"] == 1


def test_unreadable_playlist_fails_the_item(monkeypatch, tmp_path):
    monkeypatch.setenv("ENABLE_FFMPEG", "true")
    routes = hls_profile_routes()
    del routes[HLS_URL]
    converter = RecordingConverter()
    rows = []

    summary = make_job(
        routes,
        tmp_path,
        inputs=["alice"],
        include_images=False,
        hls_converter=converter,
        on_row=rows.append,
    ).run()

    assert summary["failed"] == 1
    assert converter.calls == []
    assert rows[-1]["status"] == "Failed"
    assert "HLS parse failed" in rows[-1]["error"]


def test_failed_conversion_is_retried_on_next_run(monkeypatch, tmp_path):
    monkeypatch.setenv("ENABLE_FFMPEG", "true")
    monkeypatch.setattr("pindl.services.hls.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(
        "pindl.services.hls.subprocess.Popen", FakeFfmpeg(exit_code=1, output=b"partial")
    )
    video = tmp_path / "@alice" / "Videos" / f"{HLS_PIN_ID}_video.mp4"

    first = make_job(hls_profile_routes(), tmp_path, inputs=["alice"], include_images=False).run()

    assert first["failed"] == 1
    assert not video.exists()
    assert list(video.parent.iterdir()) == []

    second = make_job(hls_profile_routes(), tmp_path, inputs=["alice"], include_images=False).run()

    assert second["failed"] == 1
    assert second["skipped"] == 0


def test_thumbnails(tmp_path):
    routes = profile_routes([pins_row("3333333333333333", VIDEO_URL)])
    routes["https://i.pinimg.com/thumb.jpg"] = FakeResponse(content=b"thumb")

    summary = make_job(
        routes,
        tmp_path,
        inputs=["alice"],
        include_images=False,
        include_videos=False,
        include_thumbnails=True,
        save_metadata=False,
    ).run()

    thumbnail = tmp_path / "@alice" / "Images" / "3333333333333333_thumbnail.jpg"
    assert thumbnail.read_bytes() == b"thumb"
    assert summary["total"] == 1


RESUME_ROWS = [pins_row(PROFILE_PIN_ID), pins_row("3333333333333333"), pins_row("4444444444444444")]


def test_interrupted_profile_is_resumed(tmp_path):
    job = None

    def stop_after_first(row):
        if row["status"] == "Downloaded":
            job.stop()

    job = make_job(
        profile_routes(RESUME_ROWS), tmp_path, inputs=["alice"], on_row=stop_after_first
    )
    job.run()

    # profile and pins API routes are left out
    image_routes = {
        url: response
        for url, response in profile_routes(RESUME_ROWS).items()
        if url.startswith("https://i.pinimg.com/")
    }
    notes = []
    resumed = make_job(image_routes, tmp_path, inputs=["alice"], resume=True, on_note=notes.append)
    summary = resumed.run()

    assert summary["total"] == 2
    assert summary["success"] == 2
    first_image = f"https://i.pinimg.com/originals/{PROFILE_PIN_ID}.jpg"
    assert first_image not in resumed.extractor.session.urls()
    assert notes[0].startswith("Continuing @alice: skipping first 1 item(s)")

    metadata = json.loads((tmp_path / "@alice" / "42.json").read_text(encoding="utf-8"))
    assert metadata["success_downloaded"] == 3
    assert metadata["last_index_downloaded"] == 2
    assert metadata["was_interrupted"] is False
    assert len(metadata["pins"]) == 3


def test_resume_without_metadata_starts_over(tmp_path):
    notes = []

    summary = make_job(
        profile_routes(RESUME_ROWS), tmp_path, inputs=["alice"], resume=True, on_note=notes.append
    ).run()

    assert summary["success"] == 3
    assert "No saved metadata for @alice; starting over." in notes
