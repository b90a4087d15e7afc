"""Fake HTTP objects and payload builders for the test suite."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import requests


PIN_ID = "627830004345010675"
PROFILE_PIN_ID = "1111111111111111"
HLS_PIN_ID = "2222222222222222"


class FakeResponse:
    def __init__(
        self,
        text: str = "",
        status_code: int = 200,
        url: str = "",
        content: bytes | None = None,
        headers: dict | None = None,
        chunk_size: int = 4,
    ) -> None:
        self.text = text
        self.status_code = status_code
        self.url = url
        self.content = content if content is not None else text.encode("utf-8")
        self.headers = headers or {}
        self._chunk_size = chunk_size

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)

    def iter_content(self, chunk_size: int = 1):
        step = self._chunk_size
        for start in range(0, len(self.content), step):
            yield self.content[start:start + step]

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class FakeSession:
    """Routes ``get`` calls by exact URL.

    A route value may be a response, a list of responses served in order, or an
    exception instance to raise.
    """

    def __init__(self, routes: dict | None = None) -> None:
        self.routes = dict(routes or {})
        self.headers: dict = {}
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    def get(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        if url not in self.routes:
            return FakeResponse(status_code=404, url=url)

        route = self.routes[url]
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            raise route
        if not route.url:
            route.url = url
        return route

    def close(self) -> None:
        self.closed = True

    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


class FakeFfmpeg:
    """Stands in for ``subprocess.Popen``.

    Each call writes ``output`` to the last command argument, then keeps
    "running" for ``running_polls`` communicate timeouts before exiting with
    ``exit_code``.
    """

    def __init__(
        self, exit_code: int = 0, output: bytes = b"mp4", stderr: str = "", running_polls: int = 0
    ) -> None:
        self.exit_code = exit_code
        self.output = output
        self.stderr = stderr
        self.running_polls = running_polls
        self.commands: list[list[str]] = []
        self.terminated = False
        self.returncode: int | None = None

    def __call__(self, command: list[str], **kwargs):
        self.commands.append(command)
        Path(command[-1]).write_bytes(self.output)
        self._polls_left = self.running_polls
        self.returncode = None
        return self

    def communicate(self, timeout: float | None = None):
        if self.terminated:
            self.returncode = -15
            return None, ""
        if self._polls_left > 0:
            self._polls_left -= 1
            raise subprocess.TimeoutExpired(self.commands[-1], timeout)
        self.returncode = self.exit_code
        return None, self.stderr

    def terminate(self) -> None:
        self.terminated = True

    def kill(self) -> None:
        self.terminated = True

    @property
    def output_path(self) -> Path:
        return Path(self.commands[-1][-1])


def pin_page(pin_data: dict) -> str:
    payload = {"data": {"v3GetPinQuery": {"data": pin_data}}}
    return (
        "<html><body><script>"
        'window.__PWS_RELAY_REGISTER_COMPLETED_REQUEST__("query \\"pin\\"", '
        f"{json.dumps(payload)});"
        "</script></body></html>"
    )


def pin_data(
    pin_id: str = PIN_ID,
    image_url: str | None = "https://i.pinimg.com/originals/ab/cd/sunset.jpg",
    video_url: str | None = None,
    thumbnail: str | None = None,
) -> dict:
    data: dict = {
        "entityId": pin_id,
        "title": "Sunset",
        "pinner": {"username": "alice", "entityId": "42"},
        "closeupAttribution": {"fullName": "Alice Liddell"},
    }
    if image_url is not None:
        data["imageLargeUrl"] = image_url
    if video_url is not None:
        data["storyPinData"] = {
            "pages": [
                {
                    "blocks": [
                        {
                            "videoDataV2": {
                                "videoList720P": {
                                    "v720P": {"url": video_url, "thumbnail": thumbnail}
                                }
                            }
                        }
                    ]
                }
            ]
        }
    return data


def profile_page(app_version: str = "a1b2c3", user_id: str = "98765") -> str:
    return (
        "<html><script>"
        f'{{"appVersion":"{app_version}","profile_cover":{{"id":"{user_id}","images":{{}}}}}}'
        "</script></html>"
    )


def pins_row(pin_id: str = PROFILE_PIN_ID, video_url: str | None = None) -> dict:
    row: dict = {
        "id": pin_id,
        "title": f"Pin {pin_id}",
        "images": {"orig": {"url": f"https://i.pinimg.com/originals/{pin_id}.jpg"}},
        "videos": [],
        "created_at": "Thu, 11 Dec 2025 04:04:36 +0000",
        "native_creator": {
            "username": "alice",
            "full_name": "Alice Liddell",
            "id": "42",
            "image_large_url": "https://i.pinimg.com/avatars/alice.jpg",
        },
    }
    if video_url is not None:
        row["videos"] = {
            "video_list": {
                "V_720P": {"url": video_url, "thumbnail": "https://i.pinimg.com/thumb.jpg"}
            }
        }
    return row


def pins_response(rows: list[dict], bookmark: str | None = None, status: str = "success") -> str:
    resource_response: dict = {"status": status, "data": rows}
    if bookmark is not None:
        resource_response["bookmark"] = bookmark
    return json.dumps({"resource_response": resource_response})


