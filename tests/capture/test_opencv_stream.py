from __future__ import annotations

import asyncio

import pytest

from site_attendance.capture.opencv_camera import OpenCVStream
from site_attendance.core.exceptions import DeviceUnavailable


class FakeCapture:
    def __init__(self, ok: bool = False):
        self.ok = ok
        self.releases = 0

    def read(self):
        return self.ok, None

    def release(self):
        self.releases += 1


def test_failed_read_is_device_unavailable():
    stream = OpenCVStream(FakeCapture(ok=False), jpeg_quality=50)

    with pytest.raises(DeviceUnavailable):
        asyncio.run(stream.read_frame())


def test_release_is_idempotent_and_blocks_reads():
    capture = FakeCapture()
    stream = OpenCVStream(capture, jpeg_quality=50)

    stream.release()
    stream.release()

    assert capture.releases == 1
    with pytest.raises(DeviceUnavailable):
        asyncio.run(stream.read_frame())
