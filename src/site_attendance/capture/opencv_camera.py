from __future__ import annotations

import asyncio
import logging

import cv2

from ..core.constants import DEFAULT_CAMERA_INDEX, DEFAULT_JPEG_QUALITY
from ..core.exceptions import DeviceUnavailable

logger = logging.getLogger(__name__)


class OpenCVStream:
    def __init__(self, capture: "cv2.VideoCapture", *, jpeg_quality: int):
        self._capture = capture
        self._jpeg_quality = int(jpeg_quality)
        self._released = False

    async def read_frame(self) -> bytes:
        if self._released:
            raise DeviceUnavailable("Camera đã được giải phóng")

        ok, frame = await asyncio.to_thread(self._capture.read)
        if not ok or frame is None:
            raise DeviceUnavailable("Không đọc được khung hình từ camera")

        ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self._jpeg_quality])
        if not ok:
            raise DeviceUnavailable("Không mã hoá được ảnh JPEG")
        return buf.tobytes()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._capture.release()
        logger.debug("Camera stream released")


class OpenCVCamera:
    """Camera device backed by ``cv2.VideoCapture``.

    OpenCV has no permission prompt of its own; an OS-level refusal shows up
    as a device that fails to open.
    """

    def __init__(self, index: int = DEFAULT_CAMERA_INDEX, *, jpeg_quality: int = DEFAULT_JPEG_QUALITY):
        self._index = int(index)
        self._jpeg_quality = jpeg_quality

    async def request_permission(self) -> bool:
        return True

    async def open_stream(self) -> OpenCVStream:
        capture = await asyncio.to_thread(cv2.VideoCapture, self._index)
        if not capture.isOpened():
            capture.release()
            raise DeviceUnavailable(f"Không mở được camera #{self._index}")
        return OpenCVStream(capture, jpeg_quality=self._jpeg_quality)
