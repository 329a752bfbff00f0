"""
Frame acquisition from network cameras.

A frame source returns one encoded image per call, bounded by its own
timeout. Failures are classified AcquisitionErrors; a flaky camera is an
expected condition, so nothing here retries or sleeps on the caller's time.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from urllib.parse import quote, urlsplit

import cv2
import requests

from ..config.schemas import CameraConfig
from ..errors import AcquisitionError, AcquisitionErrorKind
from ..utils.constants import (
    DEFAULT_RTSP_PORT,
    DEFAULT_STREAM_PATH,
    JPEG_ENCODE_QUALITY,
)

logger = logging.getLogger(__name__)

# Magic numbers of the image formats cameras and snapshot proxies return
_IMAGE_SIGNATURES = (
    (b"\xff\xd8\xff", "jpeg"),
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"BM", "bmp"),
)
MIN_IMAGE_BYTES = 32
MAX_SNAPSHOT_BYTES = 20 * 1024 * 1024
CHUNK_SIZE = 64 * 1024


@runtime_checkable
class FrameSource(Protocol):
    """Anything that can hand the tracker one encoded frame."""

    def acquire(self) -> bytes:
        """
        Fetch one encoded image.

        Returns:
            Raw image bytes with a recognizable header

        Raises:
            AcquisitionError: timeout, unreachable, auth_failure, malformed_image
        """
        ...


@dataclass(frozen=True)
class CameraEndpoint:
    """Network address and credentials of a camera stream."""

    host: str
    port: int = DEFAULT_RTSP_PORT
    stream_path: str = DEFAULT_STREAM_PATH
    username: str | None = None
    password: str | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def rtsp_url(self) -> str:
        """RTSP URL with credentials embedded (never log this)."""
        auth = ""
        if self.has_credentials:
            auth = f"{quote(self.username, safe='')}:{quote(self.password, safe='')}@"
        path = self.stream_path.lstrip("/")
        return f"rtsp://{auth}{self.host}:{self.port}/{path}"

    def redacted(self) -> str:
        """Address safe for logs."""
        return f"{self.host}:{self.port}/{self.stream_path.lstrip('/')}"


def detect_image_format(data: bytes) -> str | None:
    """Return the image format name from its header, or None."""
    for signature, name in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return name
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def validate_image_bytes(data: bytes | None) -> bytes:
    """
    Check that a payload is plausibly an encoded image.

    Args:
        data: Bytes returned by the camera

    Returns:
        The same bytes

    Raises:
        AcquisitionError: malformed_image if empty, truncated or unrecognized
    """
    if not data:
        raise AcquisitionError(AcquisitionErrorKind.MALFORMED_IMAGE, "Empty frame payload")
    if len(data) < MIN_IMAGE_BYTES:
        raise AcquisitionError(
            AcquisitionErrorKind.MALFORMED_IMAGE,
            f"Frame payload too short ({len(data)} bytes)",
        )
    if detect_image_format(data) is None:
        raise AcquisitionError(
            AcquisitionErrorKind.MALFORMED_IMAGE,
            f"Unrecognized image header: {data[:8]!r}",
        )
    return data


class HttpSnapshotSource:
    """
    Fetch JPEG snapshots over HTTP.

    Works against a camera's own snapshot endpoint or against an RTSP->JPEG
    snapshot proxy. The timeout covers the whole request including the body,
    not just individual socket operations.
    """

    def __init__(
        self,
        url: str,
        timeout_ms: int,
        params: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        session: requests.Session | None = None,
    ):
        """
        Create snapshot source.

        Args:
            url: Snapshot endpoint
            timeout_ms: Total time allowed per acquire()
            params: Query parameters sent with every request
            auth: Optional HTTP basic auth (username, password)
            session: Optional requests session (shared connection pool)
        """
        self._url = url
        self._timeout_s = timeout_ms / 1000.0
        self._params = params or {}
        self._auth = auth
        self._session = session or requests.Session()

    @classmethod
    def via_proxy(
        cls,
        endpoint: CameraEndpoint,
        proxy_url: str,
        timeout_ms: int,
        session: requests.Session | None = None,
    ) -> "HttpSnapshotSource":
        """
        Build a source that asks a snapshot proxy to grab a frame from RTSP.

        Proxy contract: GET <proxy_url>?ip=..&port=..&path=..[&user=..&pass=..]
        """
        params = {
            "ip": endpoint.host,
            "port": str(endpoint.port),
            "path": endpoint.stream_path.lstrip("/"),
        }
        if endpoint.has_credentials:
            params["user"] = endpoint.username
            params["pass"] = endpoint.password
        return cls(proxy_url, timeout_ms, params=params, session=session)

    @property
    def url(self) -> str:
        return self._url

    @property
    def redacted_url(self) -> str:
        """Endpoint without credentials or query string, safe for logs."""
        parts = urlsplit(self._url)
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        return f"{parts.scheme}://{host}{parts.path}"

    def acquire(self) -> bytes:
        deadline = time.monotonic() + self._timeout_s
        try:
            response = self._session.get(
                self._url,
                params=self._params,
                auth=self._auth,
                timeout=(self._timeout_s, self._timeout_s),
                stream=True,
            )
        except requests.Timeout as e:
            raise AcquisitionError(
                AcquisitionErrorKind.TIMEOUT,
                f"Snapshot request timed out after {self._timeout_s:.1f}s",
            ) from e
        except requests.RequestException as e:
            raise AcquisitionError(
                AcquisitionErrorKind.UNREACHABLE,
                f"Snapshot request to {self.redacted_url} failed ({type(e).__name__})",
            ) from e

        try:
            if response.status_code in (401, 403):
                raise AcquisitionError(
                    AcquisitionErrorKind.AUTH_FAILURE,
                    f"Camera rejected credentials ({response.status_code})",
                )
            if not response.ok:
                raise AcquisitionError(
                    AcquisitionErrorKind.UNREACHABLE,
                    f"Snapshot endpoint returned {response.status_code}",
                )
            data = self._read_body(response, deadline)
        finally:
            response.close()

        return validate_image_bytes(data)

    def _read_body(self, response, deadline: float) -> bytes:
        """Read the response body, enforcing the overall deadline and size cap."""
        chunks = []
        total = 0
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                chunks.append(chunk)
                total += len(chunk)
                if total > MAX_SNAPSHOT_BYTES:
                    raise AcquisitionError(
                        AcquisitionErrorKind.MALFORMED_IMAGE,
                        f"Snapshot exceeds {MAX_SNAPSHOT_BYTES} bytes",
                    )
                if time.monotonic() > deadline:
                    raise AcquisitionError(
                        AcquisitionErrorKind.TIMEOUT,
                        f"Snapshot body not received within {self._timeout_s:.1f}s",
                    )
        except requests.Timeout as e:
            raise AcquisitionError(
                AcquisitionErrorKind.TIMEOUT, "Snapshot body read timed out"
            ) from e
        except requests.RequestException as e:
            raise AcquisitionError(
                AcquisitionErrorKind.UNREACHABLE,
                f"Snapshot body read from {self.redacted_url} failed ({type(e).__name__})",
            ) from e
        return b"".join(chunks)

    def close(self) -> None:
        self._session.close()


class RtspFrameSource:
    """
    Grab single frames straight from an RTSP stream with OpenCV.

    The capture stays open between cycles. A watchdog thread enforces the
    timeout; a capture that timed out or failed is released and reopened on
    the next acquire(). At most one grab is outstanding: while a timed-out
    grab is still blocked, acquire() fails fast instead of queueing another.
    """

    def __init__(
        self,
        endpoint: CameraEndpoint,
        timeout_ms: int,
        jpeg_quality: int = JPEG_ENCODE_QUALITY,
    ):
        self._endpoint = endpoint
        self._timeout_ms = timeout_ms
        self._jpeg_quality = jpeg_quality
        self._cap: cv2.VideoCapture | None = None
        self._reset_requested = False
        self._pending: Future | None = None
        self._lock = threading.Lock()
        self._watchdog = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="rtsp-grab"
        )

    def acquire(self) -> bytes:
        if self._pending is not None and not self._pending.done():
            raise AcquisitionError(
                AcquisitionErrorKind.TIMEOUT,
                f"Previous grab from {self._endpoint.redacted()} still blocked",
            )
        future = self._watchdog.submit(self._grab)
        self._pending = future
        try:
            return future.result(timeout=self._timeout_ms / 1000.0)
        except FutureTimeout as e:
            # The grab thread still owns the capture; it is reset on the next grab
            future.cancel()
            self._reset_requested = True
            raise AcquisitionError(
                AcquisitionErrorKind.TIMEOUT,
                f"No frame from {self._endpoint.redacted()} within {self._timeout_ms}ms",
            ) from e

    def _grab(self) -> bytes:
        with self._lock:
            if self._reset_requested:
                self._release_capture()
                self._reset_requested = False

            if self._cap is None:
                self._cap = self._open_capture()

            ret, frame = self._cap.read()
            if not ret or frame is None:
                self._release_capture()
                raise AcquisitionError(
                    AcquisitionErrorKind.UNREACHABLE,
                    f"Failed to read frame from {self._endpoint.redacted()}",
                )

            ok, buffer = cv2.imencode(
                ".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self._jpeg_quality]
            )
            if not ok:
                raise AcquisitionError(
                    AcquisitionErrorKind.MALFORMED_IMAGE, "Failed to encode frame"
                )
            return validate_image_bytes(buffer.tobytes())

    def _open_capture(self) -> cv2.VideoCapture:
        logger.info(f"Connecting to camera: {self._endpoint.redacted()}")
        cap = cv2.VideoCapture(
            self._endpoint.rtsp_url(),
            cv2.CAP_FFMPEG,
            [
                cv2.CAP_PROP_OPEN_TIMEOUT_MSEC,
                self._timeout_ms,
                cv2.CAP_PROP_READ_TIMEOUT_MSEC,
                self._timeout_ms,
            ],
        )
        if not cap.isOpened():
            cap.release()
            raise AcquisitionError(
                AcquisitionErrorKind.UNREACHABLE,
                f"Cannot connect to camera: {self._endpoint.redacted()}",
            )
        # Keep only the newest frame so each grab is current
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        logger.info("Camera connected successfully")
        return cap

    def _release_capture(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def close(self) -> None:
        self._watchdog.shutdown(wait=False)
        if self._lock.acquire(timeout=self._timeout_ms / 1000.0):
            try:
                self._release_capture()
            finally:
                self._lock.release()


def build_frame_source(camera: CameraConfig) -> FrameSource:
    """
    Create the frame source described by the camera config.

    Args:
        camera: Validated camera configuration

    Returns:
        HttpSnapshotSource or RtspFrameSource
    """
    if camera.source == "rtsp":
        endpoint = _endpoint_from_config(camera)
        logger.info(f"Frame source: RTSP {endpoint.redacted()}")
        return RtspFrameSource(endpoint, camera.timeout_ms)

    if camera.snapshot_url:
        auth = None
        if camera.username and camera.password:
            auth = (camera.username, camera.password)
        logger.info("Frame source: direct snapshot URL")
        return HttpSnapshotSource(camera.snapshot_url, camera.timeout_ms, auth=auth)

    endpoint = _endpoint_from_config(camera)
    logger.info(f"Frame source: snapshot proxy {camera.proxy_url} -> {endpoint.redacted()}")
    return HttpSnapshotSource.via_proxy(endpoint, camera.proxy_url, camera.timeout_ms)


def _endpoint_from_config(camera: CameraConfig) -> CameraEndpoint:
    return CameraEndpoint(
        host=camera.host,
        port=camera.port,
        stream_path=camera.stream_path,
        username=camera.username,
        password=camera.password,
    )
