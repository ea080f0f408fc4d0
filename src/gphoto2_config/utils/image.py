"""JPEG helpers behind injectable Protocols.

Liveview frames arrive as JPEG bytes. ``ImageDecoder`` turns them into BGR
arrays and ``ImageEncoder`` renders the digital twin's synthetic frames.
Both have OpenCV implementations; tests pass any object with the same
methods instead.

Example:
    frame = decode_preview(camera.preview())  # (H, W, 3) uint8, BGR
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "CV2ImageDecoder",
    "CV2ImageEncoder",
    "ImageDecoder",
    "ImageEncoder",
    "decode_preview",
]

# Start-of-image marker
JPEG_MAGIC = b"\xff\xd8"


@runtime_checkable
class ImageEncoder(Protocol):
    """Renders and compresses frames.

    Example:
        >>> class NullEncoder:
        ...     def encode_jpeg(self, img, quality=85):
        ...         return JPEG_MAGIC
        ...     def put_text(self, img, text, position, scale, color, thickness):
        ...         pass
        >>> isinstance(NullEncoder(), ImageEncoder)
        True
    """

    def encode_jpeg(self, img: NDArray[Any], quality: int = 85) -> bytes:
        """Compress a (H, W) gray or (H, W, 3) BGR uint8 array to JPEG.

        Raises:
            ValueError: ``quality`` outside 1-100, or the encoder failed.
        """
        ...  # pragma: no cover

    def put_text(
        self,
        img: NDArray[Any],
        text: str,
        position: tuple[int, int],
        scale: float,
        color: int | tuple[int, int, int],
        thickness: int,
    ) -> None:
        """Draw ``text`` into ``img`` in place, baseline-left at ``position``."""
        ...  # pragma: no cover


@runtime_checkable
class ImageDecoder(Protocol):
    """Decompresses frames."""

    def decode(self, data: bytes) -> NDArray[Any]:
        """Return a (H, W, 3) uint8 BGR array, ValueError if undecodable."""
        ...  # pragma: no cover


class _OpenCV:
    """Holds the cv2 module, imported when the first helper is created."""

    def __init__(self) -> None:
        import cv2

        self._cv2 = cv2


class CV2ImageEncoder(_OpenCV, ImageEncoder):
    """``cv2.imencode`` and ``cv2.putText`` with the Hershey simplex font."""

    def encode_jpeg(self, img: NDArray[Any], quality: int = 85) -> bytes:
        if quality < 1 or quality > 100:
            raise ValueError(f"JPEG quality must be within 1-100, got {quality}")
        params = [self._cv2.IMWRITE_JPEG_QUALITY, quality]
        ok, encoded = self._cv2.imencode(".jpg", img, params)
        if not ok:
            raise ValueError(f"Cannot encode {img.dtype} image of shape {img.shape}")
        return encoded.tobytes()

    def put_text(
        self,
        img: NDArray[Any],
        text: str,
        position: tuple[int, int],
        scale: float,
        color: int | tuple[int, int, int],
        thickness: int,
    ) -> None:
        font = self._cv2.FONT_HERSHEY_SIMPLEX
        self._cv2.putText(img, text, position, font, scale, color, thickness)


class CV2ImageDecoder(_OpenCV, ImageDecoder):
    """``cv2.imdecode`` in color mode."""

    def decode(self, data: bytes) -> NDArray[Any]:
        import numpy as np

        if not data:
            raise ValueError("Cannot decode an empty frame")
        img = self._cv2.imdecode(np.frombuffer(data, np.uint8), self._cv2.IMREAD_COLOR)
        if img is None:
            raise ValueError(f"Frame of {len(data)} bytes is not a decodable image")
        return img


def decode_preview(data: bytes, decoder: ImageDecoder | None = None) -> NDArray[Any]:
    """Decode a frame from ``Camera.preview()``.

    Args:
        data: JPEG bytes from the camera.
        decoder: Decoder to use, a new CV2ImageDecoder when None.

    Raises:
        ValueError: The bytes are empty or not an image.
    """
    return (decoder or CV2ImageDecoder()).decode(data)
