"""Unit tests for gphoto2_config.utils.image.

Tests the ImageEncoder/ImageDecoder Protocols and the cv2 implementations
used for twin preview frames and decoding liveview JPEGs.
"""

import numpy as np
import pytest

import gphoto2_config.utils as utils
from gphoto2_config.utils.image import (
    JPEG_MAGIC,
    CV2ImageDecoder,
    CV2ImageEncoder,
    ImageDecoder,
    ImageEncoder,
    decode_preview,
)


class TestProtocols:
    """Tests for runtime Protocol checks."""

    def test_duck_typed_encoder_accepted(self) -> None:
        """Verify any object with both methods satisfies ImageEncoder."""

        class MockEncoder:
            def encode_jpeg(self, img, quality=85):
                return b"\xff\xd8test"

            def put_text(self, img, text, position, scale, color, thickness):
                pass

        assert isinstance(MockEncoder(), ImageEncoder)

    def test_incomplete_encoder_rejected(self) -> None:
        class IncompleteEncoder:
            def encode_jpeg(self, img):
                return b""

        assert not isinstance(IncompleteEncoder(), ImageEncoder)

    def test_cv2_implementations(self) -> None:
        assert isinstance(CV2ImageEncoder(), ImageEncoder)
        assert isinstance(CV2ImageDecoder(), ImageDecoder)


class TestCV2ImageEncoder:
    """Tests for CV2ImageEncoder."""

    def test_encode_color_and_gray(self) -> None:
        encoder = CV2ImageEncoder()

        color = encoder.encode_jpeg(np.zeros((32, 48, 3), dtype=np.uint8))
        gray = encoder.encode_jpeg(np.zeros((32, 48), dtype=np.uint8), quality=50)

        assert color.startswith(JPEG_MAGIC)
        assert gray.startswith(JPEG_MAGIC)

    @pytest.mark.parametrize("quality", [0, 101])
    def test_quality_bounds(self, quality: int) -> None:
        with pytest.raises(ValueError, match="quality"):
            CV2ImageEncoder().encode_jpeg(np.zeros((8, 8), np.uint8), quality)

    def test_put_text_draws(self) -> None:
        """Verify put_text modifies the image in place."""
        img = np.zeros((60, 200, 3), dtype=np.uint8)

        CV2ImageEncoder().put_text(img, "ISO 400", (5, 40), 1.0, (255, 255, 255), 2)

        assert img.max() > 0


class TestDecoding:
    """Tests for CV2ImageDecoder and decode_preview()."""

    def test_encode_then_decode_shape(self) -> None:
        """Verify a frame survives JPEG compression with its dimensions.

        Arrangement:
        1. 40x64 BGR image, mid gray.

        Action:
        Encode with CV2ImageEncoder, decode with decode_preview().

        Assertion Strategy:
        - Decoded shape (40, 64, 3), dtype uint8.
        - Pixel values close to the original (lossy).
        """
        img = np.full((40, 64, 3), 128, dtype=np.uint8)
        data = CV2ImageEncoder().encode_jpeg(img, quality=95)

        frame = decode_preview(data)

        assert frame.shape == (40, 64, 3)
        assert frame.dtype == np.uint8
        assert abs(int(frame.mean()) - 128) <= 3

    def test_empty_frame(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            decode_preview(b"")

    def test_garbage_frame(self) -> None:
        with pytest.raises(ValueError, match="not a decodable image"):
            decode_preview(b"this is not an image")

    def test_injected_decoder(self) -> None:
        class MockDecoder:
            def decode(self, data):
                return np.ones((2, 2, 3), dtype=np.uint8)

        frame = decode_preview(b"anything", decoder=MockDecoder())

        assert frame.shape == (2, 2, 3)

    def test_twin_preview_decodes(self) -> None:
        """Decode a preview taken from a camera with a real cv2 encoder."""
        from gphoto2_config.devices import Camera
        from gphoto2_config.drivers.gphoto2 import DigitalTwinGPhoto2Driver

        with Camera.open(DigitalTwinGPhoto2Driver()) as real_camera:
            frame = decode_preview(real_camera.preview())

        assert frame.shape == (424, 640, 3)


class TestLazyPackageExports:
    """Tests for the lazy gphoto2_config.utils namespace."""

    def test_exports_resolve(self) -> None:
        assert utils.decode_preview is decode_preview
        assert utils.CV2ImageEncoder is CV2ImageEncoder

    def test_unknown_attribute(self) -> None:
        with pytest.raises(AttributeError):
            _ = utils.not_a_thing

    def test_dir_lists_exports(self) -> None:
        assert set(utils.__all__) <= set(dir(utils))
