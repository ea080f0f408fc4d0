"""Pytest configuration and fixtures for gphoto2-config tests.

Fixtures build on the digital twin driver, so the whole configuration core
runs without libgphoto2 or a camera. Preview tests get a mock image encoder
so cv2 is only exercised by the image utility tests.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest

from gphoto2_config.devices import Camera
from gphoto2_config.drivers import config as driver_config
from gphoto2_config.drivers.gphoto2 import DigitalTwinGPhoto2Driver
from gphoto2_config.observability import DeviceStats


class MockEncoder:
    """ImageEncoder double recording the text drawn on each frame."""

    def __init__(self) -> None:
        self.texts: list[str] = []
        self.encoded = 0

    def encode_jpeg(self, img: Any, quality: int = 85) -> bytes:
        self.encoded += 1
        return b"\xff\xd8mock_jpeg"

    def put_text(
        self,
        img: Any,
        text: str,
        position: tuple[int, int],
        scale: float,
        color: int | tuple[int, int, int],
        thickness: int,
    ) -> None:
        self.texts.append(text)


@pytest.fixture
def mock_encoder() -> MockEncoder:
    """Image encoder double for twin preview frames."""
    return MockEncoder()


@pytest.fixture
def twin(mock_encoder: MockEncoder) -> DigitalTwinGPhoto2Driver:
    """Fresh digital twin driver with the default DSLR tree.

    Each test gets its own device state, buffer allocator and write log.
    """
    return DigitalTwinGPhoto2Driver(encoder=mock_encoder)


@pytest.fixture
def stats() -> DeviceStats:
    return DeviceStats()


@pytest.fixture
def camera(twin: DigitalTwinGPhoto2Driver, stats: DeviceStats) -> Iterator[Camera]:
    """Opened Camera over the twin, closed after the test."""
    cam = Camera.open(twin, stats=stats)
    yield cam
    cam.close()


@pytest.fixture
def reset_driver_factory() -> Iterator[None]:
    """Restore the global driver factory singleton after the test."""
    saved = driver_config._factory
    driver_config._factory = None
    yield
    driver_config._factory = saved
