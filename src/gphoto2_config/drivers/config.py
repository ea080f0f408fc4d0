"""Driver configuration and factory.

Supports switching between the real libgphoto2 driver and the digital twin
for testing and development without a camera.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from gphoto2_config.drivers.gphoto2 import (
    DigitalTwinGPhoto2Driver,
    GPhoto2Driver,
    LibGPhoto2Driver,
    TwinWidgetSpec,
)
from gphoto2_config.observability import get_logger

if TYPE_CHECKING:
    from gphoto2_config.devices.camera import Camera

logger = get_logger(__name__)


class DriverMode(Enum):
    """Driver mode selection."""

    HARDWARE = "hardware"  # libgphoto2
    DIGITAL_TWIN = "digital_twin"  # Simulated camera


@dataclass
class DriverConfig:
    """Configuration for driver selection and camera addressing.

    Attributes:
        mode: HARDWARE for libgphoto2, DIGITAL_TWIN for simulation.
        model: Camera model to open (e.g. "Nikon DSC D750"). None autodetects.
        port: Port path to open (e.g. "usb:001,004"). None autodetects.
        library_path: Explicit libgphoto2 path. None falls back to the
            ``GPHOTO2_LIBRARY`` environment variable, then the system search.
        twin_config: Configuration tree for the digital twin. None uses the
            twin's default DSLR tree.
    """

    mode: DriverMode = DriverMode.DIGITAL_TWIN
    model: str | None = None
    port: str | None = None
    library_path: str | None = None
    twin_config: TwinWidgetSpec | None = None


class DriverFactory:
    """Factory for creating gphoto2 drivers based on configuration.

    Thread Safety:
        Not thread-safe. The global factory singleton should be configured
        once at startup before concurrent access.
    """

    def __init__(self, config: DriverConfig | None = None):
        """Initialize driver factory.

        Args:
            config: Driver configuration. None defaults to DriverConfig()
                (digital twin, autodetected model and port).

        Example:
            >>> factory = DriverFactory()  # Digital twin mode
            >>> driver = factory.create_driver()
        """
        self.config = config or DriverConfig()

    def create_driver(self) -> GPhoto2Driver:
        """Create the driver for the configured mode.

        Returns:
            LibGPhoto2Driver in HARDWARE mode, DigitalTwinGPhoto2Driver in
            DIGITAL_TWIN mode. The hardware driver loads libgphoto2 lazily, so
            a missing library surfaces on first use, not here.
        """
        if self.config.mode == DriverMode.HARDWARE:
            return LibGPhoto2Driver(library_path=self.config.library_path)
        return DigitalTwinGPhoto2Driver(config=self.config.twin_config)

    def open_camera(self) -> Camera:
        """Create a driver and open the configured camera.

        Returns:
            Opened Camera. Close it (or use it as a context manager) to
            release the device.

        Raises:
            DeviceError: If the driver cannot open the camera.
            RuntimeError: If libgphoto2 cannot be found in HARDWARE mode.
        """
        from gphoto2_config.devices.camera import Camera

        logger.debug(
            "Opening camera",
            mode=self.config.mode.value,
            model=self.config.model,
            port=self.config.port,
        )
        return Camera.open(
            self.create_driver(), model=self.config.model, port=self.config.port
        )


# =============================================================================
# Global Singletons
# =============================================================================

# Not thread-safe. Configure once at startup before spawning threads.

_factory: DriverFactory | None = None


def get_factory() -> DriverFactory:
    """Get the global driver factory, creating a digital twin one on first use."""
    global _factory
    if _factory is None:
        _factory = DriverFactory()
    return _factory


def configure(config: DriverConfig) -> None:
    """Replace the global factory with one using ``config``."""
    global _factory
    _factory = DriverFactory(config)


def use_digital_twin(preserve_config: bool = False) -> None:
    """Switch the global factory to the digital twin.

    Args:
        preserve_config: If True, keep model, port and library settings.
            If False (default), reset everything else to defaults.
    """
    if preserve_config:
        configure(replace(get_factory().config, mode=DriverMode.DIGITAL_TWIN))
    else:
        configure(DriverConfig(mode=DriverMode.DIGITAL_TWIN))


def use_hardware(preserve_config: bool = False) -> None:
    """Switch the global factory to libgphoto2.

    Args:
        preserve_config: If True, keep model, port and library settings.
            If False (default), reset everything else to defaults.

    Example:
        >>> use_hardware()
        >>> with get_factory().open_camera() as camera:
        ...     print(camera["iso"].value)
    """
    if preserve_config:
        configure(replace(get_factory().config, mode=DriverMode.HARDWARE))
    else:
        configure(DriverConfig(mode=DriverMode.HARDWARE))
