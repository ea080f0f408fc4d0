"""Device drivers for gphoto2 cameras.

Supports two modes:
- HARDWARE: libgphoto2 through ctypes
- DIGITAL_TWIN: Simulated camera for testing without hardware

Use drivers.config to switch modes:
    from gphoto2_config.drivers import config
    config.use_digital_twin()  # or config.use_hardware()
"""

from gphoto2_config.drivers import config, gphoto2, libgphoto2_sdk
from gphoto2_config.drivers.config import (
    DriverConfig,
    DriverFactory,
    DriverMode,
    configure,
    get_factory,
    use_digital_twin,
    use_hardware,
)

__all__ = [
    # Submodules
    "gphoto2",
    "libgphoto2_sdk",
    "config",
    # Configuration
    "DriverMode",
    "DriverConfig",
    "DriverFactory",
    "get_factory",
    "configure",
    "use_digital_twin",
    "use_hardware",
]
