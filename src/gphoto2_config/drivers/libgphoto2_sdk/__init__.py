"""libgphoto2 shared library location.

libgphoto2 is a system library (``apt install libgphoto2-6``,
``brew install libgphoto2``); this module only finds it.

Usage:
    import ctypes
    from gphoto2_config.drivers.libgphoto2_sdk import get_library_path

    lib = ctypes.CDLL(get_library_path())

Set ``GPHOTO2_LIBRARY`` to an absolute path to bypass the system search,
e.g. for a libgphoto2 built from source.

USB permissions on Linux come from the udev rules libgphoto2 ships
(``/usr/lib/udev/rules.d/60-libgphoto2-6.rules``); without them cameras are
only accessible as root.
"""

import ctypes.util
import os
from pathlib import Path

LIBRARY_ENV_VAR = "GPHOTO2_LIBRARY"
LIBRARY_NAME = "gphoto2"


def get_library_path() -> str:
    """Get the libgphoto2 shared library path.

    Resolution order: the ``GPHOTO2_LIBRARY`` environment variable, then
    ``ctypes.util.find_library("gphoto2")``.

    Returns:
        Path or soname suitable for ``ctypes.CDLL``.

    Raises:
        RuntimeError: If the override points to a missing file or the
            library cannot be found on the system.

    Example:
        >>> get_library_path()
        'libgphoto2.so.6'
    """
    override = os.environ.get(LIBRARY_ENV_VAR)
    if override:
        if not Path(override).exists():
            raise RuntimeError(
                f"{LIBRARY_ENV_VAR} points to {override}, which does not exist."
            )
        return override

    found = ctypes.util.find_library(LIBRARY_NAME)
    if found is None:
        raise RuntimeError(
            "libgphoto2 not found. Install libgphoto2 or set "
            f"{LIBRARY_ENV_VAR} to the library path."
        )
    return found
