"""gphoto2 driver module.

The native boundary of the configuration core. A driver performs the device
I/O and hands back opaque native handles plus integer result codes; checking
those codes and building typed widgets is the job of ``gphoto2_config.devices``.

Protocols:
    GPhoto2Driver: Camera session, configuration tree and widget operations

Implementations:
    LibGPhoto2Driver: libgphoto2 through ctypes (real cameras)
    DigitalTwinGPhoto2Driver: In-memory simulated camera

Conventions:
    - Every operation returns a result code, or ``(code, result)``. Negative
      codes are failures (see ``results``); the result half is meaningless on
      failure.
    - Widget handles returned by ``fetch_tree`` and ``fetch_single`` are owned
      by the caller and must be released with ``free_widget`` exactly once.
      Child handles from ``widget_children`` are owned by their root.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from gphoto2_config.drivers.gphoto2.libgphoto2 import LibGPhoto2Driver
from gphoto2_config.drivers.gphoto2.results import RESULT_TABLE, ResultCode
from gphoto2_config.drivers.gphoto2.twin import (
    DEFAULT_TWIN_CONFIG,
    ChoiceBuffer,
    ChoiceBufferAllocator,
    DigitalTwinGPhoto2Driver,
    TwinMemoryError,
    TwinWidgetSpec,
)
from gphoto2_config.drivers.gphoto2.types import (
    TOGGLE_AUTO,
    NativeHandle,
    WidgetKind,
    WidgetRange,
)


@runtime_checkable
class GPhoto2Driver(Protocol):  # pragma: no cover
    """Protocol for a gphoto2 device driver.

    Implemented by LibGPhoto2Driver and DigitalTwinGPhoto2Driver. Calls on
    one camera handle are not reentrant; ``Camera`` serializes them.
    """

    # -- camera session ------------------------------------------------------

    def open_camera(
        self, model: str | None = None, port: str | None = None
    ) -> tuple[int, NativeHandle]:
        """Open and initialize a camera.

        Args:
            model: Camera model name as known to the driver, or None to
                autodetect.
            port: Port path such as ``"usb:001,004"``, or None to autodetect.

        Returns:
            ``(code, camera_handle)``.
        """
        ...

    def close_camera(self, camera: NativeHandle) -> int:
        """Exit and release a camera opened by ``open_camera``."""
        ...

    # -- configuration -------------------------------------------------------

    def fetch_tree(self, camera: NativeHandle) -> tuple[int, NativeHandle]:
        """Fetch the full configuration tree; returns ``(code, root_widget)``."""
        ...

    def push_tree(self, camera: NativeHandle, widget: NativeHandle) -> int:
        """Write every changed widget of the tree rooted at ``widget``."""
        ...

    def fetch_single(self, camera: NativeHandle, key: str) -> tuple[int, NativeHandle]:
        """Fetch one standalone widget by name; returns ``(code, widget)``."""
        ...

    def push_single(self, camera: NativeHandle, key: str, widget: NativeHandle) -> int:
        """Write one widget by name."""
        ...

    def capture_preview(self, camera: NativeHandle) -> tuple[int, bytes]:
        """Capture a liveview frame; returns ``(code, jpeg_bytes)``."""
        ...

    # -- widget records ------------------------------------------------------

    def widget_type(self, widget: NativeHandle) -> tuple[int, int]:
        """Native type tag (``WidgetKind`` value)."""
        ...

    def widget_name(self, widget: NativeHandle) -> tuple[int, str]:
        """Widget name, the configuration key."""
        ...

    def widget_label(self, widget: NativeHandle) -> tuple[int, str]:
        """Human-readable label."""
        ...

    def widget_info(self, widget: NativeHandle) -> tuple[int, str]:
        """Help text."""
        ...

    def widget_readonly(self, widget: NativeHandle) -> tuple[int, bool]:
        """Read-only flag."""
        ...

    def widget_changed(self, widget: NativeHandle) -> tuple[int, bool]:
        """Changed flag. Reading does not clear it."""
        ...

    def get_widget_value(self, widget: NativeHandle) -> tuple[int, Any]:
        """Raw value: str (text/radio/menu), float (range), int (toggle/date)."""
        ...

    def set_widget_value(self, widget: NativeHandle, value: Any) -> int:
        """Write a raw value; sets the changed flag only if the value differs."""
        ...

    def widget_range(self, widget: NativeHandle) -> tuple[int, WidgetRange]:
        """Bounds of a range widget."""
        ...

    def widget_choices(self, widget: NativeHandle) -> tuple[int, list[str]]:
        """Choice list of a radio/menu widget."""
        ...

    def toggle_states(self, widget: NativeHandle) -> tuple[int, int]:
        """Number of toggle states: 2, or 3 when "auto" is available."""
        ...

    def widget_children(self, widget: NativeHandle) -> tuple[int, list[NativeHandle]]:
        """Child handles, owned by the root."""
        ...

    def set_changed_flag(self, widget: NativeHandle, changed: bool) -> int:
        """Set or clear the changed flag."""
        ...

    def set_readonly_flag(self, widget: NativeHandle, readonly: bool) -> int:
        """Set or clear the read-only flag."""
        ...

    def exchange_choices(self, first: NativeHandle, second: NativeHandle) -> int:
        """Swap the choice buffers (and choice counts) of two widgets.

        Ownership moves with the buffer: after the call each widget frees the
        buffer it now holds.
        """
        ...

    def free_widget(self, widget: NativeHandle) -> int:
        """Release a widget handle and everything it owns."""
        ...

    # -- result codes --------------------------------------------------------

    def result_as_string(self, code: int) -> str:
        """Driver description of a result code."""
        ...

    def result_table(self) -> Sequence[ResultCode]:
        """Ordered ``(code, symbol, description)`` table of known codes."""
        ...


__all__ = [
    # Protocol
    "GPhoto2Driver",
    # Implementations
    "LibGPhoto2Driver",
    "DigitalTwinGPhoto2Driver",
    "TwinWidgetSpec",
    "DEFAULT_TWIN_CONFIG",
    "ChoiceBuffer",
    "ChoiceBufferAllocator",
    "TwinMemoryError",
    # Types
    "NativeHandle",
    "WidgetKind",
    "WidgetRange",
    "TOGGLE_AUTO",
    "RESULT_TABLE",
    "ResultCode",
]
