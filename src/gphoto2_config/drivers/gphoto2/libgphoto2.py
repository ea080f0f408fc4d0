"""libgphoto2 Driver - Real Hardware Implementation.

ctypes binding of the libgphoto2 C API implementing the GPhoto2Driver
protocol. Only the calls the configuration core needs are bound.

The widget record layout (``struct _CameraWidget`` from
``gphoto2-widget.c``) is mirrored in ``_CameraWidgetStruct``. libgphoto2 has
no public call to move a choice list between widgets, so
``exchange_choices`` swaps the ``choice``/``choice_count`` fields of the two
records directly. The layout matches libgphoto2 2.5.

Classes:
    LibGPhoto2Driver: Driver over a loaded libgphoto2

Example:
    from gphoto2_config.drivers.gphoto2.libgphoto2 import LibGPhoto2Driver

    driver = LibGPhoto2Driver()
    code, camera = driver.open_camera()
    code, root = driver.fetch_tree(camera)
"""

from __future__ import annotations

import ctypes
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, final

from gphoto2_config.drivers.gphoto2.results import (
    GP_ERROR_BAD_PARAMETERS,
    GP_ERROR_NOT_SUPPORTED,
    GP_OK,
    RESULT_TABLE,
    ResultCode,
    describe,
)
from gphoto2_config.drivers.gphoto2.types import (
    TOGGLE_AUTO,
    NativeHandle,
    WidgetKind,
    WidgetRange,
)
from gphoto2_config.drivers.libgphoto2_sdk import get_library_path
from gphoto2_config.observability import get_logger

logger = get_logger(__name__)

__all__ = ["LibGPhoto2Driver"]

_STRING_KINDS = frozenset({WidgetKind.TEXT, WidgetKind.RADIO, WidgetKind.MENU})
_INT_KINDS = frozenset({WidgetKind.TOGGLE, WidgetKind.DATE})

# =============================================================================
# Native structures
# =============================================================================


class _CameraWidgetStruct(ctypes.Structure):
    """``struct _CameraWidget``.

    Pointer members are declared ``c_void_p`` so reads return plain integers
    rather than views into the record.
    """

    _fields_ = [
        ("type", ctypes.c_int),
        ("label", ctypes.c_char * 256),
        ("info", ctypes.c_char * 1024),
        ("name", ctypes.c_char * 256),
        ("parent", ctypes.c_void_p),
        ("value_string", ctypes.c_void_p),
        ("value_int", ctypes.c_int),
        ("value_float", ctypes.c_float),
        ("choice", ctypes.c_void_p),
        ("choice_count", ctypes.c_int),
        ("min", ctypes.c_float),
        ("max", ctypes.c_float),
        ("increment", ctypes.c_float),
        ("children", ctypes.c_void_p),
        ("children_count", ctypes.c_int),
        ("changed", ctypes.c_int),
        ("readonly", ctypes.c_int),
        ("ref_count", ctypes.c_int),
        ("id", ctypes.c_int),
        ("callback", ctypes.c_void_p),
    ]


class _CameraAbilities(ctypes.Structure):
    """``CameraAbilities``, passed by value to ``gp_camera_set_abilities``."""

    _fields_ = [
        ("model", ctypes.c_char * 128),
        ("status", ctypes.c_int),
        ("port", ctypes.c_int),
        ("speed", ctypes.c_int * 64),
        ("operations", ctypes.c_int),
        ("file_operations", ctypes.c_int),
        ("folder_operations", ctypes.c_int),
        ("usb_vendor", ctypes.c_int),
        ("usb_product", ctypes.c_int),
        ("usb_class", ctypes.c_int),
        ("usb_subclass", ctypes.c_int),
        ("usb_protocol", ctypes.c_int),
        ("library", ctypes.c_char * 1024),
        ("id", ctypes.c_char * 1024),
        ("device_type", ctypes.c_int),
        ("reserved2", ctypes.c_int),
        ("reserved3", ctypes.c_int),
        ("reserved4", ctypes.c_int),
        ("reserved5", ctypes.c_int),
        ("reserved6", ctypes.c_int),
        ("reserved7", ctypes.c_int),
        ("reserved8", ctypes.c_int),
    ]


_P = ctypes.c_void_p
_PP = ctypes.POINTER(ctypes.c_void_p)
_INT = ctypes.c_int

# name -> (restype, argtypes)
_PROTOTYPES: dict[str, tuple[Any, list[Any]]] = {
    "gp_context_new": (_P, []),
    "gp_context_unref": (None, [_P]),
    "gp_camera_new": (_INT, [_PP]),
    "gp_camera_init": (_INT, [_P, _P]),
    "gp_camera_exit": (_INT, [_P, _P]),
    "gp_camera_unref": (_INT, [_P]),
    "gp_camera_set_abilities": (_INT, [_P, _CameraAbilities]),
    "gp_camera_set_port_info": (_INT, [_P, _P]),
    "gp_abilities_list_new": (_INT, [_PP]),
    "gp_abilities_list_load": (_INT, [_P, _P]),
    "gp_abilities_list_lookup_model": (_INT, [_P, ctypes.c_char_p]),
    "gp_abilities_list_get_abilities": (
        _INT,
        [_P, _INT, ctypes.POINTER(_CameraAbilities)],
    ),
    "gp_abilities_list_free": (_INT, [_P]),
    "gp_port_info_list_new": (_INT, [_PP]),
    "gp_port_info_list_load": (_INT, [_P]),
    "gp_port_info_list_lookup_path": (_INT, [_P, ctypes.c_char_p]),
    "gp_port_info_list_get_info": (_INT, [_P, _INT, _PP]),
    "gp_port_info_list_free": (_INT, [_P]),
    "gp_camera_get_config": (_INT, [_P, _PP, _P]),
    "gp_camera_set_config": (_INT, [_P, _P, _P]),
    "gp_camera_get_single_config": (_INT, [_P, ctypes.c_char_p, _PP, _P]),
    "gp_camera_set_single_config": (_INT, [_P, ctypes.c_char_p, _P, _P]),
    "gp_camera_capture_preview": (_INT, [_P, _P, _P]),
    "gp_file_new": (_INT, [_PP]),
    "gp_file_get_data_and_size": (
        _INT,
        [_P, _PP, ctypes.POINTER(ctypes.c_ulong)],
    ),
    "gp_file_unref": (_INT, [_P]),
    "gp_widget_get_type": (_INT, [_P, ctypes.POINTER(_INT)]),
    "gp_widget_get_name": (_INT, [_P, ctypes.POINTER(ctypes.c_char_p)]),
    "gp_widget_get_label": (_INT, [_P, ctypes.POINTER(ctypes.c_char_p)]),
    "gp_widget_get_info": (_INT, [_P, ctypes.POINTER(ctypes.c_char_p)]),
    "gp_widget_get_value": (_INT, [_P, _P]),
    "gp_widget_set_value": (_INT, [_P, _P]),
    "gp_widget_get_readonly": (_INT, [_P, ctypes.POINTER(_INT)]),
    "gp_widget_set_readonly": (_INT, [_P, _INT]),
    "gp_widget_set_changed": (_INT, [_P, _INT]),
    "gp_widget_get_range": (
        _INT,
        [
            _P,
            ctypes.POINTER(ctypes.c_float),
            ctypes.POINTER(ctypes.c_float),
            ctypes.POINTER(ctypes.c_float),
        ],
    ),
    "gp_widget_count_choices": (_INT, [_P]),
    "gp_widget_get_choice": (_INT, [_P, _INT, ctypes.POINTER(ctypes.c_char_p)]),
    "gp_widget_count_children": (_INT, [_P]),
    "gp_widget_get_child": (_INT, [_P, _INT, _PP]),
    "gp_widget_free": (_INT, [_P]),
    "gp_result_as_string": (ctypes.c_char_p, [_INT]),
}


def _configure_prototypes(lib: Any) -> None:
    """Set restype/argtypes for every bound function of ``lib``."""
    for name, (restype, argtypes) in _PROTOTYPES.items():
        func = getattr(lib, name)
        func.restype = restype
        func.argtypes = argtypes


def _decode(raw: bytes | None) -> str:
    return raw.decode("utf-8", errors="replace") if raw else ""


@dataclass(frozen=True)
class _CameraSession:
    """Opened ``Camera*`` plus the context used for its calls."""

    camera: int
    context: int


# =============================================================================
# Driver
# =============================================================================


@final
class LibGPhoto2Driver:
    """GPhoto2Driver over the system libgphoto2.

    The library is loaded on first use so constructing a driver never fails;
    a missing library surfaces as RuntimeError from the first call.

    Args:
        library_path: Explicit library path. None uses
            ``libgphoto2_sdk.get_library_path()``.
        lib: Pre-loaded library object (a ``ctypes.CDLL`` or a test double
            exposing the same functions). Takes precedence over
            ``library_path``.
    """

    def __init__(self, library_path: str | None = None, lib: Any = None) -> None:
        self._library_path = library_path
        self._lib = lib
        self._prototypes_set = False

    def __repr__(self) -> str:
        loaded = "loaded" if self._lib is not None else "not loaded"
        return f"LibGPhoto2Driver(library_path={self._library_path!r}, {loaded})"

    @property
    def lib(self) -> Any:
        """The bound library, loaded and prototyped on first access."""
        if self._lib is None:
            path = self._library_path or get_library_path()
            logger.debug("Loading libgphoto2", path=path)
            self._lib = ctypes.CDLL(path)
        if not self._prototypes_set:
            if isinstance(self._lib, ctypes.CDLL):
                _configure_prototypes(self._lib)
            self._prototypes_set = True
        return self._lib

    @staticmethod
    def _record(widget: NativeHandle) -> _CameraWidgetStruct:
        return ctypes.cast(
            ctypes.c_void_p(widget), ctypes.POINTER(_CameraWidgetStruct)
        ).contents

    # -- camera session ------------------------------------------------------

    def open_camera(
        self, model: str | None = None, port: str | None = None
    ) -> tuple[int, NativeHandle]:
        """Create, configure and initialize a ``Camera*``."""
        lib = self.lib
        camera = ctypes.c_void_p()
        rc = lib.gp_camera_new(ctypes.byref(camera))
        if rc < GP_OK:
            return rc, None
        context = lib.gp_context_new()

        if model:
            rc = self._set_model(camera.value, model, context)
        if rc >= GP_OK and port:
            rc = self._set_port(camera.value, port)
        if rc >= GP_OK:
            rc = lib.gp_camera_init(camera.value, context)

        if rc < GP_OK:
            lib.gp_camera_unref(camera.value)
            lib.gp_context_unref(context)
            return rc, None

        logger.debug("libgphoto2 camera initialized", model=model, port=port)
        return GP_OK, _CameraSession(camera.value, context)

    def _set_model(self, camera: int, model: str, context: int) -> int:
        lib = self.lib
        abilities_list = ctypes.c_void_p()
        rc = lib.gp_abilities_list_new(ctypes.byref(abilities_list))
        if rc < GP_OK:
            return rc
        try:
            rc = lib.gp_abilities_list_load(abilities_list.value, context)
            if rc < GP_OK:
                return rc
            index = lib.gp_abilities_list_lookup_model(
                abilities_list.value, model.encode()
            )
            if index < GP_OK:
                return index
            abilities = _CameraAbilities()
            rc = lib.gp_abilities_list_get_abilities(
                abilities_list.value, index, ctypes.byref(abilities)
            )
            if rc < GP_OK:
                return rc
            return lib.gp_camera_set_abilities(camera, abilities)
        finally:
            lib.gp_abilities_list_free(abilities_list.value)

    def _set_port(self, camera: int, port: str) -> int:
        lib = self.lib
        port_list = ctypes.c_void_p()
        rc = lib.gp_port_info_list_new(ctypes.byref(port_list))
        if rc < GP_OK:
            return rc
        try:
            rc = lib.gp_port_info_list_load(port_list.value)
            if rc < GP_OK:
                return rc
            index = lib.gp_port_info_list_lookup_path(port_list.value, port.encode())
            if index < GP_OK:
                return index
            info = ctypes.c_void_p()
            rc = lib.gp_port_info_list_get_info(
                port_list.value, index, ctypes.byref(info)
            )
            if rc < GP_OK:
                return rc
            return lib.gp_camera_set_port_info(camera, info.value)
        finally:
            lib.gp_port_info_list_free(port_list.value)

    def close_camera(self, camera: NativeHandle) -> int:
        rc = self.lib.gp_camera_exit(camera.camera, camera.context)
        self.lib.gp_camera_unref(camera.camera)
        self.lib.gp_context_unref(camera.context)
        return rc

    # -- configuration -------------------------------------------------------

    def fetch_tree(self, camera: NativeHandle) -> tuple[int, NativeHandle]:
        widget = ctypes.c_void_p()
        rc = self.lib.gp_camera_get_config(
            camera.camera, ctypes.byref(widget), camera.context
        )
        return rc, widget.value

    def push_tree(self, camera: NativeHandle, widget: NativeHandle) -> int:
        return self.lib.gp_camera_set_config(camera.camera, widget, camera.context)

    def fetch_single(self, camera: NativeHandle, key: str) -> tuple[int, NativeHandle]:
        widget = ctypes.c_void_p()
        rc = self.lib.gp_camera_get_single_config(
            camera.camera, key.encode(), ctypes.byref(widget), camera.context
        )
        return rc, widget.value

    def push_single(self, camera: NativeHandle, key: str, widget: NativeHandle) -> int:
        return self.lib.gp_camera_set_single_config(
            camera.camera, key.encode(), widget, camera.context
        )

    def capture_preview(self, camera: NativeHandle) -> tuple[int, bytes]:
        lib = self.lib
        camera_file = ctypes.c_void_p()
        rc = lib.gp_file_new(ctypes.byref(camera_file))
        if rc < GP_OK:
            return rc, b""
        try:
            rc = lib.gp_camera_capture_preview(
                camera.camera, camera_file.value, camera.context
            )
            if rc < GP_OK:
                return rc, b""
            data = ctypes.c_void_p()
            size = ctypes.c_ulong()
            rc = lib.gp_file_get_data_and_size(
                camera_file.value, ctypes.byref(data), ctypes.byref(size)
            )
            if rc < GP_OK:
                return rc, b""
            return GP_OK, ctypes.string_at(data.value, size.value)
        finally:
            lib.gp_file_unref(camera_file.value)

    # -- widget records ------------------------------------------------------

    def widget_type(self, widget: NativeHandle) -> tuple[int, int]:
        value = ctypes.c_int()
        rc = self.lib.gp_widget_get_type(widget, ctypes.byref(value))
        return rc, value.value

    def _get_string(self, func: Any, widget: NativeHandle) -> tuple[int, str]:
        value = ctypes.c_char_p()
        rc = func(widget, ctypes.byref(value))
        return rc, _decode(value.value)

    def widget_name(self, widget: NativeHandle) -> tuple[int, str]:
        return self._get_string(self.lib.gp_widget_get_name, widget)

    def widget_label(self, widget: NativeHandle) -> tuple[int, str]:
        return self._get_string(self.lib.gp_widget_get_label, widget)

    def widget_info(self, widget: NativeHandle) -> tuple[int, str]:
        return self._get_string(self.lib.gp_widget_get_info, widget)

    def widget_readonly(self, widget: NativeHandle) -> tuple[int, bool]:
        value = ctypes.c_int()
        rc = self.lib.gp_widget_get_readonly(widget, ctypes.byref(value))
        return rc, bool(value.value)

    def widget_changed(self, widget: NativeHandle) -> tuple[int, bool]:
        # gp_widget_changed() clears the flag, so read the record instead
        return GP_OK, bool(self._record(widget).changed)

    def _kind(self, widget: NativeHandle) -> tuple[int, WidgetKind | None]:
        rc, tag = self.widget_type(widget)
        if rc < GP_OK:
            return rc, None
        try:
            return GP_OK, WidgetKind(tag)
        except ValueError:
            return GP_ERROR_NOT_SUPPORTED, None

    def get_widget_value(self, widget: NativeHandle) -> tuple[int, Any]:
        rc, kind = self._kind(widget)
        if rc < GP_OK:
            return rc, None
        if kind in _STRING_KINDS:
            text = ctypes.c_char_p()
            rc = self.lib.gp_widget_get_value(widget, ctypes.byref(text))
            return rc, _decode(text.value)
        if kind is WidgetKind.RANGE:
            number = ctypes.c_float()
            rc = self.lib.gp_widget_get_value(widget, ctypes.byref(number))
            return rc, number.value
        if kind in _INT_KINDS:
            integer = ctypes.c_int()
            rc = self.lib.gp_widget_get_value(widget, ctypes.byref(integer))
            return rc, integer.value
        return GP_ERROR_NOT_SUPPORTED, None

    def set_widget_value(self, widget: NativeHandle, value: Any) -> int:
        rc, kind = self._kind(widget)
        if rc < GP_OK:
            return rc
        if kind in _STRING_KINDS:
            buffer = ctypes.c_char_p(str(value).encode())
            return self.lib.gp_widget_set_value(widget, buffer)
        if kind is WidgetKind.RANGE:
            number = ctypes.c_float(float(value))
            return self.lib.gp_widget_set_value(widget, ctypes.byref(number))
        if kind in _INT_KINDS:
            integer = ctypes.c_int(int(value))
            return self.lib.gp_widget_set_value(widget, ctypes.byref(integer))
        return GP_ERROR_NOT_SUPPORTED

    def widget_range(self, widget: NativeHandle) -> tuple[int, WidgetRange]:
        low, high, step = ctypes.c_float(), ctypes.c_float(), ctypes.c_float()
        rc = self.lib.gp_widget_get_range(
            widget, ctypes.byref(low), ctypes.byref(high), ctypes.byref(step)
        )
        return rc, WidgetRange(low.value, high.value, step.value)

    def widget_choices(self, widget: NativeHandle) -> tuple[int, list[str]]:
        count = self.lib.gp_widget_count_choices(widget)
        if count < GP_OK:
            return count, []
        choices: list[str] = []
        for index in range(count):
            choice = ctypes.c_char_p()
            rc = self.lib.gp_widget_get_choice(widget, index, ctypes.byref(choice))
            if rc < GP_OK:
                return rc, []
            choices.append(_decode(choice.value))
        return GP_OK, choices

    def toggle_states(self, widget: NativeHandle) -> tuple[int, int]:
        # No API reports tri-state support; a toggle currently at "auto" has it.
        rc, value = self.get_widget_value(widget)
        if rc < GP_OK:
            return rc, 2
        return GP_OK, 3 if value == TOGGLE_AUTO else 2

    def widget_children(self, widget: NativeHandle) -> tuple[int, list[NativeHandle]]:
        count = self.lib.gp_widget_count_children(widget)
        if count < GP_OK:
            return count, []
        children: list[NativeHandle] = []
        for index in range(count):
            child = ctypes.c_void_p()
            rc = self.lib.gp_widget_get_child(widget, index, ctypes.byref(child))
            if rc < GP_OK:
                return rc, []
            children.append(child.value)
        return GP_OK, children

    def set_changed_flag(self, widget: NativeHandle, changed: bool) -> int:
        return self.lib.gp_widget_set_changed(widget, int(changed))

    def set_readonly_flag(self, widget: NativeHandle, readonly: bool) -> int:
        return self.lib.gp_widget_set_readonly(widget, int(readonly))

    def exchange_choices(self, first: NativeHandle, second: NativeHandle) -> int:
        if not first or not second:
            return GP_ERROR_BAD_PARAMETERS
        a = self._record(first)
        b = self._record(second)
        a_choice, a_count = a.choice, a.choice_count
        a.choice, a.choice_count = b.choice, b.choice_count
        b.choice, b.choice_count = a_choice, a_count
        return GP_OK

    def free_widget(self, widget: NativeHandle) -> int:
        return self.lib.gp_widget_free(widget)

    # -- result codes --------------------------------------------------------

    def result_as_string(self, code: int) -> str:
        try:
            raw = self.lib.gp_result_as_string(code)
        except RuntimeError:
            return describe(code)
        return _decode(raw) or describe(code)

    def result_table(self) -> Sequence[ResultCode]:
        return RESULT_TABLE
