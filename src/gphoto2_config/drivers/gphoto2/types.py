"""Shared types for gphoto2 drivers.

``WidgetKind`` values are the libgphoto2 ``CameraWidgetType`` tags, so a tag
read from a native widget converts directly with ``WidgetKind(tag)``.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, NamedTuple

#: Opaque native handle (``Camera*`` or ``CameraWidget*`` for libgphoto2,
#: a Python object for the digital twin).
NativeHandle = Any

#: Raw native toggle value meaning "auto" on tri-state toggles.
TOGGLE_AUTO = 2


class WidgetKind(IntEnum):
    """Widget type tag (``GP_WIDGET_*``)."""

    WINDOW = 0
    SECTION = 1
    TEXT = 2
    RANGE = 3
    TOGGLE = 4
    RADIO = 5
    MENU = 6
    BUTTON = 7
    DATE = 8


#: Kinds that hold child widgets.
CONTAINER_KINDS = frozenset({WidgetKind.WINDOW, WidgetKind.SECTION})

#: Kinds without a value.
VALUELESS_KINDS = frozenset({WidgetKind.WINDOW, WidgetKind.SECTION, WidgetKind.BUTTON})

#: Kinds with a choice list.
CHOICE_KINDS = frozenset({WidgetKind.RADIO, WidgetKind.MENU})


class WidgetRange(NamedTuple):
    """Bounds of a RANGE widget."""

    min: float
    max: float
    step: float
