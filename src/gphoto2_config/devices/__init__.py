"""Logical device layer - typed configuration over gphoto2 drivers."""

from gphoto2_config.devices.camera import CacheState, Camera
from gphoto2_config.devices.widget import (
    CameraWidget,
    OnChangeCallback,
    WidgetKind,
    WidgetRange,
    check_result,
    widget_factory,
)

__all__ = [
    # Camera
    "Camera",
    "CacheState",
    # Widgets
    "CameraWidget",
    "OnChangeCallback",
    "WidgetKind",
    "WidgetRange",
    "widget_factory",
    "check_result",
]
