"""Camera configuration cache with driver injection.

``Camera`` holds an opened camera session and a lazily loaded copy of its
configuration tree. Reads are served from the cached tree; assignments are
validated and written into it, marking the cache dirty; ``save()`` pushes the
whole tree back in one driver call. ``refresh(key)`` resynchronizes a single
key from the device without reloading the tree.

Example:
    from gphoto2_config.devices import Camera
    from gphoto2_config.drivers.gphoto2 import DigitalTwinGPhoto2Driver

    with Camera.open(DigitalTwinGPhoto2Driver()) as camera:
        camera["iso"] = "400"
        camera.update({"shutterspeed": "1/250", "f-number": "f/8"})
        print(camera.refresh("whitebalance"))
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from enum import Enum
from types import MappingProxyType, TracebackType
from typing import TYPE_CHECKING, Any

from gphoto2_config.devices.widget import CameraWidget, check_result, widget_factory
from gphoto2_config.drivers.gphoto2.types import NativeHandle
from gphoto2_config.errors import (
    CameraClosedError,
    GPhoto2ConfigError,
    UnknownKeyError,
    UpdateError,
)
from gphoto2_config.observability import get_logger

if TYPE_CHECKING:
    from gphoto2_config.drivers.gphoto2 import GPhoto2Driver
    from gphoto2_config.observability import DeviceStats

logger = get_logger(__name__)

__all__ = ["CacheState", "Camera"]


class CacheState(Enum):
    """Lifecycle of the configuration cache."""

    EMPTY = "empty"  # No tree fetched
    CLEAN = "clean"  # Tree loaded, matches the last fetch or save
    DIRTY = "dirty"  # Tree loaded with unsaved assignments


class Camera:
    """Opened camera with a cached configuration tree.

    Every device-facing call (tree fetch, save, refresh, preview, close) runs
    under a per-camera reentrant lock, so one Camera may be shared between
    threads. Widgets returned by ``camera[key]`` belong to the cached tree and
    become stale after ``reload()`` or ``close()``.

    Args:
        driver: Driver that opened ``handle``.
        handle: Native camera handle from ``driver.open_camera``.
        stats: Optional collector receiving the duration and outcome of each
            device call.

    Example:
        >>> code, handle = driver.open_camera()
        >>> camera = Camera(driver, handle)
        >>> camera["iso"].value
        'Auto'
    """

    def __init__(
        self,
        driver: GPhoto2Driver,
        handle: NativeHandle,
        stats: DeviceStats | None = None,
    ) -> None:
        self._driver = driver
        self._handle = handle
        self._stats = stats
        self._lock = threading.RLock()
        self._window: CameraWidget | None = None
        self._config: dict[str, CameraWidget] | None = None
        self._dirty = False
        self._closed = False

    @classmethod
    def open(
        cls,
        driver: GPhoto2Driver,
        model: str | None = None,
        port: str | None = None,
        stats: DeviceStats | None = None,
    ) -> Camera:
        """Open a camera through ``driver`` and wrap it.

        Args:
            driver: Driver to open the camera with.
            model: Model name, None to autodetect.
            port: Port path, None to autodetect.
            stats: Optional device call statistics collector.

        Returns:
            Camera with an empty configuration cache.

        Raises:
            DeviceError: The driver could not open the camera, e.g.
                GPModelNotFoundError for an unknown model.
        """
        logger.info("Opening camera", model=model, port=port)
        code, handle = driver.open_camera(model, port)
        check_result(driver, code)
        logger.debug("Camera opened", model=model, port=port)
        return cls(driver, handle, stats=stats)

    # -- device call plumbing ------------------------------------------------

    def _require_open(self) -> None:
        if self._closed:
            raise CameraClosedError("Camera is closed")

    @contextmanager
    def _device_call(self, operation: str) -> Iterator[None]:
        """Time a device call and record its outcome in the stats collector."""
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            error_type = getattr(e, "symbol", None) or type(e).__name__
            self._record(operation, start, False, error_type)
            raise
        self._record(operation, start, True)

    def _record(
        self, operation: str, start: float, success: bool, error_type: str | None = None
    ) -> None:
        if self._stats is None:
            return
        duration_ms = (time.perf_counter() - start) * 1000.0
        self._stats.record_call(operation, duration_ms, success, error_type=error_type)

    # -- cache ---------------------------------------------------------------

    @property
    def window(self) -> CameraWidget:
        """Root of the cached configuration tree, fetched on first access.

        Raises:
            DeviceError: The fetch failed; nothing is cached.
            UnknownWidgetTypeError: The tree holds an unknown widget type;
                the fetched native tree is freed and nothing is cached.
        """
        with self._lock:
            self._require_open()
            if self._window is None:
                self._window = self._load_window()
            return self._window

    def _load_window(self) -> CameraWidget:
        with self._device_call("fetch_tree"):
            code, handle = self._driver.fetch_tree(self._handle)
            check_result(self._driver, code)
        try:
            window = widget_factory(self._driver, handle, on_change=self._mark_dirty)
        except Exception:
            self._driver.free_widget(handle)
            raise
        logger.info("Configuration tree loaded", root=window.name)
        return window

    @property
    def config(self) -> Mapping[str, CameraWidget]:
        """Read-only index of every widget of ``window`` by key."""
        with self._lock:
            window = self.window
            if self._config is None:
                self._config = window.flatten()
            return MappingProxyType(self._config)

    @property
    def dirty(self) -> bool:
        """True if a value was assigned since the last load or save."""
        return self._dirty

    @property
    def state(self) -> CacheState:
        if self._window is None:
            return CacheState.EMPTY
        return CacheState.DIRTY if self._dirty else CacheState.CLEAN

    @property
    def stats(self) -> DeviceStats | None:
        return self._stats

    @property
    def closed(self) -> bool:
        return self._closed

    def _mark_dirty(self, widget: CameraWidget) -> None:
        self._dirty = True

    def _release_window(self) -> None:
        """Forget the cached tree and its edits, then free the native tree."""
        window, self._window = self._window, None
        self._config = None
        self._dirty = False
        if window is not None:
            window.finalize()

    def reload(self) -> CameraWidget:
        """Drop the cached tree, unsaved edits included, and fetch it again.

        Returns:
            The new root widget.
        """
        with self._lock:
            self._require_open()
            if self._dirty:
                logger.warning("Reload discards unsaved configuration changes")
            self._release_window()
            window = self.window
            logger.info("Configuration reloaded")
            return window

    # -- key access ----------------------------------------------------------

    def __getitem__(self, key: str) -> CameraWidget | None:
        """Widget for ``key``, or None if the camera has no such key."""
        return self.config.get(key)

    def get(self, key: str) -> CameraWidget | None:
        return self.config.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def set(self, key: str, value: Any) -> None:
        """Assign ``value`` to ``key`` in the cached tree and mark it dirty.

        Raises:
            UnknownKeyError: The camera has no such key.
            WidgetError: The value failed validation; the cache is unchanged.
        """
        with self._lock:
            widget = self.config.get(key)
            if widget is None:
                raise UnknownKeyError(key)
            widget.value = value

    def __contains__(self, key: object) -> bool:
        return key in self.config

    def keys(self) -> list[str]:
        return list(self.config)

    # -- device writes -------------------------------------------------------

    def save(self) -> bool:
        """Push the cached tree to the device if anything was assigned.

        Returns:
            True if the tree was pushed, False if there was nothing to save.

        Raises:
            DeviceError: The push failed; the cache stays dirty.
        """
        with self._lock:
            self._require_open()
            if not self._dirty:
                return False
            window = self.window
            with self._device_call("push_tree"):
                code = self._driver.push_tree(self._handle, window.handle)
                check_result(self._driver, code)
            self._dirty = False
            logger.info("Configuration saved")
            return True

    def update(self, attributes: Mapping[str, Any], force: bool = False) -> bool:
        """Assign several keys, then save once.

        Every pair is attempted even when an earlier one fails. The save
        runs if at least one pair was set.

        Args:
            attributes: Key to value mapping.
            force: Flag every set widget as changed at the native layer so
                the device receives it even if the value is unchanged.

        Returns:
            Result of ``save()``; False when no pair could be set.

        Raises:
            UpdateError: One or more pairs failed. Raised after the save;
                ``saved`` tells whether the other pairs reached the device.
            DeviceError: The save itself failed.
        """
        failures: dict[str, Exception] = {}
        applied = 0
        with self._lock:
            for key, value in attributes.items():
                try:
                    self.set(key, value)
                    if force:
                        self.config[key].set_changed(True)
                except GPhoto2ConfigError as e:
                    logger.warning("Update of key failed", key=key, error=str(e))
                    failures[key] = e
                else:
                    applied += 1
            saved = self.save() if applied else False
        if failures:
            raise UpdateError(failures, saved)
        return saved

    def save_single(self, key: str) -> None:
        """Push one cached widget to the device, leaving the others alone.

        ``dirty`` is not changed: other unsaved assignments still need
        ``save()``.

        Raises:
            UnknownKeyError: The camera has no such key.
            DeviceError: The push failed.
        """
        with self._lock:
            widget = self.config.get(key)
            if widget is None:
                raise UnknownKeyError(key)
            with self._device_call("push_single"):
                check_result(
                    self._driver,
                    self._driver.push_single(self._handle, key, widget.handle),
                )
            logger.info("Configuration key saved", key=key)

    def refresh(self, key: str) -> Any:
        """Read one key from the device and merge it into the cache.

        The cached widget keeps its identity and tree position; its value,
        choices and read-only flag are replaced by the device's, and its
        changed flag is cleared. The fresh choices buffer moves into the
        cached record and the stale one leaves with the temporary widget, so
        no buffer is copied, leaked or freed twice.

        A key that is not cached (including when the tree was never loaded)
        is read but not merged; refresh never triggers a full tree fetch.

        Returns:
            Fresh decoded value, or None for kinds without a value.

        Raises:
            DeviceError: The device read or a merge step failed.
        """
        with self._lock:
            self._require_open()
            with self._device_call("fetch_single"):
                code, handle = self._driver.fetch_single(self._handle, key)
                check_result(self._driver, code)

            fresh: CameraWidget | None = None
            try:
                fresh = widget_factory(self._driver, handle)
                value = fresh.value if fresh.has_value() else None
                cached = self._config_if_loaded().get(key)
                if cached is None:
                    logger.debug("Refreshed key is not cached, not merged", key=key)
                else:
                    cached.absorb(fresh)
                    logger.debug("Configuration key refreshed", key=key, value=value)
                return value
            finally:
                if fresh is not None:
                    fresh.finalize()
                else:
                    self._driver.free_widget(handle)

    def _config_if_loaded(self) -> Mapping[str, CameraWidget]:
        if self._window is None:
            return {}
        return self.config

    def preview(self) -> bytes:
        """Capture a liveview frame.

        Returns:
            Encoded frame (JPEG for all current camlibs).
        """
        with self._lock:
            self._require_open()
            with self._device_call("capture_preview"):
                code, data = self._driver.capture_preview(self._handle)
                check_result(self._driver, code)
            return data

    # -- lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Release the configuration tree and the camera session.

        Unsaved assignments are discarded. Errors while releasing are logged,
        not raised; the camera is closed regardless. Closing twice is a no-op.
        """
        with self._lock:
            if self._closed:
                return
            logger.info("Closing camera")
            if self._dirty:
                logger.warning("Closing camera with unsaved configuration changes")
            try:
                self._release_window()
            except Exception as e:
                logger.warning("Error releasing configuration tree", error=str(e))
            try:
                check_result(self._driver, self._driver.close_camera(self._handle))
                logger.debug("Camera closed")
            except Exception as e:
                logger.warning("Error during camera close", error=str(e))
            finally:
                self._closed = True
                self._dirty = False

    def __enter__(self) -> Camera:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._closed:
            return "Camera(closed)"
        return f"Camera(state={self.state.value})"
