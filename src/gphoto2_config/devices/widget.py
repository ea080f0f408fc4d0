"""Typed configuration widgets over native driver handles.

A ``CameraWidget`` wraps one native widget record. Nothing is copied out of
the record: every property read and every assignment goes through the driver
to the native handle, so a widget always shows what the device layer holds.

Widgets form a tree rooted at a WINDOW. The root owns the native memory of
the whole tree; ``finalize()`` on the root releases it once and marks every
wrapper of the tree released, after which any access raises
``StaleWidgetError``.

Example:
    from gphoto2_config.devices.widget import widget_factory

    code, handle = driver.fetch_tree(camera_handle)
    root = widget_factory(driver, handle)
    iso = root.flatten()["iso"]
    iso.value = "400"
    ...
    root.finalize()
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import TYPE_CHECKING, Any

from gphoto2_config.drivers.gphoto2.types import (
    CHOICE_KINDS,
    CONTAINER_KINDS,
    TOGGLE_AUTO,
    VALUELESS_KINDS,
    NativeHandle,
    WidgetKind,
    WidgetRange,
)
from gphoto2_config.errors import (
    ERROR_MAP,
    InvalidChoiceError,
    InvalidValueError,
    NotSupportedError,
    OutOfRangeError,
    ReadOnlyError,
    StaleWidgetError,
    UnknownWidgetTypeError,
    WidgetError,
    error_from_code,
)
from gphoto2_config.observability import get_logger

if TYPE_CHECKING:
    from gphoto2_config.drivers.gphoto2 import GPhoto2Driver

logger = get_logger(__name__)

__all__ = [
    "CameraWidget",
    "OnChangeCallback",
    "WidgetKind",
    "WidgetRange",
    "check_result",
    "widget_factory",
]

#: Called with the widget after every successful value assignment.
OnChangeCallback = Callable[["CameraWidget"], None]

TOGGLE_AUTO_TEXT = "auto"

_TRUE_WORDS = frozenset({"1", "true", "on", "yes"})
_FALSE_WORDS = frozenset({"0", "false", "off", "no"})


def check_result(driver: GPhoto2Driver, code: int) -> int:
    """Raise the mapped device error for a negative driver result code.

    The error carries the driver's own description of the code. A code
    without a generated class is named from the driver's result table, if
    listed there. Failures are logged at warning level before raising.

    Returns:
        ``code`` unchanged when it is not a failure.
    """
    if code >= 0:
        return code
    symbol = None
    if code not in ERROR_MAP:
        symbol = next(
            (entry.symbol for entry in driver.result_table() if entry.code == code),
            None,
        )
    error = error_from_code(code, driver.result_as_string(code), symbol)
    logger.warning(
        "Device call failed",
        code=code,
        symbol=error.symbol,
        description=error.description,
    )
    raise error


class CameraWidget:
    """One node of a camera configuration tree.

    Instances are created by ``widget_factory``; the constructor does not
    read the native record.

    Args:
        driver: Driver that owns ``handle``.
        handle: Native widget handle.
        kind: Widget kind read from the native type tag.
        name: Configuration key (the widget id).
        parent: Parent widget, None for a root.
        on_change: Callback invoked after each successful assignment.
    """

    __slots__ = (
        "_driver",
        "_handle",
        "_kind",
        "_name",
        "_parent",
        "_children",
        "_on_change",
        "_released",
    )

    def __init__(
        self,
        driver: GPhoto2Driver,
        handle: NativeHandle,
        kind: WidgetKind,
        name: str,
        parent: CameraWidget | None = None,
        on_change: OnChangeCallback | None = None,
    ) -> None:
        self._driver = driver
        self._handle = handle
        self._kind = kind
        self._name = name
        self._parent = parent
        self._children: tuple[CameraWidget, ...] = ()
        self._on_change = on_change
        self._released = False

    def _require_live(self) -> None:
        if self._released:
            raise StaleWidgetError(
                f"Widget {self._name!r} used after its tree was released"
            )

    def _check(self, code: int) -> int:
        return check_result(self._driver, code)

    # -- identity ------------------------------------------------------------

    @property
    def name(self) -> str:
        """Configuration key, unique within the tree."""
        return self._name

    @property
    def id(self) -> str:
        return self._name

    @property
    def kind(self) -> WidgetKind:
        return self._kind

    @property
    def handle(self) -> NativeHandle:
        """Native handle, for passing the widget back to the driver."""
        self._require_live()
        return self._handle

    @property
    def parent(self) -> CameraWidget | None:
        return self._parent

    @property
    def root(self) -> CameraWidget:
        widget = self
        while widget._parent is not None:
            widget = widget._parent
        return widget

    @property
    def released(self) -> bool:
        return self._released

    # -- native attributes ---------------------------------------------------

    @property
    def label(self) -> str:
        self._require_live()
        code, label = self._driver.widget_label(self._handle)
        self._check(code)
        return label

    @property
    def info(self) -> str:
        self._require_live()
        code, info = self._driver.widget_info(self._handle)
        self._check(code)
        return info

    @property
    def readonly(self) -> bool:
        self._require_live()
        code, readonly = self._driver.widget_readonly(self._handle)
        self._check(code)
        return readonly

    @property
    def changed(self) -> bool:
        """Native changed flag: set by a differing write, cleared by a push."""
        self._require_live()
        code, changed = self._driver.widget_changed(self._handle)
        self._check(code)
        return changed

    @property
    def children(self) -> tuple[CameraWidget, ...]:
        self._require_live()
        return self._children

    @property
    def choices(self) -> list[str]:
        """Allowed values of a RADIO/MENU widget; empty for other kinds."""
        self._require_live()
        if not self.supports_choices():
            return []
        code, choices = self._driver.widget_choices(self._handle)
        self._check(code)
        return choices

    @property
    def range(self) -> WidgetRange | None:
        """Bounds of a RANGE widget; None for other kinds."""
        self._require_live()
        if not self.supports_range():
            return None
        code, bounds = self._driver.widget_range(self._handle)
        self._check(code)
        return bounds

    @property
    def tristate(self) -> bool:
        """True for a TOGGLE that accepts "auto"."""
        self._require_live()
        if self._kind is not WidgetKind.TOGGLE:
            return False
        code, states = self._driver.toggle_states(self._handle)
        self._check(code)
        return states == 3

    # -- capabilities --------------------------------------------------------

    def has_value(self) -> bool:
        return self._kind not in VALUELESS_KINDS

    def supports_choices(self) -> bool:
        return self._kind in CHOICE_KINDS

    def supports_range(self) -> bool:
        return self._kind is WidgetKind.RANGE

    def has_children(self) -> bool:
        return self._kind in CONTAINER_KINDS

    # -- value ---------------------------------------------------------------

    @property
    def raw_value(self) -> Any:
        """Native value without decoding (toggles stay 0/1/2)."""
        self._require_live()
        if not self.has_value():
            raise NotSupportedError(
                f"{self._kind.name} widget {self._name!r} has no value"
            )
        code, raw = self._driver.get_widget_value(self._handle)
        self._check(code)
        return raw

    @property
    def value(self) -> Any:
        """Decoded value.

        str for TEXT/RADIO/MENU, float for RANGE, bool or "auto" for TOGGLE,
        int epoch seconds for DATE.

        Raises:
            NotSupportedError: For WINDOW, SECTION and BUTTON widgets.
        """
        raw = self.raw_value
        if self._kind is WidgetKind.TOGGLE:
            return TOGGLE_AUTO_TEXT if raw == TOGGLE_AUTO else bool(raw)
        if self._kind is WidgetKind.DATE:
            return int(raw)
        if self._kind is WidgetKind.RANGE:
            return float(raw)
        return str(raw)

    @value.setter
    def value(self, value: Any) -> None:
        """Validate and write a value.

        Validation happens before any native write, so a rejected value leaves
        both the native record and the owning cache untouched.

        Raises:
            ReadOnlyError: The widget is read-only.
            NotSupportedError: The kind has no value.
            InvalidChoiceError: RADIO/MENU value outside the choices, or
                "auto" on a two-state toggle.
            OutOfRangeError: RANGE value outside ``[min, max]``.
            InvalidValueError: Value not convertible to the native type.
            DeviceError: The driver rejected the write.
        """
        self._require_live()
        if self.readonly:
            raise ReadOnlyError(f"Widget {self._name!r} is read-only")
        if not self.has_value():
            raise NotSupportedError(
                f"{self._kind.name} widget {self._name!r} has no value"
            )
        native = self._to_native(value)
        self._check(self._driver.set_widget_value(self._handle, native))
        logger.debug("Widget value set", key=self._name, value=native)
        if self._on_change is not None:
            self._on_change(self)

    def _to_native(self, value: Any) -> Any:
        kind = self._kind
        if kind in CHOICE_KINDS:
            text = str(value)
            choices = self.choices
            if text not in choices:
                raise InvalidChoiceError(self._name, value, choices)
            return text
        if kind is WidgetKind.RANGE:
            return self._snap_to_range(value)
        if kind is WidgetKind.TOGGLE:
            return self._toggle_to_native(value)
        if kind is WidgetKind.DATE:
            return self._date_to_native(value)
        return str(value)

    def _snap_to_range(self, value: Any) -> float:
        bounds = self.range
        if bounds is None:
            raise NotSupportedError(f"Widget {self._name!r} reports no range")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidValueError(self._name, value, "a number") from None
        if math.isnan(number) or not bounds.min <= number <= bounds.max:
            raise OutOfRangeError(self._name, value, bounds.min, bounds.max)
        if bounds.step <= 0:
            return number
        step = bounds.step
        steps = round((number - bounds.min) / step)
        snapped = min(bounds.min + steps * step, bounds.max)
        # Values already on the grid are kept exactly
        if math.isclose(snapped, number, rel_tol=1e-6, abs_tol=step * 1e-6):
            return number
        return round(snapped, 6 - math.floor(math.log10(step)))

    def _toggle_to_native(self, value: Any) -> int:
        if isinstance(value, str):
            word = value.strip().lower()
            if word == TOGGLE_AUTO_TEXT:
                if not self.tristate:
                    raise InvalidChoiceError(self._name, value, ["on", "off"])
                return TOGGLE_AUTO
            if word in _TRUE_WORDS:
                return 1
            if word in _FALSE_WORDS:
                return 0
            raise InvalidValueError(self._name, value, "on, off or auto")
        return int(bool(value))

    def _date_to_native(self, value: Any) -> int:
        if isinstance(value, datetime):
            return int(value.timestamp())
        if isinstance(value, bool):
            raise InvalidValueError(self._name, value, "epoch seconds or datetime")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                pass
            try:
                return int(datetime.fromisoformat(value).timestamp())
            except ValueError:
                pass
        raise InvalidValueError(self._name, value, "epoch seconds or datetime")

    # -- native flags --------------------------------------------------------

    def set_changed(self, changed: bool) -> None:
        self._require_live()
        self._check(self._driver.set_changed_flag(self._handle, changed))

    def set_readonly(self, readonly: bool) -> None:
        self._require_live()
        self._check(self._driver.set_readonly_flag(self._handle, readonly))

    def absorb(self, fresh: CameraWidget) -> None:
        """Take over the device state of ``fresh``, a standalone copy of self.

        The value is written natively without validation and without the
        change callback; the choices buffers of both records are exchanged so
        ``fresh`` ends up owning the stale one; the read-only flag is copied
        and the changed flag cleared. Identity and tree position of ``self``
        are preserved.
        """
        self._require_live()
        if fresh.kind is not self._kind:
            raise WidgetError(
                f"Cannot refresh {self._kind.name} widget {self._name!r} "
                f"from a {fresh.kind.name} widget"
            )
        if self.has_value():
            self._check(self._driver.set_widget_value(self._handle, fresh.raw_value))
        if self.supports_choices():
            self._check(self._driver.exchange_choices(self._handle, fresh.handle))
        self.set_readonly(fresh.readonly)
        self.set_changed(False)

    # -- tree ----------------------------------------------------------------

    def flatten(self) -> dict[str, CameraWidget]:
        """Map every node of this subtree, containers included, by name."""
        self._require_live()
        index: dict[str, CameraWidget] = {}
        stack = [self]
        while stack:
            widget = stack.pop()
            index[widget.name] = widget
            stack.extend(reversed(widget._children))
        return index

    def walk(self) -> Iterator[CameraWidget]:
        """Yield this widget and every descendant, depth first."""
        self._require_live()
        yield self
        for child in self._children:
            yield from child.walk()

    def finalize(self) -> None:
        """Release the native tree. Root only; later calls are no-ops.

        Raises:
            WidgetError: If called on a non-root widget.
            DeviceError: If the driver fails to free the tree. The tree is
                marked released regardless.
        """
        if self._parent is not None:
            raise WidgetError(
                f"finalize() must be called on the root, not {self._name!r}"
            )
        if self._released:
            return
        try:
            self._check(self._driver.free_widget(self._handle))
        finally:
            self._mark_released()

    def _mark_released(self) -> None:
        self._released = True
        for child in self._children:
            child._mark_released()

    # -- presentation --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize this widget and its children for display or JSON."""
        data: dict[str, Any] = {
            "name": self._name,
            "label": self.label,
            "type": self._kind.name.lower(),
            "readonly": self.readonly,
        }
        if self.has_value():
            data["value"] = self.value
        if self.supports_choices():
            data["choices"] = self.choices
        if self.supports_range():
            data["range"] = self.range._asdict()
        info = self.info
        if info:
            data["info"] = info
        if self.has_children():
            data["children"] = [child.to_dict() for child in self._children]
        return data

    def __str__(self) -> str:
        if not self.has_value():
            return self._name
        return str(self.value)

    def __repr__(self) -> str:
        if self._released:
            return f"<CameraWidget {self._name} {self._kind.name} released>"
        if self.has_value():
            return f"<CameraWidget {self._name} {self._kind.name} value={self.value!r}>"
        return f"<CameraWidget {self._name} {self._kind.name}>"


def widget_factory(
    driver: GPhoto2Driver,
    handle: NativeHandle,
    *,
    parent: CameraWidget | None = None,
    on_change: OnChangeCallback | None = None,
) -> CameraWidget:
    """Wrap a native handle, and recursively its children, as CameraWidgets.

    The factory does not take ownership: on failure the caller still owns
    ``handle`` and must free it.

    Args:
        driver: Driver the handle belongs to.
        handle: Native widget handle.
        parent: Parent wrapper, None for a root.
        on_change: Callback passed to every widget of the subtree.

    Returns:
        CameraWidget of the kind matching the native type tag.

    Raises:
        UnknownWidgetTypeError: The native type tag is not a WidgetKind.
        DeviceError: A driver read failed.
    """
    code, name = driver.widget_name(handle)
    check_result(driver, code)
    code, tag = driver.widget_type(handle)
    check_result(driver, code)
    try:
        kind = WidgetKind(tag)
    except ValueError:
        raise UnknownWidgetTypeError(tag, name) from None

    widget = CameraWidget(
        driver, handle, kind, name, parent=parent, on_change=on_change
    )
    if kind in CONTAINER_KINDS:
        code, child_handles = driver.widget_children(handle)
        check_result(driver, code)
        widget._children = tuple(
            widget_factory(driver, child, parent=widget, on_change=on_change)
            for child in child_handles
        )
    return widget
