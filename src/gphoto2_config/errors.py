"""Exception hierarchy for gphoto2-config.

Two families share the ``GPhoto2ConfigError`` base:

- Widget validation errors, raised before anything is written to the
  device (``InvalidChoiceError``, ``OutOfRangeError``, ``ReadOnlyError``...).
- Device errors, one class per libgphoto2 failure code, built once at import
  from the driver result table. ``GP_ERROR_CAMERA_BUSY`` (-110) maps to
  ``GPCameraBusyError``, ``GP_ERROR_TIMEOUT`` (-10) to ``GPTimeoutError`` and
  so on. Codes missing from the table fall back to plain ``DeviceError``.

Example:
    from gphoto2_config import errors

    try:
        camera.save()
    except errors.GPCameraBusyError:
        time.sleep(0.5)
        camera.save()
    except errors.DeviceError as e:
        print(f"{e.symbol}: {e.description} ({e.code})")
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from gphoto2_config.drivers.gphoto2.results import RESULT_TABLE, ResultCode, describe

# =============================================================================
# Base
# =============================================================================


class GPhoto2ConfigError(Exception):
    """Base exception for gphoto2-config."""

    pass


# =============================================================================
# Widget validation
# =============================================================================


class WidgetError(GPhoto2ConfigError):
    """Base for widget access and validation failures."""

    pass


class UnknownWidgetTypeError(WidgetError, TypeError):
    """Raised when the driver reports a widget type tag outside WidgetKind."""

    def __init__(self, type_tag: int, name: str | None = None) -> None:
        self.type_tag = type_tag
        self.name = name
        where = f" for widget {name!r}" if name else ""
        super().__init__(f"Unknown widget type {type_tag}{where}")


class NotSupportedError(WidgetError):
    """Raised when reading or writing a value on a kind that has none."""

    pass


class InvalidChoiceError(WidgetError, ValueError):
    """Raised when a radio/menu value is not one of the widget's choices."""

    def __init__(self, name: str, value: Any, choices: Iterable[str]) -> None:
        self.name = name
        self.value = value
        self.choices = list(choices)
        super().__init__(
            f"Invalid choice {value!r} for {name!r}. Valid: {self.choices}"
        )


class OutOfRangeError(WidgetError, ValueError):
    """Raised when a range value falls outside ``[min, max]``."""

    def __init__(self, name: str, value: Any, minimum: float, maximum: float) -> None:
        self.name = name
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Value {value!r} out of range for {name!r} [{minimum}, {maximum}]"
        )


class InvalidValueError(WidgetError, ValueError):
    """Raised when a value cannot be converted to the widget's native type."""

    def __init__(self, name: str, value: Any, expected: str) -> None:
        self.name = name
        self.value = value
        self.expected = expected
        super().__init__(f"Invalid value {value!r} for {name!r}: expected {expected}")


class ReadOnlyError(WidgetError):
    """Raised when assigning to a widget the driver marked read-only."""

    pass


class UnknownKeyError(WidgetError, KeyError):
    """Raised when assigning to a configuration key the camera does not have."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"Unknown configuration key: {self.key!r}"


class StaleWidgetError(WidgetError):
    """Raised when a widget is used after its tree was released."""

    pass


class CameraClosedError(GPhoto2ConfigError):
    """Raised when a closed Camera is used."""

    pass


class UpdateError(GPhoto2ConfigError):
    """Raised by ``Camera.update`` when one or more keys could not be set.

    Attributes:
        failures: Mapping of key to the exception raised for it.
        saved: Whether the keys that did succeed were saved to the device.
    """

    def __init__(self, failures: Mapping[str, Exception], saved: bool) -> None:
        self.failures = dict(failures)
        self.saved = saved
        details = ", ".join(f"{k}: {e}" for k, e in self.failures.items())
        super().__init__(f"Failed to update {len(self.failures)} key(s): {details}")


# =============================================================================
# Device errors
# =============================================================================


class DeviceError(GPhoto2ConfigError, RuntimeError):
    """Failure result code returned by the device driver.

    Attributes:
        code: Native result code (negative).
        symbol: libgphoto2 symbolic name, or None for unmapped codes.
        description: Human-readable text from the driver.
    """

    symbol: str | None = None

    def __init__(self, code: int, description: str | None = None) -> None:
        self.code = code
        self.description = description if description is not None else describe(code)
        super().__init__(f"{self.description} ({code})")


def _class_name(symbol: str) -> str:
    """``GP_ERROR_CAMERA_BUSY`` -> ``GPCameraBusyError``."""
    words = symbol.removeprefix("GP_ERROR").strip("_").split("_")
    return "GP" + "".join(word.capitalize() for word in words if word) + "Error"


def _build_error_map(table: Iterable[ResultCode]) -> Mapping[int, type[DeviceError]]:
    """Create one DeviceError subclass per failure code in ``table``."""
    error_map: dict[int, type[DeviceError]] = {}
    for entry in table:
        if entry.code >= 0:
            continue
        name = _class_name(entry.symbol)
        cls = type(
            name,
            (DeviceError,),
            {
                "__doc__": f"{entry.description} ({entry.symbol}, {entry.code}).",
                "__module__": __name__,
                "symbol": entry.symbol,
            },
        )
        error_map[entry.code] = cls
    return MappingProxyType(error_map)


#: Failure code -> error class. Immutable, built once.
ERROR_MAP: Mapping[int, type[DeviceError]] = _build_error_map(RESULT_TABLE)

globals().update({cls.__name__: cls for cls in ERROR_MAP.values()})


def error_from_code(
    code: int, description: str | None = None, symbol: str | None = None
) -> DeviceError:
    """Build the typed error for a failure result code.

    Args:
        code: Native result code.
        description: Driver-provided text; the table text is used when None.
        symbol: Name for a code outside ``ERROR_MAP``, e.g. from a driver's
            own result table. Ignored for mapped codes.

    Returns:
        Instance of the registered class for ``code``, or a plain
        ``DeviceError`` carrying ``code`` (and ``symbol``) when unmapped.
    """
    cls = ERROR_MAP.get(code)
    if cls is not None:
        return cls(code, description)
    error = DeviceError(code, description)
    error.symbol = symbol
    return error


__all__ = [
    "GPhoto2ConfigError",
    "WidgetError",
    "UnknownWidgetTypeError",
    "NotSupportedError",
    "InvalidChoiceError",
    "OutOfRangeError",
    "InvalidValueError",
    "ReadOnlyError",
    "UnknownKeyError",
    "StaleWidgetError",
    "CameraClosedError",
    "UpdateError",
    "DeviceError",
    "ERROR_MAP",
    "error_from_code",
    *(cls.__name__ for cls in ERROR_MAP.values()),
]
