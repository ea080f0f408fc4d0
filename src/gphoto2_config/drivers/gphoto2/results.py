"""libgphoto2 result codes.

Port-level codes (``gphoto2-port-result.h``) and camera-level codes
(``gphoto2-result.h``) with their symbolic names and the description strings
libgphoto2 reports for them. Negative codes are failures.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import NamedTuple

__all__ = [
    "GP_OK",
    "GP_ERROR",
    "GP_ERROR_NOT_SUPPORTED",
    "GP_ERROR_BAD_PARAMETERS",
    "GP_ERROR_TIMEOUT",
    "GP_ERROR_IO",
    "GP_ERROR_CAMERA_BUSY",
    "GP_ERROR_MODEL_NOT_FOUND",
    "GP_ERROR_CAMERA_ERROR",
    "GP_ERROR_UNKNOWN_PORT",
    "GP_ERROR_CORRUPTED_DATA",
    "ResultCode",
    "RESULT_TABLE",
    "RESULT_DESCRIPTIONS",
    "describe",
]

GP_OK = 0

# gphoto2-port-result.h
GP_ERROR = -1
GP_ERROR_BAD_PARAMETERS = -2
GP_ERROR_NO_MEMORY = -3
GP_ERROR_LIBRARY = -4
GP_ERROR_UNKNOWN_PORT = -5
GP_ERROR_NOT_SUPPORTED = -6
GP_ERROR_IO = -7
GP_ERROR_FIXED_LIMIT_EXCEEDED = -8
GP_ERROR_TIMEOUT = -10
GP_ERROR_IO_SUPPORTED_SERIAL = -20
GP_ERROR_IO_SUPPORTED_USB = -21
GP_ERROR_IO_INIT = -31
GP_ERROR_IO_READ = -34
GP_ERROR_IO_WRITE = -35
GP_ERROR_IO_UPDATE = -37
GP_ERROR_IO_SERIAL_SPEED = -41
GP_ERROR_IO_USB_CLEAR_HALT = -51
GP_ERROR_IO_USB_FIND = -52
GP_ERROR_IO_USB_CLAIM = -53
GP_ERROR_IO_LOCK = -60
GP_ERROR_HAL = -70

# gphoto2-result.h
GP_ERROR_CORRUPTED_DATA = -102
GP_ERROR_FILE_EXISTS = -103
GP_ERROR_MODEL_NOT_FOUND = -105
GP_ERROR_DIRECTORY_NOT_FOUND = -107
GP_ERROR_FILE_NOT_FOUND = -108
GP_ERROR_DIRECTORY_EXISTS = -109
GP_ERROR_CAMERA_BUSY = -110
GP_ERROR_PATH_NOT_ABSOLUTE = -111
GP_ERROR_CANCEL = -112
GP_ERROR_CAMERA_ERROR = -113
GP_ERROR_OS_FAILURE = -114
GP_ERROR_NO_SPACE = -115


class ResultCode(NamedTuple):
    """One entry of the driver result table."""

    code: int
    symbol: str
    description: str


#: Ordered result table, success first.
RESULT_TABLE: tuple[ResultCode, ...] = (
    ResultCode(GP_OK, "GP_OK", "No error"),
    ResultCode(GP_ERROR, "GP_ERROR", "Unspecified error"),
    ResultCode(GP_ERROR_BAD_PARAMETERS, "GP_ERROR_BAD_PARAMETERS", "Bad parameters"),
    ResultCode(GP_ERROR_NO_MEMORY, "GP_ERROR_NO_MEMORY", "Out of memory"),
    ResultCode(GP_ERROR_LIBRARY, "GP_ERROR_LIBRARY", "Error loading a library"),
    ResultCode(GP_ERROR_UNKNOWN_PORT, "GP_ERROR_UNKNOWN_PORT", "Unknown port"),
    ResultCode(
        GP_ERROR_NOT_SUPPORTED, "GP_ERROR_NOT_SUPPORTED", "Unsupported operation"
    ),
    ResultCode(GP_ERROR_IO, "GP_ERROR_IO", "I/O problem"),
    ResultCode(
        GP_ERROR_FIXED_LIMIT_EXCEEDED,
        "GP_ERROR_FIXED_LIMIT_EXCEEDED",
        "Fixed limit exceeded",
    ),
    ResultCode(
        GP_ERROR_TIMEOUT,
        "GP_ERROR_TIMEOUT",
        "Timeout reading from or writing to the port",
    ),
    ResultCode(
        GP_ERROR_IO_SUPPORTED_SERIAL,
        "GP_ERROR_IO_SUPPORTED_SERIAL",
        "Serial port not supported",
    ),
    ResultCode(
        GP_ERROR_IO_SUPPORTED_USB, "GP_ERROR_IO_SUPPORTED_USB", "USB port not supported"
    ),
    ResultCode(GP_ERROR_IO_INIT, "GP_ERROR_IO_INIT", "Error initializing the port"),
    ResultCode(GP_ERROR_IO_READ, "GP_ERROR_IO_READ", "Error reading from the port"),
    ResultCode(GP_ERROR_IO_WRITE, "GP_ERROR_IO_WRITE", "Error writing to the port"),
    ResultCode(
        GP_ERROR_IO_UPDATE, "GP_ERROR_IO_UPDATE", "Error updating the port settings"
    ),
    ResultCode(
        GP_ERROR_IO_SERIAL_SPEED,
        "GP_ERROR_IO_SERIAL_SPEED",
        "Error setting the serial port speed",
    ),
    ResultCode(
        GP_ERROR_IO_USB_CLEAR_HALT,
        "GP_ERROR_IO_USB_CLEAR_HALT",
        "Error clearing a halt condition on the USB port",
    ),
    ResultCode(
        GP_ERROR_IO_USB_FIND,
        "GP_ERROR_IO_USB_FIND",
        "Could not find the requested device on the USB port",
    ),
    ResultCode(
        GP_ERROR_IO_USB_CLAIM, "GP_ERROR_IO_USB_CLAIM", "Could not claim the USB device"
    ),
    ResultCode(GP_ERROR_IO_LOCK, "GP_ERROR_IO_LOCK", "Could not lock the device"),
    ResultCode(GP_ERROR_HAL, "GP_ERROR_HAL", "libhal error"),
    ResultCode(GP_ERROR_CORRUPTED_DATA, "GP_ERROR_CORRUPTED_DATA", "Corrupted data"),
    ResultCode(GP_ERROR_FILE_EXISTS, "GP_ERROR_FILE_EXISTS", "File exists"),
    ResultCode(GP_ERROR_MODEL_NOT_FOUND, "GP_ERROR_MODEL_NOT_FOUND", "Unknown model"),
    ResultCode(
        GP_ERROR_DIRECTORY_NOT_FOUND,
        "GP_ERROR_DIRECTORY_NOT_FOUND",
        "Directory not found",
    ),
    ResultCode(GP_ERROR_FILE_NOT_FOUND, "GP_ERROR_FILE_NOT_FOUND", "File not found"),
    ResultCode(
        GP_ERROR_DIRECTORY_EXISTS, "GP_ERROR_DIRECTORY_EXISTS", "Directory exists"
    ),
    ResultCode(GP_ERROR_CAMERA_BUSY, "GP_ERROR_CAMERA_BUSY", "I/O in progress"),
    ResultCode(
        GP_ERROR_PATH_NOT_ABSOLUTE,
        "GP_ERROR_PATH_NOT_ABSOLUTE",
        "Path not absolute",
    ),
    ResultCode(GP_ERROR_CANCEL, "GP_ERROR_CANCEL", "Cancelled"),
    ResultCode(GP_ERROR_CAMERA_ERROR, "GP_ERROR_CAMERA_ERROR", "Camera error"),
    ResultCode(GP_ERROR_OS_FAILURE, "GP_ERROR_OS_FAILURE", "OS failure"),
    ResultCode(GP_ERROR_NO_SPACE, "GP_ERROR_NO_SPACE", "Not enough space"),
)

RESULT_DESCRIPTIONS: Mapping[int, str] = MappingProxyType(
    {entry.code: entry.description for entry in RESULT_TABLE}
)


def describe(code: int) -> str:
    """Description of ``code``, or a generic text for unknown codes."""
    return RESULT_DESCRIPTIONS.get(code, f"Unknown error {code}")
