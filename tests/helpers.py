"""Test helper functions for gphoto2-config.

Provides utilities for protocol compliance verification and native memory
accounting on the digital twin.

Example:
    from tests.helpers import assert_implements_protocol, assert_no_native_leaks
    from gphoto2_config.drivers.gphoto2 import GPhoto2Driver

    def test_my_driver_implements_protocol():
        assert_implements_protocol(MyDriver(), GPhoto2Driver)
"""

from __future__ import annotations

from typing import Any, Protocol

from gphoto2_config.drivers.gphoto2 import DigitalTwinGPhoto2Driver


def assert_implements_protocol(instance: object, protocol: type[Protocol]) -> None:
    """Assert that an instance implements a Protocol interface.

    Uses isinstance() (requires @runtime_checkable on the Protocol) and, on
    failure, lists the protocol members the instance lacks.

    Raises:
        AssertionError: If instance doesn't implement protocol.
    """
    if isinstance(instance, protocol):
        return
    object_attrs = set(dir(object))
    protocol_methods = {
        attr
        for attr in set(dir(protocol)) - object_attrs
        if not attr.startswith("_")
    }
    missing = sorted(m for m in protocol_methods if not hasattr(instance, m))
    missing_str = ", ".join(missing) if missing else "unknown"
    raise AssertionError(
        f"{type(instance).__name__} does not implement {protocol.__name__}. "
        f"Missing: {missing_str}"
    )


def assert_all_implement_protocol(
    instances: list[Any],
    protocol: type[Protocol],
) -> None:
    """Assert that all instances in a list implement a Protocol."""
    for i, instance in enumerate(instances):
        try:
            assert_implements_protocol(instance, protocol)
        except AssertionError as e:
            raise AssertionError(f"Instance at index {i}: {e}") from e


def assert_no_native_leaks(driver: DigitalTwinGPhoto2Driver) -> None:
    """Assert every tree and choices buffer the twin handed out was freed."""
    assert driver.live_trees == 0, f"{driver.live_trees} widget tree(s) not freed"
    assert driver.buffers.live_count == 0, (
        f"{driver.buffers.live_count} choices buffer(s) leaked: "
        f"{sorted(driver.buffers.live_ids)}"
    )
    assert driver.buffers.allocated_count == driver.buffers.freed_count
