"""Tests for CameraWidget and widget_factory over the digital twin."""

from datetime import UTC, datetime

import pytest

from gphoto2_config.devices import CameraWidget, WidgetKind, WidgetRange, widget_factory
from gphoto2_config.devices.widget import check_result
from gphoto2_config.drivers.gphoto2 import DigitalTwinGPhoto2Driver, TwinWidgetSpec
from gphoto2_config.drivers.gphoto2.results import (
    GP_ERROR_CAMERA_BUSY,
    GP_OK,
    ResultCode,
)
from gphoto2_config.errors import (
    DeviceError,
    GPCameraBusyError,
    InvalidChoiceError,
    InvalidValueError,
    NotSupportedError,
    OutOfRangeError,
    ReadOnlyError,
    StaleWidgetError,
    UnknownWidgetTypeError,
    WidgetError,
)
from tests.helpers import assert_no_native_leaks


@pytest.fixture
def session(twin):
    code, handle = twin.open_camera()
    assert code == GP_OK
    return handle


@pytest.fixture
def root(twin, session):
    """Wrapped configuration tree, finalized after the test."""
    _, handle = twin.fetch_tree(session)
    widget = widget_factory(twin, handle)
    yield widget
    widget.finalize()


@pytest.fixture
def widgets(root):
    return root.flatten()


class TestWidgetFactory:
    """Tests for building wrappers from native handles."""

    def test_tree_structure(self, root):
        """Verifies the wrapper tree mirrors the native tree.

        Arrangement:
        1. Twin default tree wrapped by widget_factory.

        Action:
        Inspect root, sections and a leaf.

        Assertion Strategy:
        Validates structure by confirming:
        - Root is a WINDOW without parent.
        - Children have the root as parent.
        - Leaves know their root.
        """
        assert root.kind is WidgetKind.WINDOW
        assert root.parent is None
        assert root.has_children()
        section = root.children[0]
        assert section.kind is WidgetKind.SECTION
        assert section.parent is root
        iso = root.flatten()["iso"]
        assert iso.root is root
        assert iso.id == iso.name == "iso"

    def test_flatten_includes_containers(self, widgets):
        assert "main" in widgets
        assert "capturesettings" in widgets
        assert isinstance(widgets["f-number"], CameraWidget)

    def test_flatten_depth_first_order(self, root):
        names = list(root.flatten())

        assert names[:4] == ["main", "settings", "datetime", "artist"]
        assert names == [w.name for w in root.walk()]

    def test_unknown_type_tag(self, twin, session, monkeypatch):
        """Verifies an unknown native type tag raises UnknownWidgetTypeError.

        Testing Principle:
        Validates the factory rejects records it cannot type instead of
        guessing a kind; the caller keeps ownership of the handle.
        """
        _, handle = twin.fetch_single(session, "iso")
        monkeypatch.setattr(twin, "widget_type", lambda widget: (GP_OK, 42))

        with pytest.raises(UnknownWidgetTypeError) as exc_info:
            widget_factory(twin, handle)

        assert exc_info.value.type_tag == 42
        assert exc_info.value.name == "iso"
        twin.free_widget(handle)
        assert_no_native_leaks(twin)

    def test_driver_failure_maps_to_device_error(self, twin, session):
        _, handle = twin.fetch_single(session, "iso")
        twin.fail_next("widget_type", GP_ERROR_CAMERA_BUSY)

        with pytest.raises(GPCameraBusyError):
            widget_factory(twin, handle)

        twin.free_widget(handle)


class TestWidgetAttributes:
    """Tests for attribute reads through the driver."""

    def test_label_and_info(self, widgets):
        ev = widgets["exposurecompensation"]

        assert ev.label == "Exposure Compensation"
        assert ev.info == "EV steps"

    def test_capabilities(self, widgets):
        assert widgets["iso"].supports_choices()
        assert widgets["imageformat"].supports_choices()
        assert widgets["exposurecompensation"].supports_range()
        assert not widgets["resetsettings"].has_value()
        assert not widgets["main"].has_value()
        assert widgets["artist"].has_value()

    def test_choices_and_range(self, widgets):
        assert widgets["capturetarget"].choices == ["Internal RAM", "Memory card"]
        assert widgets["exposurecompensation"].range == WidgetRange(-3.0, 3.0, 0.5)
        assert widgets["artist"].choices == []
        assert widgets["artist"].range is None

    def test_tristate(self, widgets):
        assert widgets["imagestabilization"].tristate is True
        assert widgets["autofocusdrive"].tristate is False
        assert widgets["iso"].tristate is False

    def test_readonly(self, widgets):
        assert widgets["serialnumber"].readonly is True
        assert widgets["iso"].readonly is False


class TestWidgetValues:
    """Tests for value decoding and validated assignment."""

    def test_decoded_values(self, widgets):
        """Verifies each kind decodes to its Python type.

        Assertion Strategy:
        - TEXT/RADIO/MENU -> str, RANGE -> float.
        - TOGGLE -> bool, or "auto" for the tri-state value.
        - DATE -> int epoch seconds.
        """
        assert widgets["iso"].value == "Auto"
        assert widgets["imageformat"].value == "JPEG Fine"
        assert widgets["exposurecompensation"].value == 0.0
        assert widgets["autofocusdrive"].value is False
        assert widgets["imagestabilization"].value == "auto"
        assert widgets["imagestabilization"].raw_value == 2
        assert widgets["datetime"].value == 1_700_000_000

    def test_container_has_no_value(self, widgets):
        with pytest.raises(NotSupportedError):
            _ = widgets["capturesettings"].value

    def test_set_choice(self, widgets):
        iso = widgets["iso"]

        iso.value = "800"

        assert iso.value == "800"
        assert iso.changed is True

    def test_set_same_value_does_not_mark_changed(self, widgets):
        iso = widgets["iso"]

        iso.value = "Auto"

        assert iso.changed is False

    def test_invalid_choice_leaves_value(self, widgets):
        """Verifies rejected choices never reach the native record.

        Arrangement:
        1. iso choices are Auto and 100..6400.

        Action:
        Assign "123".

        Assertion Strategy:
        - InvalidChoiceError lists the valid choices.
        - Value and changed flag unchanged.
        """
        iso = widgets["iso"]

        with pytest.raises(InvalidChoiceError) as exc_info:
            iso.value = "123"

        assert "6400" in exc_info.value.choices
        assert iso.value == "Auto"
        assert iso.changed is False

    def test_choice_accepts_non_string(self, widgets):
        widgets["iso"].value = 400

        assert widgets["iso"].value == "400"

    def test_readonly_rejected(self, widgets):
        with pytest.raises(ReadOnlyError):
            widgets["batterylevel"].value = "50%"

    def test_button_rejected(self, widgets):
        with pytest.raises(NotSupportedError):
            widgets["resetsettings"].value = 1

    @pytest.mark.parametrize(
        "assigned, stored",
        [
            (1.5, 1.5),
            (1.3, 1.5),
            (-0.2, 0.0),
            ("-2.5", -2.5),
            (3, 3.0),
        ],
    )
    def test_range_snaps_to_step(self, widgets, assigned, stored):
        """Verifies in-range values snap to the nearest step."""
        ev = widgets["exposurecompensation"]

        ev.value = assigned

        assert ev.value == pytest.approx(stored)

    @pytest.mark.parametrize("assigned", [3.5, -10, float("nan")])
    def test_range_out_of_bounds(self, widgets, assigned):
        ev = widgets["exposurecompensation"]

        with pytest.raises(OutOfRangeError):
            ev.value = assigned

        assert ev.value == 0.0

    def test_range_not_a_number(self, widgets):
        with pytest.raises(InvalidValueError):
            widgets["exposurecompensation"].value = "bright"

    @pytest.mark.parametrize(
        "assigned, expected",
        [(True, True), ("on", True), ("YES", True), (0, False), ("off", False)],
    )
    def test_toggle_words(self, widgets, assigned, expected):
        af = widgets["autofocusdrive"]

        af.value = assigned

        assert af.value is expected

    def test_toggle_auto_requires_tristate(self, widgets):
        """Verifies "auto" is only accepted by tri-state toggles.

        Testing Principle:
        Validates the third state is offered only where the driver reports
        three toggle states.
        """
        with pytest.raises(InvalidChoiceError):
            widgets["autofocusdrive"].value = "auto"

        stabilization = widgets["imagestabilization"]
        stabilization.value = "off"
        assert stabilization.value is False
        stabilization.value = "Auto"
        assert stabilization.value == "auto"

    def test_toggle_unknown_word(self, widgets):
        with pytest.raises(InvalidValueError):
            widgets["autofocusdrive"].value = "maybe"

    def test_date_values(self, widgets):
        clock = widgets["datetime"]

        clock.value = 1_800_000_000
        assert clock.value == 1_800_000_000

        clock.value = datetime(2024, 1, 1, tzinfo=UTC)
        assert clock.value == 1_704_067_200

        clock.value = "2024-01-01T00:00:00+00:00"
        assert clock.value == 1_704_067_200

        clock.value = "1700000001"
        assert clock.value == 1_700_000_001

    @pytest.mark.parametrize("assigned", ["next tuesday", True, 1.5])
    def test_date_invalid(self, widgets, assigned):
        with pytest.raises(InvalidValueError):
            widgets["datetime"].value = assigned

    def test_text(self, widgets):
        widgets["artist"].value = "Ansel Adams"

        assert widgets["artist"].value == "Ansel Adams"
        assert str(widgets["artist"]) == "Ansel Adams"

    def test_on_change_callback(self, twin, session):
        """Verifies on_change fires after successful writes only."""
        seen: list[str] = []
        _, handle = twin.fetch_tree(session)
        root = widget_factory(twin, handle, on_change=lambda w: seen.append(w.name))
        widgets = root.flatten()

        widgets["iso"].value = "200"
        with pytest.raises(InvalidChoiceError):
            widgets["iso"].value = "7"

        assert seen == ["iso"]
        root.finalize()

    def test_driver_rejects_write(self, twin, widgets):
        twin.fail_next("set_widget_value", GP_ERROR_CAMERA_BUSY)

        with pytest.raises(GPCameraBusyError):
            widgets["artist"].value = "x"


class TestWidgetFlags:
    """Tests for native flag updates and absorb()."""

    def test_set_changed_and_readonly(self, widgets):
        iso = widgets["iso"]

        iso.set_changed(True)
        iso.set_readonly(True)

        assert iso.changed is True
        assert iso.readonly is True

    def test_absorb_takes_device_state(self, twin, session, widgets):
        """Verifies absorb() copies value, choices and flags from a fresh copy.

        Arrangement:
        1. Cached whitebalance wrapper from the tree.
        2. Device switches expprogram to Auto (whitebalance locked).
        3. Fresh standalone whitebalance fetched.

        Action:
        cached.absorb(fresh).

        Assertion Strategy:
        - cached shows the fresh choices and read-only flag.
        - cached changed flag cleared.
        - after both are freed no buffer leaks.
        """
        cached = widgets["whitebalance"]
        cached.value = "Daylight"
        twin.set_device_value("expprogram", "Auto")
        _, handle = twin.fetch_single(session, "whitebalance")
        fresh = widget_factory(twin, handle)

        cached.absorb(fresh)

        assert cached.choices == ["Automatic"]
        assert cached.value == "Automatic"
        assert cached.readonly is True
        assert cached.changed is False
        fresh.finalize()

    def test_absorb_kind_mismatch(self, twin, session, widgets):
        _, handle = twin.fetch_single(session, "artist")
        fresh = widget_factory(twin, handle)

        with pytest.raises(WidgetError):
            widgets["iso"].absorb(fresh)

        fresh.finalize()


class TestWidgetLifetime:
    """Tests for finalize() and stale access."""

    def test_finalize_releases_everything(self, twin, session):
        _, handle = twin.fetch_tree(session)
        root = widget_factory(twin, handle)
        iso = root.flatten()["iso"]

        root.finalize()

        assert root.released
        assert iso.released
        assert_no_native_leaks(twin)

    def test_finalize_is_idempotent(self, twin, session):
        _, handle = twin.fetch_tree(session)
        root = widget_factory(twin, handle)

        root.finalize()
        root.finalize()

        assert_no_native_leaks(twin)

    def test_finalize_non_root_rejected(self, widgets):
        with pytest.raises(WidgetError):
            widgets["iso"].finalize()

    def test_stale_access(self, twin, session):
        _, handle = twin.fetch_tree(session)
        root = widget_factory(twin, handle)
        iso = root.flatten()["iso"]
        root.finalize()

        with pytest.raises(StaleWidgetError):
            _ = iso.value
        with pytest.raises(StaleWidgetError):
            iso.value = "100"
        assert "released" in repr(iso)


class TestWidgetPresentation:
    """Tests for to_dict() and string forms."""

    def test_to_dict_leaf(self, widgets):
        data = widgets["exposurecompensation"].to_dict()

        assert data == {
            "name": "exposurecompensation",
            "label": "Exposure Compensation",
            "type": "range",
            "readonly": False,
            "value": 0.0,
            "range": {"min": -3.0, "max": 3.0, "step": 0.5},
            "info": "EV steps",
        }

    def test_to_dict_tree(self, root):
        data = root.to_dict()

        assert data["type"] == "window"
        assert [c["name"] for c in data["children"]][0] == "settings"
        assert "value" not in data

    def test_repr(self, widgets):
        assert repr(widgets["iso"]) == "<CameraWidget iso RADIO value='Auto'>"
        assert repr(widgets["main"]) == "<CameraWidget main WINDOW>"
        assert str(widgets["main"]) == "main"


class TestCheckResult:
    """Tests for check_result()."""

    def test_uses_driver_description(self):
        """Verifies the raised error carries the driver's text for the code."""

        class _Driver:
            def result_as_string(self, code):
                return "camera says busy"

        with pytest.raises(GPCameraBusyError) as exc_info:
            check_result(_Driver(), GP_ERROR_CAMERA_BUSY)

        assert exc_info.value.description == "camera says busy"

    def test_passes_success(self, twin):
        assert check_result(twin, GP_OK) == GP_OK

    def test_unmapped_code_named_from_driver_table(self, twin, monkeypatch):
        """Verifies codes only the driver knows keep its symbolic name.

        Arrangement:
        1. Twin whose result table adds a camlib-specific code -2001.

        Action:
        check_result(twin, -2001).

        Assertion Strategy:
        - Plain DeviceError with code -2001 and the driver's symbol.
        """
        table = [*twin.result_table(), ResultCode(-2001, "GP_ERROR_NO_LENS", "")]
        monkeypatch.setattr(twin, "result_table", lambda: table)

        with pytest.raises(DeviceError) as exc_info:
            check_result(twin, -2001)

        assert type(exc_info.value) is DeviceError
        assert exc_info.value.code == -2001
        assert exc_info.value.symbol == "GP_ERROR_NO_LENS"

    def test_unknown_code_has_no_symbol(self, twin):
        with pytest.raises(DeviceError) as exc_info:
            check_result(twin, -9999)

        assert exc_info.value.symbol is None


class TestCustomTree:
    """Widgets over a minimal custom tree."""

    def test_range_without_step_not_snapped(self):
        config = TwinWidgetSpec(
            name="main",
            kind=WidgetKind.WINDOW,
            children=(
                TwinWidgetSpec(
                    name="zoom",
                    kind=WidgetKind.RANGE,
                    value=1.0,
                    range=WidgetRange(1.0, 4.0, 0.0),
                ),
            ),
        )
        driver = DigitalTwinGPhoto2Driver(config=config)
        _, session = driver.open_camera()
        _, handle = driver.fetch_tree(session)
        root = widget_factory(driver, handle)

        root.flatten()["zoom"].value = 2.37

        assert root.flatten()["zoom"].value == pytest.approx(2.37)
        root.finalize()

    @staticmethod
    def _range_root(
        bounds: WidgetRange,
    ) -> tuple[DigitalTwinGPhoto2Driver, CameraWidget]:
        config = TwinWidgetSpec(
            name="main",
            kind=WidgetKind.WINDOW,
            children=(
                TwinWidgetSpec(
                    name="ev",
                    kind=WidgetKind.RANGE,
                    value=bounds.min,
                    range=bounds,
                ),
            ),
        )
        driver = DigitalTwinGPhoto2Driver(config=config)
        _, session = driver.open_camera()
        _, handle = driver.fetch_tree(session)
        return driver, widget_factory(driver, handle)

    @pytest.mark.parametrize(
        "bounds, assigned",
        [
            (WidgetRange(0.0, 1.0, 0.1), 0.3),
            (WidgetRange(0.0, 1.0, 0.1), 0.7),
            (WidgetRange(-5.0, 5.0, 0.3333333432674408), 0.0),
            (WidgetRange(-5.0, 5.0, 0.3333333432674408), -5.0),
            (WidgetRange(-2.0, 2.0, 0.3), 1.0),
        ],
    )
    def test_value_on_fractional_step_kept_exactly(self, bounds, assigned):
        """Verifies values on a non-binary step grid are stored as given.

        Arrangement:
        1. Single RANGE widget whose step has no exact binary form, as
           libgphoto2 reports float32 steps such as 0.1 or 1/3.

        Action:
        Assign a value that lies on the grid.

        Assertion Strategy:
        - Read-back value equals the assigned value exactly (no float drift).

        Testing Principle:
        Validates set-then-get returns the assigned value for valid input.
        """
        _, root = self._range_root(bounds)

        root.flatten()["ev"].value = assigned

        assert root.flatten()["ev"].value == assigned
        root.finalize()

    def test_value_off_fractional_step_rounded(self):
        _, root = self._range_root(WidgetRange(0.0, 1.0, 0.1))

        root.flatten()["ev"].value = 0.34

        assert root.flatten()["ev"].value == 0.3
        root.finalize()

    def test_range_missing_from_driver(self, monkeypatch):
        driver, root = self._range_root(WidgetRange(0.0, 1.0, 0.1))
        monkeypatch.setattr(driver, "widget_range", lambda widget: (GP_OK, None))

        with pytest.raises(NotSupportedError, match="reports no range"):
            root.flatten()["ev"].value = 0.5

        root.finalize()
