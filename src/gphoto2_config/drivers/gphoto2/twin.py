"""Digital Twin gphoto2 Driver - Simulated Camera for Testing.

Provides an in-memory camera that answers the GPhoto2Driver protocol without
libgphoto2 or hardware. The twin keeps a device state (values, choice lists,
read-only flags) and hands out native-like widget records built from it, so
the configuration core exercises the same ownership rules it needs on a real
camera:

- Every RADIO/MENU record owns one choices buffer from a tracked allocator.
  Freeing a buffer twice, or touching a freed record, raises TwinMemoryError.
- ``push_tree``/``push_single`` write only widgets whose changed flag is set
  and record every write in ``writes``.
- ``fail_next(operation, code)`` makes the next call of an operation return a
  failure code.

Types:
    TwinWidgetSpec: Declarative description of one widget of the twin tree
    DependentSetting: Choice list / lock of one key driven by another key

Classes:
    ChoiceBuffer: One allocated choices buffer
    ChoiceBufferAllocator: Tracks live and freed choice buffers
    TwinNativeWidget: Native widget record handed out by the twin
    TwinCameraHandle: Opened camera session
    DigitalTwinGPhoto2Driver: The simulated driver

Constants:
    DEFAULT_TWIN_CONFIG: Configuration tree of a generic DSLR
    DEFAULT_DEPENDENT_SETTINGS: White balance locked by the exposure program

Example:
    from gphoto2_config.drivers.gphoto2 import DigitalTwinGPhoto2Driver

    driver = DigitalTwinGPhoto2Driver()
    code, camera = driver.open_camera()
    code, root = driver.fetch_tree(camera)
    ...
    driver.free_widget(root)
    assert driver.buffers.live_count == 0
"""

from __future__ import annotations

import itertools
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, final

import numpy as np

from gphoto2_config.drivers.gphoto2.results import (
    GP_ERROR_BAD_PARAMETERS,
    GP_ERROR_CORRUPTED_DATA,
    GP_ERROR_MODEL_NOT_FOUND,
    GP_ERROR_NOT_SUPPORTED,
    GP_ERROR_UNKNOWN_PORT,
    GP_OK,
    RESULT_TABLE,
    ResultCode,
    describe,
)
from gphoto2_config.drivers.gphoto2.types import (
    CHOICE_KINDS,
    VALUELESS_KINDS,
    NativeHandle,
    WidgetKind,
    WidgetRange,
)
from gphoto2_config.observability import get_logger
from gphoto2_config.utils.image import CV2ImageEncoder, ImageEncoder

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

__all__ = [
    "ChoiceBuffer",
    "ChoiceBufferAllocator",
    "DEFAULT_DEPENDENT_SETTINGS",
    "DEFAULT_TWIN_CONFIG",
    "DependentSetting",
    "DigitalTwinGPhoto2Driver",
    "TWIN_MODEL",
    "TWIN_PORT",
    "TwinCameraHandle",
    "TwinMemoryError",
    "TwinNativeWidget",
    "TwinWidgetSpec",
]


class TwinMemoryError(RuntimeError):
    """Double free or use-after-free of a twin native record or buffer."""

    pass


# =============================================================================
# Tree description
# =============================================================================


@dataclass(frozen=True)
class TwinWidgetSpec:
    """Declarative description of one widget of the simulated tree."""

    name: str
    kind: WidgetKind
    label: str = ""
    value: Any = None
    choices: tuple[str, ...] = ()
    range: WidgetRange | None = None
    readonly: bool = False
    tristate: bool = False
    info: str = ""
    children: tuple[TwinWidgetSpec, ...] = ()

    def walk(self) -> Iterator[TwinWidgetSpec]:
        """Yield this spec and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class DependentSetting:
    """Choices and lock state of one key driven by another key's value.

    Attributes:
        controller: Key whose device value drives the dependent key.
        choices: Controller value -> choice list override. Controller values
            not listed leave the base choice list in place.
        locked: Controller values that make the dependent key read-only.
    """

    controller: str
    choices: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    locked: frozenset[str] = frozenset()


TWIN_MODEL = "Digital Twin DSLR"
TWIN_PORT = "usb:001,004"

# Fixed clock so tests see a stable DATE value (2023-11-14T22:13:20Z)
_TWIN_EPOCH = 1_700_000_000

_WHITE_BALANCE_CHOICES = (
    "Automatic",
    "Daylight",
    "Shade",
    "Cloudy",
    "Tungsten",
    "Fluorescent",
    "Flash",
    "Manual",
)

# Layout and names follow the PTP2 camlib of libgphoto2
DEFAULT_TWIN_CONFIG = TwinWidgetSpec(
    name="main",
    kind=WidgetKind.WINDOW,
    label="Camera and Driver Configuration",
    children=(
        TwinWidgetSpec(
            name="settings",
            kind=WidgetKind.SECTION,
            label="Camera Settings",
            children=(
                TwinWidgetSpec(
                    name="datetime",
                    kind=WidgetKind.DATE,
                    label="Camera Date and Time",
                    value=_TWIN_EPOCH,
                ),
                TwinWidgetSpec(
                    name="artist",
                    kind=WidgetKind.TEXT,
                    label="Artist",
                    value="",
                ),
                TwinWidgetSpec(
                    name="capturetarget",
                    kind=WidgetKind.RADIO,
                    label="Capture Target",
                    value="Memory card",
                    choices=("Internal RAM", "Memory card"),
                ),
            ),
        ),
        TwinWidgetSpec(
            name="imgsettings",
            kind=WidgetKind.SECTION,
            label="Image Settings",
            children=(
                TwinWidgetSpec(
                    name="iso",
                    kind=WidgetKind.RADIO,
                    label="ISO Speed",
                    value="Auto",
                    choices=(
                        "Auto", "100", "200", "400", "800", "1600", "3200", "6400",
                    ),
                ),
                TwinWidgetSpec(
                    name="whitebalance",
                    kind=WidgetKind.RADIO,
                    label="WhiteBalance",
                    value="Automatic",
                    choices=_WHITE_BALANCE_CHOICES,
                ),
                TwinWidgetSpec(
                    name="imageformat",
                    kind=WidgetKind.MENU,
                    label="Image Format",
                    value="JPEG Fine",
                    choices=("RAW", "JPEG Fine", "JPEG Normal", "RAW + JPEG Fine"),
                ),
            ),
        ),
        TwinWidgetSpec(
            name="capturesettings",
            kind=WidgetKind.SECTION,
            label="Capture Settings",
            children=(
                TwinWidgetSpec(
                    name="expprogram",
                    kind=WidgetKind.RADIO,
                    label="Exposure Program",
                    value="M",
                    choices=("Auto", "P", "A", "S", "M"),
                ),
                TwinWidgetSpec(
                    name="shutterspeed",
                    kind=WidgetKind.RADIO,
                    label="Shutter Speed",
                    value="1/60",
                    choices=(
                        "1/4000",
                        "1/1000",
                        "1/250",
                        "1/60",
                        "1/15",
                        "1/4",
                        "1",
                        "30",
                        "bulb",
                    ),
                ),
                TwinWidgetSpec(
                    name="f-number",
                    kind=WidgetKind.RADIO,
                    label="F-Number",
                    value="f/5.6",
                    choices=("f/1.8", "f/2.8", "f/4", "f/5.6", "f/8", "f/11", "f/16"),
                ),
                TwinWidgetSpec(
                    name="focusmode",
                    kind=WidgetKind.RADIO,
                    label="Focus Mode",
                    value="AF-S",
                    choices=("Manual", "AF-S", "AF-C", "AF-A"),
                ),
                TwinWidgetSpec(
                    name="exposurecompensation",
                    kind=WidgetKind.RANGE,
                    label="Exposure Compensation",
                    value=0.0,
                    range=WidgetRange(-3.0, 3.0, 0.5),
                    info="EV steps",
                ),
            ),
        ),
        TwinWidgetSpec(
            name="actions",
            kind=WidgetKind.SECTION,
            label="Camera Actions",
            children=(
                TwinWidgetSpec(
                    name="autofocusdrive",
                    kind=WidgetKind.TOGGLE,
                    label="Drive Nikon DSLR Autofocus",
                    value=0,
                ),
                TwinWidgetSpec(
                    name="imagestabilization",
                    kind=WidgetKind.TOGGLE,
                    label="Image Stabilization",
                    value=2,
                    tristate=True,
                ),
                TwinWidgetSpec(
                    name="manualfocusdrive",
                    kind=WidgetKind.RANGE,
                    label="Drive Nikon DSLR Manual focus",
                    value=0.0,
                    range=WidgetRange(-32767.0, 32767.0, 1.0),
                ),
                TwinWidgetSpec(
                    name="resetsettings",
                    kind=WidgetKind.BUTTON,
                    label="Reset Camera Settings",
                ),
            ),
        ),
        TwinWidgetSpec(
            name="status",
            kind=WidgetKind.SECTION,
            label="Camera Status Information",
            children=(
                TwinWidgetSpec(
                    name="cameramodel",
                    kind=WidgetKind.TEXT,
                    label="Camera Model",
                    value=TWIN_MODEL,
                    readonly=True,
                ),
                TwinWidgetSpec(
                    name="serialnumber",
                    kind=WidgetKind.TEXT,
                    label="Serial Number",
                    value="000000000001",
                    readonly=True,
                ),
                TwinWidgetSpec(
                    name="batterylevel",
                    kind=WidgetKind.TEXT,
                    label="Battery Level",
                    value="100%",
                    readonly=True,
                ),
            ),
        ),
    ),
)

# In the "Auto" program the body picks the white balance itself
DEFAULT_DEPENDENT_SETTINGS: Mapping[str, DependentSetting] = MappingProxyType(
    {
        "whitebalance": DependentSetting(
            controller="expprogram",
            choices={"Auto": ("Automatic",)},
            locked=frozenset({"Auto"}),
        ),
    }
)

_PREVIEW_WIDTH = 640
_PREVIEW_HEIGHT = 424
_PREVIEW_JPEG_QUALITY = 80


# =============================================================================
# Native records
# =============================================================================


@dataclass(frozen=True)
class ChoiceBuffer:
    """One allocated choices buffer."""

    id: int
    items: tuple[str, ...]


class ChoiceBufferAllocator:
    """Allocator tracking every choices buffer the twin hands out.

    Attributes:
        allocated_count: Buffers allocated since creation.
        freed_count: Buffers freed since creation.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._live: dict[int, ChoiceBuffer] = {}
        self.allocated_count = 0
        self.freed_count = 0

    def allocate(self, items: Sequence[str]) -> ChoiceBuffer:
        buffer = ChoiceBuffer(next(self._ids), tuple(items))
        self._live[buffer.id] = buffer
        self.allocated_count += 1
        return buffer

    def free(self, buffer: ChoiceBuffer) -> None:
        """Release ``buffer``.

        Raises:
            TwinMemoryError: If the buffer is not live (double free).
        """
        if self._live.pop(buffer.id, None) is None:
            raise TwinMemoryError(f"Double free of choices buffer {buffer.id}")
        self.freed_count += 1

    def is_live(self, buffer: ChoiceBuffer) -> bool:
        return buffer.id in self._live

    @property
    def live_ids(self) -> frozenset[int]:
        return frozenset(self._live)

    @property
    def live_count(self) -> int:
        return len(self._live)

    def __repr__(self) -> str:
        return (
            f"ChoiceBufferAllocator(live={self.live_count}, "
            f"allocated={self.allocated_count}, freed={self.freed_count})"
        )


class TwinNativeWidget:
    """Native widget record owned by whoever fetched its root."""

    __slots__ = (
        "name",
        "label",
        "info",
        "kind",
        "value",
        "range",
        "choices",
        "tristate",
        "readonly",
        "changed",
        "parent",
        "children",
        "freed",
    )

    def __init__(
        self,
        name: str,
        label: str,
        info: str,
        kind: WidgetKind,
        value: Any,
        widget_range: WidgetRange | None,
        choices: ChoiceBuffer | None,
        tristate: bool,
        readonly: bool,
        parent: TwinNativeWidget | None = None,
    ) -> None:
        self.name = name
        self.label = label
        self.info = info
        self.kind = kind
        self.value = value
        self.range = widget_range
        self.choices = choices
        self.tristate = tristate
        self.readonly = readonly
        self.changed = False
        self.parent = parent
        self.children: list[TwinNativeWidget] = []
        self.freed = False

    def walk(self) -> Iterator[TwinNativeWidget]:
        yield self
        for child in self.children:
            yield from child.walk()

    def __repr__(self) -> str:
        state = " freed" if self.freed else ""
        return f"<TwinNativeWidget {self.name} {self.kind.name}{state}>"


@dataclass
class TwinCameraHandle:
    """Opened twin camera session."""

    model: str
    port: str
    open: bool = True


# =============================================================================
# Driver
# =============================================================================


@final
class DigitalTwinGPhoto2Driver:
    """Digital twin gphoto2 driver for development without a camera.

    Simulates a camera's configuration tree and its device state. Widget
    records handed out by ``fetch_tree``/``fetch_single`` are fresh copies of
    the device state; writes reach the device only through ``push_tree`` or
    ``push_single``, exactly as with libgphoto2.

    Business context: The configuration cache, the refresh protocol and the
    CLI are developed and tested against this twin. Its buffer accounting
    turns native memory mistakes (leaked or doubly freed choice lists) into
    test failures instead of heap corruption on a real camera.

    Args:
        config: Root of the simulated tree. Defaults to DEFAULT_TWIN_CONFIG.
        model: Model name reported and accepted by ``open_camera``.
        port: Port path accepted by ``open_camera``.
        dependent_settings: Choice/lock rules between keys. Defaults to
            DEFAULT_DEPENDENT_SETTINGS.
        encoder: Image encoder for preview frames. None creates a
            CV2ImageEncoder on the first preview.

    Attributes:
        buffers: Choices buffer allocator (inspect for leaks).
        writes: ``(key, value)`` of every value written to the device.
        push_count: Number of successful ``push_tree`` calls.

    Example:
        driver = DigitalTwinGPhoto2Driver()
        driver.fail_next("push_tree", GP_ERROR_CAMERA_BUSY)
        driver.set_device_value("iso", "800")  # the user turned a dial
    """

    def __init__(
        self,
        config: TwinWidgetSpec | None = None,
        model: str = TWIN_MODEL,
        port: str = TWIN_PORT,
        dependent_settings: Mapping[str, DependentSetting] | None = None,
        encoder: ImageEncoder | None = None,
    ) -> None:
        self.config = config or DEFAULT_TWIN_CONFIG
        self.model = model
        self.port = port
        self._dependent = dict(
            DEFAULT_DEPENDENT_SETTINGS
            if dependent_settings is None
            else dependent_settings
        )
        self._specs: dict[str, TwinWidgetSpec] = {
            spec.name: spec for spec in self.config.walk()
        }
        self._values: dict[str, Any] = {}
        self._choices: dict[str, tuple[str, ...]] = {}
        self._readonly: dict[str, bool] = {}
        for spec in self._specs.values():
            if spec.kind not in VALUELESS_KINDS:
                self._values[spec.name] = spec.value
            if spec.kind in CHOICE_KINDS:
                self._choices[spec.name] = spec.choices
            self._readonly[spec.name] = spec.readonly

        self.buffers = ChoiceBufferAllocator()
        self.writes: list[tuple[str, Any]] = []
        self.push_count = 0
        self._failures: dict[str, int] = {}
        self._live_roots: set[int] = set()
        self._encoder = encoder
        self._apply_dependent_settings()

        logger.info(
            "Digital twin gphoto2 driver initialized",
            model=self.model,
            widgets=len(self._specs),
        )

    def __repr__(self) -> str:
        return (
            f"DigitalTwinGPhoto2Driver(model={self.model!r}, "
            f"live_trees={self.live_trees}, {self.buffers!r})"
        )

    # -- simulation controls -------------------------------------------------

    def fail_next(self, operation: str, code: int) -> None:
        """Make the next call of ``operation`` return ``code``."""
        if not hasattr(self, operation):
            raise AttributeError(f"Unknown driver operation: {operation}")
        self._failures[operation] = code

    def _take_failure(self, operation: str) -> int | None:
        return self._failures.pop(operation, None)

    def device_value(self, key: str) -> Any:
        """Current device-side value of ``key``."""
        return self._values[key]

    def device_choices(self, key: str) -> tuple[str, ...]:
        return self._choices_for(key)

    def device_readonly(self, key: str) -> bool:
        return self._readonly_for(key)

    def set_device_value(self, key: str, value: Any) -> None:
        """Change a value on the device side, as a dial or menu would."""
        self._require_key(key)
        self._values[key] = value
        self._apply_dependent_settings()

    def set_device_choices(self, key: str, choices: Sequence[str]) -> None:
        self._require_key(key)
        self._choices[key] = tuple(choices)
        self._apply_dependent_settings()

    def set_device_readonly(self, key: str, readonly: bool) -> None:
        self._require_key(key)
        self._readonly[key] = readonly

    @property
    def live_trees(self) -> int:
        """Fetched widget trees not yet freed."""
        return len(self._live_roots)

    def _require_key(self, key: str) -> None:
        if key not in self._specs:
            raise KeyError(key)

    def _choices_for(self, key: str) -> tuple[str, ...]:
        rule = self._dependent.get(key)
        if rule is not None:
            controller_value = self._values.get(rule.controller)
            override = rule.choices.get(controller_value)
            if override is not None:
                return tuple(override)
        return self._choices.get(key, ())

    def _readonly_for(self, key: str) -> bool:
        rule = self._dependent.get(key)
        if rule is not None and self._values.get(rule.controller) in rule.locked:
            return True
        return self._readonly.get(key, False)

    def _apply_dependent_settings(self) -> None:
        # Reset dependent values the current choice list no longer offers
        for key in self._dependent:
            choices = self._choices_for(key)
            if choices and self._values.get(key) not in choices:
                self._values[key] = choices[0]

    # -- record construction -------------------------------------------------

    def _build(
        self, spec: TwinWidgetSpec, parent: TwinNativeWidget | None
    ) -> TwinNativeWidget:
        choices = None
        if spec.kind in CHOICE_KINDS:
            choices = self.buffers.allocate(self._choices_for(spec.name))
        record = TwinNativeWidget(
            name=spec.name,
            label=spec.label,
            info=spec.info,
            kind=spec.kind,
            value=self._values.get(spec.name),
            widget_range=spec.range,
            choices=choices,
            tristate=spec.tristate,
            readonly=self._readonly_for(spec.name),
            parent=parent,
        )
        record.children = [self._build(child, record) for child in spec.children]
        return record

    @staticmethod
    def _live(widget: TwinNativeWidget) -> TwinNativeWidget:
        if widget.freed:
            raise TwinMemoryError(f"Use of freed widget record {widget.name!r}")
        return widget

    @staticmethod
    def _coerce(kind: WidgetKind, value: Any) -> Any:
        if kind is WidgetKind.RANGE:
            return float(value)
        if kind in (WidgetKind.TOGGLE, WidgetKind.DATE):
            return int(value)
        return str(value)

    # -- camera session ------------------------------------------------------

    def open_camera(
        self, model: str | None = None, port: str | None = None
    ) -> tuple[int, NativeHandle]:
        if (code := self._take_failure("open_camera")) is not None:
            return code, None
        if model is not None and model != self.model:
            return GP_ERROR_MODEL_NOT_FOUND, None
        if port is not None and port != self.port:
            return GP_ERROR_UNKNOWN_PORT, None
        logger.debug("Twin camera opened", model=self.model, port=self.port)
        return GP_OK, TwinCameraHandle(self.model, self.port)

    def close_camera(self, camera: NativeHandle) -> int:
        if (code := self._take_failure("close_camera")) is not None:
            return code
        camera.open = False
        return GP_OK

    def _check_camera(self, camera: NativeHandle) -> int:
        if not isinstance(camera, TwinCameraHandle) or not camera.open:
            return GP_ERROR_BAD_PARAMETERS
        return GP_OK

    # -- configuration -------------------------------------------------------

    def fetch_tree(self, camera: NativeHandle) -> tuple[int, NativeHandle]:
        if (code := self._take_failure("fetch_tree")) is not None:
            return code, None
        if (code := self._check_camera(camera)) < GP_OK:
            return code, None
        root = self._build(self.config, None)
        self._live_roots.add(id(root))
        return GP_OK, root

    def push_tree(self, camera: NativeHandle, widget: NativeHandle) -> int:
        if (code := self._take_failure("push_tree")) is not None:
            return code
        if (code := self._check_camera(camera)) < GP_OK:
            return code
        for record in self._live(widget).walk():
            self._write(record)
        self._apply_dependent_settings()
        self.push_count += 1
        return GP_OK

    def fetch_single(self, camera: NativeHandle, key: str) -> tuple[int, NativeHandle]:
        if (code := self._take_failure("fetch_single")) is not None:
            return code, None
        if (code := self._check_camera(camera)) < GP_OK:
            return code, None
        spec = self._specs.get(key)
        if spec is None:
            return GP_ERROR_BAD_PARAMETERS, None
        record = self._build(spec, None)
        self._live_roots.add(id(record))
        return GP_OK, record

    def push_single(self, camera: NativeHandle, key: str, widget: NativeHandle) -> int:
        if (code := self._take_failure("push_single")) is not None:
            return code
        if (code := self._check_camera(camera)) < GP_OK:
            return code
        record = self._live(widget)
        if record.name != key or key not in self._specs:
            return GP_ERROR_BAD_PARAMETERS
        self._write(record)
        self._apply_dependent_settings()
        return GP_OK

    def _write(self, record: TwinNativeWidget) -> None:
        if not record.changed:
            return
        if record.kind not in VALUELESS_KINDS:
            self._values[record.name] = record.value
            self.writes.append((record.name, record.value))
            logger.debug("Twin device write", key=record.name, value=record.value)
        record.changed = False

    def capture_preview(self, camera: NativeHandle) -> tuple[int, bytes]:
        """Synthesize a liveview JPEG showing the current exposure settings."""
        if (code := self._take_failure("capture_preview")) is not None:
            return code, b""
        if (code := self._check_camera(camera)) < GP_OK:
            return code, b""

        img: NDArray[Any] = np.zeros((_PREVIEW_HEIGHT, _PREVIEW_WIDTH, 3), np.uint8)
        img[:, :] = np.linspace(20, 90, _PREVIEW_WIDTH, dtype=np.uint8)[:, None]
        lines = (
            f"DIGITAL TWIN - {self.model}",
            f"ISO {self._values.get('iso')}  {self._values.get('shutterspeed')}s  "
            f"{self._values.get('f-number')}",
            f"WB {self._values.get('whitebalance')}",
        )
        encoder = self._get_encoder()
        for row, text in enumerate(lines):
            encoder.put_text(img, text, (20, 40 + 30 * row), 0.7, (255, 255, 255), 1)
        try:
            jpeg = encoder.encode_jpeg(img, quality=_PREVIEW_JPEG_QUALITY)
        except ValueError:
            return GP_ERROR_CORRUPTED_DATA, b""
        return GP_OK, jpeg

    def _get_encoder(self) -> ImageEncoder:
        if self._encoder is None:
            self._encoder = CV2ImageEncoder()
        return self._encoder

    # -- widget records ------------------------------------------------------

    def widget_type(self, widget: NativeHandle) -> tuple[int, int]:
        if (code := self._take_failure("widget_type")) is not None:
            return code, -1
        return GP_OK, int(self._live(widget).kind)

    def widget_name(self, widget: NativeHandle) -> tuple[int, str]:
        return GP_OK, self._live(widget).name

    def widget_label(self, widget: NativeHandle) -> tuple[int, str]:
        return GP_OK, self._live(widget).label

    def widget_info(self, widget: NativeHandle) -> tuple[int, str]:
        return GP_OK, self._live(widget).info

    def widget_readonly(self, widget: NativeHandle) -> tuple[int, bool]:
        return GP_OK, self._live(widget).readonly

    def widget_changed(self, widget: NativeHandle) -> tuple[int, bool]:
        return GP_OK, self._live(widget).changed

    def get_widget_value(self, widget: NativeHandle) -> tuple[int, Any]:
        if (code := self._take_failure("get_widget_value")) is not None:
            return code, None
        record = self._live(widget)
        if record.kind in VALUELESS_KINDS:
            return GP_ERROR_NOT_SUPPORTED, None
        return GP_OK, record.value

    def set_widget_value(self, widget: NativeHandle, value: Any) -> int:
        if (code := self._take_failure("set_widget_value")) is not None:
            return code
        record = self._live(widget)
        if record.kind in VALUELESS_KINDS:
            return GP_ERROR_NOT_SUPPORTED
        try:
            value = self._coerce(record.kind, value)
        except (TypeError, ValueError):
            return GP_ERROR_BAD_PARAMETERS
        if value != record.value:
            record.value = value
            record.changed = True
        return GP_OK

    def widget_range(self, widget: NativeHandle) -> tuple[int, WidgetRange]:
        record = self._live(widget)
        if record.range is None:
            return GP_ERROR_BAD_PARAMETERS, WidgetRange(0.0, 0.0, 0.0)
        return GP_OK, record.range

    def widget_choices(self, widget: NativeHandle) -> tuple[int, list[str]]:
        record = self._live(widget)
        if record.choices is None:
            return GP_ERROR_BAD_PARAMETERS, []
        if not self.buffers.is_live(record.choices):
            raise TwinMemoryError(f"Read of freed choices buffer of {record.name!r}")
        return GP_OK, list(record.choices.items)

    def toggle_states(self, widget: NativeHandle) -> tuple[int, int]:
        return GP_OK, 3 if self._live(widget).tristate else 2

    def widget_children(self, widget: NativeHandle) -> tuple[int, list[NativeHandle]]:
        return GP_OK, list(self._live(widget).children)

    def set_changed_flag(self, widget: NativeHandle, changed: bool) -> int:
        if (code := self._take_failure("set_changed_flag")) is not None:
            return code
        self._live(widget).changed = bool(changed)
        return GP_OK

    def set_readonly_flag(self, widget: NativeHandle, readonly: bool) -> int:
        if (code := self._take_failure("set_readonly_flag")) is not None:
            return code
        self._live(widget).readonly = bool(readonly)
        return GP_OK

    def exchange_choices(self, first: NativeHandle, second: NativeHandle) -> int:
        if (code := self._take_failure("exchange_choices")) is not None:
            return code
        a = self._live(first)
        b = self._live(second)
        a.choices, b.choices = b.choices, a.choices
        return GP_OK

    def free_widget(self, widget: NativeHandle) -> int:
        """Free a fetched root and every record and buffer it owns.

        Raises:
            TwinMemoryError: If the root was already freed.
        """
        if widget.freed:
            raise TwinMemoryError(f"Double free of widget tree {widget.name!r}")
        if widget.parent is not None:
            return GP_ERROR_BAD_PARAMETERS
        for record in widget.walk():
            if record.choices is not None:
                self.buffers.free(record.choices)
            record.freed = True
        self._live_roots.discard(id(widget))
        return GP_OK

    # -- result codes --------------------------------------------------------

    def result_as_string(self, code: int) -> str:
        return describe(code)

    def result_table(self) -> Sequence[ResultCode]:
        return RESULT_TABLE
