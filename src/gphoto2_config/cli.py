"""CLI entry point for gphoto2-config.

Provides the ``gphoto2-config`` console script with subcommands:

- ``list``: Every configuration key with its current value
- ``get KEY``: One widget with label, type, choices or range
- ``set KEY=VALUE...``: Assign one or more keys and save once
- ``refresh KEY``: Re-read one key from the camera
- ``tree``: The whole configuration tree
- ``preview OUT``: Save a liveview frame

Usage::

    # Digital twin, no camera needed
    gphoto2-config --twin list

    # Real camera
    gphoto2-config set iso=800 shutterspeed=1/250
    gphoto2-config --json get whitebalance
    gphoto2-config --model "Nikon DSC D750" preview frame.jpg

Exit code is 0 on success and 1 when the camera or a value is rejected.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, TextIO

from gphoto2_config.devices import Camera, CameraWidget
from gphoto2_config.drivers.config import DriverConfig, DriverFactory, DriverMode
from gphoto2_config.errors import GPhoto2ConfigError, UnknownKeyError, UpdateError
from gphoto2_config.observability import (
    DeviceStats,
    LogContext,
    configure_logging,
    get_logger,
)

logger = get_logger(__name__)

PROG_NAME = "gphoto2-config"
DEFAULT_LOG_LEVEL = "WARNING"


def _parse_assignments(pairs: Sequence[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` arguments, keeping their order.

    Raises:
        ValueError: If an argument has no ``=`` or an empty key.
    """
    assignments: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        assignments[key] = value
    return assignments


def _format_tree(widget: CameraWidget, depth: int = 0) -> list[str]:
    indent = "  " * depth
    if widget.has_children():
        lines = [f"{indent}{widget.name}/  ({widget.label})"]
        for child in widget.children:
            lines.extend(_format_tree(child, depth + 1))
        return lines
    suffix = " [readonly]" if widget.readonly else ""
    if widget.has_value():
        return [f"{indent}{widget.name} = {widget}{suffix}"]
    return [f"{indent}{widget.name} ({widget.kind.name.lower()}){suffix}"]


def _describe(widget: CameraWidget) -> list[str]:
    lines = [
        f"{widget.name}: {widget.label}",
        f"  type: {widget.kind.name.lower()}",
        f"  readonly: {widget.readonly}",
    ]
    if widget.has_value():
        lines.append(f"  value: {widget}")
    if widget.supports_choices():
        lines.append(f"  choices: {', '.join(widget.choices)}")
    if widget.supports_range():
        bounds = widget.range
        lines.append(f"  range: {bounds.min} .. {bounds.max} step {bounds.step}")
    if widget.info:
        lines.append(f"  info: {widget.info}")
    return lines


def _emit(out: TextIO, as_json: bool, data: Any, lines: Sequence[str]) -> None:
    if as_json:
        out.write(json.dumps(data, indent=2) + "\n")
    else:
        out.write("\n".join(lines) + "\n")


# =============================================================================
# Commands
# =============================================================================


def cmd_list(camera: Camera, args: argparse.Namespace, out: TextIO) -> int:
    values = {
        key: widget.value
        for key, widget in camera.config.items()
        if widget.has_value()
    }
    _emit(out, args.json, values, [f"{k} = {v}" for k, v in values.items()])
    return 0


def cmd_get(camera: Camera, args: argparse.Namespace, out: TextIO) -> int:
    widget = camera[args.key]
    if widget is None:
        raise UnknownKeyError(args.key)
    _emit(out, args.json, widget.to_dict(), _describe(widget))
    return 0


def cmd_set(camera: Camera, args: argparse.Namespace, out: TextIO) -> int:
    assignments = _parse_assignments(args.assignments)
    saved = camera.update(assignments, force=args.force)
    message = "saved" if saved else "nothing to save"
    _emit(out, args.json, {"saved": saved, "keys": list(assignments)}, [message])
    return 0


def cmd_refresh(camera: Camera, args: argparse.Namespace, out: TextIO) -> int:
    value = camera.refresh(args.key)
    _emit(out, args.json, {args.key: value}, [f"{args.key} = {value}"])
    return 0


def cmd_tree(camera: Camera, args: argparse.Namespace, out: TextIO) -> int:
    window = camera.window
    _emit(out, args.json, window.to_dict(), _format_tree(window))
    return 0


def cmd_preview(camera: Camera, args: argparse.Namespace, out: TextIO) -> int:
    data = camera.preview()
    path = Path(args.output)
    path.write_bytes(data)
    _emit(
        out,
        args.json,
        {"path": str(path), "bytes": len(data)},
        [f"wrote {len(data)} bytes to {path}"],
    )
    return 0


COMMANDS = {
    "list": cmd_list,
    "get": cmd_get,
    "set": cmd_set,
    "refresh": cmd_refresh,
    "tree": cmd_tree,
    "preview": cmd_preview,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog=PROG_NAME,
        description="Read and change camera settings through libgphoto2",
    )
    parser.add_argument(
        "--twin",
        action="store_true",
        help="Use the simulated camera instead of libgphoto2",
    )
    parser.add_argument("--model", help="Camera model, e.g. 'Canon EOS 6D'")
    parser.add_argument("--port", help="Port path, e.g. 'usb:001,004'")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument(
        "--log-level",
        default=DEFAULT_LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level on stderr (default {DEFAULT_LOG_LEVEL})",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print device call statistics to stderr when done",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List keys and values")

    get_parser = subparsers.add_parser("get", help="Show one widget")
    get_parser.add_argument("key")

    set_parser = subparsers.add_parser("set", help="Assign keys and save")
    set_parser.add_argument("assignments", nargs="+", metavar="KEY=VALUE")
    set_parser.add_argument(
        "--force",
        action="store_true",
        help="Send values to the camera even if unchanged",
    )

    refresh_parser = subparsers.add_parser("refresh", help="Re-read one key")
    refresh_parser.add_argument("key")

    subparsers.add_parser("tree", help="Show the configuration tree")

    preview_parser = subparsers.add_parser("preview", help="Save a liveview frame")
    preview_parser.add_argument("output", metavar="OUT")

    return parser


def main(
    argv: Sequence[str] | None = None,
    factory: DriverFactory | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Main CLI entry point for gphoto2-config.

    Args:
        argv: Arguments without the program name. None reads sys.argv.
        factory: Driver factory to open the camera with. None builds one
            from ``--twin``, ``--model`` and ``--port``.
        out: Output stream. None uses sys.stdout.
        err: Error stream. None uses sys.stderr.

    Returns:
        Exit code 0 for success, 1 for camera or value errors.

    Raises:
        SystemExit: On --help or argument parsing errors.
    """
    out = out or sys.stdout
    err = err or sys.stderr
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, stream=err, force=True)

    if factory is None:
        mode = DriverMode.DIGITAL_TWIN if args.twin else DriverMode.HARDWARE
        config = DriverConfig(mode=mode, model=args.model, port=args.port)
        factory = DriverFactory(config)

    stats = DeviceStats() if args.stats else None
    try:
        with LogContext(command=args.command):
            return _run(factory, args, out, err, stats)
    finally:
        if stats is not None:
            err.write(json.dumps(stats.to_dict(), indent=2) + "\n")


def _run(
    factory: DriverFactory,
    args: argparse.Namespace,
    out: TextIO,
    err: TextIO,
    stats: DeviceStats | None,
) -> int:
    try:
        driver = factory.create_driver()
        with Camera.open(
            driver, model=factory.config.model, port=factory.config.port, stats=stats
        ) as camera:
            return COMMANDS[args.command](camera, args, out)
    except UpdateError as e:
        for key, failure in e.failures.items():
            err.write(f"error: {key}: {failure}\n")
        if e.saved:
            err.write("other keys were saved\n")
        return 1
    except (GPhoto2ConfigError, RuntimeError, ValueError, OSError) as e:
        logger.debug("Command failed", error=str(e))
        err.write(f"error: {e}\n")
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
