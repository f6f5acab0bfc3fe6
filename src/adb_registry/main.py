"""
Main application entry point

Command-line front end for the device registry.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from adb_registry import __version__
from adb_registry.config import ConfigManager
from adb_registry.core.adb_manager import AdbManager
from adb_registry.core.device import Device, DeviceStatus
from adb_registry.utils.adb_wrapper import ADBError, ADBWrapper, CommandResult
from adb_registry.utils.logger import setup_logger

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser"""
    parser = argparse.ArgumentParser(
        prog="adb-registry",
        description="Track and drive Android devices through the adb command-line tool"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--adb", metavar="PATH", help="adb binary to use")
    parser.add_argument("--timeout", type=int, metavar="SECONDS", help="command timeout")
    parser.add_argument("--config", metavar="INI", help="settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("devices", help="list connected devices")

    p = sub.add_parser("state", help="show the state of a device")
    p.add_argument("serial")

    p = sub.add_parser("pair", help="pair with a device for wireless debugging")
    p.add_argument("address")
    p.add_argument("code")

    p = sub.add_parser("connect", help="connect to a device over TCP/IP")
    p.add_argument("address")

    p = sub.add_parser("disconnect", help="disconnect one device, or all without a serial")
    p.add_argument("serial", nargs="?")

    p = sub.add_parser("push", help="copy a local file to a device")
    p.add_argument("serial")
    p.add_argument("local")
    p.add_argument("remote")

    p = sub.add_parser("pull", help="copy a file from a device")
    p.add_argument("serial")
    p.add_argument("remote")
    p.add_argument("local")

    p = sub.add_parser("shell", help="run a shell command on a device")
    p.add_argument("serial")
    p.add_argument("shell_command", nargs=argparse.REMAINDER, metavar="COMMAND")

    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse the command line, rejecting an empty shell command"""
    parser = build_parser()
    args = parser.parse_args(argv)
    # "adb shell" without a command would open an interactive session
    if args.command == "shell" and not any(word.strip() for word in args.shell_command):
        parser.error("shell: a command is required")
    return args


def build_wrapper(args: argparse.Namespace, config: ConfigManager) -> ADBWrapper:
    """Settings from the config file, overridden by command-line options"""
    adb = config.build_wrapper()
    if args.adb:
        adb.adb_path = Path(args.adb)
    if args.timeout:
        adb.timeout = args.timeout
    return adb


def _echo(result: CommandResult) -> int:
    if result.stdout:
        sys.stdout.write(result.stdout)
    if result.stderr:
        sys.stderr.write(result.stderr)
    return result.returncode


def format_device(device: Device) -> str:
    """One 'adb devices -l' style line"""
    fields = [f"{device.serial:<24}", device.status.value]
    for key, value in (
        ("product", device.product),
        ("model", device.model),
        ("device", device.device_name),
        ("transport_id", device.transport_id),
    ):
        if value is not None:
            fields.append(f"{key}:{value}")
    return " ".join(fields)


def _device_for(manager: AdbManager, serial: str) -> Device:
    # adb itself reports unknown serials, so no listing is needed first
    device = manager.get_device(serial)
    if device is None:
        device = Device(serial, DeviceStatus.UNKNOWN, adb=manager.adb)
    return device


async def run(args: argparse.Namespace, manager: AdbManager) -> int:
    """Run one sub-command and return the process exit code"""
    if args.command == "devices":
        for device in await manager.resync():
            print(format_device(device))
        return 0

    if args.command == "state":
        device = await Device.from_address(manager.adb, args.serial)
        print(device.status.value)
        return 0

    if args.command == "pair":
        return 0 if await manager.pair(args.address, args.code) else 1

    if args.command == "connect":
        device = await manager.connect(args.address)
        print(f"connected to {device.serial} ({device.status.value})")
        return 0

    if args.command == "disconnect":
        if args.serial:
            await manager.disconnect(args.serial)
        else:
            await manager.disconnect_all()
        return 0

    device = _device_for(manager, args.serial)
    if args.command == "push":
        return _echo(await device.push(args.local, args.remote))
    if args.command == "pull":
        return _echo(await device.pull(args.remote, args.local))
    if args.command == "shell":
        return _echo(await device.shell(" ".join(args.shell_command)))

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point"""
    args = parse_arguments(argv)
    config = ConfigManager(args.config)

    level = "DEBUG" if args.verbose else config.load_log_level()
    # console output only in verbose mode so command output stays clean
    setup_logger(
        "adb_registry",
        log_dir=Path(config.load_log_dir()),
        level=level,
        console=args.verbose
    )
    logger.debug(f"Starting adb-registry {__version__}: {args.command}")

    manager = AdbManager(build_wrapper(args, config))
    try:
        return asyncio.run(run(args, manager))
    except ADBError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except asyncio.TimeoutError:
        print("error: adb command timed out", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
