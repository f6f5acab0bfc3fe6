"""
ADB Wrapper - Asynchronous interface for Android Debug Bridge commands

This module runs the external ``adb`` binary, one process per call, and
parses the text table printed by ``adb devices -l``.
"""

import asyncio
import logging
import os
import platform
import re
import sys
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Sequence

logger = logging.getLogger(__name__)

DEVICES_HEADER = "List of devices attached"


class ADBError(Exception):
    """Base exception for ADB-related errors"""
    pass


class ADBNotFoundError(ADBError):
    """Raised when the adb binary cannot be started"""
    pass


class DeviceNotFoundError(ADBError):
    """Raised when no device is found or device is offline"""
    pass


class DeviceUnauthorizedError(ADBError):
    """Raised when device is not authorized for debugging"""
    pass


class MultipleDevicesError(ADBError):
    """Raised when multiple devices are connected but no specific device is selected"""
    pass


class DeviceOutputError(ADBError):
    """Raised when adb prints something that cannot be parsed"""
    pass


class CommandResult(NamedTuple):
    """Decoded output of a single adb invocation"""
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def parse_devices_output(text: str) -> List[Dict[str, str]]:
    """
    Parse the table printed by ``adb devices -l``

    Example line::

        192.168.1.31:5555  device product:uzw4010tim model:TIM_BOX device:uzw4010tim transport_id:1

    Args:
        text: Raw stdout of ``adb devices -l``

    Returns:
        List of dictionaries with 'serial' and 'state' keys plus every
        ``key:value`` token found on the line

    Raises:
        DeviceOutputError: If the header line is missing
    """
    _, sep, body = text.partition(DEVICES_HEADER)
    if not sep:
        raise DeviceOutputError(f"Unexpected 'adb devices' output: {text.strip()[:200]!r}")

    devices = []
    seen = set()
    # first element is the rest of the header line
    for line in body.splitlines()[1:]:
        parts = line.split()
        if not parts:
            continue
        if len(parts) < 2:
            logger.debug(f"Skipping malformed device line: {line!r}")
            continue

        serial = parts[0]
        if serial in seen:
            continue

        state = parts[1]
        extra = parts[2:]
        # "no permissions (user in plugdev group; ...)" spans several tokens
        if state == "no" and extra and extra[0] == "permissions":
            state = "no permissions"
            extra = extra[1:]

        info = {}
        for part in extra:
            if ':' in part:
                key, value = part.split(':', 1)
                # drops hint fragments such as "[http://..."
                if key.isidentifier():
                    info[key] = value

        seen.add(serial)
        devices.append({
            'serial': serial,
            'state': state,
            **info
        })

    return devices


class ADBWrapper:
    """
    Asynchronous wrapper for ADB commands

    Handles command execution, output decoding, and error management.
    A non-zero exit status is returned to the caller, never raised.
    """

    SERVER_START_TIMEOUT = 10

    def __init__(
        self,
        adb_path: Optional[Path] = None,
        timeout: int = 30,
        transfer_timeout: int = 300,
        auto_start_server: bool = True
    ):
        """
        Initialize ADB wrapper

        Args:
            adb_path: Path to ADB binary. If None, uses $ADB, a bundled binary or system ADB.
            timeout: Default command timeout in seconds
            transfer_timeout: Timeout for push/pull in seconds
            auto_start_server: Run 'adb start-server' before the first command
        """
        self.adb_path = Path(adb_path) if adb_path else self._find_adb()
        self.timeout = timeout
        self.transfer_timeout = transfer_timeout
        self._server_started = not auto_start_server
        logger.info(f"ADB wrapper initialized with binary: {self.adb_path}")

    def _find_adb(self) -> Path:
        """
        Find ADB binary from the environment, bundled binaries or system PATH

        Returns:
            Path to ADB executable
        """
        env_path = os.environ.get("ADB")
        if env_path:
            return Path(env_path)

        system = platform.system().lower()
        base_path = Path(__file__).resolve().parent.parent / "binaries" / "adb"
        exe_name = "adb.exe" if system == "windows" else "adb"
        platform_dir = {"windows": "windows", "darwin": "macos"}.get(system, "linux")

        for candidate in (base_path / platform_dir / exe_name, base_path / exe_name):
            if candidate.exists():
                return candidate

        return Path("adb")

    def build_command(self, args: Sequence[str], device: Optional[str] = None) -> List[str]:
        """Build the full argv for an adb invocation"""
        cmd = [str(self.adb_path)]
        if device:
            cmd.extend(["-s", device])
        cmd.extend(str(arg) for arg in args)
        return cmd

    async def execute(
        self,
        args: Sequence[str],
        timeout: Optional[int] = None,
        device: Optional[str] = None,
        check_errors: bool = True,
        skip_server_check: bool = False
    ) -> CommandResult:
        """
        Execute an ADB command asynchronously

        Args:
            args: Command arguments (without 'adb' prefix)
            timeout: Command timeout in seconds (default: wrapper timeout)
            device: Device serial number (optional)
            check_errors: Raise typed errors for well-known stderr messages
            skip_server_check: Skip ADB server startup check (internal use)

        Returns:
            CommandResult of (stdout, stderr, returncode)

        Raises:
            ADBNotFoundError: If the adb binary cannot be started
            DeviceNotFoundError, DeviceUnauthorizedError, MultipleDevicesError:
                If stderr reports one of these conditions
            asyncio.TimeoutError: If command times out
        """
        if not self._server_started and not skip_server_check:
            await self._start_server()

        timeout = timeout if timeout is not None else self.timeout
        cmd = self.build_command(args, device)

        logger.debug(f"Executing ADB command: {' '.join(cmd)}")

        kwargs = {}
        if sys.platform == 'win32':
            import subprocess
            kwargs['creationflags'] = subprocess.CREATE_NO_WINDOW

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **kwargs
            )
        except OSError as e:
            logger.error(f"Could not start adb ({self.adb_path}): {e}")
            raise ADBNotFoundError(f"Could not start adb binary '{self.adb_path}': {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"ADB command timed out after {timeout}s: {' '.join(cmd)}")
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        result = CommandResult(
            stdout.decode('utf-8', errors='replace'),
            stderr.decode('utf-8', errors='replace'),
            process.returncode
        )

        logger.debug(f"Command output ({result.returncode}): {result.stdout[:200]}")

        if check_errors:
            self._check_errors(result.stderr)

        return result

    def _check_errors(self, stderr: str):
        """
        Check stderr for common ADB errors and raise appropriate exceptions

        Args:
            stderr: Standard error output from ADB command

        Raises:
            DeviceNotFoundError: If no device is found
            DeviceUnauthorizedError: If device is unauthorized
            MultipleDevicesError: If multiple devices are connected
        """
        stderr_lower = stderr.lower()

        # "error: device 'emulator-5556' not found"
        if "no devices" in stderr_lower or re.search(r"device (\S+ )?not found", stderr_lower):
            raise DeviceNotFoundError(stderr.strip() or "No Android devices found")

        if "unauthorized" in stderr_lower:
            raise DeviceUnauthorizedError(
                "Device is not authorized. Please check the confirmation dialog on your device."
            )

        if "more than one device" in stderr_lower:
            raise MultipleDevicesError(
                "Multiple devices connected. Please specify a device serial number."
            )

    async def _start_server(self):
        """Start ADB server if not already running"""
        # attempted once per wrapper, even if it fails
        self._server_started = True
        try:
            await self.execute(
                ["start-server"],
                timeout=self.SERVER_START_TIMEOUT,
                check_errors=False,
                skip_server_check=True
            )
            logger.info("ADB server started successfully")
        except (ADBError, asyncio.TimeoutError) as e:
            logger.warning(f"Failed to start ADB server: {e}")

    async def devices(self) -> List[Dict[str, str]]:
        """
        Get list of connected devices

        Returns:
            List of device dictionaries with 'serial' and 'state' keys
        """
        stdout, _, _ = await self.execute(["devices", "-l"], check_errors=False)
        devices = parse_devices_output(stdout)
        logger.info(f"Found {len(devices)} device(s)")
        return devices
