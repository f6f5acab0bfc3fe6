"""
Shared pytest fixtures.

- ``ScriptedADB``: an ADBWrapper whose ``execute`` answers from a table
  instead of spawning adb, recording every call.
- ``fake_subprocess``: patches ``asyncio.create_subprocess_exec`` for tests
  of the wrapper itself.
"""

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from adb_registry.utils.adb_wrapper import ADBWrapper, CommandResult


DEVICES_OUTPUT = (
    "List of devices attached\n"
    "192.168.1.31:5555      device product:uzw4010tim model:TIM_BOX device:uzw4010tim transport_id:1\n"
    "emulator-5554          device product:sdk_gphone64_x86_64 model:sdk_gphone64_x86_64 device:emu64xa transport_id:2\n"
    "R58M123ABC             unauthorized usb:1-1 transport_id:3\n"
    "\n"
)


class ScriptedADB(ADBWrapper):
    """ADB wrapper answering from a table keyed by (device, args)"""

    def __init__(self):
        super().__init__(adb_path=Path("adb"), auto_start_server=False)
        self.responses: Dict[Tuple[Optional[str], Tuple[str, ...]], CommandResult] = {}
        self.calls: List[Tuple[Optional[str], Tuple[str, ...], Optional[int]]] = []

    def respond(self, args, stdout="", stderr="", returncode=0, device=None):
        self.responses[(device, tuple(args))] = CommandResult(stdout, stderr, returncode)

    async def execute(self, args, timeout=None, device=None, check_errors=True, skip_server_check=False):
        key = (device, tuple(str(a) for a in args))
        self.calls.append((device, key[1], timeout))
        result = self.responses.get(key, CommandResult("", "", 0))
        if check_errors:
            self._check_errors(result.stderr)
        return result


@pytest.fixture
def scripted_adb() -> ScriptedADB:
    adb = ScriptedADB()
    adb.respond(["devices", "-l"], stdout=DEVICES_OUTPUT)
    return adb


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process"""

    def __init__(self, stdout=b"", stderr=b"", returncode=0, delay=0.0):
        self._stdout = stdout
        self._stderr = stderr
        self._final_returncode = returncode
        self._delay = delay
        self.returncode = None
        self.killed = False

    async def communicate(self):
        if self._delay:
            await asyncio.sleep(self._delay)
        self.returncode = self._final_returncode
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        return self.returncode


class FakeSubprocess:
    """Records spawned commands and hands out FakeProcess objects"""

    def __init__(self):
        self.commands: List[List[str]] = []
        self.processes: List[FakeProcess] = []
        self.next_process: Optional[FakeProcess] = None
        self.error: Optional[Exception] = None
        self.failing: Dict[Tuple[str, ...], Exception] = {}
        self.slow: Dict[Tuple[str, ...], float] = {}

    async def __call__(self, *cmd, **kwargs):
        self.commands.append(list(cmd))
        failure = self.failing.get(tuple(cmd[1:]))
        if failure is not None:
            raise failure
        if self.error is not None:
            raise self.error
        if self.slow.get(tuple(cmd[1:])):
            process = FakeProcess(delay=self.slow[tuple(cmd[1:])])
            self.processes.append(process)
            return process
        process = self.next_process or FakeProcess()
        self.next_process = None
        self.processes.append(process)
        return process


@pytest.fixture
def fake_subprocess(monkeypatch) -> FakeSubprocess:
    fake = FakeSubprocess()
    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake)
    return fake
