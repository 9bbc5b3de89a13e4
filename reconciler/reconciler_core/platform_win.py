"""
Windows-specific functionality:
  - Process invocation with combined output capture
  - Service manager primitives (sc.exe query / start / stop)
  - Administrator check (IsUserAnAdmin)
"""

import re
import sys
import ctypes
import subprocess
from dataclasses import dataclass
from typing import Optional

from .config import log
from .constants import COMMAND_TIMEOUT_SEC

_SC = "sc.exe"
_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)
_QUERY_BUFSIZE = 65536
_MAX_QUERY_PAGES = 32
_MORE_DATA = re.compile(r"more data.*?resume at index\s+(\d+)", re.IGNORECASE | re.DOTALL)

# sc.exe prints "STATE : <code>  <NAME>"; the code is locale independent
_STATE_NAMES = {
    1: "STOPPED",
    2: "START_PENDING",
    3: "STOP_PENDING",
    4: "RUNNING",
    5: "CONTINUE_PENDING",
    6: "PAUSE_PENDING",
    7: "PAUSED",
}


class ServiceManagerError(Exception):
    """The service manager could not be queried."""


@dataclass(frozen=True)
class CommandResult:
    returncode: Optional[int]
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self):
        return self.returncode == 0

    @property
    def status_text(self):
        return "timed out" if self.timed_out else f"rc={self.returncode}"


@dataclass(frozen=True)
class ServiceInfo:
    name: str
    display_name: str
    state: str

    @property
    def running(self):
        return self.state == "RUNNING"


# ─── Process invocation ──────────────────────────────────────────

def run_command(args, wait=True, timeout=COMMAND_TIMEOUT_SEC):
    """
    Run an executable with arguments. stdout and stderr are merged.
    A missing executable or a timeout is reported in the result, not raised.
    """
    args = [str(a) for a in args]
    if not wait:
        try:
            subprocess.Popen(
                args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=_NO_WINDOW,
            )
            return CommandResult(None)
        except OSError as e:
            log.warning("Could not launch %s: %s", args[0], e)
            return CommandResult(-1, str(e))

    try:
        result = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
            creationflags=_NO_WINDOW,
        )
        return CommandResult(result.returncode, result.stdout or "")
    except subprocess.TimeoutExpired as e:
        output = e.output or ""
        if isinstance(output, bytes):
            output = output.decode(errors="replace")
        log.warning("%s timed out after %ss", args[0], timeout)
        return CommandResult(None, output, timed_out=True)
    except OSError as e:
        log.warning("Could not run %s: %s", args[0], e)
        return CommandResult(-1, str(e))


# ─── Service manager ─────────────────────────────────────────────

def parse_sc_query(text):
    """Parse `sc query` output into ServiceInfo records (order preserved)."""
    services = []
    name = display = state = None
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("SERVICE_NAME:"):
            if name is not None:
                services.append(ServiceInfo(name, display or name, state or "UNKNOWN"))
            name = line.split(":", 1)[1].strip()
            display = state = None
        elif line.startswith("DISPLAY_NAME:"):
            display = line.split(":", 1)[1].strip()
        elif line.startswith("STATE") and ":" in line:
            m = re.match(r"(\d+)", line.split(":", 1)[1].strip())
            if m:
                state = _STATE_NAMES.get(int(m.group(1)), "UNKNOWN")
    if name is not None:
        services.append(ServiceInfo(name, display or name, state or "UNKNOWN"))
    return services


def query_services():
    """
    List every Win32 service with its current state.

    sc.exe fills one buffer per call and reports "more data ... resume at
    index N" when the list did not fit; the next page starts at `ri= N`.
    """
    services = []
    resume = 0
    for _ in range(_MAX_QUERY_PAGES):
        args = [_SC, "query", "type=", "service", "state=", "all", "bufsize=", str(_QUERY_BUFSIZE)]
        if resume:
            args += ["ri=", str(resume)]
        result = run_command(args, timeout=30)
        more = _MORE_DATA.search(result.output)
        if not result.ok and more is None:
            raise ServiceManagerError(
                f"sc query failed ({result.status_text}): {result.output.strip()[:200]}"
            )
        services.extend(parse_sc_query(result.output))
        if more is None:
            return services
        next_index = int(more.group(1))
        if next_index <= resume:
            raise ServiceManagerError(f"sc query did not advance past index {resume}")
        resume = next_index
    raise ServiceManagerError(f"sc query still reported more data after {_MAX_QUERY_PAGES} pages")


def start_service(name):
    """Ask the service manager to start `name`. Does not wait."""
    return run_command([_SC, "start", name], timeout=30)


def stop_service(name):
    """Ask the service manager to stop `name`. Does not wait."""
    return run_command([_SC, "stop", name], timeout=30)


# ─── Privileges ──────────────────────────────────────────────────

def is_admin():
    """True when running elevated. Always False off Windows."""
    if sys.platform != "win32":
        return False
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except Exception:
        return False
