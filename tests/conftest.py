from __future__ import annotations

import io
import zipfile
from pathlib import Path
from types import SimpleNamespace

import pytest

from reconciler_core import http_client, platform_win
from reconciler_core.config import Settings
from reconciler_core.platform_win import CommandResult, ServiceInfo
from reconciler_core.runlog import RunLogger

VERSION_URL = "https://example.test/sysmon"
CONFIG_URL = "https://example.test/sysmonconfig.xml"
PACKAGE_URL = "https://example.test/Sysmon.zip"

GOOD_CONFIG = b'<Sysmon schemaversion="4.90"><EventFiltering/></Sysmon>'


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        install_dir=tmp_path / "Windows",
        config_path=tmp_path / "data" / "sysmonconfig.xml",
        scratch_dir=tmp_path / "scratch",
        version_url=VERSION_URL,
        config_url=CONFIG_URL,
        package_url=PACKAGE_URL,
    )


@pytest.fixture
def run_log() -> RunLogger:
    return RunLogger(mirror=None)


@pytest.fixture
def online() -> SimpleNamespace:
    return SimpleNamespace(is_online=lambda: True)


@pytest.fixture
def offline() -> SimpleNamespace:
    return SimpleNamespace(is_online=lambda: False)


def messages(run_log: RunLogger) -> list[str]:
    return [e.message for e in run_log.entries()]


def make_package(version: str, exe_name: str = "Sysmon64.exe") -> bytes:
    """Zip laid out like the real download: exes + EULA at the root."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        archive.writestr(exe_name, f"v{version}")
        archive.writestr("Sysmon.exe", f"v{version}")
        archive.writestr("Eula.txt", "terms")
    return buf.getvalue()


class FakeWindows:
    """
    In-memory stand-in for sc.exe, the agent's command line and the web.

    The installed executable reports whatever version string was written
    into it, so copying a newer package really changes CurrentVersion.
    """

    def __init__(self, settings: Settings, latest: str = "15.0", config: bytes = GOOD_CONFIG):
        self.settings = settings
        self.latest = latest
        self.config = config
        self.services: dict[str, ServiceInfo] = {}
        self.commands: list[list[str]] = []
        self.downloads = 0
        self.start_refusals = 0
        self.online = True

    # ── machine state helpers ─────────────────────────────────

    def install_existing(self, version: str, state: str = "RUNNING") -> None:
        exe = self.settings.executable_path
        exe.parent.mkdir(parents=True, exist_ok=True)
        exe.write_text(f"v{version}")
        self.services["Sysmon64"] = ServiceInfo("Sysmon64", "Sysmon64", state)

    def _set_state(self, name: str, state: str) -> None:
        self.services[name] = ServiceInfo(name, self.services[name].display_name, state)

    # ── platform_win replacements ─────────────────────────────

    def run_command(self, args, wait=True, timeout=None) -> CommandResult:
        args = [str(a) for a in args]
        self.commands.append(args)
        exe = Path(args[0])
        if not exe.exists():
            return CommandResult(-1, "not found")
        if "-?" in args:
            return CommandResult(1, f"System Monitor {exe.read_text()} - System activity monitor")
        if "-i" in args:
            self.services["Sysmon64"] = ServiceInfo("Sysmon64", "Sysmon64", "STOPPED")
            self.start_service("Sysmon64")
            return CommandResult(0, "Sysmon64 installed.")
        if "-u" in args:
            self.services.pop("Sysmon64", None)
            return CommandResult(0, "Sysmon64 removed.")
        return CommandResult(0, "Configuration updated.")

    def query_services(self) -> list[ServiceInfo]:
        return list(self.services.values())

    def start_service(self, name: str) -> CommandResult:
        if self.start_refusals:
            self.start_refusals -= 1
            return CommandResult(1056, "failed")
        self._set_state(name, "RUNNING")
        return CommandResult(0)

    def stop_service(self, name: str) -> CommandResult:
        self._set_state(name, "STOPPED")
        return CommandResult(0)

    # ── http_client replacements ──────────────────────────────

    def fetch(self, url, timeout=None) -> bytes:
        if url == VERSION_URL:
            return f"<h1>Sysmon v{self.latest}</h1>".encode()
        if url == CONFIG_URL:
            return self.config
        raise AssertionError(url)

    def download(self, url, dest, timeout=None) -> None:
        assert url == PACKAGE_URL
        self.downloads += 1
        Path(dest).write_bytes(make_package(self.latest))

    def patch(self, monkeypatch: pytest.MonkeyPatch) -> "FakeWindows":
        monkeypatch.setattr(platform_win, "run_command", self.run_command)
        monkeypatch.setattr(platform_win, "query_services", self.query_services)
        monkeypatch.setattr(platform_win, "start_service", self.start_service)
        monkeypatch.setattr(platform_win, "stop_service", self.stop_service)
        monkeypatch.setattr(http_client, "fetch", self.fetch)
        monkeypatch.setattr(http_client, "download", self.download)
        return self


@pytest.fixture
def windows(settings: Settings, monkeypatch: pytest.MonkeyPatch) -> FakeWindows:
    return FakeWindows(settings).patch(monkeypatch)


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps = 0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps += 1
        self.now += seconds
