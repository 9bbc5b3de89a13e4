from __future__ import annotations

import pytest
import requests

from conftest import messages
from reconciler_core import http_client, platform_win
from reconciler_core.platform_win import CommandResult
from reconciler_core.state import AgentVersion
from reconciler_core.version import VersionOracle


@pytest.fixture
def oracle(settings, run_log) -> VersionOracle:
    return VersionOracle(settings, run_log)


def _install_exe(settings) -> None:
    settings.executable_path.parent.mkdir(parents=True, exist_ok=True)
    settings.executable_path.write_bytes(b"MZ")


def _self_report(monkeypatch, output: str) -> list[list[str]]:
    calls: list[list[str]] = []

    def fake_run(args, wait=True, timeout=None):
        calls.append([str(a) for a in args])
        return CommandResult(255, output)

    monkeypatch.setattr(platform_win, "run_command", fake_run)
    return calls


def _page(monkeypatch, body: bytes) -> None:
    monkeypatch.setattr(http_client, "fetch", lambda url, timeout=None: body)


def test_current_version_absent_without_executable(oracle, monkeypatch) -> None:
    calls = _self_report(monkeypatch, "System Monitor v15.0")

    assert oracle.current_version() is AgentVersion.ABSENT
    assert not oracle.installed().present
    assert calls == []


def test_current_version_from_self_report(oracle, settings, monkeypatch) -> None:
    _install_exe(settings)
    calls = _self_report(monkeypatch, "\r\nSystem Monitor v15.15 - System activity monitor\r\n")

    assert oracle.current_version() == AgentVersion(15, 15)
    assert calls == [[str(settings.executable_path), "-?"]]


def test_current_version_unparsable_is_absent(oracle, settings, run_log, monkeypatch) -> None:
    _install_exe(settings)
    _self_report(monkeypatch, "garbage")

    artifact = oracle.installed()

    assert artifact.present
    assert artifact.version is AgentVersion.ABSENT
    assert not artifact.valid
    assert any("Could not parse version" in m for m in messages(run_log))


def test_latest_version_from_page(oracle, monkeypatch) -> None:
    _page(monkeypatch, b"<h1>Sysmon v15.15</h1><p>Sysmon v14.0 notes</p>")

    assert oracle.latest_version() == AgentVersion(15, 15)


def test_latest_version_network_error_is_absent(oracle, monkeypatch) -> None:
    def boom(url, timeout=None):
        raise requests.Timeout("slow")

    monkeypatch.setattr(http_client, "fetch", boom)

    assert oracle.latest_version() is AgentVersion.ABSENT


def test_latest_version_without_match_is_absent(oracle, monkeypatch) -> None:
    _page(monkeypatch, b"<h1>Page moved</h1>")

    assert oracle.latest_version() is AgentVersion.ABSENT


@pytest.mark.parametrize(
    ("installed", "published", "expected"),
    [
        ("v14.1", b"Sysmon v15.0", True),
        ("v15.0", b"Sysmon v15.0", False),
        ("v15.10", b"Sysmon v15.9", False),
        (None, b"Sysmon v15.0", True),
        ("v15.0", b"offline", False),
        (None, b"offline", False),
    ],
)
def test_update_required(oracle, settings, run_log, monkeypatch, installed, published, expected) -> None:
    if installed is not None:
        _install_exe(settings)
        _self_report(monkeypatch, f"System Monitor {installed}")
    _page(monkeypatch, published)

    assert oracle.update_required() is expected
    logged = messages(run_log)
    assert any(m.startswith("Installed version:") for m in logged)
    assert any(m.startswith("Latest version:") for m in logged)
