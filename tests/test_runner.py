from __future__ import annotations

import pytest

from reconciler_core import platform_win, runner
from reconciler_core.results import ErrorKind
from reconciler_core.state import ReconciliationOutcome


@pytest.fixture
def sink(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    calls: list[dict] = []

    def fake_emit(lines, source, success=True):
        calls.append({"lines": list(lines), "source": source, "success": success})
        return True

    monkeypatch.setattr(runner, "emit", fake_emit)
    return calls


def test_run_once_hands_log_to_sink(settings, sink) -> None:
    class Engine:
        def __init__(self, run_log):
            self.run_log = run_log

        def reconcile(self):
            self.run_log.info("did things")
            return ReconciliationOutcome(True, log=self.run_log.entries())

    outcome = runner.run_once(settings, engine_factory=lambda s, run_log: Engine(run_log))

    assert outcome.success
    assert len(sink) == 1
    assert sink[0]["source"] == "AgentReconciler"
    assert sink[0]["success"] is True
    assert sink[0]["lines"][-1].endswith("did things")


def test_run_once_survives_engine_crash(settings, sink) -> None:
    def exploding(s, run_log):
        raise RuntimeError("boom")

    outcome = runner.run_once(settings, engine_factory=exploding)

    assert not outcome.success
    assert outcome.kind is ErrorKind.INSTALL_FAILED
    assert "boom" in outcome.reason
    assert sink[0]["success"] is False
    assert any("Reconciliation crashed" in line for line in sink[0]["lines"])


def test_build_engine_wires_components(settings, run_log) -> None:
    engine = runner.build_engine(settings, run_log)
    installer = engine._installer

    assert installer._service is engine._service
    assert installer._configsync is engine._configsync
    assert installer._probe is engine._configsync._probe
    assert installer._probe.host == settings.probe_host
    for part in (engine, engine._oracle, engine._service, installer, engine._configsync, installer._probe):
        assert part._run_log is run_log


@pytest.mark.parametrize(("platform", "admin"), [("linux", True), ("win32", False), ("win32", True)])
def test_main_always_exits_done(monkeypatch, settings, platform, admin) -> None:
    ran = []
    monkeypatch.setattr(runner, "setup_logging", lambda: None)
    monkeypatch.setattr(runner, "load_settings", lambda path=None: settings)
    monkeypatch.setattr(runner.sys, "platform", platform)
    monkeypatch.setattr(platform_win, "is_admin", lambda: admin)
    monkeypatch.setattr(
        runner, "run_once",
        lambda s: ran.append(s) or ReconciliationOutcome(False, "install failed"),
    )

    with pytest.raises(SystemExit) as exc:
        runner.main([])

    assert exc.value.code == runner.EXIT_DONE
    assert bool(ran) is (platform == "win32" and admin)


def test_main_passes_settings_path(monkeypatch, settings, tmp_path) -> None:
    seen = []
    monkeypatch.setattr(runner, "setup_logging", lambda: None)
    monkeypatch.setattr(runner, "load_settings", lambda path=None: seen.append(path) or settings)
    monkeypatch.setattr(runner.sys, "platform", "linux")

    with pytest.raises(SystemExit):
        runner.main(["--settings", str(tmp_path / "s.json")])

    assert seen == [str(tmp_path / "s.json")]
