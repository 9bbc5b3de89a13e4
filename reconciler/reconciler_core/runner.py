"""
Entry point: bootstrap checks, component wiring, sink hand-off.

The exit code is always 0. The scheduler that launches us never branches on
it; the outcome is visible only through the log file and the event log.
"""

import sys
import argparse

from .constants import RECONCILER_VERSION
from .config import log, setup_logging, load_settings
from .runlog import RunLogger, emit
from .network import NetworkProbe
from .version import VersionOracle
from .service import ServiceController
from .configsync import ConfigSynchronizer
from .installer import ArtifactInstaller
from .engine import ReconciliationEngine
from .results import ErrorKind
from .state import ReconciliationOutcome
from . import platform_win

EXIT_DONE = 0


def build_engine(settings, run_log):
    """Wire the collaborators for one run."""
    probe = NetworkProbe(settings.probe_host, settings.probe_port, run_log=run_log)
    service = ServiceController(settings, run_log)
    configsync = ConfigSynchronizer(settings, probe, run_log)
    installer = ArtifactInstaller(settings, probe, service, configsync, run_log)
    oracle = VersionOracle(settings, run_log)
    return ReconciliationEngine(oracle, service, installer, configsync, run_log)


def run_once(settings, engine_factory=build_engine):
    """One reconciliation pass. Always returns an outcome, never raises."""
    run_log = RunLogger()
    run_log.info("Agent Reconciler v%s starting", RECONCILER_VERSION)
    try:
        outcome = engine_factory(settings, run_log).reconcile()
    except Exception as e:
        log.error("Reconciliation crashed: %s", e, exc_info=True)
        run_log.error("Reconciliation crashed: %s", e)
        outcome = ReconciliationOutcome(
            success=False, reason=f"crashed: {e}",
            kind=ErrorKind.INSTALL_FAILED, log=run_log.entries(),
        )
    emit(run_log.lines(), settings.event_source, success=outcome.success)
    return outcome


def _parse_args(argv):
    parser = argparse.ArgumentParser(
        prog="reconciler",
        description="Install, update, configure and start the monitoring agent.",
    )
    parser.add_argument("--settings", help="Path to settings.json")
    return parser.parse_args(argv)


def main(argv=None):
    """Primary entry point. Exits with EXIT_DONE whatever happens."""
    args = _parse_args(argv)
    setup_logging()
    settings = load_settings(args.settings)

    if sys.platform != "win32":
        log.warning("Unsupported platform %s; nothing to do", sys.platform)
    elif not platform_win.is_admin():
        log.warning("Administrator rights required; nothing to do")
    else:
        outcome = run_once(settings)
        log.info("Outcome: %s", outcome.summary)

    sys.exit(EXIT_DONE)
