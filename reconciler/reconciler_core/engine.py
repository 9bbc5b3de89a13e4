"""
ReconciliationEngine — one pass from "whatever state the machine is in" to
"agent installed, current, configured, and running".

Top-level branches are only "service running" and "service not running".
Each re-derives artifact presence and update status from the live system,
because an earlier run may have stopped anywhere (executable copied but
never registered, registered but never started, ...).

A failed start is treated as a broken install: exactly one
remove + install + start cycle is attempted before giving up.
An unreadable service manager ends the pass before anything is touched.
"""

from .results import ErrorKind, StepResult
from .state import ReconciliationOutcome, ServiceRunState


class ReconciliationEngine:

    def __init__(self, oracle, service, installer, configsync, run_log):
        self._oracle = oracle
        self._service = service
        self._installer = installer
        self._configsync = configsync
        self._run_log = run_log

    def reconcile(self):
        """Run the decision tree once. Never raises for step failures."""
        state = self._service.status()
        self._run_log.info("Service state: %s", state.value)

        if state is ServiceRunState.UNKNOWN:
            # No remove or install without a known service state
            result = StepResult.failure(ErrorKind.SERVICE_QUERY_FAILED, "service state unknown")
        elif state is ServiceRunState.RUNNING:
            result = self._reconcile_running()
        else:
            result = self._reconcile_not_running()

        if result:
            self._run_log.info("Reconciliation finished: Success")
        else:
            self._run_log.error("Reconciliation finished: Failure(%s)", result.reason)
        return ReconciliationOutcome(
            success=result.ok,
            reason=result.reason,
            kind=result.kind,
            log=self._run_log.entries(),
        )

    # ── Branches ─────────────────────────────────────────────

    def _reconcile_not_running(self):
        installed_now = False
        if not self._oracle.installed().present:
            self._run_log.info("Agent not installed")
            result = self._installer.install()
            if not result:
                return _failed(result, "install failed")
            installed_now = True

        if not self._oracle.installed().present:
            self._run_log.error("Agent executable missing after install")
            return StepResult.failure(ErrorKind.EXECUTABLE_MISSING, "executable missing after install")

        if self._oracle.update_required():
            self._run_log.info("Update required")
            result = self._reinstall()
            if not result:
                return result
        elif not installed_now:
            self._refresh_config()

        result = self._service.start()
        if result:
            return result
        if result.kind is ErrorKind.SERVICE_QUERY_FAILED:
            return _failed(result, "start failed")

        self._run_log.warning("Service failed to start; reinstalling once")
        result = self._reinstall()
        if not result:
            return result
        result = self._service.start()
        if not result:
            return _failed(result, "service would not start after reinstall")
        return result

    def _reconcile_running(self):
        if not self._oracle.update_required():
            self._run_log.info("Agent is current")
            self._refresh_config()
            return StepResult.success()

        self._run_log.info("Update required")
        for step, label in (
            (self._service.stop, "stop failed"),
            (self._installer.remove, "remove failed"),
            (self._installer.install, "install failed"),
            (self._service.start, "start failed"),
        ):
            result = step()
            if not result:
                return _failed(result, label)
        return StepResult.success()

    # ── Steps ────────────────────────────────────────────────

    def _reinstall(self):
        self._run_log.info("Reinstall: remove + install")
        result = self._installer.remove()
        if not result:
            return _failed(result, "remove failed")
        result = self._installer.install()
        if not result:
            return _failed(result, "install failed")
        return result

    def _refresh_config(self):
        """Best effort: a policy refresh problem never fails the run."""
        result, desired = self._configsync.fetch_desired()
        if not result:
            self._run_log.warning("Configuration refresh skipped: %s", result)
            return
        result, changed = self._configsync.reconcile(desired)
        if not result:
            self._run_log.warning("Configuration refresh failed: %s", result)
            return
        if changed and self._service.status() in (ServiceRunState.RUNNING, ServiceRunState.STOPPED):
            self._installer.reconfigure()


def _failed(result, reason):
    """Keep the step's error kind, replace the reason with the run-level one."""
    return StepResult.failure(result.kind or ErrorKind.INSTALL_FAILED, reason)
