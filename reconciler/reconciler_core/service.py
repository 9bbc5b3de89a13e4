"""
ServiceController — run state of the agent service, start/stop with a bounded wait.

The service is found by display-name pattern, which is fragile: a rename
yields NOT_REGISTERED, and a broad pattern can match several services.
Both cases are logged distinctly so they show up in the run trail.

A service manager that cannot be queried is UNKNOWN, never NOT_REGISTERED.
Only stop() reads a failed lookup as "already gone".
"""

import time
from fnmatch import fnmatchcase

from .constants import SERVICE_POLL_SEC
from .results import ErrorKind, StepResult
from .state import ServiceRunState
from . import platform_win


def _is_running(service):
    return service is not None and service.running


def _is_stopped(service):
    return service is None or service.state == "STOPPED"


class ServiceController:

    def __init__(self, settings, run_log, clock=time.monotonic, sleep=time.sleep,
                 poll_sec=SERVICE_POLL_SEC):
        self._pattern = settings.service_pattern
        self._timeout = settings.service_timeout_sec
        self._run_log = run_log
        self._clock = clock
        self._sleep = sleep
        self._poll_sec = poll_sec

    # ── Lookup ───────────────────────────────────────────────

    def lookup(self):
        """Every service whose display name matches the pattern (case-insensitive)."""
        pattern = self._pattern.lower()
        return tuple(
            s for s in platform_win.query_services()
            if fnmatchcase(s.display_name.lower(), pattern)
        )

    def _resolve(self):
        """Return the single ServiceInfo to act on, or None when absent.

        Raises platform_win.ServiceManagerError when the list cannot be read.
        """
        matches = self.lookup()
        if not matches:
            return None
        if len(matches) > 1:
            chosen = min(matches, key=lambda s: s.name.lower())
            self._run_log.warning(
                "Ambiguous service match for %r: %s; using %s",
                self._pattern, ", ".join(s.name for s in matches), chosen.name,
            )
            return chosen
        return matches[0]

    def _resolve_or_absent(self):
        try:
            return self._resolve()
        except platform_win.ServiceManagerError as e:
            self._run_log.warning("Service lookup failed: %s", e)
            return None

    def status(self):
        try:
            service = self._resolve()
        except platform_win.ServiceManagerError as e:
            self._run_log.error("Service lookup failed: %s", e)
            return ServiceRunState.UNKNOWN
        if service is None:
            return ServiceRunState.NOT_REGISTERED
        return ServiceRunState.RUNNING if service.running else ServiceRunState.STOPPED

    # ── Transitions ──────────────────────────────────────────

    def _wait_until(self, done):
        """Poll the live service until done(service) or the timeout passes."""
        deadline = self._clock() + self._timeout
        while True:
            if done(self._resolve_or_absent()):
                return True
            if self._clock() >= deadline:
                return False
            self._sleep(self._poll_sec)

    def start(self):
        try:
            service = self._resolve()
        except platform_win.ServiceManagerError as e:
            self._run_log.error("Cannot start: service lookup failed: %s", e)
            return StepResult.failure(ErrorKind.SERVICE_QUERY_FAILED, str(e))
        if service is None:
            self._run_log.error("Cannot start: no service matches %r", self._pattern)
            return StepResult.failure(ErrorKind.SERVICE_START_TIMEOUT, "service not registered")
        if service.running:
            return StepResult.success()

        self._run_log.info("Starting service %s", service.name)
        result = platform_win.start_service(service.name)
        if not result.ok:
            self._run_log.warning("sc start %s: %s %s", service.name,
                                  result.status_text, result.output.strip()[:200])
        if self._wait_until(_is_running):
            self._run_log.info("Service %s is running", service.name)
            return StepResult.success()
        self._run_log.error("Service %s did not start within %ds", service.name, self._timeout)
        return StepResult.failure(ErrorKind.SERVICE_START_TIMEOUT,
                                  f"{service.name} did not start within {self._timeout}s")

    def stop(self):
        service = self._resolve_or_absent()
        if _is_stopped(service):
            # Absent counts as stopped
            return StepResult.success()

        self._run_log.info("Stopping service %s", service.name)
        result = platform_win.stop_service(service.name)
        if not result.ok:
            self._run_log.warning("sc stop %s: %s %s", service.name,
                                  result.status_text, result.output.strip()[:200])
        if self._wait_until(_is_stopped):
            self._run_log.info("Service %s is stopped", service.name)
            return StepResult.success()
        self._run_log.error("Service %s did not stop within %ds", service.name, self._timeout)
        return StepResult.failure(ErrorKind.SERVICE_STOP_TIMEOUT,
                                  f"{service.name} did not stop within {self._timeout}s")
