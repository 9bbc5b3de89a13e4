"""
ArtifactInstaller — get the agent executable onto disk and (un)register it.

Registration is delegated to the agent's own command line
(`-accepteula -i <config>` / `-u force`); this module only moves files
around and checks that each step actually landed. Nothing here retries:
the engine decides whether a failed install is worth another attempt.
"""

import shutil
import zipfile
from pathlib import Path

import requests

from .results import ErrorKind, StepResult
from .state import ServiceRunState
from . import http_client
from . import platform_win


class ArtifactInstaller:

    def __init__(self, settings, probe, service, configsync, run_log):
        self._settings = settings
        self._probe = probe
        self._service = service
        self._configsync = configsync
        self._run_log = run_log

    @property
    def executable_path(self):
        return self._settings.executable_path

    @property
    def scratch_dir(self):
        return Path(self._settings.scratch_dir)

    # ── Install ──────────────────────────────────────────────

    def install(self):
        if not self._probe.is_online():
            self._run_log.error("Install aborted: network unavailable")
            return StepResult.failure(ErrorKind.NETWORK_UNAVAILABLE)

        self._run_log.info("Installing agent to %s", self.executable_path)

        result, package = self._fetch_package()
        if not result:
            return result
        try:
            result = self._install_from(package)
        finally:
            # Scratch never outlives the install attempt
            self._cleanup_scratch()
        if not result:
            return result

        state = self._service.status()
        if state is ServiceRunState.RUNNING:
            self._run_log.info("Install complete, service running")
            return StepResult.success()
        if state is ServiceRunState.UNKNOWN:
            self._run_log.error("Install finished but the service state is unknown")
            return StepResult.failure(ErrorKind.SERVICE_QUERY_FAILED, "service state unknown after install")
        self._run_log.error("Install finished but the service is not running")
        return StepResult.failure(ErrorKind.SERVICE_NOT_RUNNING)

    def _install_from(self, package):
        result, extracted = self._extract(package)
        if not result:
            return result

        result = self._place_executable(extracted)
        if not result:
            return result

        result, desired = self._configsync.fetch_desired()
        if not result:
            self._run_log.error("Install aborted: no configuration available")
            return result
        result, _ = self._configsync.reconcile(desired)
        if not result:
            return result

        args = self._settings.agent_args(self._settings.install_args)
        reg = platform_win.run_command([self.executable_path, *args])
        self._run_log.info("Self-registration exited %s: %s", reg.status_text, _tail(reg.output))
        return StepResult.success()

    def _fetch_package(self):
        """Download the package; a copy left by an interrupted run is reused."""
        package = self.scratch_dir / self._settings.package_name
        if package.exists():
            self._run_log.info("Using cached package %s", package)
            return StepResult.success(), package
        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            http_client.download(self._settings.package_url, package)
        except (requests.RequestException, OSError) as e:
            self._run_log.error("Download of %s failed: %s", self._settings.package_url, e)
            self._cleanup_scratch()
            return StepResult.failure(ErrorKind.DOWNLOAD_FAILED, str(e)), None
        self._run_log.info("Downloaded %s (%d bytes)", package.name, package.stat().st_size)
        return StepResult.success(), package

    def _extract(self, package):
        target = self.scratch_dir / "extract"
        try:
            if target.exists():
                shutil.rmtree(target)
            with zipfile.ZipFile(package) as archive:
                _safe_extract_zip(archive, target)
        except (zipfile.BadZipFile, ValueError, OSError) as e:
            self._run_log.error("Could not extract %s: %s", package.name, e)
            return StepResult.failure(ErrorKind.EXTRACT_FAILED, str(e)), None

        exe = _find_file(target, self._settings.executable_name)
        if exe is None:
            self._run_log.error("%s not found in %s", self._settings.executable_name, package.name)
            return StepResult.failure(ErrorKind.EXTRACT_FAILED, "executable not in package"), None
        return StepResult.success(), exe

    def _place_executable(self, source):
        dest = self.executable_path
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
        except OSError as e:
            self._run_log.error("Copy to %s failed: %s", dest, e)
            return StepResult.failure(ErrorKind.COPY_FAILED, str(e))
        if not dest.exists():
            self._run_log.error("Copy to %s did not land", dest)
            return StepResult.failure(ErrorKind.COPY_FAILED, "executable missing after copy")
        self._run_log.info("Copied %s to %s", source.name, dest)
        return StepResult.success()

    def _cleanup_scratch(self):
        shutil.rmtree(self.scratch_dir, ignore_errors=True)

    # ── Remove ───────────────────────────────────────────────

    def remove(self):
        exe = self.executable_path
        self._run_log.info("Removing agent %s", exe)

        state = self._service.status()
        if state is ServiceRunState.UNKNOWN:
            self._run_log.error("Remove aborted: service state unknown")
            return StepResult.failure(ErrorKind.SERVICE_QUERY_FAILED, "service state unknown")
        if state is ServiceRunState.RUNNING:
            result = self._service.stop()
            if not result:
                self._run_log.error("Remove aborted: service would not stop")
                return result

        if not exe.exists():
            self._run_log.error("Remove aborted: %s not found", exe)
            return StepResult.failure(ErrorKind.EXECUTABLE_MISSING, str(exe))

        args = self._settings.agent_args(self._settings.uninstall_args)
        unreg = platform_win.run_command([exe, *args])
        self._run_log.info("Self-unregistration exited %s: %s",
                           unreg.status_text, _tail(unreg.output))

        try:
            exe.unlink(missing_ok=True)
        except OSError as e:
            self._run_log.warning("Could not delete %s: %s", exe, e)

        if exe.exists():
            self._run_log.error("Remove failed: %s still present", exe)
            return StepResult.failure(ErrorKind.UNINSTALL_VERIFICATION_FAILED, str(exe))
        self._run_log.info("Agent removed")
        return StepResult.success()

    # ── Reconfigure ──────────────────────────────────────────

    def reconfigure(self):
        """Point the running agent at the persisted configuration file."""
        args = self._settings.agent_args(self._settings.reconfigure_args)
        result = platform_win.run_command([self.executable_path, *args])
        if not result.ok:
            self._run_log.warning("Reconfigure exited %s: %s",
                                  result.status_text, _tail(result.output))
            return StepResult.failure(ErrorKind.REGISTRATION_FAILED, _tail(result.output))
        self._run_log.info("Agent reconfigured from %s", self._settings.config_path)
        return StepResult.success()


def _tail(text, limit=200):
    text = (text or "").strip().replace("\r", "")
    return text[-limit:]


def _find_file(root, name):
    """Case-insensitive search for `name` anywhere below root."""
    wanted = name.lower()
    for path in sorted(root.rglob("*")):
        if path.is_file() and path.name.lower() == wanted:
            return path
    return None


def _safe_extract_zip(archive, target_dir):
    base = Path(target_dir).resolve()
    for member in archive.namelist():
        member_path = (base / member).resolve()
        if base != member_path and base not in member_path.parents:
            raise ValueError(f"Unsafe path in archive: {member}")
    archive.extractall(path=str(base))
