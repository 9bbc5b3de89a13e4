"""
VersionOracle — installed agent version vs. latest published version.

Neither query raises. Anything that goes wrong degrades to
AgentVersion.ABSENT, which for the latest version means "no update".
"""

from pathlib import Path

import requests

from .state import AgentVersion, InstalledArtifact
from . import http_client
from . import platform_win


class VersionOracle:

    def __init__(self, settings, run_log):
        self._settings = settings
        self._run_log = run_log

    @property
    def executable_path(self) -> Path:
        return self._settings.executable_path

    def installed(self):
        """Fresh look at the on-disk executable and its self-reported version."""
        path = self.executable_path
        if not path.exists():
            return InstalledArtifact(path)
        return InstalledArtifact(path, self.current_version(), present=True)

    def current_version(self):
        path = self.executable_path
        if not path.exists():
            return AgentVersion.ABSENT
        result = platform_win.run_command(
            [path, *self._settings.self_report_args], timeout=30,
        )
        # The banner is printed even when the help switch exits non-zero
        version = AgentVersion.parse(result.output, self._settings.self_report_pattern)
        if version.is_absent:
            self._run_log.warning("Could not parse version from %s output", path.name)
        return version

    def latest_version(self):
        url = self._settings.version_url
        try:
            page = http_client.fetch(url).decode("utf-8", errors="replace")
        except requests.RequestException as e:
            self._run_log.warning("Latest version lookup failed (%s): %s", url, e)
            return AgentVersion.ABSENT
        version = AgentVersion.parse(page, self._settings.version_pattern)
        if version.is_absent:
            self._run_log.warning("No version matching %r on %s", self._settings.version_pattern, url)
        return version

    def update_required(self):
        current = self.current_version()
        latest = self.latest_version()
        self._run_log.info("Installed version: %s", current)
        self._run_log.info("Latest version: %s", latest)
        return current < latest
