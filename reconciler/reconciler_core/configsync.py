"""
ConfigSynchronizer — fetch the desired agent policy and persist it only when it changed.

The on-disk file is rewritten only on a byte difference, so the agent's
own change detection never fires for an identical policy.
"""

from pathlib import Path

import requests

from .results import ErrorKind, StepResult
from .state import ConfigDocument
from . import http_client


class ConfigSynchronizer:

    def __init__(self, settings, probe, run_log):
        self._url = settings.config_url
        self._path = Path(settings.config_path)
        self._marker = settings.config_marker.encode("utf-8")
        self._accept_invalid = settings.accept_invalid_config
        self._probe = probe
        self._run_log = run_log

    def looks_valid(self, content):
        """Shallow check: the agent's config root element appears in the document."""
        return bool(content) and self._marker in content

    def fetch_desired(self):
        """Returns (StepResult, ConfigDocument or None)."""
        if not self._probe.is_online():
            self._run_log.error("No connectivity, cannot fetch configuration")
            return StepResult.failure(ErrorKind.NETWORK_UNAVAILABLE), None

        try:
            content = http_client.fetch(self._url)
        except requests.RequestException as e:
            self._run_log.error("Configuration download failed (%s): %s", self._url, e)
            return StepResult.failure(ErrorKind.CONFIG_FETCH_FAILED, str(e)), None

        doc = ConfigDocument(content, valid=self.looks_valid(content))
        if not doc.valid:
            if not self._accept_invalid:
                self._run_log.error(
                    "Fetched configuration (%d bytes) does not look like a valid document; "
                    "keeping the current one", len(doc),
                )
                return StepResult.failure(ErrorKind.CONFIG_FETCH_FAILED, "invalid configuration"), None
            self._run_log.warning("Fetched configuration looks invalid; accepting it anyway")
        else:
            self._run_log.info("Fetched configuration (%d bytes)", len(doc))
        return StepResult.success(), doc

    def current(self):
        """The on-disk document, or None when there is none."""
        try:
            content = self._path.read_bytes()
        except FileNotFoundError:
            return None
        return ConfigDocument(content, valid=self.looks_valid(content))

    def reconcile(self, desired):
        """Returns (StepResult, changed)."""
        try:
            existing = self.current()
        except OSError as e:
            self._run_log.warning("Could not read %s: %s", self._path, e)
            existing = None

        if existing is not None and existing == desired:
            self._run_log.info("Configuration unchanged")
            return StepResult.success(), False

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(desired.content)
        except OSError as e:
            self._run_log.error("Could not write configuration to %s: %s", self._path, e)
            return StepResult.failure(ErrorKind.CONFIG_WRITE_FAILED, str(e)), False

        self._run_log.info("Configuration %s: %s",
                           "created" if existing is None else "updated", self._path)
        return StepResult.success(), True
