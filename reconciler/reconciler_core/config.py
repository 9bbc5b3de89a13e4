"""
Paths, logging setup, settings load (JSON file + environment overrides).
"""

import os
import sys
import json
import logging
import tempfile
from dataclasses import dataclass, field, fields
from pathlib import Path

from . import constants as C


# ─── Paths ───────────────────────────────────────────────────────
# Fixed machine-wide location, independent of where the script runs from.
_FOLDER_NAME = "AgentReconciler"

if sys.platform == "win32":
    BASE_DIR = Path(os.environ.get("PROGRAMDATA", "C:\\ProgramData")) / _FOLDER_NAME
    _INSTALL_DIR = Path(os.environ.get("SYSTEMROOT", "C:\\Windows"))
else:
    BASE_DIR = Path(__file__).parent.parent
    _INSTALL_DIR = BASE_DIR

SETTINGS_FILE = BASE_DIR / "settings.json"
LOG_FILE = BASE_DIR / "reconciler.log"

_ENV_PREFIX = "RECONCILER_"


# ─── Logging ─────────────────────────────────────────────────────

log = logging.getLogger("reconciler")

_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_file=None):
    """Attach file + console handlers to the reconciler logger (idempotent)."""
    if log.handlers:
        return log

    log_file = Path(log_file) if log_file else LOG_FILE
    log.setLevel(logging.INFO)
    log.propagate = False

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # Keep a single small file; each run only appends a few dozen lines
        if log_file.exists() and log_file.stat().st_size > C.LOG_MAX_BYTES:
            log_file.write_text("")
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        log.addHandler(file_handler)
    except OSError:
        pass

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(_FORMAT))
    log.addHandler(console_handler)
    return log


# ─── Settings ────────────────────────────────────────────────────

@dataclass
class Settings:
    service_pattern: str = C.SERVICE_PATTERN
    package_url: str = C.PACKAGE_URL
    package_name: str = C.PACKAGE_NAME
    executable_name: str = C.EXECUTABLE_NAME
    install_dir: Path = _INSTALL_DIR

    config_url: str = C.CONFIG_URL
    config_path: Path = BASE_DIR / C.CONFIG_FILE_NAME
    config_marker: str = C.CONFIG_MARKER
    accept_invalid_config: bool = False

    version_url: str = C.VERSION_URL
    version_pattern: str = C.VERSION_PATTERN
    self_report_args: list = field(default_factory=lambda: list(C.SELF_REPORT_ARGS))
    self_report_pattern: str = C.SELF_REPORT_PATTERN
    install_args: list = field(default_factory=lambda: list(C.INSTALL_ARGS))
    uninstall_args: list = field(default_factory=lambda: list(C.UNINSTALL_ARGS))
    reconfigure_args: list = field(default_factory=lambda: list(C.RECONFIGURE_ARGS))

    probe_host: str = C.PROBE_HOST
    probe_port: int = C.PROBE_PORT
    service_timeout_sec: int = C.SERVICE_TIMEOUT_SEC
    scratch_dir: Path = Path(tempfile.gettempdir()) / _FOLDER_NAME
    event_source: str = C.EVENT_SOURCE

    @property
    def executable_path(self) -> Path:
        """Canonical installed location of the agent executable."""
        return Path(self.install_dir) / self.executable_name

    def agent_args(self, template):
        """Expand a command template, substituting the config path."""
        return [a.replace("{config}", str(self.config_path)) for a in template]


def _coerce(name, kind, value):
    """Convert a raw JSON/env value to the type declared on Settings."""
    if kind is bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if kind is int:
        return int(value)
    if kind is Path:
        return Path(value)
    if kind is list:
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, list):
            raise ValueError(f"{name} must be a list")
        return [str(v) for v in value]
    return str(value)


def _field_types():
    return {f.name: f.type for f in fields(Settings)}


def load_settings(path=None):
    """
    Build Settings from defaults → JSON file → RECONCILER_* env vars.
    A missing file is fine; a malformed one is logged and ignored.
    """
    types = _field_types()

    values = {}
    path = Path(path or os.environ.get(_ENV_PREFIX + "SETTINGS_FILE") or SETTINGS_FILE)
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("settings root must be an object")
            for key, raw in data.items():
                if key not in types:
                    log.warning("Ignoring unknown setting %r in %s", key, path)
                    continue
                values[key] = _coerce(key, types[key], raw)
        except (json.JSONDecodeError, ValueError, TypeError, OSError) as e:
            log.warning("Could not read settings from %s: %s; using defaults", path, e)
            values = {}

    for key, kind in types.items():
        raw = os.environ.get(_ENV_PREFIX + key.upper())
        if raw is None:
            continue
        try:
            values[key] = _coerce(key, kind, raw)
        except (json.JSONDecodeError, ValueError) as e:
            log.warning("Ignoring %s%s: %s", _ENV_PREFIX, key.upper(), e)

    return Settings(**values)
