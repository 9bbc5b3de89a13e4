"""
Error taxonomy and the single result type every step returns.

Components never raise into the engine. Library exceptions are caught where
they happen, logged with context, and turned into StepResult.failure(...).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    NETWORK_UNAVAILABLE = "NetworkUnavailable"
    DOWNLOAD_FAILED = "DownloadFailed"
    EXTRACT_FAILED = "ExtractFailed"
    COPY_FAILED = "CopyFailed"
    CONFIG_FETCH_FAILED = "ConfigFetchFailed"
    CONFIG_WRITE_FAILED = "ConfigWriteFailed"
    SERVICE_START_TIMEOUT = "ServiceStartTimeout"
    SERVICE_STOP_TIMEOUT = "ServiceStopTimeout"
    SERVICE_QUERY_FAILED = "ServiceQueryFailed"
    UNINSTALL_VERIFICATION_FAILED = "UninstallVerificationFailed"
    EXECUTABLE_MISSING = "ExecutableMissing"
    REGISTRATION_FAILED = "RegistrationFailed"
    SERVICE_NOT_RUNNING = "ServiceNotRunning"
    INSTALL_FAILED = "InstallFailed"


@dataclass(frozen=True)
class StepResult:
    ok: bool
    kind: Optional[ErrorKind] = None
    reason: str = ""

    @classmethod
    def success(cls):
        return cls(True)

    @classmethod
    def failure(cls, kind, reason=""):
        return cls(False, kind, reason or kind.value)

    def __bool__(self):
        return self.ok

    def __str__(self):
        return "ok" if self.ok else f"{self.kind.value}: {self.reason}"
