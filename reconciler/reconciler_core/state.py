"""
Data model for one reconciliation pass.

Nothing here is cached between steps: every value is produced by a fresh
query and is only trusted until the next mutating action.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .results import ErrorKind


@dataclass(frozen=True, order=True)
class AgentVersion:
    major: int
    minor: int

    @property
    def is_absent(self) -> bool:
        return self.major < 0

    @classmethod
    def parse(cls, text, pattern=r"(\d+)\.(\d+)"):
        """
        Extract the first major.minor token from text.
        Returns ABSENT when text is empty or nothing matches.
        """
        if not text:
            return cls.ABSENT
        match = re.search(pattern, text)
        if not match:
            return cls.ABSENT
        try:
            return cls(int(match.group(1)), int(match.group(2)))
        except (IndexError, ValueError):
            return cls.ABSENT

    def __str__(self):
        return "absent" if self.is_absent else f"{self.major}.{self.minor}"


# Sorts below every real version, including 0.0
AgentVersion.ABSENT = AgentVersion(-1, -1)


class ServiceRunState(Enum):
    RUNNING = "Running"
    STOPPED = "Stopped"
    NOT_REGISTERED = "NotRegistered"
    UNKNOWN = "Unknown"                 # service manager could not be queried


@dataclass(frozen=True)
class InstalledArtifact:
    path: Path
    version: AgentVersion = AgentVersion.ABSENT
    present: bool = False

    @property
    def valid(self) -> bool:
        return self.present and not self.version.is_absent


@dataclass(frozen=True)
class ConfigDocument:
    content: bytes
    valid: bool = field(default=False, compare=False)

    def __len__(self):
        return len(self.content)


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    message: str

    def render(self):
        return f"{self.timestamp} [{self.level}] {self.message}"


@dataclass(frozen=True)
class ReconciliationOutcome:
    success: bool
    reason: str = ""
    kind: Optional[ErrorKind] = None
    log: tuple = ()

    @property
    def summary(self):
        return "Success" if self.success else f"Failure({self.reason})"
