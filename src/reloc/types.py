"""Core type definitions for reloc."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict


class Severity(str, Enum):
    """Severity shown in the problem list."""

    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


SARIF_LEVEL_TO_SEVERITY = {
    "error": Severity.ERROR,
    "warning": Severity.WARNING,
    "note": Severity.INFORMATION,
    "none": Severity.INFORMATION,
}


def severity_from_level(level: str | None) -> Severity:
    """Translate a SARIF result level. Unknown levels default to warning."""
    return SARIF_LEVEL_TO_SEVERITY.get(level or "", Severity.WARNING)


class Range(BaseModel):
    """Zero-based text range."""

    model_config = ConfigDict(frozen=True)

    start_line: int = 0
    start_column: int = 0
    end_line: int = 0
    end_column: int = 0

    @property
    def is_empty(self) -> bool:
        return self.start_line == self.end_line and self.start_column == self.end_column

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line


class Location(BaseModel):
    """Where a finding points.

    `mapped` is False while `uri` is still the artifact URI from the log.
    """

    model_config = ConfigDict(frozen=True)

    uri: str | None = None
    mapped: bool = False
    range: Range = Range()


class BaseUriCacheEntry(BaseModel):
    """A learned prefix substitution from artifact URIs to local URIs."""

    model_config = ConfigDict(frozen=True)

    artifact_prefix: str
    local_prefix: str


class RunInfo(BaseModel):
    """A run from a loaded log."""

    id: int
    source_uri: str  # URI of the log file the run came from
    tool_name: str = "Unknown tool"


class ProblemEntry(BaseModel):
    """One row handed to the problem list."""

    model_config = ConfigDict(frozen=True)

    range: Range
    message: str
    severity: Severity
    code: str | None = None
    source: str | None = None


ChangeType = Literal["Add", "Remove", "Synchronize"]
