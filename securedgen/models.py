"""Core data models shared across securedgen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


@dataclass
class SourceMeta:
    """A Python source file found below the source root."""

    path: str
    module: str
    is_package: bool
    size: int


@dataclass
class SourceManifest:
    """Normalized view of the source tree for the processing rounds."""

    root: str
    files: List[SourceMeta] = field(default_factory=list)

    def absolute(self, meta: SourceMeta) -> Path:
        return Path(self.root) / meta.path


class Kind(str, Enum):
    """Severity of a diagnostic reported to the host."""

    NOTE = "note"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    kind: Kind
    message: str
    element: Optional[str] = None

    def __str__(self) -> str:
        prefix = f"{self.element}: " if self.element else ""
        return f"{self.kind.value}: {prefix}{self.message}"
