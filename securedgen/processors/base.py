"""Processing contracts: the environment a processor runs in and its host channels."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional, Sequence, Set

from ..codegen.names import ClassName
from ..codegen.source_file import GENERATED_HEADER_PREFIX, SourceFile, SourceRenderer, default_renderer
from ..config import DEFAULT_GENERATED_PACKAGE, SecuredGenConfig
from ..errors import OutputError
from ..logging import get_logger
from ..models import Diagnostic, Kind

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from ..model.elements import InputElement

_LEVELS = {
    Kind.NOTE: logging.INFO,
    Kind.WARNING: logging.WARNING,
    Kind.ERROR: logging.ERROR,
}


class Messager(ABC):
    """Host diagnostic channel."""

    @abstractmethod
    def print_message(self, kind: Kind, message: str, element: Optional[str] = None) -> None:
        """Report ``message`` at severity ``kind``, optionally tied to a source location."""


class LoggingMessager(Messager):
    """Records diagnostics and forwards them to the ``securedgen.processor`` logger."""

    def __init__(self) -> None:
        self.diagnostics: List[Diagnostic] = []
        self.logger = get_logger("processor")

    def print_message(self, kind: Kind, message: str, element: Optional[str] = None) -> None:
        diagnostic = Diagnostic(kind=kind, message=message, element=element)
        self.diagnostics.append(diagnostic)
        self.logger.log(_LEVELS[kind], "%s", diagnostic)

    @property
    def error_count(self) -> int:
        return sum(1 for item in self.diagnostics if item.kind is Kind.ERROR)


@dataclass(frozen=True)
class GeneratedUnit:
    """A source unit accepted by a :class:`Filer` during this session."""

    qualified_module: str
    qualified_name: str
    text: str
    path: Optional[Path] = None


class Filer(ABC):
    """Host output channel; accepts each source unit once per session."""

    def __init__(self, renderer: Optional[SourceRenderer] = None) -> None:
        self.renderer = renderer or default_renderer()
        self.units: List[GeneratedUnit] = []
        self._claimed: Set[str] = set()

    def write_source(self, source_file: SourceFile) -> GeneratedUnit:
        name = source_file.qualified_name
        if name in self._claimed:
            raise OutputError(f"Source unit {name} was already written in this session")
        text = source_file.render(self.renderer)
        unit = self._store(source_file, text)
        self._claimed.add(name)
        self.units.append(unit)
        return unit

    @abstractmethod
    def _store(self, source_file: SourceFile, text: str) -> GeneratedUnit:
        """Persist ``text`` for ``source_file``."""


class MemoryFiler(Filer):
    """Keeps rendered sources in memory; used for dry runs and tests."""

    def _store(self, source_file: SourceFile, text: str) -> GeneratedUnit:
        return GeneratedUnit(source_file.qualified_module, source_file.qualified_name, text)

    @property
    def sources(self) -> Dict[str, str]:
        return {unit.qualified_module: unit.text for unit in self.units}


class DirectoryFiler(Filer):
    """Writes ``<output_dir>/<package path>/<module>.py``.

    Existing modules are only replaced when they carry the generated header,
    and the destination package receives an empty ``__init__.py`` if it has none.
    """

    def __init__(self, output_dir: Path, renderer: Optional[SourceRenderer] = None) -> None:
        super().__init__(renderer)
        self.output_dir = Path(output_dir)
        self.logger = get_logger("filer")

    def _store(self, source_file: SourceFile, text: str) -> GeneratedUnit:
        target = self.output_dir / Path(source_file.relative_path)
        if target.exists() and not _has_generated_header(target):
            raise OutputError(f"Refusing to overwrite {target}: it was not generated by securedgen")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            init_file = target.parent / "__init__.py"
            if source_file.package_name and not init_file.exists():
                init_file.write_text("", encoding="utf-8")
            target.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise OutputError(f"Cannot write {target}: {exc}") from exc
        self.logger.debug("Wrote %s", target)
        return GeneratedUnit(
            source_file.qualified_module, source_file.qualified_name, text, path=target
        )


def _has_generated_header(path: Path) -> bool:
    try:
        with path.open(encoding="utf-8") as handle:
            first_line = handle.readline()
    except (OSError, UnicodeDecodeError):
        return False
    return first_line.startswith(f"# {GENERATED_HEADER_PREFIX}")


@dataclass
class ProcessingEnvironment:
    filer: Filer
    messager: Messager
    config: Optional[SecuredGenConfig] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def generated_package(self) -> str:
        return self.config.generated_package if self.config else DEFAULT_GENERATED_PACKAGE

    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


@dataclass
class RoundEnvironment:
    """The elements offered to processors in one round."""

    elements: Sequence[InputElement]

    def get_elements_annotated_with(self, marker: ClassName) -> List[InputElement]:
        return [element for element in self.elements if element.has_annotation(marker)]


class Processor(ABC):
    """Contract for processors run by the orchestrator once per round."""

    SUPPORTED_ANNOTATION_TYPES: FrozenSet[ClassName] = frozenset()

    def __init__(self) -> None:
        self._env: Optional[ProcessingEnvironment] = None

    def init(self, env: ProcessingEnvironment) -> None:
        self._env = env

    @property
    def env(self) -> ProcessingEnvironment:
        if self._env is None:
            raise RuntimeError(f"{type(self).__name__}.init() has not been called")
        return self._env

    def supported_annotation_types(self) -> FrozenSet[str]:
        return frozenset(marker.canonical for marker in self.SUPPORTED_ANNOTATION_TYPES)

    @abstractmethod
    def process(self, annotations: Set[ClassName], round_env: RoundEnvironment) -> bool:
        """Handle the elements of one round; True means the markers were claimed."""


__all__ = [
    "DirectoryFiler",
    "Filer",
    "GeneratedUnit",
    "LoggingMessager",
    "MemoryFiler",
    "Messager",
    "ProcessingEnvironment",
    "Processor",
    "RoundEnvironment",
]
