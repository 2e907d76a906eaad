"""Pipeline orchestration for the generate flow."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .config import ConfigError, SecuredGenConfig, load_config
from .codegen.source_file import SourceRenderer
from .errors import ModelError
from .logging import get_logger
from .model.adapter import SourceModel
from .model.elements import InputElement
from .model.scanner import SourceScanner
from .models import Diagnostic, Kind, SourceManifest
from .processors import (
    DirectoryFiler,
    Filer,
    GeneratedUnit,
    LoggingMessager,
    MemoryFiler,
    ProcessingEnvironment,
    Processor,
    RoundEnvironment,
    discover_processors,
)


@dataclass
class GenerationReport:
    """Result of a generate run."""

    root: Path
    output_dir: Path
    dry_run: bool
    rounds: int = 0
    units: List[GeneratedUnit] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def written(self) -> List[Path]:
        return [unit.path for unit in self.units if unit.path is not None]

    @property
    def sources(self) -> Dict[str, str]:
        return {unit.qualified_module: unit.text for unit in self.units}

    @property
    def errors(self) -> List[Diagnostic]:
        return [item for item in self.diagnostics if item.kind is Kind.ERROR]

    @property
    def ok(self) -> bool:
        return not self.errors


class Orchestrator:
    """Coordinates scanning, parsing and the processing rounds."""

    def __init__(
        self,
        scanner: SourceScanner | None = None,
        source_model: SourceModel | None = None,
        processors: Optional[Iterable[Processor]] = None,
    ) -> None:
        self.scanner = scanner or SourceScanner()
        self.source_model = source_model or SourceModel()
        self._processor_overrides = list(processors) if processors is not None else None
        self.logger = get_logger("orchestrator")

    def run_generate(
        self,
        path: str | Path,
        *,
        output_dir: str | Path | None = None,
        dry_run: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> GenerationReport:
        """Generate secured companions for every marked class below ``path``."""
        root = Path(path).expanduser().resolve()
        self.logger.info("Starting generate run for %s", root)
        config = self._load_config(root)
        manifest = self.scanner.scan(root)
        self.logger.debug("Scanner discovered %d modules", len(manifest.files))

        target = Path(output_dir).expanduser().resolve() if output_dir else config.effective_output_dir
        renderer = SourceRenderer(config.templates_dir)
        filer: Filer = MemoryFiler(renderer) if dry_run else DirectoryFiler(target, renderer)
        messager = LoggingMessager()
        env = ProcessingEnvironment(
            filer=filer,
            messager=messager,
            config=config,
            cancel_event=cancel_event or threading.Event(),
        )

        processors = self._select_processors()
        for processor in processors:
            processor.init(env)
        self.logger.debug("Selected %d processors", len(processors))

        report = GenerationReport(root=root, output_dir=target, dry_run=dry_run)
        elements = self._read_manifest(manifest, messager)
        while elements:
            if env.cancelled():
                self.logger.info("Generation cancelled after %d rounds", report.rounds)
                break
            if report.rounds >= config.max_rounds:
                messager.print_message(
                    Kind.WARNING,
                    f"Stopped after {config.max_rounds} rounds; generated sources were left unprocessed.",
                )
                break
            report.rounds += 1
            produced = len(filer.units)
            self._run_round(processors, RoundEnvironment(elements))
            elements = self._read_generated(filer.units[produced:], messager)

        report.units = list(filer.units)
        report.diagnostics = list(messager.diagnostics)
        self.logger.info(
            "Generated %d secured classes in %d rounds (%d errors)",
            len(report.units),
            report.rounds,
            len(report.errors),
        )
        return report

    def _run_round(self, processors: Sequence[Processor], round_env: RoundEnvironment) -> None:
        for processor in processors:
            annotations = {
                marker
                for marker in processor.SUPPORTED_ANNOTATION_TYPES
                if round_env.get_elements_annotated_with(marker)
            }
            if not annotations:
                continue
            processor.process(annotations, round_env)

    def _read_manifest(self, manifest: SourceManifest, messager: LoggingMessager) -> List[InputElement]:
        elements: List[InputElement] = []
        for meta in manifest.files:
            try:
                module = self.source_model.read_module(
                    manifest.absolute(meta), meta.module, is_package=meta.is_package
                )
            except ModelError as exc:
                messager.print_message(Kind.ERROR, str(exc), meta.path)
                continue
            elements.extend(module.elements)
        return elements

    def _read_generated(
        self, units: Sequence[GeneratedUnit], messager: LoggingMessager
    ) -> List[InputElement]:
        elements: List[InputElement] = []
        for unit in units:
            try:
                module = self.source_model.read_source(unit.text, unit.qualified_module, path=unit.path)
            except ModelError as exc:
                messager.print_message(Kind.ERROR, str(exc), unit.qualified_module)
                continue
            elements.extend(module.elements)
        return elements

    def _select_processors(self) -> List[Processor]:
        if self._processor_overrides is not None:
            return list(self._processor_overrides)
        return discover_processors()

    def _load_config(self, root: Path) -> SecuredGenConfig:
        try:
            return load_config(root)
        except ConfigError as exc:
            self.logger.warning("Ignoring invalid configuration: %s", exc)
            return SecuredGenConfig(root=root)


__all__ = ["GenerationReport", "Orchestrator"]
