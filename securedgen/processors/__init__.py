"""Processor plugins and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Sequence, Set

from .base import (
    DirectoryFiler,
    Filer,
    GeneratedUnit,
    LoggingMessager,
    MemoryFiler,
    Messager,
    ProcessingEnvironment,
    Processor,
    RoundEnvironment,
)
from .confidentiality import ConfidentialityProcessor, destination_package

_ENTRY_POINT_GROUP = "securedgen.processors"

_BUILTIN_FACTORIES: dict[str, Callable[[], Processor]] = {
    "confidentiality": ConfidentialityProcessor,
}


def discover_processors(enabled: Sequence[str] | None = None) -> List[Processor]:
    """Return instantiated processors, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    processors: List[Processor] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Processor]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, Processor):
            raise TypeError(f"Processor factory for '{name}' did not return a Processor instance")
        processors.append(instance)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        if entry.name.lower() in seen:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - broken third-party plugin
            raise RuntimeError(f"Failed to load processor entry point '{entry.name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Processor:
            return _coerce_processor(obj)

        _add(entry.name, _factory)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown processors requested: {missing}")

    return processors


def _coerce_processor(obj: object) -> Processor:
    if isinstance(obj, Processor):
        return obj
    if isinstance(obj, type) and issubclass(obj, Processor):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Processor):
            return instance
    raise TypeError("Processor entry point must be a Processor subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "ConfidentialityProcessor",
    "DirectoryFiler",
    "Filer",
    "GeneratedUnit",
    "LoggingMessager",
    "MemoryFiler",
    "Messager",
    "ProcessingEnvironment",
    "Processor",
    "RoundEnvironment",
    "destination_package",
    "discover_processors",
]
