"""Importable symbol references used by the emission utility."""

from __future__ import annotations

import builtins
import keyword
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..errors import EmissionError

BUILTINS_MODULE = "builtins"


def is_identifier(name: str) -> bool:
    """Return True when ``name`` can be emitted as a Python identifier."""
    return name.isidentifier() and not keyword.iskeyword(name)


@dataclass(frozen=True, order=True)
class ClassName:
    """A symbol importable from ``module``, optionally nested (``Outer.Inner``).

    Despite the name this also covers functions and module-level constants; any
    attribute reachable from a module can be referenced through ``$T``.
    """

    module: str
    simple_names: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.simple_names:
            raise EmissionError(f"Type reference into {self.module!r} has no name")
        for part in (*self.module.split("."), *self.simple_names):
            if not is_identifier(part):
                raise EmissionError(f"Invalid identifier in type reference: {part!r}")

    @classmethod
    def of(cls, module: str, *names: str) -> ClassName:
        return cls(module, tuple(names))

    @classmethod
    def get(cls, obj: Any) -> ClassName:
        """Return the reference for a live class or function."""
        return cls(obj.__module__, tuple(obj.__qualname__.split(".")))

    @classmethod
    def builtin(cls, name: str) -> ClassName:
        return cls(BUILTINS_MODULE, (name,))

    @classmethod
    def parse(cls, value: str) -> ClassName:
        """Parse an entry-point style reference such as ``pkg.module:Outer.Inner``."""
        module, separator, names = value.strip().partition(":")
        if not separator or not module or not names:
            raise ValueError(f"Expected 'module:Name', got {value!r}")
        return cls(module, tuple(names.split(".")))

    @property
    def simple_name(self) -> str:
        return self.simple_names[-1]

    @property
    def top_level_name(self) -> str:
        return self.simple_names[0]

    @property
    def is_builtin(self) -> bool:
        return self.module == BUILTINS_MODULE

    @property
    def canonical(self) -> str:
        if self.is_builtin:
            return ".".join(self.simple_names)
        return ".".join((self.module, *self.simple_names))

    def __str__(self) -> str:
        return self.canonical


def builtin_or_none(name: str) -> Optional[ClassName]:
    """Return a builtins reference when ``name`` is a builtin, else None."""
    if hasattr(builtins, name) and is_identifier(name):
        return ClassName.builtin(name)
    return None


__all__ = ["BUILTINS_MODULE", "ClassName", "builtin_or_none", "is_identifier"]
