"""Read-only views over template modules, classes and fields."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING, FrozenSet, List, Optional, Tuple

from ..annotations import is_marker
from ..codegen.code import CodeBlock, TypeName
from ..codegen.names import ClassName
from ..codegen.specs import AnnotationSpec, Modifier

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .adapter import ModuleScope


class ElementKind(str, Enum):
    CLASS = "class"
    FUNCTION = "function"


@dataclass(frozen=True)
class AnnotationMirror:
    """One decorator or ``Annotated`` metadata entry as written in the source."""

    type: Optional[ClassName]
    code: CodeBlock
    source: str

    def to_spec(self) -> AnnotationSpec:
        return AnnotationSpec(self.type, self.code)


@dataclass(frozen=True)
class InputField:
    name: str
    type: TypeName
    modifiers: FrozenSet[Modifier]
    annotations: Tuple[AnnotationMirror, ...] = ()
    lineno: int = 0

    def has_annotation(self, marker: ClassName) -> bool:
        return any(is_marker(mirror.type, marker) for mirror in self.annotations)


class InputElement:
    """A top-level class or function of a template module.

    Decorators and fields are resolved lazily so that a broken element only
    fails when it is actually processed.
    """

    kind = ElementKind.FUNCTION

    def __init__(self, node: ast.stmt, scope: ModuleScope) -> None:
        self._node = node
        self._scope = scope

    @property
    def simple_name(self) -> str:
        return self._node.name  # type: ignore[attr-defined]

    @property
    def module_name(self) -> str:
        return self._scope.module_name

    @property
    def package(self) -> str:
        return self._scope.package

    @property
    def qualified_name(self) -> str:
        return f"{self.module_name}.{self.simple_name}" if self.module_name else self.simple_name

    @property
    def lineno(self) -> int:
        return self._node.lineno

    @property
    def path(self) -> Optional[Path]:
        return self._scope.path

    @cached_property
    def annotations(self) -> Tuple[AnnotationMirror, ...]:
        """Decorators in source order; raises ModelError when one cannot be resolved."""
        decorators = self._node.decorator_list  # type: ignore[attr-defined]
        return tuple(
            self._scope.mirror(decorator, where=f"decorator of {self.qualified_name}")
            for decorator in decorators
        )

    def has_annotation(self, marker: ClassName) -> bool:
        """Tolerant presence check used for discovery; unresolvable decorators are ignored."""
        decorators = self._node.decorator_list  # type: ignore[attr-defined]
        return any(is_marker(self._scope.try_resolve_head(node), marker) for node in decorators)

    def location(self) -> str:
        where = str(self.path) if self.path else self.module_name or "<source>"
        return f"{where}:{self.lineno}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.qualified_name!r})"


class InputClass(InputElement):
    kind = ElementKind.CLASS

    @cached_property
    def fields(self) -> Tuple[InputField, ...]:
        """Annotated assignments of the class body, in declaration order."""
        result: List[InputField] = []
        for statement in self._node.body:  # type: ignore[attr-defined]
            if isinstance(statement, ast.AnnAssign) and isinstance(statement.target, ast.Name):
                result.append(self._scope.field(statement, owner=self.qualified_name))
        return tuple(result)

    def field(self, name: str) -> Optional[InputField]:
        return next((item for item in self.fields if item.name == name), None)


@dataclass
class InputModule:
    name: str
    package: str
    path: Optional[Path] = None
    elements: List[InputElement] = field(default_factory=list)

    def classes(self) -> List[InputClass]:
        return [element for element in self.elements if isinstance(element, InputClass)]

    def element(self, simple_name: str) -> Optional[InputElement]:
        return next((item for item in self.elements if item.simple_name == simple_name), None)


__all__ = [
    "AnnotationMirror",
    "ElementKind",
    "InputClass",
    "InputElement",
    "InputField",
    "InputModule",
]
