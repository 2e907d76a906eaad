"""Projection of Python source onto the generator's input model.

Name resolution follows the module's own imports: ``from x import Y`` binds
``Y`` to ``x.Y``, ``import x.y as z`` binds ``z`` to the module ``x.y``, and
names defined at module level refer to the module itself. Imports under
``if TYPE_CHECKING:`` count, since field annotations are never evaluated.
"""

from __future__ import annotations

import ast
import copy
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple, Union

from ..codegen.code import CodeBlock, TypeName
from ..codegen.names import ClassName, builtin_or_none, is_identifier
from ..codegen.specs import Modifier
from ..errors import ModelError
from ..logging import get_logger
from .elements import AnnotationMirror, InputClass, InputElement, InputField, InputModule

_TYPING_MODULES = ("typing", "typing_extensions")
_PLACEHOLDER_PREFIX = "__securedgen_ref"
_PLACEHOLDER = re.compile(r"__securedgen_ref(\d+)__")

logger = get_logger("model")


def _typing_names(name: str) -> FrozenSet[ClassName]:
    return frozenset(ClassName.of(module, name) for module in _TYPING_MODULES)


_ANNOTATED = _typing_names("Annotated")
_CLASS_VAR = _typing_names("ClassVar")
_FINAL = _typing_names("Final")
_LITERAL = _typing_names("Literal")


@dataclass(frozen=True)
class _ModuleAlias:
    module: str


def _dotted(node: ast.AST) -> Optional[List[str]]:
    if isinstance(node, ast.Name):
        return [node.id]
    if isinstance(node, ast.Attribute):
        head = _dotted(node.value)
        if head is not None:
            return [*head, node.attr]
    return None


def _is_type_checking(test: ast.expr) -> bool:
    chain = _dotted(test)
    return chain is not None and chain[-1] == "TYPE_CHECKING"


class _ReferenceRewriter(ast.NodeTransformer):
    """Replaces every resolvable name with a numbered placeholder."""

    def __init__(self, scope: ModuleScope, where: str, type_context: bool) -> None:
        self._scope = scope
        self._where = where
        self._type_context = type_context
        self.references: List[ClassName] = []

    def visit_Name(self, node: ast.Name) -> ast.AST:
        return self._replace(node, [node.id])

    def visit_Attribute(self, node: ast.Attribute) -> ast.AST:
        chain = _dotted(node)
        if chain is None:
            return self.generic_visit(node)
        return self._replace(node, chain)

    def visit_Constant(self, node: ast.Constant) -> ast.AST:
        if self._type_context and isinstance(node.value, str):
            return self.visit(_parse_forward_reference(node.value, self._where))
        return node

    def visit_Subscript(self, node: ast.Subscript) -> ast.AST:
        if self._type_context:
            chain = _dotted(node.value)
            if chain is not None and self._scope.resolve_chain(chain) in _LITERAL:
                node.value = self.visit(node.value)
                return node
        return self.generic_visit(node)

    def _replace(self, node: ast.expr, chain: Sequence[str]) -> ast.AST:
        if not isinstance(getattr(node, "ctx", ast.Load()), ast.Load):
            raise ModelError(f"Unexpected assignment target in {self._where}")
        target = self._scope.resolve_chain(chain)
        if target is None:
            raise ModelError(f"Cannot resolve name {'.'.join(chain)!r} in {self._where}")
        index = len(self.references)
        self.references.append(target)
        return ast.copy_location(
            ast.Name(id=f"{_PLACEHOLDER_PREFIX}{index}__", ctx=ast.Load()), node
        )


def _parse_forward_reference(text: str, where: str) -> ast.expr:
    try:
        return ast.parse(text.strip(), mode="eval").body
    except SyntaxError as exc:
        raise ModelError(f"Invalid forward reference {text!r} in {where}") from exc


def _code_from_source(text: str, references: Sequence[ClassName]) -> CodeBlock:
    fmt_parts: List[str] = []
    args: List[ClassName] = []
    position = 0
    escaped = text.replace("$", "$$")
    for match in _PLACEHOLDER.finditer(escaped):
        fmt_parts.append(escaped[position : match.start()])
        fmt_parts.append("$T")
        args.append(references[int(match.group(1))])
        position = match.end()
    fmt_parts.append(escaped[position:])
    return CodeBlock.of("".join(fmt_parts), *args)


class ModuleScope:
    """Name bindings of one module, used to resolve annotations and types."""

    def __init__(
        self,
        module_name: str,
        package: str,
        tree: ast.Module,
        path: Optional[Path] = None,
    ) -> None:
        self.module_name = module_name
        self.package = package
        self.path = path
        self._bindings: Dict[str, Union[ClassName, _ModuleAlias]] = {}
        self._collect(tree.body)

    def _collect(self, body: Iterable[ast.stmt]) -> None:
        for statement in body:
            if isinstance(statement, ast.Import):
                for alias in statement.names:
                    if alias.asname:
                        self._bindings[alias.asname] = _ModuleAlias(alias.name)
                    else:
                        top = alias.name.split(".", 1)[0]
                        self._bindings[top] = _ModuleAlias(top)
            elif isinstance(statement, ast.ImportFrom):
                base = self._absolute_module(statement)
                if base is None:
                    continue
                for alias in statement.names:
                    if alias.name == "*":
                        continue
                    self._bindings[alias.asname or alias.name] = ClassName.of(base, alias.name)
            elif isinstance(statement, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
                self._bind_local(statement.name)
            elif isinstance(statement, ast.Assign):
                for target in statement.targets:
                    if isinstance(target, ast.Name):
                        self._bind_local(target.id)
            elif isinstance(statement, ast.AnnAssign) and isinstance(statement.target, ast.Name):
                self._bind_local(statement.target.id)
            elif isinstance(statement, ast.If) and _is_type_checking(statement.test):
                self._collect(statement.body)
            elif isinstance(statement, ast.Try):
                self._collect(statement.body)

    def _bind_local(self, name: str) -> None:
        self._bindings[name] = ClassName.of(self.module_name, name)

    def _absolute_module(self, statement: ast.ImportFrom) -> Optional[str]:
        if not statement.level:
            return statement.module
        parts = self.package.split(".") if self.package else []
        up = statement.level - 1
        if up > len(parts):
            logger.debug(
                "Ignoring relative import beyond the top-level package in %s", self.module_name
            )
            return None
        base = parts[: len(parts) - up]
        if statement.module:
            base.extend(statement.module.split("."))
        return ".".join(base) or None

    def resolve_chain(self, chain: Sequence[str]) -> Optional[ClassName]:
        binding = self._bindings.get(chain[0])
        if isinstance(binding, _ModuleAlias):
            if len(chain) < 2:
                return None
            return ClassName(binding.module, tuple(chain[1:]))
        if isinstance(binding, ClassName):
            return ClassName(binding.module, binding.simple_names + tuple(chain[1:]))
        if len(chain) == 1:
            return builtin_or_none(chain[0])
        return None

    def try_resolve_head(self, node: ast.expr) -> Optional[ClassName]:
        """Resolve a decorator or metadata head (``X`` or ``X(...)``) without raising."""
        if isinstance(node, ast.Call):
            node = node.func
        chain = _dotted(node)
        return self.resolve_chain(chain) if chain is not None else None

    def to_code(self, node: ast.expr, *, where: str, type_context: bool = False) -> CodeBlock:
        rewriter = _ReferenceRewriter(self, where, type_context)
        rewritten = rewriter.visit(copy.deepcopy(node))
        return _code_from_source(ast.unparse(rewritten), rewriter.references)

    def mirror(self, node: ast.expr, *, where: str) -> AnnotationMirror:
        head = node.func if isinstance(node, ast.Call) else node
        chain = _dotted(head)
        resolved: Optional[ClassName] = None
        if chain is not None:
            resolved = self.resolve_chain(chain)
            if resolved is None:
                raise ModelError(f"Cannot resolve annotation {'.'.join(chain)!r} in {where}")
        return AnnotationMirror(
            type=resolved,
            code=self.to_code(node, where=where),
            source=ast.unparse(node),
        )

    def field(self, statement: ast.AnnAssign, *, owner: str) -> InputField:
        name = statement.target.id  # type: ignore[union-attr]
        where = f"field {owner}.{name}"
        modifiers: Set[Modifier] = {Modifier.PRIVATE if name.startswith("_") else Modifier.PUBLIC}
        metadata: List[ast.expr] = []
        node = statement.annotation

        while True:
            if isinstance(node, ast.Constant) and isinstance(node.value, str):
                node = _parse_forward_reference(node.value, where)
                continue
            if isinstance(node, ast.Subscript):
                wrapper = self.try_resolve_head(node.value)
                if wrapper in _ANNOTATED:
                    elements = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
                    if len(elements) < 2:
                        raise ModelError(f"Annotated requires a type and metadata in {where}")
                    node = elements[0]
                    metadata = [*elements[1:], *metadata]
                    continue
                if wrapper in _CLASS_VAR:
                    modifiers.add(Modifier.CLASSVAR)
                    node = node.slice
                    continue
                if wrapper in _FINAL:
                    modifiers.add(Modifier.FINAL)
                    node = node.slice
                    continue
            elif self.try_resolve_head(node) in (_FINAL | _CLASS_VAR):
                raise ModelError(f"{where} has no declared type")
            break

        return InputField(
            name=name,
            type=TypeName(self.to_code(node, where=where, type_context=True)),
            modifiers=frozenset(modifiers),
            annotations=tuple(self.mirror(item, where=where) for item in metadata),
            lineno=statement.lineno,
        )


class SourceModel:
    """Builds :class:`InputModule` views from Python source files."""

    def read_module(self, path: Path, module_name: str, *, is_package: bool = False) -> InputModule:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ModelError(f"Cannot read {path}: {exc}") from exc
        return self.read_source(source, module_name, is_package=is_package, path=path)

    def read_source(
        self,
        source: str,
        module_name: str,
        *,
        is_package: bool = False,
        path: Optional[Path] = None,
    ) -> InputModule:
        if not module_name or not all(is_identifier(part) for part in module_name.split(".")):
            raise ModelError(f"Invalid module name: {module_name!r}")
        try:
            tree = ast.parse(source, filename=str(path) if path else "<source>")
        except SyntaxError as exc:
            raise ModelError(
                f"Syntax error in {path or module_name} at line {exc.lineno}: {exc.msg}"
            ) from exc

        package = module_name if is_package else module_name.rpartition(".")[0]
        scope = ModuleScope(module_name, package, tree, path=path)
        elements: List[InputElement] = []
        for statement in tree.body:
            if isinstance(statement, ast.ClassDef):
                elements.append(InputClass(statement, scope))
            elif isinstance(statement, (ast.FunctionDef, ast.AsyncFunctionDef)):
                elements.append(InputElement(statement, scope))
        return InputModule(name=module_name, package=package, path=path, elements=elements)


def module_name_for_path(root: Path, path: Path) -> Tuple[str, bool]:
    """Return ``(dotted module name, is_package)`` for a file below ``root``."""
    relative = path.relative_to(root).with_suffix("")
    parts = list(relative.parts)
    is_package = bool(parts) and parts[-1] == "__init__"
    if is_package:
        parts = parts[:-1]
    if not parts or not all(is_identifier(part) for part in parts):
        raise ModelError(f"{path} is not importable as a module below {root}")
    return ".".join(parts), is_package


__all__ = ["ModuleScope", "SourceModel", "module_name_for_path"]
