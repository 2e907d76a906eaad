"""Code templates with positional placeholders and type references.

A :class:`CodeBlock` is a format string split into literal text and
placeholders, plus the arguments bound to those placeholders:

``$L``
    literal; ``str()`` of the argument, or a nested block/type emitted in place.
``$N``
    name; the argument must be a valid identifier.
``$S``
    string; the argument is emitted as a double-quoted Python literal.
``$T``
    type; a :class:`ClassName` or :class:`TypeName` whose import is computed at
    emit time.
``$$``
    a literal dollar sign.
``$>`` / ``$<``
    increase / decrease the indentation of the following lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from ..errors import EmissionError
from .names import ClassName, is_identifier

_ARG_PLACEHOLDERS = frozenset({"$L", "$N", "$S", "$T"})
_INDENT = "$>"
_UNINDENT = "$<"


def _tokenize(fmt: str) -> List[str]:
    parts: List[str] = []
    literal: List[str] = []
    index = 0
    while index < len(fmt):
        char = fmt[index]
        if char != "$":
            literal.append(char)
            index += 1
            continue
        if index + 1 >= len(fmt):
            raise EmissionError(f"Dangling '$' at the end of template {fmt!r}")
        token = fmt[index : index + 2]
        index += 2
        if token == "$$":
            literal.append("$")
            continue
        if token not in _ARG_PLACEHOLDERS and token not in (_INDENT, _UNINDENT):
            raise EmissionError(f"Unknown placeholder {token!r} in template {fmt!r}")
        if literal:
            parts.append("".join(literal))
            literal = []
        parts.append(token)
    if literal:
        parts.append("".join(literal))
    return parts


def _check_argument(placeholder: str, arg: Any, fmt: str) -> None:
    if placeholder == "$N":
        if not isinstance(arg, str) or not is_identifier(arg):
            raise EmissionError(f"$N expects an identifier, got {arg!r} in {fmt!r}")
    elif placeholder == "$S":
        if arg is not None and not isinstance(arg, str):
            raise EmissionError(f"$S expects a string, got {type(arg).__name__} in {fmt!r}")
    elif placeholder == "$T":
        if not isinstance(arg, (ClassName, TypeName)):
            raise EmissionError(f"$T expects a type reference, got {arg!r} in {fmt!r}")


@dataclass(frozen=True)
class CodeBlock:
    """Immutable fragment of generated code."""

    format_parts: Tuple[str, ...] = ()
    args: Tuple[Any, ...] = ()

    @classmethod
    def of(cls, fmt: str, *args: Any) -> CodeBlock:
        return cls.builder().add(fmt, *args).build()

    @classmethod
    def builder(cls) -> CodeBlockBuilder:
        return CodeBlockBuilder()

    def is_empty(self) -> bool:
        return not self.format_parts

    def __str__(self) -> str:
        # Local import: the writer depends on this module.
        from .writer import CodeWriter

        return CodeWriter().emit_code(self).text()


class CodeBlockBuilder:
    """Accumulates template parts; validates placeholders as they are added."""

    def __init__(self) -> None:
        self._parts: List[str] = []
        self._args: List[Any] = []

    def add(self, fmt: str, *args: Any) -> CodeBlockBuilder:
        parts = _tokenize(fmt)
        placeholders = [part for part in parts if part in _ARG_PLACEHOLDERS]
        if len(placeholders) != len(args):
            raise EmissionError(
                f"Template {fmt!r} expects {len(placeholders)} arguments, got {len(args)}"
            )
        for placeholder, arg in zip(placeholders, args):
            _check_argument(placeholder, arg, fmt)
        self._parts.extend(parts)
        self._args.extend(args)
        return self

    def add_statement(self, fmt: str, *args: Any) -> CodeBlockBuilder:
        self.add(fmt, *args)
        self._parts.append("\n")
        return self

    def add_blank_line(self) -> CodeBlockBuilder:
        self._parts.append("\n")
        return self

    def begin_control_flow(self, fmt: str, *args: Any) -> CodeBlockBuilder:
        self.add(fmt, *args)
        self._parts.extend([":\n", _INDENT])
        return self

    def end_control_flow(self) -> CodeBlockBuilder:
        self._parts.append(_UNINDENT)
        return self

    def indent(self) -> CodeBlockBuilder:
        self._parts.append(_INDENT)
        return self

    def unindent(self) -> CodeBlockBuilder:
        self._parts.append(_UNINDENT)
        return self

    def add_code(self, block: CodeBlock) -> CodeBlockBuilder:
        self._parts.extend(block.format_parts)
        self._args.extend(block.args)
        return self

    def is_empty(self) -> bool:
        return not self._parts

    def build(self) -> CodeBlock:
        return CodeBlock(tuple(self._parts), tuple(self._args))


@dataclass(frozen=True)
class TypeName:
    """A type expression; simple classes, parameterized types or arbitrary forms."""

    code: CodeBlock

    @classmethod
    def get(cls, target: Union[ClassName, type]) -> TypeName:
        class_name = target if isinstance(target, ClassName) else ClassName.get(target)
        return cls(CodeBlock.of("$T", class_name))

    @classmethod
    def parameterized(
        cls, raw: Union[ClassName, type], *arguments: Union[TypeName, ClassName]
    ) -> TypeName:
        raw_name = raw if isinstance(raw, ClassName) else ClassName.get(raw)
        if not arguments:
            return cls.get(raw_name)
        placeholders = ", ".join("$T" for _ in arguments)
        return cls(CodeBlock.of(f"$T[{placeholders}]", raw_name, *arguments))

    @property
    def class_name(self) -> Optional[ClassName]:
        """The referenced class when this is a plain (unparameterized) reference."""
        if self.code.format_parts == ("$T",) and isinstance(self.code.args[0], ClassName):
            return self.code.args[0]
        return None

    def __str__(self) -> str:
        return str(self.code)


STR = TypeName.get(ClassName.builtin("str"))

__all__ = ["CodeBlock", "CodeBlockBuilder", "STR", "TypeName"]
