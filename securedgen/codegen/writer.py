"""Renders code blocks to text, tracking indentation and referenced types."""

from __future__ import annotations

import json
from typing import Any, List, Mapping, Optional, Set

from .code import CodeBlock, TypeName
from .names import ClassName

INDENT = "    "


def string_literal(value: Optional[str]) -> str:
    """Return ``value`` as a double-quoted Python string literal."""
    if value is None:
        return "None"
    return json.dumps(value)


class CodeWriter:
    """Emits code with indentation; records every ``ClassName`` it renders.

    Without an import mapping the writer runs in collection mode: types render
    by their top-level simple name and are only recorded. With a mapping each
    type renders under its resolved local name.
    """

    def __init__(self, imports: Mapping[ClassName, str] | None = None) -> None:
        self._imports = imports
        self._out: List[str] = []
        self._level = 0
        self._at_line_start = True
        self.referenced: Set[ClassName] = set()

    def indent(self, levels: int = 1) -> CodeWriter:
        self._level += levels
        return self

    def unindent(self, levels: int = 1) -> CodeWriter:
        if self._level - levels < 0:
            raise ValueError("Cannot unindent below column zero")
        self._level -= levels
        return self

    def emit(self, text: str) -> CodeWriter:
        for chunk in text.splitlines(keepends=True):
            if self._at_line_start and chunk != "\n":
                self._out.append(INDENT * self._level)
            self._out.append(chunk)
            self._at_line_start = chunk.endswith("\n")
        return self

    def emit_code(self, block: CodeBlock) -> CodeWriter:
        args = iter(block.args)
        for part in block.format_parts:
            if part == "$L":
                self._emit_literal(next(args))
            elif part == "$N":
                self.emit(next(args))
            elif part == "$S":
                self.emit(string_literal(next(args)))
            elif part == "$T":
                self.emit_type(next(args))
            elif part == "$>":
                self.indent()
            elif part == "$<":
                self.unindent()
            else:
                self.emit(part)
        return self

    def emit_type(self, target: ClassName | TypeName) -> CodeWriter:
        if isinstance(target, TypeName):
            return self.emit_code(target.code)
        self.referenced.add(target)
        return self.emit(self.lookup_name(target))

    def lookup_name(self, class_name: ClassName) -> str:
        local = class_name.top_level_name
        if self._imports is not None:
            local = self._imports.get(class_name, local)
        return ".".join((local, *class_name.simple_names[1:]))

    def _emit_literal(self, value: Any) -> None:
        if isinstance(value, CodeBlock):
            self.emit_code(value)
        elif isinstance(value, (TypeName, ClassName)):
            self.emit_type(value)
        else:
            self.emit(str(value))

    def text(self) -> str:
        return "".join(self._out)


__all__ = ["CodeWriter", "INDENT", "string_literal"]
