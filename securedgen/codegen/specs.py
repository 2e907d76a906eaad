"""Member specifications assembled by generators and rendered by :mod:`source_file`."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

from ..errors import EmissionError
from .code import CodeBlock, TypeName
from .names import ClassName, is_identifier
from .writer import CodeWriter

ANNOTATED = ClassName.of("typing", "Annotated")
CLASS_VAR = ClassName.of("typing", "ClassVar")
FINAL = ClassName.of("typing", "Final")


class Modifier(str, Enum):
    """Member modifiers. Only CLASSVAR, FINAL and STATIC change the rendered syntax."""

    PUBLIC = "public"
    PRIVATE = "private"
    TRANSIENT = "transient"
    CLASSVAR = "classvar"
    FINAL = "final"
    STATIC = "static"


def _require_identifier(kind: str, name: str) -> None:
    if not is_identifier(name):
        raise EmissionError(f"Invalid {kind} name: {name!r}")


def _escape_doc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


def _docstring_literal(text: str) -> str:
    escaped = _escape_doc(text)
    if "\n" in escaped:
        return f'"""{escaped}\n"""'
    return f'"""{escaped}"""'


@dataclass(frozen=True)
class AnnotationSpec:
    """An annotation (decorator or ``Annotated`` metadata) and its resolved type."""

    type: Optional[ClassName]
    code: CodeBlock

    @classmethod
    def of(cls, type_: ClassName, args_format: Optional[str] = "", *args: Any) -> AnnotationSpec:
        """Build ``Type(args)``; ``args_format=None`` renders the bare ``Type``."""
        builder = CodeBlock.builder().add("$T", type_)
        if args_format is not None:
            builder.add("(").add(args_format, *args).add(")")
        return cls(type_, builder.build())


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: TypeName
    modifiers: FrozenSet[Modifier] = frozenset()
    annotations: Tuple[AnnotationSpec, ...] = ()
    initializer: Optional[CodeBlock] = None

    def __post_init__(self) -> None:
        _require_identifier("field", self.name)

    def declared_type(self) -> CodeBlock:
        """The rendered annotation: Annotated/Final/ClassVar wrappers around the type."""
        code = self.type.code
        if self.annotations:
            builder = CodeBlock.builder().add("$T[$L", ANNOTATED, code)
            for annotation in self.annotations:
                builder.add(", $L", annotation.code)
            code = builder.add("]").build()
        if Modifier.FINAL in self.modifiers:
            code = CodeBlock.of("$T[$L]", FINAL, code)
        if Modifier.CLASSVAR in self.modifiers:
            code = CodeBlock.of("$T[$L]", CLASS_VAR, code)
        return code

    def emit(self, writer: CodeWriter) -> None:
        initializer = self.initializer if self.initializer is not None else CodeBlock.of("None")
        writer.emit_code(CodeBlock.of("$N: $L = $L\n", self.name, self.declared_type(), initializer))


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    type: Optional[TypeName] = None
    default: Optional[CodeBlock] = None

    def __post_init__(self) -> None:
        _require_identifier("parameter", self.name)

    def code(self) -> CodeBlock:
        builder = CodeBlock.builder().add("$N", self.name)
        if self.type is not None:
            builder.add(": $T", self.type)
        if self.default is not None:
            builder.add(" = " if self.type is not None else "=").add_code(self.default)
        return builder.build()


@dataclass(frozen=True)
class MethodSpec:
    name: str
    body: CodeBlock = field(default_factory=CodeBlock)
    return_type: Optional[TypeName] = None
    parameters: Tuple[ParameterSpec, ...] = ()
    modifiers: FrozenSet[Modifier] = frozenset({Modifier.PUBLIC})
    exceptions: Tuple[TypeName, ...] = ()
    annotations: Tuple[AnnotationSpec, ...] = ()
    doc: Optional[str] = None

    def __post_init__(self) -> None:
        _require_identifier("method", self.name)
        seen: Set[str] = set()
        for parameter in self.parameters:
            if parameter.name in seen or parameter.name == "self":
                raise EmissionError(f"Duplicate parameter {parameter.name!r} in {self.name}()")
            seen.add(parameter.name)

    def emit(self, writer: CodeWriter) -> None:
        for annotation in self.annotations:
            writer.emit_code(CodeBlock.of("@$L\n", annotation.code))
        static = Modifier.STATIC in self.modifiers
        if static:
            writer.emit("@staticmethod\n")

        signature = CodeBlock.builder().add("def $N(", self.name)
        params: List[CodeBlock] = [] if static else [CodeBlock.of("self")]
        params.extend(parameter.code() for parameter in self.parameters)
        for index, param in enumerate(params):
            if index:
                signature.add(", ")
            signature.add_code(param)
        signature.add(") -> $L:\n", self.return_type.code if self.return_type else "None")
        writer.emit_code(signature.build())

        writer.indent()
        doc = self._doc_block()
        if doc is not None:
            writer.emit_code(doc)
        if self.body.is_empty():
            if doc is None:
                writer.emit("pass\n")
        else:
            writer.emit_code(self.body)
        writer.unindent()

    def _doc_block(self) -> Optional[CodeBlock]:
        if not self.doc and not self.exceptions:
            return None
        if not self.exceptions:
            return CodeBlock.of("$L\n", _docstring_literal(self.doc or ""))
        builder = CodeBlock.builder().add('"""')
        if self.doc:
            builder.add("$L\n\n", _escape_doc(self.doc))
        builder.add("Raises:\n")
        for exception in self.exceptions:
            builder.add("    $T\n", exception)
        return builder.add('"""\n').build()


@dataclass(frozen=True)
class TypeSpec:
    """A class to emit: decorators, docstring, fields, then methods."""

    name: str
    fields: Tuple[FieldSpec, ...] = ()
    methods: Tuple[MethodSpec, ...] = ()
    annotations: Tuple[AnnotationSpec, ...] = ()
    doc: Optional[str] = None
    reserved_names: FrozenSet[str] = frozenset()

    @classmethod
    def class_builder(cls, name: str) -> TypeSpecBuilder:
        return TypeSpecBuilder(name)

    def field(self, name: str) -> Optional[FieldSpec]:
        return next((spec for spec in self.fields if spec.name == name), None)

    def method(self, name: str) -> Optional[MethodSpec]:
        return next((spec for spec in self.methods if spec.name == name), None)

    def local_names(self) -> Set[str]:
        """Names a type import must not shadow inside this class."""
        names = {self.name, *self.reserved_names}
        names.update(spec.name for spec in self.fields)
        for method in self.methods:
            names.add(method.name)
            names.update(parameter.name for parameter in method.parameters)
        return names

    def emit(self, writer: CodeWriter) -> None:
        for annotation in self.annotations:
            writer.emit_code(CodeBlock.of("@$L\n", annotation.code))
        writer.emit_code(CodeBlock.of("class $N:\n", self.name))

        writer.indent()
        if self.doc:
            writer.emit(_docstring_literal(self.doc) + "\n")
        if self.fields:
            if self.doc:
                writer.emit("\n")
            for spec in self.fields:
                spec.emit(writer)
        for index, method in enumerate(self.methods):
            if index or self.doc or self.fields:
                writer.emit("\n")
            method.emit(writer)
        if not (self.doc or self.fields or self.methods):
            writer.emit("pass\n")
        writer.unindent()


class TypeSpecBuilder:
    """Collects members for a :class:`TypeSpec`; member names are unique per kind."""

    def __init__(self, name: str) -> None:
        _require_identifier("class", name)
        self.name = name
        self.doc: Optional[str] = None
        self._fields: Dict[str, FieldSpec] = {}
        self._methods: Dict[str, MethodSpec] = {}
        self._annotations: List[AnnotationSpec] = []
        self._reserved: Set[str] = set()

    def add_field(self, spec: FieldSpec) -> TypeSpecBuilder:
        if spec.name in self._fields:
            raise EmissionError(f"Duplicate field {spec.name!r} on {self.name}")
        self._fields[spec.name] = spec
        return self

    def add_method(self, spec: MethodSpec) -> TypeSpecBuilder:
        if spec.name in self._methods:
            raise EmissionError(f"Duplicate method {spec.name!r} on {self.name}")
        self._methods[spec.name] = spec
        return self

    def add_annotation(self, spec: AnnotationSpec) -> TypeSpecBuilder:
        self._annotations.append(spec)
        return self

    def set_doc(self, doc: Optional[str]) -> TypeSpecBuilder:
        self.doc = doc
        return self

    def reserve_name(self, name: str) -> TypeSpecBuilder:
        self._reserved.add(name)
        return self

    @property
    def fields(self) -> Tuple[FieldSpec, ...]:
        return tuple(self._fields.values())

    @property
    def methods(self) -> Tuple[MethodSpec, ...]:
        return tuple(self._methods.values())

    def build(self) -> TypeSpec:
        overlap = set(self._fields) & set(self._methods)
        if overlap:
            names = ", ".join(sorted(overlap))
            raise EmissionError(f"Members of {self.name} are both field and method: {names}")
        return TypeSpec(
            name=self.name,
            fields=self.fields,
            methods=self.methods,
            annotations=tuple(self._annotations),
            doc=self.doc,
            reserved_names=frozenset(self._reserved),
        )


__all__ = [
    "AnnotationSpec",
    "FieldSpec",
    "MethodSpec",
    "Modifier",
    "ParameterSpec",
    "TypeSpec",
    "TypeSpecBuilder",
]
