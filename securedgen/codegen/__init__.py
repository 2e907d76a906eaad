"""Emission utility: type references, code templates, member specs and source units."""

from .code import STR, CodeBlock, CodeBlockBuilder, TypeName
from .names import ClassName, is_identifier
from .source_file import (
    GENERATED_HEADER_PREFIX,
    SourceFile,
    SourceRenderer,
    header_lines,
    module_name_for_class,
)
from .specs import (
    AnnotationSpec,
    FieldSpec,
    MethodSpec,
    Modifier,
    ParameterSpec,
    TypeSpec,
    TypeSpecBuilder,
)

__all__ = [
    "AnnotationSpec",
    "ClassName",
    "CodeBlock",
    "CodeBlockBuilder",
    "FieldSpec",
    "GENERATED_HEADER_PREFIX",
    "MethodSpec",
    "Modifier",
    "ParameterSpec",
    "STR",
    "SourceFile",
    "SourceRenderer",
    "TypeName",
    "TypeSpec",
    "TypeSpecBuilder",
    "header_lines",
    "is_identifier",
    "module_name_for_class",
]
