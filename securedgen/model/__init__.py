"""Source model: read-only views over template modules parsed with :mod:`ast`."""

from .adapter import ModuleScope, SourceModel, module_name_for_path
from .elements import (
    AnnotationMirror,
    ElementKind,
    InputClass,
    InputElement,
    InputField,
    InputModule,
)
from .scanner import SourceScanner

__all__ = [
    "AnnotationMirror",
    "ElementKind",
    "InputClass",
    "InputElement",
    "InputField",
    "InputModule",
    "ModuleScope",
    "SourceModel",
    "SourceScanner",
    "module_name_for_path",
]
