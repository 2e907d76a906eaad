"""Class generators producing companion source units from template classes."""

from __future__ import annotations

from .basic import AnnotationFilter, BasicClassGenerator
from .secured import CipherBinding, SecuredClassGenerator

__all__ = [
    "AnnotationFilter",
    "BasicClassGenerator",
    "CipherBinding",
    "SecuredClassGenerator",
]
