"""Error taxonomy for the generation engine."""

from __future__ import annotations


class GenerationError(RuntimeError):
    """Raised when a secured class cannot be generated for an input."""


class InputRejection(GenerationError):
    """The input is not a class, or is itself a generated artifact."""


class ModelError(GenerationError):
    """A name, annotation or field type in the source model cannot be resolved."""


class EmissionError(GenerationError):
    """The emission utility refused a member or a template."""


class OutputError(GenerationError):
    """The output channel refused to write a source unit."""


__all__ = [
    "EmissionError",
    "GenerationError",
    "InputRejection",
    "ModelError",
    "OutputError",
]
