"""Confidentiality markers recognised by the generator.

Template classes use them like this::

    from typing import Annotated

    from securedgen.annotations import Confidential, requires_confidentiality

    @requires_confidentiality
    class Person:
        name: str
        ssn: Annotated[str, Confidential()]

The markers carry no payload and do nothing at runtime; the generator only
looks for their presence in the source.
"""

from __future__ import annotations

from typing import Callable, FrozenSet, Optional, TypeVar

from .codegen.names import ClassName

_T = TypeVar("_T")


def requires_confidentiality(cls: _T) -> _T:
    """Class-level marker: generate a secured companion for this class."""
    return cls


class Confidential:
    """Field-level marker, used as ``typing.Annotated`` metadata.

    Both ``Annotated[str, Confidential]`` and ``Annotated[str, Confidential()]``
    are accepted.
    """

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Confidential)

    def __hash__(self) -> int:
        return hash(Confidential)

    def __repr__(self) -> str:
        return "Confidential()"


def generated(generator: str, *, source: Optional[str] = None) -> Callable[[_T], _T]:
    """Marks a class as generated code; such classes are never processed again."""

    def decorate(cls: _T) -> _T:
        return cls

    return decorate


def _spellings(obj: object) -> FrozenSet[ClassName]:
    # The top-level package re-exports every marker.
    canonical = ClassName.get(obj)
    return frozenset({canonical, ClassName.of("securedgen", canonical.simple_name)})


REQUIRES_CONFIDENTIALITY = ClassName.get(requires_confidentiality)
CONFIDENTIAL = ClassName.get(Confidential)
GENERATED = ClassName.get(generated)

_MARKER_SPELLINGS = {
    REQUIRES_CONFIDENTIALITY: _spellings(requires_confidentiality),
    CONFIDENTIAL: _spellings(Confidential),
    GENERATED: _spellings(generated),
}


def is_marker(candidate: Optional[ClassName], marker: ClassName) -> bool:
    """Return True when ``candidate`` resolves to ``marker`` (or its re-export)."""
    if candidate is None:
        return False
    return candidate in _MARKER_SPELLINGS.get(marker, frozenset({marker}))


__all__ = [
    "CONFIDENTIAL",
    "Confidential",
    "GENERATED",
    "REQUIRES_CONFIDENTIALITY",
    "generated",
    "is_marker",
    "requires_confidentiality",
]
