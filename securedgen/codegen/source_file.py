"""Source units: import computation and final module rendering."""

from __future__ import annotations

import keyword
import re
import sys
from collections import defaultdict
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from ..errors import EmissionError
from .names import BUILTINS_MODULE, ClassName, is_identifier
from .specs import TypeSpec
from .writer import CodeWriter

GENERATED_HEADER_PREFIX = "Generated by securedgen"
_MODULE_TEMPLATE = "module.py.j2"
_DEFAULT_TEMPLATES_DIR = Path(__file__).with_name("templates")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def module_name_for_class(class_name: str) -> str:
    """``PersonSecured`` -> ``person_secured``."""
    return _CAMEL_BOUNDARY.sub("_", class_name).lower()


@dataclass(frozen=True)
class SourceFile:
    """A complete generated module holding a single top-level class."""

    package_name: str
    type_spec: TypeSpec
    module_name: Optional[str] = None
    header: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for part in self.package_name.split(".") if self.package_name else ():
            if not is_identifier(part):
                raise EmissionError(f"Invalid package name: {self.package_name!r}")
        if self.module_name is not None and not is_identifier(self.module_name):
            raise EmissionError(f"Invalid module name: {self.module_name!r}")

    @property
    def simple_module_name(self) -> str:
        return self.module_name or module_name_for_class(self.type_spec.name)

    @property
    def qualified_module(self) -> str:
        if self.package_name:
            return f"{self.package_name}.{self.simple_module_name}"
        return self.simple_module_name

    @property
    def qualified_name(self) -> str:
        """Fully qualified class name, ``<package>.<ClassName>``."""
        if self.package_name:
            return f"{self.package_name}.{self.type_spec.name}"
        return self.type_spec.name

    @property
    def relative_path(self) -> PurePosixPath:
        parts = self.package_name.split(".") if self.package_name else []
        return PurePosixPath(*parts, f"{self.simple_module_name}.py")

    def render(self, renderer: Optional[SourceRenderer] = None) -> str:
        return (renderer or default_renderer()).render(self)


def resolve_imports(
    referenced: Iterable[ClassName],
    reserved: Set[str],
    own_module: str,
) -> Tuple[Dict[ClassName, str], List[str]]:
    """Assign a collision-free local name to every referenced symbol.

    Returns the mapping used by :class:`CodeWriter` and the import lines. Builtins
    are claimed first and never imported; a builtin whose name is reserved is
    spelled ``builtins.<name>``. Other symbols are processed in canonical order;
    a symbol whose name is already taken is imported under an alias built from
    its module's last component. Standard-library imports form the first group,
    separated by an empty line from the rest.
    """
    by_top: Dict[Tuple[str, str], List[ClassName]] = defaultdict(list)
    for class_name in referenced:
        by_top[(class_name.module, class_name.top_level_name)].append(class_name)

    taken: Set[str] = set(reserved)
    local_for_top: Dict[Tuple[str, str], str] = {}
    qualify_builtins = False

    builtin_keys = sorted(key for key in by_top if key[0] == BUILTINS_MODULE)
    other_keys = sorted(key for key in by_top if key[0] != BUILTINS_MODULE)

    for key in builtin_keys:
        name = key[1]
        if name in reserved:
            local_for_top[key] = f"{BUILTINS_MODULE}.{name}"
            qualify_builtins = True
        else:
            local_for_top[key] = name
            taken.add(name)
    if qualify_builtins:
        taken.add(BUILTINS_MODULE)

    from_imports: Dict[str, List[str]] = defaultdict(list)
    for module, name in other_keys:
        if module == own_module and name not in reserved:
            local_for_top[(module, name)] = name
            taken.add(name)
            continue
        local = name
        if local in taken or keyword.iskeyword(local):
            prefix = module.rsplit(".", 1)[-1]
            local = f"{prefix}_{name}"
            counter = 2
            while local in taken:
                local = f"{prefix}_{name}{counter}"
                counter += 1
        taken.add(local)
        local_for_top[(module, name)] = local
        from_imports[module].append(name if local == name else f"{name} as {local}")

    stdlib_lines: List[str] = [f"import {BUILTINS_MODULE}"] if qualify_builtins else []
    other_lines: List[str] = []
    for module in sorted(from_imports):
        group = stdlib_lines if _is_stdlib(module) else other_lines
        group.append(f"from {module} import {', '.join(from_imports[module])}")
    lines = stdlib_lines + ([""] if stdlib_lines and other_lines else []) + other_lines

    mapping = {
        class_name: local_for_top[key]
        for key, class_names in by_top.items()
        for class_name in class_names
    }
    return mapping, lines


def _is_stdlib(module: str) -> bool:
    return module.split(".", 1)[0] in sys.stdlib_module_names


class SourceRenderer:
    """Renders :class:`SourceFile` objects through the jinja2 module template."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        directories: List[str] = []
        if templates_dir is not None:
            directories.append(str(templates_dir))
        if str(_DEFAULT_TEMPLATES_DIR) not in directories:
            directories.append(str(_DEFAULT_TEMPLATES_DIR))
        self._env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )

    def render(self, source_file: SourceFile) -> str:
        spec = source_file.type_spec
        collector = CodeWriter()
        spec.emit(collector)
        mapping, import_lines = resolve_imports(
            collector.referenced,
            spec.local_names(),
            source_file.qualified_module,
        )

        writer = CodeWriter(mapping)
        spec.emit(writer)

        try:
            template = self._env.get_template(_MODULE_TEMPLATE)
        except TemplateNotFound as exc:  # pragma: no cover - packaging error
            raise EmissionError(f"Module template {_MODULE_TEMPLATE!r} is missing") from exc
        rendered = template.render(
            header=list(source_file.header),
            imports=import_lines,
            body=writer.text().rstrip("\n"),
            qualified_name=source_file.qualified_name,
        )
        return rendered.rstrip("\n") + "\n"


@lru_cache(maxsize=1)
def default_renderer() -> SourceRenderer:
    return SourceRenderer()


def header_lines(source: str, generator: str) -> Sequence[str]:
    return (
        f"{GENERATED_HEADER_PREFIX} ({generator}) from {source}.",
        "Do not edit: changes are overwritten on the next build.",
    )


__all__ = [
    "GENERATED_HEADER_PREFIX",
    "SourceFile",
    "SourceRenderer",
    "default_renderer",
    "header_lines",
    "module_name_for_class",
    "resolve_imports",
]
