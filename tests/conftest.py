from __future__ import annotations

import importlib
import sys
from pathlib import Path
from types import ModuleType
from typing import Callable, Iterator, List

import pytest

from tests._fixtures.source_builder import SourceTreeBuilder


@pytest.fixture
def source_builder(tmp_path: Path) -> SourceTreeBuilder:
    """Provide a reusable template source tree rooted at the pytest tmp_path."""
    return SourceTreeBuilder(tmp_path)


@pytest.fixture
def import_generated(monkeypatch: pytest.MonkeyPatch) -> Iterator[Callable[[Path, str], ModuleType]]:
    """Import a module from a generated tree; the imported packages are dropped afterwards."""
    loaded: List[str] = []

    def _import(root: Path, module_name: str) -> ModuleType:
        monkeypatch.syspath_prepend(str(root))
        importlib.invalidate_caches()
        loaded.append(module_name.split(".", 1)[0])
        return importlib.import_module(module_name)

    yield _import

    for top in loaded:
        for name in [key for key in sys.modules if key == top or key.startswith(f"{top}.")]:
            del sys.modules[name]
