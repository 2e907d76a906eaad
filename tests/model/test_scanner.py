"""Tests for securedgen.model.scanner."""

from __future__ import annotations

from pathlib import Path

import pytest

from securedgen.model.scanner import SourceScanner, build_ignore_rule


def _write(path: Path, content: str = "") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_scan_lists_importable_modules_in_stable_order(tmp_path: Path) -> None:
    _write(tmp_path / "com" / "__init__.py")
    _write(tmp_path / "com" / "x" / "__init__.py")
    _write(tmp_path / "com" / "x" / "person.py", "class Person: ...\n")
    _write(tmp_path / "com" / "x" / "address.py", "class Address: ...\n")
    _write(tmp_path / "top.py", "x = 1\n")
    _write(tmp_path / "README.md", "# readme\n")
    _write(tmp_path / "my-scripts" / "tool.py", "print('skip')\n")
    _write(tmp_path / ".venv" / "lib.py", "print('skip')\n")
    _write(tmp_path / "build" / "lib" / "com" / "x" / "person.py", "print('skip')\n")

    manifest = SourceScanner().scan(tmp_path)

    assert manifest.root == str(tmp_path.resolve())
    assert [meta.path for meta in manifest.files] == [
        "top.py",
        "com/__init__.py",
        "com/x/__init__.py",
        "com/x/address.py",
        "com/x/person.py",
    ]
    by_path = {meta.path: meta for meta in manifest.files}
    assert by_path["com/x/__init__.py"].module == "com.x"
    assert by_path["com/x/__init__.py"].is_package is True
    assert by_path["com/x/person.py"].module == "com.x.person"
    assert by_path["com/x/person.py"].size == len("class Person: ...\n")
    assert manifest.absolute(by_path["top.py"]) == tmp_path.resolve() / "top.py"


def test_scan_honours_gitignore_and_config_excludes(tmp_path: Path) -> None:
    _write(tmp_path / ".gitignore", "# comment\nsandbox/\n*_old.py\n!keep_old.py\n")
    _write(tmp_path / ".securedgen.yml", "exclude_paths:\n  - /legacy\n")
    _write(tmp_path / "app.py")
    _write(tmp_path / "sandbox" / "play.py")
    _write(tmp_path / "person_old.py")
    _write(tmp_path / "keep_old.py")
    _write(tmp_path / "legacy" / "models.py")
    _write(tmp_path / "pkg" / "legacy" / "models.py")

    paths = [meta.path for meta in SourceScanner().scan(tmp_path).files]

    assert paths == ["app.py", "keep_old.py", "pkg/legacy/models.py"]


def test_scan_ignores_broken_config(tmp_path: Path) -> None:
    _write(tmp_path / ".securedgen.yml", "exclude_paths: [unclosed\n")
    _write(tmp_path / "app.py")

    paths = [meta.path for meta in SourceScanner().scan(tmp_path).files]

    assert paths == ["app.py"]


def test_scan_rejects_missing_or_file_roots(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        SourceScanner().scan(tmp_path / "missing")
    _write(tmp_path / "file.py")
    with pytest.raises(NotADirectoryError):
        SourceScanner().scan(tmp_path / "file.py")


def test_build_ignore_rule_variants() -> None:
    assert build_ignore_rule("   ") is None

    directory = build_ignore_rule("dist/")
    assert directory is not None
    assert directory.matches("dist", True)
    assert not directory.matches("dist", False)

    anchored = build_ignore_rule("/docs/*.py")
    assert anchored is not None
    assert anchored.matches("docs/conf.py", False)
    assert not anchored.matches("src/docs/conf.py", False)
