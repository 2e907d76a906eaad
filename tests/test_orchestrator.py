"""Tests for securedgen.orchestrator."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from securedgen.models import Kind
from securedgen.orchestrator import GenerationReport, Orchestrator
from securedgen.processors import ConfidentialityProcessor
from tests._fixtures.source_builder import PERSON_TEMPLATE, SourceTreeBuilder

ADDRESS_TEMPLATE = """
from securedgen import requires_confidentiality


@requires_confidentiality
class Address:
    street: str
"""


def _run(root: Path, **kwargs) -> GenerationReport:
    return Orchestrator(processors=[ConfidentialityProcessor()]).run_generate(root, **kwargs)


def test_generate_writes_secured_modules(source_builder: SourceTreeBuilder) -> None:
    source_builder.write(
        {
            "com/x/person.py": PERSON_TEMPLATE,
            "com/x/address.py": ADDRESS_TEMPLATE,
            "com/x/plain.py": "class Plain:\n    value: int\n",
        }
    )
    root = source_builder.path().resolve()

    report = _run(root)

    generated = root / "com" / "x" / "generated"
    assert report.ok
    assert report.rounds == 2
    assert sorted(unit.qualified_name for unit in report.units) == [
        "com.x.generated.AddressSecured",
        "com.x.generated.PersonSecured",
    ]
    assert sorted(report.written) == [generated / "address_secured.py", generated / "person_secured.py"]
    assert (generated / "__init__.py").exists()
    assert not (generated / "plain_secured.py").exists()
    text = (generated / "person_secured.py").read_text(encoding="utf-8")
    assert text.startswith("# Generated by securedgen (securedgen.secured) from com.x.person.Person.\n")
    assert "class PersonSecured:" in text


def test_rerun_is_byte_identical_and_skips_generated_classes(source_builder: SourceTreeBuilder) -> None:
    source_builder.write({"com/x/person.py": PERSON_TEMPLATE})
    root = source_builder.path()
    target = root / "com" / "x" / "generated" / "person_secured.py"

    first = _run(root)
    before = target.read_bytes()
    second = _run(root)

    assert first.ok and second.ok
    assert target.read_bytes() == before
    assert [unit.qualified_name for unit in second.units] == ["com.x.generated.PersonSecured"]
    assert not (root / "com" / "x" / "generated" / "generated").exists()


def test_dry_run_writes_nothing(source_builder: SourceTreeBuilder) -> None:
    source_builder.write({"com/x/person.py": PERSON_TEMPLATE})
    root = source_builder.path()

    report = _run(root, dry_run=True)

    assert report.dry_run is True
    assert report.written == []
    assert list(report.sources) == ["com.x.generated.person_secured"]
    assert not (root / "com" / "x" / "generated").exists()


def test_output_dir_override(source_builder: SourceTreeBuilder, tmp_path: Path) -> None:
    source_builder.write({"com/x/person.py": PERSON_TEMPLATE})
    out = tmp_path / "out"

    report = _run(source_builder.path(), output_dir=out)

    assert report.output_dir == out.resolve()
    assert report.written == [out.resolve() / "com" / "x" / "generated" / "person_secured.py"]


def test_unreadable_modules_are_reported_and_siblings_continue(
    source_builder: SourceTreeBuilder,
) -> None:
    source_builder.write(
        {
            "com/x/broken.py": "class Broken(:\n",
            "com/x/person.py": PERSON_TEMPLATE,
        }
    )

    report = _run(source_builder.path(), dry_run=True)

    assert not report.ok
    (error,) = report.errors
    assert error.element == "com/x/broken.py"
    assert "Syntax error" in error.message
    assert list(report.sources) == ["com.x.generated.person_secured"]


def test_config_controls_package_and_round_limit(source_builder: SourceTreeBuilder) -> None:
    source_builder.write(
        {
            ".securedgen.yml": "generated_package: secured\nmax_rounds: 1\n",
            "com/x/person.py": PERSON_TEMPLATE,
        }
    )

    report = _run(source_builder.path(), dry_run=True)

    assert list(report.sources) == ["com.x.secured.person_secured"]
    assert report.rounds == 1
    warnings = [item for item in report.diagnostics if item.kind is Kind.WARNING]
    assert [item.message for item in warnings] == [
        "Stopped after 1 rounds; generated sources were left unprocessed."
    ]


def test_invalid_config_falls_back_to_defaults(source_builder: SourceTreeBuilder) -> None:
    source_builder.write(
        {
            ".securedgen.yml": "generated_package: 'not-valid'\n",
            "com/x/person.py": PERSON_TEMPLATE,
        }
    )

    report = _run(source_builder.path(), dry_run=True)

    assert list(report.sources) == ["com.x.generated.person_secured"]


def test_cancelled_run_generates_nothing(source_builder: SourceTreeBuilder) -> None:
    source_builder.write({"com/x/person.py": PERSON_TEMPLATE})
    event = threading.Event()
    event.set()

    report = _run(source_builder.path(), dry_run=True, cancel_event=event)

    assert report.units == []
    assert report.rounds == 0


def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        _run(tmp_path / "missing")
