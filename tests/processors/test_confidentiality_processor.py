"""Tests for securedgen.processors (driver, filers and discovery)."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Set

import pytest

from securedgen.annotations import CONFIDENTIAL, REQUIRES_CONFIDENTIALITY
from securedgen.codegen.names import ClassName
from securedgen.config import load_config
from securedgen.errors import OutputError
from securedgen.generators.secured import SecuredClassGenerator
from securedgen.model.adapter import SourceModel
from securedgen.models import Kind
from securedgen.processors import (
    ConfidentialityProcessor,
    DirectoryFiler,
    LoggingMessager,
    MemoryFiler,
    ProcessingEnvironment,
    Processor,
    RoundEnvironment,
    destination_package,
    discover_processors,
)
from tests._fixtures.source_builder import PERSON_TEMPLATE


def _round(source: str, module: str = "com.x.person") -> RoundEnvironment:
    return RoundEnvironment(SourceModel().read_source(source, module).elements)


def _processor(**env_kwargs) -> tuple[ConfidentialityProcessor, MemoryFiler, LoggingMessager]:
    filer = MemoryFiler()
    messager = LoggingMessager()
    processor = ConfidentialityProcessor()
    processor.init(ProcessingEnvironment(filer=filer, messager=messager, **env_kwargs))
    return processor, filer, messager


def test_marked_class_produces_secured_unit() -> None:
    processor, filer, messager = _processor()

    claimed = processor.process({REQUIRES_CONFIDENTIALITY}, _round(PERSON_TEMPLATE))

    assert claimed is True
    assert [unit.qualified_name for unit in filer.units] == ["com.x.generated.PersonSecured"]
    assert list(filer.sources) == ["com.x.generated.person_secured"]
    assert [(d.kind, d.message) for d in messager.diagnostics] == [
        (
            Kind.NOTE,
            "Creating secured class for com.x.person.Person => com.x.generated.PersonSecured.",
        )
    ]


def test_unmarked_class_produces_nothing() -> None:
    processor, filer, messager = _processor()

    processor.process(
        {REQUIRES_CONFIDENTIALITY},
        _round("class Person:\n    name: str\n"),
    )

    assert filer.units == []
    assert messager.diagnostics == []


def test_generated_class_is_skipped() -> None:
    processor, filer, messager = _processor()
    source = (
        "from securedgen import generated, requires_confidentiality\n"
        "\n"
        "@requires_confidentiality\n"
        '@generated("securedgen.secured", source="com.x.person.Person")\n'
        "class PersonSecured:\n"
        "    name: str = None\n"
    )

    processor.process({REQUIRES_CONFIDENTIALITY}, _round(source, "com.x.generated.person_secured"))

    assert filer.units == []
    assert messager.diagnostics == []


def test_marked_function_is_skipped_with_note() -> None:
    processor, filer, messager = _processor()
    source = (
        "from securedgen import requires_confidentiality\n"
        "\n"
        "@requires_confidentiality\n"
        "def make_person():\n"
        "    return None\n"
    )

    processor.process({REQUIRES_CONFIDENTIALITY}, _round(source))

    assert filer.units == []
    (diagnostic,) = messager.diagnostics
    assert diagnostic.kind is Kind.NOTE
    assert "only classes can require confidentiality" in diagnostic.message


def test_failures_are_reported_and_siblings_continue() -> None:
    processor, filer, messager = _processor()
    source = (
        "from typing import Annotated\n"
        "from securedgen import Confidential, requires_confidentiality\n"
        "\n"
        "@requires_confidentiality\n"
        "class Broken:\n"
        "    value: Missing\n"
        "\n"
        "@requires_confidentiality\n"
        "class Person:\n"
        "    ssn: Annotated[str, Confidential()]\n"
    )

    assert processor.process({REQUIRES_CONFIDENTIALITY}, _round(source)) is True

    assert [unit.qualified_name for unit in filer.units] == ["com.x.generated.PersonSecured"]
    errors = [d for d in messager.diagnostics if d.kind is Kind.ERROR]
    assert len(errors) == 1
    assert "Cannot resolve name 'Missing'" in errors[0].message
    assert errors[0].element.endswith(":5")
    assert messager.error_count == 1


def test_output_errors_are_reported() -> None:
    processor, filer, messager = _processor()
    round_env = _round(PERSON_TEMPLATE)

    processor.process({REQUIRES_CONFIDENTIALITY}, round_env)
    processor.process({REQUIRES_CONFIDENTIALITY}, round_env)

    assert len(filer.units) == 1
    assert messager.error_count == 1
    assert "already written in this session" in messager.diagnostics[-1].message


def test_cancellation_stops_between_inputs() -> None:
    event = threading.Event()
    event.set()
    processor, filer, messager = _processor(cancel_event=event)

    processor.process({REQUIRES_CONFIDENTIALITY}, _round(PERSON_TEMPLATE))

    assert filer.units == []
    (diagnostic,) = messager.diagnostics
    assert diagnostic.kind is Kind.WARNING
    assert "cancelled" in diagnostic.message


def test_configuration_drives_package_and_cipher_binding(tmp_path: Path) -> None:
    (tmp_path / ".securedgen.yml").write_text(
        "generated_package: secured\ncipher:\n  tool_interface: 'acme.crypto:Cipher'\n",
        encoding="utf-8",
    )
    processor, filer, _ = _processor(config=load_config(tmp_path))

    processor.process({REQUIRES_CONFIDENTIALITY}, _round(PERSON_TEMPLATE))

    (unit,) = filer.units
    assert unit.qualified_name == "com.x.secured.PersonSecured"
    assert "    cipher: Annotated[Cipher, Transient()] = None\n" in unit.text


def test_explicit_generator_is_used() -> None:
    class AuditedGenerator(SecuredClassGenerator):
        def construct_class_doc(self, input_class) -> str:
            return "Audited."

    filer = MemoryFiler()
    processor = ConfidentialityProcessor(AuditedGenerator())
    processor.init(ProcessingEnvironment(filer=filer, messager=LoggingMessager()))

    processor.process({REQUIRES_CONFIDENTIALITY}, _round(PERSON_TEMPLATE))

    assert '    """Audited."""\n' in filer.units[0].text


@pytest.mark.parametrize(
    ("package", "expected"),
    [("com.x", "com.x.generated"), ("", "generated")],
)
def test_destination_package(package: str, expected: str) -> None:
    assert destination_package(package, "generated") == expected


def test_processor_requires_init() -> None:
    with pytest.raises(RuntimeError, match="init"):
        ConfidentialityProcessor().process({REQUIRES_CONFIDENTIALITY}, _round(PERSON_TEMPLATE))


def test_supported_annotation_types_are_marker_names() -> None:
    assert ConfidentialityProcessor().supported_annotation_types() == {
        "securedgen.annotations.requires_confidentiality",
        "securedgen.annotations.Confidential",
    }
    assert ConfidentialityProcessor.SUPPORTED_ANNOTATION_TYPES == {REQUIRES_CONFIDENTIALITY, CONFIDENTIAL}


def test_discover_processors_includes_builtin() -> None:
    processors = discover_processors()

    assert [type(processor) for processor in processors] == [ConfidentialityProcessor]
    assert discover_processors(["Confidentiality"])[0].__class__ is ConfidentialityProcessor


def test_discover_processors_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Unknown processors requested: missing"):
        discover_processors(["missing"])


def test_discover_processors_loads_entry_points(monkeypatch: pytest.MonkeyPatch) -> None:
    class RecordingProcessor(Processor):
        def process(self, annotations: Set[ClassName], round_env: RoundEnvironment) -> bool:
            return True

    class _EntryPoint:
        name = "recording"

        def load(self) -> object:
            return RecordingProcessor

    monkeypatch.setattr("securedgen.processors._iter_entry_points", lambda: [_EntryPoint()])

    kinds: List[type] = [type(processor) for processor in discover_processors()]

    assert kinds == [ConfidentialityProcessor, RecordingProcessor]


def test_directory_filer_writes_package_and_module(tmp_path: Path) -> None:
    processor, _, _ = _processor()
    filer = DirectoryFiler(tmp_path)
    processor.init(ProcessingEnvironment(filer=filer, messager=LoggingMessager()))

    processor.process({REQUIRES_CONFIDENTIALITY}, _round(PERSON_TEMPLATE))

    target = tmp_path / "com" / "x" / "generated" / "person_secured.py"
    assert filer.units[0].path == target
    assert target.read_text(encoding="utf-8") == filer.units[0].text
    assert (tmp_path / "com" / "x" / "generated" / "__init__.py").read_text(encoding="utf-8") == ""


def test_directory_filer_replaces_only_generated_modules(tmp_path: Path) -> None:
    target = tmp_path / "com" / "x" / "generated" / "person_secured.py"
    target.parent.mkdir(parents=True)
    target.write_text("# hand written\n", encoding="utf-8")
    source_file = SecuredClassGenerator().construct_source_file(
        "com.x.generated",
        SourceModel().read_source(PERSON_TEMPLATE, "com.x.person").element("Person"),
    )

    with pytest.raises(OutputError, match="not generated by securedgen"):
        DirectoryFiler(tmp_path).write_source(source_file)
    assert target.read_text(encoding="utf-8") == "# hand written\n"

    target.write_text("# Generated by securedgen (old) from com.x.person.Person.\n", encoding="utf-8")
    DirectoryFiler(tmp_path).write_source(source_file)
    assert target.read_text(encoding="utf-8").startswith("# Generated by securedgen (securedgen.secured)")
