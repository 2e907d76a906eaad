"""Tests for securedgen.codegen specs, import resolution and module rendering."""

from __future__ import annotations

import ast
from pathlib import Path, PurePosixPath

import pytest

from securedgen.codegen.code import STR, CodeBlock, TypeName
from securedgen.codegen.names import ClassName
from securedgen.codegen.source_file import (
    SourceFile,
    SourceRenderer,
    header_lines,
    module_name_for_class,
    resolve_imports,
)
from securedgen.codegen.specs import (
    AnnotationSpec,
    FieldSpec,
    MethodSpec,
    Modifier,
    ParameterSpec,
    TypeSpec,
)
from securedgen.codegen.writer import CodeWriter
from securedgen.errors import EmissionError

AES_TOOL = ClassName.of("securedgen.runtime", "AesTool")
AES_ERROR = ClassName.of("securedgen.runtime", "AesToolException")
OTHER_TOOL = ClassName.of("acme.crypto", "AesTool")


@pytest.mark.parametrize(
    ("class_name", "module"),
    [
        ("PersonSecured", "person_secured"),
        ("HTTPRequestSecured", "http_request_secured"),
        ("Address2Secured", "address2_secured"),
        ("Secured", "secured"),
    ],
)
def test_module_name_for_class(class_name: str, module: str) -> None:
    assert module_name_for_class(class_name) == module


def test_source_file_names_and_path() -> None:
    source = SourceFile("com.x.generated", TypeSpec(name="PersonSecured"))

    assert source.qualified_name == "com.x.generated.PersonSecured"
    assert source.qualified_module == "com.x.generated.person_secured"
    assert source.relative_path == PurePosixPath("com/x/generated/person_secured.py")


def test_source_file_rejects_invalid_package() -> None:
    with pytest.raises(EmissionError):
        SourceFile("com.x-y", TypeSpec(name="PersonSecured"))


def test_resolve_imports_puts_stdlib_group_first() -> None:
    mapping, lines = resolve_imports(
        {AES_TOOL, AES_ERROR, ClassName.of("typing", "Annotated"), ClassName.builtin("str")},
        reserved=set(),
        own_module="com.x.generated.person_secured",
    )

    assert lines == [
        "from typing import Annotated",
        "",
        "from securedgen.runtime import AesTool, AesToolException",
    ]
    assert mapping[ClassName.builtin("str")] == "str"
    assert mapping[AES_TOOL] == "AesTool"


def test_resolve_imports_aliases_colliding_names() -> None:
    mapping, lines = resolve_imports(
        {AES_TOOL, OTHER_TOOL},
        reserved=set(),
        own_module="out",
    )

    assert mapping[OTHER_TOOL] == "AesTool"
    assert mapping[AES_TOOL] == "runtime_AesTool"
    assert lines == [
        "from acme.crypto import AesTool",
        "from securedgen.runtime import AesTool as runtime_AesTool",
    ]


def test_resolve_imports_avoids_reserved_member_names() -> None:
    mapping, lines = resolve_imports(
        {AES_TOOL, ClassName.builtin("str")},
        reserved={"AesTool", "str"},
        own_module="out",
    )

    assert mapping[AES_TOOL] == "runtime_AesTool"
    assert mapping[ClassName.builtin("str")] == "builtins.str"
    assert lines == [
        "import builtins",
        "",
        "from securedgen.runtime import AesTool as runtime_AesTool",
    ]


def test_field_spec_renders_wrappers_and_annotations() -> None:
    marker = AnnotationSpec.of(ClassName.of("acme.orm", "Column"), "$S", "ssn")
    spec = FieldSpec(
        "ssn",
        STR,
        frozenset({Modifier.PUBLIC, Modifier.CLASSVAR}),
        (marker, AnnotationSpec.of(ClassName.of("acme.orm", "Indexed"), None)),
    )

    assert str(spec.declared_type()) == 'ClassVar[Annotated[str, Column("ssn"), Indexed]]'


def test_method_spec_renders_docstring_with_raises() -> None:
    method = MethodSpec(
        name="setAesTool",
        body=CodeBlock.of("self.aesTool = aesTool\n"),
        parameters=(ParameterSpec("aesTool", TypeName.get(AES_TOOL)),),
        exceptions=(TypeName.get(AES_ERROR),),
        doc="Sets the aesTool.",
    )

    writer = CodeWriter()
    method.emit(writer)

    assert writer.text() == (
        "def setAesTool(self, aesTool: AesTool) -> None:\n"
        '    """Sets the aesTool.\n'
        "\n"
        "    Raises:\n"
        "        AesToolException\n"
        '    """\n'
        "    self.aesTool = aesTool\n"
    )


def test_method_spec_rejects_bad_parameters() -> None:
    with pytest.raises(EmissionError):
        MethodSpec(name="setX", parameters=(ParameterSpec("x"), ParameterSpec("x")))
    with pytest.raises(EmissionError):
        MethodSpec(name="setX", parameters=(ParameterSpec("self"),))


def test_type_spec_builder_rejects_duplicates() -> None:
    builder = TypeSpec.class_builder("PersonSecured")
    builder.add_field(FieldSpec("name", STR))

    with pytest.raises(EmissionError, match="Duplicate field"):
        builder.add_field(FieldSpec("name", STR))

    builder.add_method(MethodSpec(name="name"))
    with pytest.raises(EmissionError, match="both field and method"):
        builder.build()


def _person_spec() -> TypeSpec:
    builder = TypeSpec.class_builder("PersonSecured")
    builder.add_annotation(
        AnnotationSpec.of(ClassName.of("securedgen.annotations", "generated"), "$S", "test")
    )
    builder.set_doc("Secured companion of com.x.person.Person.")
    builder.add_field(FieldSpec("aesTool", TypeName.get(AES_TOOL)))
    builder.add_method(
        MethodSpec(
            name="getAesTool",
            body=CodeBlock.of("return self.aesTool\n"),
            return_type=TypeName.get(AES_TOOL),
        )
    )
    return builder.build()


def test_renderer_produces_complete_module() -> None:
    source = SourceFile(
        "com.x.generated",
        _person_spec(),
        header=tuple(header_lines("com.x.person.Person", "securedgen.secured")),
    )

    text = source.render()

    assert text == (
        "# Generated by securedgen (securedgen.secured) from com.x.person.Person.\n"
        "# Do not edit: changes are overwritten on the next build.\n"
        "\n"
        '"""Secured companion module for com.x.generated.PersonSecured."""\n'
        "\n"
        "from __future__ import annotations\n"
        "\n"
        "from securedgen.annotations import generated\n"
        "from securedgen.runtime import AesTool\n"
        "\n"
        "\n"
        '@generated("test")\n'
        "class PersonSecured:\n"
        '    """Secured companion of com.x.person.Person."""\n'
        "\n"
        "    aesTool: AesTool = None\n"
        "\n"
        "    def getAesTool(self) -> AesTool:\n"
        "        return self.aesTool\n"
    )
    ast.parse(text)


def test_renderer_is_deterministic() -> None:
    source = SourceFile("com.x.generated", _person_spec())

    assert source.render() == source.render()


def test_renderer_prefers_custom_templates(tmp_path: Path) -> None:
    (tmp_path / "module.py.j2").write_text("# custom\n{{ body }}\n", encoding="utf-8")
    source = SourceFile("com.x.generated", _person_spec())

    text = SourceRenderer(tmp_path).render(source)

    assert text.startswith("# custom\n@generated")
