"""Tests for securedgen.generators.basic."""

from __future__ import annotations

import ast

import pytest

from securedgen.codegen.specs import Modifier
from securedgen.errors import InputRejection
from securedgen.generators.basic import BasicClassGenerator
from tests._fixtures.source_builder import SourceTreeBuilder

ADDRESS_TEMPLATE = """
from typing import Annotated, ClassVar

from acme.orm import Column


class Address:
    street: Annotated[str, Column("street")]
    zip_code: int
    _note: str = "ignored initializer"
    registry: ClassVar[dict[str, int]]
"""


@pytest.fixture
def address(source_builder: SourceTreeBuilder):
    source_builder.write({"com/x/address.py": ADDRESS_TEMPLATE})
    return source_builder.input_class("com.x.address", "Address")


def test_copy_contains_every_field_with_accessors(address) -> None:
    source = BasicClassGenerator().construct_source_file("com.x.generated", address)
    spec = source.type_spec

    assert source.qualified_name == "com.x.generated.AddressCopy"
    assert [field.name for field in spec.fields] == ["street", "zip_code", "_note", "registry"]
    assert [method.name for method in spec.methods] == [
        "getStreet",
        "setStreet",
        "getZip_code",
        "setZip_code",
        "get_note",
        "set_note",
        "getRegistry",
        "setRegistry",
    ]
    assert spec.field("_note").modifiers == frozenset({Modifier.PRIVATE})
    assert spec.field("registry").modifiers == frozenset({Modifier.PUBLIC, Modifier.CLASSVAR})
    assert spec.method("__getstate__") is None


def test_copy_renders_valid_python(address) -> None:
    text = BasicClassGenerator().construct_source_file("com.x.generated", address).render()

    ast.parse(text)
    assert "from acme.orm import Column" in text
    assert "from typing import Annotated, ClassVar" in text
    assert "    street: Annotated[str, Column('street')] = None\n" in text
    assert "    _note: str = None\n" in text
    assert "ignored initializer" not in text
    assert "    registry: ClassVar[dict[str, int]] = None\n" in text
    assert (
        "    def setZip_code(self, zip_code: int) -> None:\n"
        '        """Sets the zip_code."""\n'
        "        self.zip_code = zip_code\n"
    ) in text
    assert '@generated("securedgen.basic", source="com.x.address.Address")' in text


def test_name_helpers() -> None:
    generator = BasicClassGenerator()

    assert generator.get_suffix() == "Copy"
    assert generator.getter_name_for_field("ssn") == "getSsn"
    assert generator.setter_name_for_field("ssnSecured") == "setSsnSecured"
    assert generator.first_letter_to_lower_case("AesTool") == "aesTool"
    assert generator.first_letter_to_upper_case("") == ""


def test_functions_are_rejected(source_builder: SourceTreeBuilder) -> None:
    source_builder.write({"com/x/factory.py": "def make():\n    return None\n"})
    element = source_builder.read("com.x.factory").element("make")

    with pytest.raises(InputRejection, match="is not a class"):
        BasicClassGenerator().construct_source_file("com.x.generated", element)


def test_generated_classes_are_rejected(source_builder: SourceTreeBuilder) -> None:
    source_builder.write(
        {
            "com/x/generated/address_copy.py": """
            from securedgen.annotations import generated

            @generated("securedgen.basic", source="com.x.address.Address")
            class AddressCopy:
                street: str = None
            """
        }
    )
    element = source_builder.input_class("com.x.generated.address_copy", "AddressCopy")

    with pytest.raises(InputRejection, match="generated code"):
        BasicClassGenerator().construct_source_file("com.x.generated.generated", element)
