"""Generator for secured companions: confidential fields are stored encrypted."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional, Tuple

from ..annotations import CONFIDENTIAL, REQUIRES_CONFIDENTIALITY, is_marker
from ..codegen.code import STR, CodeBlock, CodeBlockBuilder, TypeName
from ..codegen.names import ClassName
from ..codegen.specs import AnnotationSpec, FieldSpec, MethodSpec, Modifier, TypeSpecBuilder
from ..model.elements import InputClass, InputField
from .basic import AnnotationFilter, BasicClassGenerator

_RUNTIME = "securedgen.runtime"
_CAST = ClassName.of("typing", "cast")
_PUBLIC = frozenset({Modifier.PUBLIC})
_SUPPORT_MODIFIERS = frozenset({Modifier.PRIVATE, Modifier.TRANSIENT})


@dataclass(frozen=True)
class CipherBinding:
    """Runtime collaborators referenced by generated code."""

    passphrase_provider: ClassName
    tool_interface: ClassName
    tool_implementation: ClassName
    tool_error: ClassName
    serializer: ClassName
    serializer_error: ClassName
    illegal_state_error: ClassName
    transient_marker: ClassName

    @classmethod
    def default(cls) -> CipherBinding:
        return cls(
            passphrase_provider=ClassName.of(_RUNTIME, "PassphraseProvider"),
            tool_interface=ClassName.of(_RUNTIME, "AesTool"),
            tool_implementation=ClassName.of(_RUNTIME, "AesToolImpl"),
            tool_error=ClassName.of(_RUNTIME, "AesToolException"),
            serializer=ClassName.of(_RUNTIME, "BinarySerializer"),
            serializer_error=ClassName.of(_RUNTIME, "BinarySerializerException"),
            illegal_state_error=ClassName.of(_RUNTIME, "IllegalStateError"),
            transient_marker=ClassName.of(_RUNTIME, "Transient"),
        )

    def with_overrides(self, overrides: Mapping[str, ClassName]) -> CipherBinding:
        known = {item.name for item in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown cipher binding(s): {', '.join(unknown)}")
        return replace(self, **overrides)


class SecuredClassGenerator(BasicClassGenerator):
    """Emits ``<Name>Secured`` for classes marked with ``@requires_confidentiality``.

    Every ``Confidential`` field ``x: T`` becomes a string field ``xSecured``
    holding the encoded ciphertext, with ``getX``/``setX`` that decrypt and
    encrypt through the bound cipher tool, plus raw ``getXSecured``/``setXSecured``
    accessors. Other fields are copied as by :class:`BasicClassGenerator`.
    """

    SUFFIX = "Secured"
    GENERATOR_NAME = "securedgen.secured"
    PASSPHRASE_PROVIDER_FIELD_NAME = "passphraseProvider"
    PASSPHRASE_PROVIDER_MISSING = "The passphrase provider has not been set."

    def __init__(self, binding: Optional[CipherBinding] = None) -> None:
        super().__init__()
        self.binding = binding or CipherBinding.default()

    def get_suffix(self) -> str:
        return self.SUFFIX

    def annotation_filter(self) -> AnnotationFilter:
        def accept(mirror) -> bool:
            return not (
                is_marker(mirror.type, REQUIRES_CONFIDENTIALITY)
                or is_marker(mirror.type, CONFIDENTIAL)
            )

        return accept

    def construct_class_doc(self, input_class: InputClass) -> str:
        return f"Secured companion of {input_class.qualified_name}."

    def process_template_class_fields(self, input_class: InputClass, builder: TypeSpecBuilder) -> None:
        self.construct_encryption_support_members(builder)
        super().process_template_class_fields(input_class, builder)

    def process_field(self, builder: TypeSpecBuilder, field: InputField) -> None:
        if field.has_annotation(CONFIDENTIAL):
            self.construct_confidentiality_support_members(builder, field)
        else:
            super().process_field(builder, field)

    # Names ---------------------------------------------------------------

    def encryption_tool_field_name(self) -> str:
        return self.first_letter_to_lower_case(self.binding.tool_interface.simple_name)

    def secured_field_name(self, field_name: str) -> str:
        return f"{field_name}{self.get_suffix()}"

    @staticmethod
    def local_names(parameter: Optional[str] = None) -> Tuple[str, str]:
        """Names of the ``passphrase`` and ``binary_object`` locals, clear of ``parameter``."""
        taken = {parameter} if parameter else set()
        names = []
        for base in ("passphrase", "binary_object"):
            while base in taken:
                base = f"{base}_"
            taken.add(base)
            names.append(base)
        return names[0], names[1]

    # Encryption support --------------------------------------------------

    def construct_encryption_support_members(self, builder: TypeSpecBuilder) -> None:
        builder.add_field(self.construct_passphrase_provider_field_spec())
        builder.add_field(self.construct_encryption_tool_field_spec())
        builder.add_method(
            self.construct_basic_setter_spec_for_field_name(
                self.PASSPHRASE_PROVIDER_FIELD_NAME,
                TypeName.get(self.binding.passphrase_provider),
            )
        )
        builder.add_method(self.construct_setter_spec_for_encryption_tool())

    def construct_transient_field_spec(self, name: str, type_name: TypeName) -> FieldSpec:
        return self.construct_field(
            name,
            type_name,
            _SUPPORT_MODIFIERS,
            (AnnotationSpec.of(self.binding.transient_marker),),
        )

    def construct_passphrase_provider_field_spec(self) -> FieldSpec:
        return self.construct_transient_field_spec(
            self.PASSPHRASE_PROVIDER_FIELD_NAME,
            TypeName.get(self.binding.passphrase_provider),
        )

    def construct_encryption_tool_field_spec(self) -> FieldSpec:
        return self.construct_transient_field_spec(
            self.encryption_tool_field_name(),
            TypeName.get(self.binding.tool_interface),
        )

    def construct_setter_spec_for_encryption_tool(self) -> MethodSpec:
        spec = self.construct_basic_setter_spec_for_field_name(
            self.encryption_tool_field_name(),
            TypeName.get(self.binding.tool_interface),
        )
        return replace(spec, exceptions=(TypeName.get(self.binding.tool_error),))

    # Confidential fields -------------------------------------------------

    def construct_confidentiality_support_members(
        self, builder: TypeSpecBuilder, field: InputField
    ) -> None:
        """Add ``<f>Secured`` and the four accessors that replace a confidential field."""
        secured = self.secured_field_name(field.name)
        for name in (*self.local_names(), *self.local_names(field.name)):
            builder.reserve_name(name)

        builder.add_field(self.construct_field(secured, STR, field.modifiers, self.copy_annotations(field)))
        builder.add_method(self.construct_getter_capable_of_decryption(field))
        builder.add_method(self.construct_setter_capable_of_encryption(field))
        builder.add_method(self.construct_basic_getter_spec_for_field_name(secured, STR))
        builder.add_method(self.construct_basic_setter_spec_for_field_name(secured, STR))

    def cipher_exceptions(self) -> Tuple[TypeName, ...]:
        return (
            TypeName.get(self.binding.tool_error),
            TypeName.get(self.binding.serializer_error),
        )

    def construct_getter_capable_of_decryption(self, field: InputField) -> MethodSpec:
        return self.construct_method_spec(
            self.construct_basic_getter_doc(field.name),
            self.getter_name_for_field(field.name),
            _PUBLIC,
            field.type,
            exceptions=self.cipher_exceptions(),
            body=self.construct_getter_capable_of_decryption_body(field.name, field.type),
        )

    def construct_setter_capable_of_encryption(self, field: InputField) -> MethodSpec:
        spec = self.construct_basic_setter_spec_builder_for_field_name(field.name, field.type)
        return replace(
            spec,
            exceptions=self.cipher_exceptions(),
            body=self.construct_setter_capable_of_encryption_body(field.name),
        )

    def add_cipher_preconditions(self, builder: CodeBlockBuilder) -> CodeBlockBuilder:
        """Fail without a passphrase provider; install the default tool when none is set."""
        tool = self.encryption_tool_field_name()
        builder.begin_control_flow("if self.$N is None", self.PASSPHRASE_PROVIDER_FIELD_NAME)
        builder.add_statement("raise $T($S)", self.binding.illegal_state_error, self.PASSPHRASE_PROVIDER_MISSING)
        builder.end_control_flow()
        builder.add_blank_line()
        builder.begin_control_flow("if self.$N is None", tool)
        builder.add_statement("self.$N($T())", self.setter_name_for_field(tool), self.binding.tool_implementation)
        builder.end_control_flow()
        return builder.add_blank_line()

    def construct_getter_capable_of_decryption_body(self, field_name: str, field_type: TypeName) -> CodeBlock:
        tool = self.encryption_tool_field_name()
        passphrase, binary_object = self.local_names()
        builder = self.add_cipher_preconditions(CodeBlock.builder())
        builder.add_statement(
            "$N = self.$N.get_passphrase()", passphrase, self.PASSPHRASE_PROVIDER_FIELD_NAME
        )
        builder.add_statement(
            "$N = self.$N.decrypt(\n$>self.$N.decode_object(self.$N),\n$N,\n$<)",
            binary_object,
            tool,
            tool,
            self.secured_field_name(field_name),
            passphrase,
        )
        builder.add_statement("$N = None", passphrase)
        builder.add_statement(
            "return $T($T, $T.deserialize_object($N))",
            _CAST,
            field_type,
            self.binding.serializer,
            binary_object,
        )
        return builder.build()

    def construct_setter_capable_of_encryption_body(self, field_name: str) -> CodeBlock:
        tool = self.encryption_tool_field_name()
        passphrase, binary_object = self.local_names(field_name)
        builder = self.add_cipher_preconditions(CodeBlock.builder())
        builder.add_statement(
            "$N = $T.serialize_object($N)", binary_object, self.binding.serializer, field_name
        )
        builder.add_statement(
            "$N = self.$N.get_passphrase()", passphrase, self.PASSPHRASE_PROVIDER_FIELD_NAME
        )
        builder.add_statement(
            "self.$N = self.$N.encode_object(\n$>self.$N.encrypt($N, $N),\n$<)",
            self.secured_field_name(field_name),
            tool,
            tool,
            binary_object,
            passphrase,
        )
        builder.add_statement("$N = None", passphrase)
        return builder.build()


__all__ = ["CipherBinding", "SecuredClassGenerator"]
