"""Base generator: copies a template class into a companion with bean-style accessors."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Tuple, Union

from ..annotations import GENERATED
from ..codegen.code import CodeBlock, TypeName
from ..codegen.names import ClassName
from ..codegen.source_file import SourceFile, header_lines
from ..codegen.specs import (
    AnnotationSpec,
    FieldSpec,
    MethodSpec,
    Modifier,
    ParameterSpec,
    TypeSpecBuilder,
)
from ..errors import InputRejection
from ..logging import get_logger
from ..model.elements import AnnotationMirror, ElementKind, InputClass, InputElement, InputField

AnnotationFilter = Callable[[AnnotationMirror], bool]

_PUBLIC = frozenset({Modifier.PUBLIC})
_DICT = ClassName.builtin("dict")


class BasicClassGenerator:
    """Emits ``<Name><suffix>`` holding a copy of every field plus getter and setter.

    Subclasses customise the output through the hook methods:
    :meth:`process_template_class_fields`, :meth:`process_field`,
    :meth:`annotation_filter` and :meth:`get_suffix`.
    """

    SUFFIX = "Copy"
    GENERATOR_NAME = "securedgen.basic"

    def __init__(self) -> None:
        self.logger = get_logger("generator")

    # Entry point ---------------------------------------------------------

    def construct_source_file(self, package_name: str, input_class: InputElement) -> SourceFile:
        """Build the output source unit for ``input_class`` in ``package_name``."""
        if input_class.kind is not ElementKind.CLASS or not isinstance(input_class, InputClass):
            raise InputRejection(f"{input_class.qualified_name} is not a class")
        if input_class.has_annotation(GENERATED):
            raise InputRejection(f"{input_class.qualified_name} is generated code")

        builder = TypeSpecBuilder(self.output_class_name(input_class))
        builder.add_annotation(self.construct_generated_annotation(input_class))
        for annotation in self.copy_annotations(input_class):
            builder.add_annotation(annotation)
        builder.set_doc(self.construct_class_doc(input_class))

        self.process_template_class_fields(input_class, builder)
        self.construct_transient_state_members(builder)

        self.logger.debug(
            "Built %s with %d fields and %d methods",
            builder.name,
            len(builder.fields),
            len(builder.methods),
        )
        return SourceFile(
            package_name=package_name,
            type_spec=builder.build(),
            header=tuple(header_lines(input_class.qualified_name, self.GENERATOR_NAME)),
        )

    # Hooks ---------------------------------------------------------------

    def get_suffix(self) -> str:
        """Suffix appended to the template class name (and to derived member names)."""
        return self.SUFFIX

    def annotation_filter(self) -> AnnotationFilter:
        """Predicate deciding which class and field annotations are copied; the base copies all."""
        return lambda mirror: True

    def process_template_class_fields(self, input_class: InputClass, builder: TypeSpecBuilder) -> None:
        for field in input_class.fields:
            self.process_field(builder, field)

    def process_field(self, builder: TypeSpecBuilder, field: InputField) -> None:
        """Copy the field and add its standard getter and setter."""
        builder.add_field(
            self.construct_field(
                field.name,
                field.type,
                field.modifiers,
                self.copy_annotations(field),
            )
        )
        builder.add_method(self.construct_basic_getter_spec_for_field_name(field.name, field.type))
        builder.add_method(self.construct_basic_setter_spec_for_field_name(field.name, field.type))

    # Names ---------------------------------------------------------------

    def output_class_name(self, input_class: InputElement) -> str:
        return f"{input_class.simple_name}{self.get_suffix()}"

    def getter_name_for_field(self, field_name: str) -> str:
        return f"get{self.first_letter_to_upper_case(field_name)}"

    def setter_name_for_field(self, field_name: str) -> str:
        return f"set{self.first_letter_to_upper_case(field_name)}"

    @staticmethod
    def first_letter_to_lower_case(name: str) -> str:
        return name[:1].lower() + name[1:]

    @staticmethod
    def first_letter_to_upper_case(name: str) -> str:
        return name[:1].upper() + name[1:]

    # Member builders -----------------------------------------------------

    def construct_generated_annotation(self, input_class: InputElement) -> AnnotationSpec:
        return AnnotationSpec.of(
            GENERATED,
            "$S, source=$S",
            self.GENERATOR_NAME,
            input_class.qualified_name,
        )

    def construct_class_doc(self, input_class: InputElement) -> str:
        return f"Companion of {input_class.qualified_name}."

    def construct_field(
        self,
        name: str,
        type_name: TypeName,
        modifiers: Iterable[Modifier],
        annotations: Iterable[AnnotationSpec] = (),
    ) -> FieldSpec:
        return FieldSpec(
            name=name,
            type=type_name,
            modifiers=frozenset(modifiers),
            annotations=tuple(annotations),
        )

    def construct_method_spec(
        self,
        doc: Optional[str],
        name: str,
        modifiers: Iterable[Modifier],
        return_type: Optional[TypeName],
        annotations: Iterable[AnnotationSpec] = (),
        exceptions: Iterable[TypeName] = (),
        parameters: Iterable[ParameterSpec] = (),
        body: Optional[CodeBlock] = None,
    ) -> MethodSpec:
        return MethodSpec(
            name=name,
            body=body if body is not None else CodeBlock(),
            return_type=return_type,
            parameters=tuple(parameters),
            modifiers=frozenset(modifiers),
            exceptions=tuple(exceptions),
            annotations=tuple(annotations),
            doc=doc,
        )

    def construct_basic_getter_spec_for_field_name(self, field_name: str, type_name: TypeName) -> MethodSpec:
        return self.construct_method_spec(
            self.construct_basic_getter_doc(field_name),
            self.getter_name_for_field(field_name),
            _PUBLIC,
            type_name,
            body=self.construct_basic_getter_method_body(field_name),
        )

    def construct_basic_setter_spec_builder_for_field_name(
        self, field_name: str, type_name: TypeName
    ) -> MethodSpec:
        """Setter without a body; callers fill in the body or declared errors."""
        return self.construct_method_spec(
            self.construct_basic_setter_doc(field_name),
            self.setter_name_for_field(field_name),
            _PUBLIC,
            None,
            parameters=self.construct_basic_setter_parameters(field_name, type_name),
        )

    def construct_basic_setter_spec_for_field_name(self, field_name: str, type_name: TypeName) -> MethodSpec:
        spec = self.construct_basic_setter_spec_builder_for_field_name(field_name, type_name)
        return replace(spec, body=self.construct_basic_setter_method_body(field_name))

    def construct_basic_getter_method_body(self, field_name: str) -> CodeBlock:
        return CodeBlock.builder().add_statement("return self.$N", field_name).build()

    def construct_basic_setter_method_body(self, field_name: str) -> CodeBlock:
        return CodeBlock.builder().add_statement("self.$N = $N", field_name, field_name).build()

    def construct_basic_setter_parameters(
        self, field_name: str, type_name: TypeName
    ) -> Tuple[ParameterSpec, ...]:
        return (ParameterSpec(field_name, type_name),)

    def construct_basic_getter_doc(self, field_name: str) -> str:
        return f"Gets the {field_name}."

    def construct_basic_setter_doc(self, field_name: str) -> str:
        return f"Sets the {field_name}."

    def copy_annotations(self, element: Union[InputClass, InputField]) -> Tuple[AnnotationSpec, ...]:
        """Annotations of ``element`` accepted by :meth:`annotation_filter`, in order."""
        accept = self.annotation_filter()
        return tuple(mirror.to_spec() for mirror in element.annotations if accept(mirror))

    def construct_transient_state_members(self, builder: TypeSpecBuilder) -> None:
        """Add ``__getstate__`` leaving transient fields out of pickled state."""
        transient: List[str] = [
            spec.name for spec in builder.fields if Modifier.TRANSIENT in spec.modifiers
        ]
        if not transient:
            return
        body = CodeBlock.builder().add_statement("state = $T(self.__dict__)", _DICT)
        for name in transient:
            body.add_statement("state.pop($S, None)", name)
        body.add_statement("return state")
        builder.reserve_name("state")
        builder.add_method(
            self.construct_method_spec(
                "Returns the instance state without transient fields.",
                "__getstate__",
                _PUBLIC,
                TypeName.get(_DICT),
                body=body.build(),
            )
        )


__all__ = ["AnnotationFilter", "BasicClassGenerator"]
