"""Driver turning ``@requires_confidentiality`` classes into secured companions."""

from __future__ import annotations

from typing import Optional, Set

from ..annotations import CONFIDENTIAL, GENERATED, REQUIRES_CONFIDENTIALITY
from ..codegen.names import ClassName
from ..errors import GenerationError, InputRejection
from ..generators.secured import CipherBinding, SecuredClassGenerator
from ..logging import get_logger
from ..model.elements import ElementKind, InputElement
from ..models import Kind
from .base import ProcessingEnvironment, Processor, RoundEnvironment


def destination_package(package: str, generated_package: str) -> str:
    """``com.x`` -> ``com.x.generated``; top-level modules map to ``generated``."""
    return f"{package}.{generated_package}" if package else generated_package


class ConfidentialityProcessor(Processor):
    """Runs :class:`SecuredClassGenerator` for every marked class of a round.

    Failures are reported through the messager and never abort the remaining
    inputs. A cancellation request is honoured between inputs.
    """

    SUPPORTED_ANNOTATION_TYPES = frozenset({REQUIRES_CONFIDENTIALITY, CONFIDENTIAL})

    def __init__(self, generator: Optional[SecuredClassGenerator] = None) -> None:
        super().__init__()
        self._generator = generator
        self.logger = get_logger("processor")

    def init(self, env: ProcessingEnvironment) -> None:
        super().init(env)
        if self._generator is None:
            binding = CipherBinding.default()
            if env.config is not None:
                binding = binding.with_overrides(env.config.cipher.overrides())
            self._generator = SecuredClassGenerator(binding)

    @property
    def generator(self) -> SecuredClassGenerator:
        if self._generator is None:
            self._generator = SecuredClassGenerator()
        return self._generator

    def process(self, annotations: Set[ClassName], round_env: RoundEnvironment) -> bool:
        elements = round_env.get_elements_annotated_with(REQUIRES_CONFIDENTIALITY)
        self.logger.debug("Round offers %d marked elements", len(elements))
        for index, element in enumerate(elements):
            if self.env.cancelled():
                self.env.messager.print_message(
                    Kind.WARNING,
                    f"Generation cancelled; {len(elements) - index} input(s) skipped.",
                )
                break
            self._process_element(element)
        return True

    def _process_element(self, element: InputElement) -> None:
        messager = self.env.messager
        if element.has_annotation(GENERATED):
            self.logger.debug("Skipping generated class %s", element.qualified_name)
            return
        if element.kind is not ElementKind.CLASS:
            messager.print_message(
                Kind.NOTE,
                f"Skipping {element.qualified_name}: only classes can require confidentiality.",
                element.location(),
            )
            return

        package = destination_package(element.package, self.env.generated_package)
        output_name = self.generator.output_class_name(element)
        messager.print_message(
            Kind.NOTE,
            f"Creating secured class for {element.qualified_name} => {package}.{output_name}.",
            element.location(),
        )
        try:
            source_file = self.generator.construct_source_file(package, element)
            self.env.filer.write_source(source_file)
        except InputRejection as exc:
            messager.print_message(Kind.NOTE, f"Skipping: {exc}", element.location())
        except GenerationError as exc:
            messager.print_message(Kind.ERROR, str(exc), element.location())


__all__ = ["ConfidentialityProcessor", "destination_package"]
