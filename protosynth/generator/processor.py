"""Processing rounds over host models.

Each entry point type (one carrying `ProtoSchema`) is a generation unit. A
unit fails as a whole on its first error, which is reported once; other units
of the round carry on.
"""

import logging
import traceback
from dataclasses import dataclass
from enum import StrEnum, auto

from .adapter import adapt
from .binder import MarshallerBinder
from .builder import SchemaBuilder, check_initializer
from .emitter import ArtifactEmitter
from .errors import ProtoSchemaBuilderError
from .host import HostModel
from .manifest import ServiceRegistrationManifest
from .model import MemberKind, TypeDescriptor, TypeUniverse
from .naming import (
    InitializerName,
    NamingResolver,
    initializer_name,
    schema_file_name,
    schema_package,
)
from .selection import select_types
from .sinks import OutputSink
from .types import Binding, GeneratedArtifactSet, ProtoSchemaModel

logger = logging.getLogger(__name__)

# Methods the generated initializer implements
INITIALIZER_METHODS = (
    "get_proto_file_name",
    "get_proto_file",
    "register_schema",
    "register_marshallers",
)


class DiagnosticKind(StrEnum):
    ERROR = auto()
    WARNING = auto()
    NOTE = auto()


_LOG_LEVELS = {
    DiagnosticKind.ERROR: logging.ERROR,
    DiagnosticKind.WARNING: logging.WARNING,
    DiagnosticKind.NOTE: logging.DEBUG,
}


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    element: str | None = None

    def __str__(self) -> str:
        if self.element:
            return f"{self.element}: {self.message}"
        return self.message


class Messager:
    """Collects diagnostics and mirrors them to the log."""

    def __init__(self) -> None:
        self.diagnostics: list[Diagnostic] = []

    def report(self, kind: DiagnosticKind, message: str, element: str | None = None) -> None:
        diagnostic = Diagnostic(kind, message, element)
        self.diagnostics.append(diagnostic)
        logger.log(_LOG_LEVELS[kind], "%s", diagnostic)

    def error(self, message: str, element: str | None = None) -> None:
        self.report(DiagnosticKind.ERROR, message, element)

    def warning(self, message: str, element: str | None = None) -> None:
        self.report(DiagnosticKind.WARNING, message, element)

    def note(self, message: str, element: str | None = None) -> None:
        self.report(DiagnosticKind.NOTE, message, element)

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    @property
    def has_errors(self) -> bool:
        return any(d.kind == DiagnosticKind.ERROR for d in self.diagnostics)


@dataclass
class GenerationUnit:
    """Everything built for one entry point before anything is rendered."""

    entry: TypeDescriptor
    initializer: InitializerName
    model: ProtoSchemaModel
    bindings: list[Binding]


def build_unit(entry: TypeDescriptor, universe: TypeUniverse) -> GenerationUnit:
    """Validate an entry point and build its schema model and marshaller bindings."""
    check_initializer(entry, universe)
    assert entry.schema is not None
    config = entry.schema

    selected = select_types(entry, config, universe)
    model = SchemaBuilder(
        universe,
        selected,
        file_name=schema_file_name(entry),
        origin=entry.name,
        package=schema_package(entry),
        auto_import=config.auto_import_classes,
    ).build()
    NamingResolver(model).resolve()
    bindings = MarshallerBinder(model, universe).bind()

    return GenerationUnit(entry, initializer_name(entry), model, bindings)


class ProtoSchemaProcessor:
    """Generates schema files and initializers for every entry point of a host model."""

    def __init__(
        self,
        sink: OutputSink,
        manifest: ServiceRegistrationManifest | None = None,
        debug: bool = False,
    ) -> None:
        self.sink = sink
        self.manifest = manifest or ServiceRegistrationManifest()
        self.debug = debug
        self.messager = Messager()
        self._processed: set[str] = set()

    def note(self, message: str, element: str | None = None) -> None:
        if self.debug:
            self.messager.note(message, element)

    def process(
        self, host_model: HostModel, processing_over: bool = True
    ) -> list[GeneratedArtifactSet]:
        """Run one round. Returns the artifacts of the units that succeeded."""
        artifacts: list[GeneratedArtifactSet] = []
        try:
            universe = adapt(host_model)

            for entry in universe.entry_points():
                if entry.name in self._processed:
                    self.note("Skipping type already processed in an earlier round", entry.name)
                    continue
                self._processed.add(entry.name)

                try:
                    artifacts.append(self.generate(entry, universe))
                except ProtoSchemaBuilderError as e:
                    self.messager.error(e.message, e.element or entry.name)

            if processing_over:
                self.manifest.flush(self.sink)
        except Exception:
            self.messager.error(
                "ProtoSchemaProcessor failed with an unexpected exception:\n"
                + traceback.format_exc()
            )

        return artifacts

    def generate(self, entry: TypeDescriptor, universe: TypeUniverse) -> GeneratedArtifactSet:
        """Generate and write the artifacts of one entry point."""
        unit = build_unit(entry, universe)
        self._warn_overrides(entry, universe)
        if unit.initializer.fqn in universe:
            self.note(
                f"Generated initializer {unit.initializer.fqn} is already present in the model",
                entry.name,
            )

        emitter = ArtifactEmitter(self.sink, self.manifest)
        artifacts = emitter.render(unit.entry, unit.model, unit.bindings, unit.initializer)
        emitter.write(artifacts, entry.name)
        return artifacts

    def _warn_overrides(self, entry: TypeDescriptor, universe: TypeUniverse) -> None:
        seen: set[str] = set()
        for owner in [entry, *universe.supertypes_of(entry)]:
            for member in owner.members_of(MemberKind.METHOD):
                if member.name not in INITIALIZER_METHODS or member.name in seen:
                    continue
                # The closest declaration is the one the initializer overrides
                seen.add(member.name)
                if not member.is_abstract:
                    self.messager.warning(
                        f"The generated initializer will inadvertently override {member.name}",
                        f"{owner.name}.{member.name}",
                    )
