"""Protobuf schema and marshaller generator."""

from .adapter import adapt as adapt
from .errors import *
from .host import HostModel as HostModel
from .host import load_model as load_model
from .manifest import SERVICE_NAME as SERVICE_NAME
from .manifest import ServiceRegistrationManifest as ServiceRegistrationManifest
from .processor import Diagnostic as Diagnostic
from .processor import DiagnosticKind as DiagnosticKind
from .processor import ProtoSchemaProcessor as ProtoSchemaProcessor
from .processor import build_unit as build_unit
from .sinks import DirectorySink as DirectorySink
from .sinks import MemorySink as MemorySink
from .sinks import OutputSink as OutputSink
