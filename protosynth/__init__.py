"""protosynth - Protobuf schema and marshaller generator for annotated types."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("protosynth")
except PackageNotFoundError:
    __version__ = "(local)"
