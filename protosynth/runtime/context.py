"""Serialization context and the initializer contract of generated code."""

import importlib
import logging
from abc import ABC, abstractmethod
from importlib import resources
from typing import Any

from .marshaller import BaseMarshaller

logger = logging.getLogger(__name__)


class ContextError(RuntimeError):
    """Raised when a schema file or marshaller cannot be found."""


class SerializationContext:
    """Registry of schema files and marshallers."""

    def __init__(self) -> None:
        self._proto_files: dict[str, str] = {}
        self._marshallers: dict[str, BaseMarshaller] = {}
        self._by_class: dict[Any, BaseMarshaller] = {}

    @property
    def proto_files(self) -> dict[str, str]:
        return dict(self._proto_files)

    def register_proto_file(self, name: str, text: str) -> None:
        if name in self._proto_files:
            logger.debug("Replacing schema file %s", name)
        self._proto_files[name] = text

    def get_proto_file(self, name: str) -> str:
        try:
            return self._proto_files[name]
        except KeyError:
            raise ContextError(f"Schema file {name} is not registered") from None

    def register_marshaller(self, marshaller: BaseMarshaller) -> None:
        self._marshallers[marshaller.type_name] = marshaller
        self._by_class[marshaller.target] = marshaller

    def can_marshall(self, key: str | type) -> bool:
        if isinstance(key, str):
            return key in self._marshallers
        return key in self._by_class

    def get_marshaller(self, key: str | type) -> BaseMarshaller:
        """Look up a marshaller by schema type name or by target class."""
        marshaller = self._marshallers.get(key) if isinstance(key, str) else self._by_class.get(key)
        if marshaller is None:
            raise ContextError(f"No marshaller registered for {key!r}")
        return marshaller

    def register_initializer(self, initializer: "SerializationContextInitializer") -> None:
        initializer.register_schema(self)
        initializer.register_marshallers(self)


class SerializationContextInitializer(ABC):
    """Contract implemented by generated initializers."""

    @abstractmethod
    def get_proto_file_name(self) -> str: ...

    @abstractmethod
    def get_proto_file(self) -> str: ...

    @abstractmethod
    def register_schema(self, ctx: SerializationContext) -> None: ...

    @abstractmethod
    def register_marshallers(self, ctx: SerializationContext) -> None: ...


def read_resource_text(path: str, package: str | None = None) -> str:
    """Read a schema resource stored as package data.

    The directories of `path` name the package; a bare file name is looked up
    in `package`.
    """
    directory, _, name = path.rpartition("/")
    anchor = directory.replace("/", ".") if directory else package
    if not anchor:
        raise ContextError(f"Cannot locate schema resource {path}")
    return resources.files(anchor).joinpath(name).read_text(encoding="utf-8")


def load_initializers(manifest: str) -> list[SerializationContextInitializer]:
    """Instantiate the initializers listed in a service manifest."""
    initializers = []
    for line in manifest.splitlines():
        name = line.split("#", 1)[0].strip()
        if not name:
            continue
        # Each initializer lives in a module of its own name
        module = importlib.import_module(name)
        class_name = name.rpartition(".")[2]
        initializers.append(getattr(module, class_name)())
    return initializers
