"""Base classes for generated marshallers and the stream protocols they use."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from typing import Any, ClassVar, Protocol


class MarshallingError(RuntimeError):
    """Raised when a value cannot be marshalled."""


class ProtoStreamReader(Protocol):
    """Reads field values by schema field name.

    `kind` is a scalar type name, `"enum"` or `"message"`; enum and message
    values also carry the fully-qualified schema type name.
    """

    def read(self, name: str, kind: str, type_name: str | None = None) -> Any: ...

    def read_collection(
        self,
        name: str,
        kind: str,
        factory: Callable[[Iterable[Any]], Any],
        type_name: str | None = None,
    ) -> Any: ...

    def read_map(
        self,
        name: str,
        key_kind: str,
        value_kind: str,
        factory: Callable[[Iterable[tuple[Any, Any]]], Any],
        value_type_name: str | None = None,
    ) -> Any: ...


class ProtoStreamWriter(Protocol):
    """Writes field values by schema field name."""

    def write(self, name: str, kind: str, value: Any, type_name: str | None = None) -> None: ...

    def write_collection(
        self, name: str, kind: str, values: Iterable[Any] | None, type_name: str | None = None
    ) -> None: ...

    def write_map(
        self,
        name: str,
        key_kind: str,
        value_kind: str,
        values: Mapping[Any, Any] | None,
        value_type_name: str | None = None,
    ) -> None: ...


class BaseMarshaller:
    """Common attributes of generated marshallers."""

    type_name: ClassVar[str]
    target: ClassVar[Any]


class MessageMarshaller(BaseMarshaller, ABC):
    """Base class for generated message marshallers.

    Example:
        class PointMarshaller(MessageMarshaller):
            type_name = "geo.Point"
            target = geo.Point

            def read_from(self, reader):
                obj = geo.Point()
                obj.x = reader.read("x", "int32")
                return obj

            def write_to(self, writer, obj):
                writer.write("x", "int32", obj.x)
    """

    @abstractmethod
    def read_from(self, reader: ProtoStreamReader) -> Any:
        """Read an instance of `target`."""

    @abstractmethod
    def write_to(self, writer: ProtoStreamWriter, obj: Any) -> None:
        """Write `obj`."""


class EnumMarshaller(BaseMarshaller):
    """Base class for generated enum marshallers.

    Subclasses list `(number, constant name)` pairs in `values`.
    """

    values: ClassVar[tuple[tuple[int, str], ...]] = ()

    def decode(self, number: int) -> Any | None:
        """Constant of `target` for a wire number, or None when it is unknown."""
        for value, constant in self.values:
            if value == number:
                return getattr(self.target, constant)
        return None

    def encode(self, constant: Any) -> int:
        name = constant if isinstance(constant, str) else getattr(constant, "name", None)
        for value, candidate in self.values:
            if candidate == name:
                return value
        raise MarshallingError(f"{constant!r} is not a value of {self.type_name}")
