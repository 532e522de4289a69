"""Unit tests configuration file."""

import sys
from typing import Any

import pytest

from protosynth.generator.adapter import adapt
from protosynth.generator.host import HostModel
from protosynth.generator.model import TypeUniverse

INITIALIZER = "protosynth.runtime.SerializationContextInitializer"


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


class HostBuilder:
    """Builds host model documents the way a host serializes them."""

    @staticmethod
    def member(
        name: str,
        kind: str = "method",
        type_: str | None = None,
        parameters: tuple[str, ...] = (),
        modifiers: tuple[str, ...] = (),
        annotations: tuple[dict, ...] = (),
    ) -> dict[str, Any]:
        return {
            "name": name,
            "kind": kind,
            "type": type_,
            "modifiers": list(modifiers),
            "parameters": [{"name": p} for p in parameters],
            "annotations": list(annotations),
        }

    def field(
        self,
        member_name: str,
        type_: str,
        number: int | None,
        modifiers: tuple[str, ...] = (),
        kind: str = "field",
        **arguments: Any,
    ) -> dict[str, Any]:
        """A member annotated with ProtoField."""
        if number is not None:
            arguments = {"number": number, **arguments}
        annotation = {"name": "ProtoField", "arguments": arguments}
        return self.member(
            member_name, kind, type_, modifiers=modifiers, annotations=(annotation,)
        )

    def getter(
        self, member_name: str, type_: str, number: int, **arguments: Any
    ) -> dict[str, Any]:
        return self.field(member_name, type_, number, kind="method", **arguments)

    def setter(self, name: str) -> dict[str, Any]:
        return self.member(name, "method", parameters=("value",))

    def constructor(self, *parameters: str, factory: bool = False) -> dict[str, Any]:
        annotations = ({"name": "ProtoFactory"},) if factory else ()
        return self.member(
            "__init__", "constructor", parameters=parameters, annotations=annotations
        )

    def factory_method(self, name: str, *parameters: str, static: bool = True) -> dict[str, Any]:
        return self.member(
            name,
            "method",
            parameters=parameters,
            modifiers=("static",) if static else (),
            annotations=({"name": "ProtoFactory"},),
        )

    def value(self, member_name: str, number: int | None, **arguments: Any) -> dict[str, Any]:
        """An enum constant annotated with ProtoEnumValue."""
        if number is not None:
            arguments = {"number": number, **arguments}
        annotation = {"name": "ProtoEnumValue", "arguments": arguments}
        return self.member(member_name, "enum_constant", annotations=(annotation,))

    @staticmethod
    def message(
        name: str, *members: dict, package: str | None = None, **extra: Any
    ) -> dict[str, Any]:
        return {
            "name": name,
            "kind": "class",
            "package": name.rpartition(".")[0] if package is None else package,
            "members": list(members),
            **extra,
        }

    def enum(self, name: str, *values: dict, **extra: Any) -> dict[str, Any]:
        return self.message(name, *values, kind="enum", **extra)

    @staticmethod
    def entry(
        name: str = "p.Init",
        package: str | None = None,
        members: tuple[dict, ...] = (),
        supertypes: tuple[str, ...] = (INITIALIZER,),
        extra: dict[str, Any] | None = None,
        **schema: Any,
    ) -> dict[str, Any]:
        """A type annotated with ProtoSchema."""
        return {
            "name": name,
            "kind": "class",
            "package": name.rpartition(".")[0] if package is None else package,
            "supertypes": list(supertypes),
            "members": list(members),
            "annotations": [{"name": "ProtoSchema", "arguments": schema}],
            **(extra or {}),
        }

    @staticmethod
    def imported(file_name: str, *types: tuple[str, str, str], package: str | None = None):
        return {
            "file_name": file_name,
            "package": package,
            "types": [{"name": n, "proto_name": p, "kind": k} for n, p, k in types],
        }

    @staticmethod
    def model(*types: dict, imported: tuple[dict, ...] = ()) -> HostModel:
        return HostModel.from_dict({"types": list(types), "imported_schemas": list(imported)})

    def universe(self, *types: dict, imported: tuple[dict, ...] = ()) -> TypeUniverse:
        return adapt(self.model(*types, imported=imported))


@pytest.fixture
def host():
    return HostBuilder()


@pytest.fixture
def isolated_modules():
    """Forget modules imported from temporary directories after each test."""
    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        del sys.modules[name]
