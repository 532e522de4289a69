"""Binding of message fields to the construction and accessor paths of their types."""

import logging

from .errors import BindingError
from .model import MemberDescriptor, MemberKind, TypeDescriptor, TypeUniverse
from .types import (
    AccessKind,
    Accessor,
    Binding,
    Cardinality,
    EnumBinding,
    EnumConstant,
    EnumDef,
    EnumType,
    FactoryBinding,
    FieldBinding,
    FieldSpec,
    MarshallerBinding,
    MessageDef,
    ProtoSchemaModel,
    ScalarType,
    WriteKind,
    parse_scalar_default,
)

logger = logging.getLogger(__name__)

# Collection implementation hint -> Python factory expression
COLLECTION_FACTORIES = {
    "list": "list",
    "set": "set",
    "frozenset": "frozenset",
    "tuple": "tuple",
    "deque": "collections.deque",
    "collections.deque": "collections.deque",
    "ArrayList": "list",
    "LinkedList": "list",
    "java.util.List": "list",
    "java.util.ArrayList": "list",
    "java.util.LinkedList": "list",
    "HashSet": "set",
    "LinkedHashSet": "set",
    "java.util.Set": "set",
    "java.util.HashSet": "set",
    "java.util.LinkedHashSet": "set",
}

MAP_FACTORIES = {
    "dict": "dict",
    "OrderedDict": "collections.OrderedDict",
    "collections.OrderedDict": "collections.OrderedDict",
    "HashMap": "dict",
    "LinkedHashMap": "dict",
    "java.util.Map": "dict",
    "java.util.HashMap": "dict",
    "java.util.LinkedHashMap": "dict",
}


def setter_names(member: MemberDescriptor) -> list[str]:
    """Mutator method names that pair with a field or getter."""
    prop = member.property_name
    camel = f"set{prop[:1].upper()}{prop[1:]}"
    snake = f"set_{prop}"
    if "_" in member.name:
        return [snake, camel]
    return [camel, snake]


class MarshallerBinder:
    """Computes marshaller bindings for every source definition of a schema model."""

    def __init__(self, model: ProtoSchemaModel, universe: TypeUniverse) -> None:
        self.model = model
        self.universe = universe

    def bind(self) -> list[Binding]:
        bindings: list[Binding] = []
        for d in self.model.ordered:
            if isinstance(d, EnumDef):
                bindings.append(self._bind_enum(d))
            elif not d.is_map_entry:
                bindings.append(self._bind_message(d))
        return bindings

    def _bind_enum(self, d: EnumDef) -> EnumBinding:
        return EnumBinding(
            enum=d,
            target=d.source,
            type_name=self.model.qualified_name(d),
            marshaller_name=d.marshaller_name or "",
            values=[(v.number, v.constant) for v in d.values],
        )

    def _bind_message(self, d: MessageDef) -> MarshallerBinding:
        td = d.source
        assert td is not None

        binding = MarshallerBinding(
            message=d,
            target=td,
            type_name=self.model.qualified_name(d),
            marshaller_name=d.marshaller_name or "",
        )

        positions: dict[FieldSpec, int] = {}
        factories = [m for m in td.members if m.factory]
        if len(factories) > 1:
            raise BindingError(
                f"Found more than one ProtoFactory: {factories[0].name} and {factories[1].name}",
                td.name,
            )

        if factories:
            binding.factory = self._bind_factory(td, factories[0], d.fields, positions)
        else:
            self._check_instantiable(td)

        for f in d.fields:
            binding.fields.append(self._bind_field(td, f, positions.get(f)))
        # Factory parameters by position, then the remaining fields in declaration order
        binding.fields.sort(key=lambda fb: (fb.position is None, fb.position or 0))

        return binding

    def _bind_factory(
        self,
        td: TypeDescriptor,
        member: MemberDescriptor,
        fields: list[FieldSpec],
        positions: dict[FieldSpec, int],
    ) -> FactoryBinding:
        element = f"{td.name}.{member.name}"
        if member.kind == MemberKind.METHOD:
            if not member.is_static:
                raise BindingError("ProtoFactory methods must be static.", element)
        elif member.kind != MemberKind.CONSTRUCTOR:
            raise BindingError(
                "ProtoFactory can only be applied to constructors and static methods.", element
            )

        for i, param in enumerate(member.parameters):
            match = next((f for f in fields if f.property_name == param.name), None)
            if match is None:
                match = next((f for f in fields if f.name == param.name), None)
            if match is None:
                raise BindingError(
                    f"Parameter {param.name!r} of the ProtoFactory does not match any field",
                    element,
                )
            if match in positions:
                raise BindingError(
                    f"Field {match.name!r} is bound to more than one ProtoFactory parameter",
                    element,
                )
            positions[match] = i

        return FactoryBinding(
            member=member.name,
            is_constructor=member.kind == MemberKind.CONSTRUCTOR,
            parameters=tuple(p.name for p in member.parameters),
        )

    @staticmethod
    def _check_instantiable(td: TypeDescriptor) -> None:
        if td.is_interface or td.is_abstract:
            raise BindingError(
                "Abstract classes and interfaces must declare a ProtoFactory to be marshalled.",
                td.name,
            )

        constructors = td.members_of(MemberKind.CONSTRUCTOR)
        if constructors and all(c.parameters for c in constructors):
            raise BindingError(
                "The class must declare a constructor taking no arguments or a ProtoFactory.",
                td.name,
            )

    def _find_setter(self, td: TypeDescriptor, member: MemberDescriptor) -> str | None:
        names = setter_names(member)
        for owner in [td, *self.universe.supertypes_of(td)]:
            for m in owner.members_of(MemberKind.METHOD):
                if m.name in names and not m.is_static and len(m.parameters) == 1:
                    return m.name
        return None

    def _bind_field(self, td: TypeDescriptor, f: FieldSpec, position: int | None) -> FieldBinding:
        member = f.member
        assert member is not None

        if member.kind == MemberKind.FIELD:
            read = Accessor(AccessKind.ATTRIBUTE, member.name)
        else:
            read = Accessor(AccessKind.METHOD, member.name)

        binding = FieldBinding(field=f, read=read, write=WriteKind.NONE, position=position)

        if position is not None:
            binding.write = WriteKind.PARAMETER
        elif member.kind == MemberKind.FIELD and not member.is_final:
            binding.write = WriteKind.ATTRIBUTE
            binding.write_member = member.name
        elif setter := self._find_setter(td, member):
            binding.write = WriteKind.METHOD
            binding.write_member = setter
        elif f.cardinality == Cardinality.REQUIRED:
            raise BindingError(
                f"Required field {f.name!r} cannot be written: "
                "it is neither a ProtoFactory parameter nor has a setter or a writable attribute",
                f.element,
            )
        else:
            logger.warning(
                "Field %r of %s has no write path and will not be deserialized", f.name, td.name
            )

        binding.default = self._default_value(f)

        if f.cardinality == Cardinality.REPEATED:
            hint = f.collection_implementation or "list"
            binding.collection_factory = COLLECTION_FACTORIES.get(hint)
            if binding.collection_factory is None:
                raise BindingError(f"Unknown collection implementation {hint!r}", f.element)
        elif f.cardinality == Cardinality.MAP:
            hint = f.map_implementation or "dict"
            binding.map_factory = MAP_FACTORIES.get(hint)
            if binding.map_factory is None:
                raise BindingError(f"Unknown map implementation {hint!r}", f.element)

        return binding

    def _default_value(self, f: FieldSpec) -> object:
        if f.default_value is None:
            return None

        if isinstance(f.type, ScalarType):
            return parse_scalar_default(f.type.kind, f.default_value)

        if isinstance(f.type, EnumType):
            enum_def = self.model.by_type.get(f.type.name)
            if isinstance(enum_def, EnumDef):
                for value in enum_def.values:
                    if value.preferred_name == f.default_value:
                        return EnumConstant(enum_def.source.name, value.constant)
            # Imported enum: the runtime resolves the schema value name
            return f.default_value

        return None
