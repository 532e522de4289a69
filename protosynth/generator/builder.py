"""Schema model construction from the selected type descriptors."""

import keyword
import logging

from .errors import (
    EligibilityError,
    NumberConflictError,
    SchemaValidationError,
    UnresolvedTypeError,
)
from .model import (
    MemberDescriptor,
    MemberKind,
    NestingKind,
    TypeDescriptor,
    TypeKind,
    TypeRef,
    TypeUniverse,
)
from .typeexpr import TypeExpressionError, parse_type
from .types import (
    MAP_KEY_KINDS,
    Cardinality,
    Definition,
    EnumDef,
    EnumType,
    EnumValueSpec,
    FieldSpec,
    MapType,
    MessageDef,
    MessageType,
    ProtoSchemaModel,
    ScalarKind,
    ScalarType,
    parse_scalar_default,
    scalar_kind,
)

logger = logging.getLogger(__name__)

MAX_FIELD_NUMBER = (1 << 29) - 1
RESERVED_FIELD_NUMBERS = range(19000, 20000)
MIN_ENUM_NUMBER = -(1 << 31)
MAX_ENUM_NUMBER = (1 << 31) - 1

INITIALIZER_INTERFACES = frozenset(
    [
        "protosynth.runtime.SerializationContextInitializer",
        "protosynth.runtime.context.SerializationContextInitializer",
    ]
)

BYTE_NAMES = frozenset(["byte", "Byte", "java.lang.Byte"])
OPTIONAL_NAMES = frozenset(["Optional", "optional", "java.util.Optional", "typing.Optional"])
MAP_NAMES = frozenset(["map", "Map", "java.util.Map", "dict", "Dict", "typing.Dict", "Mapping"])

# Declared container -> default collection implementation hint
COLLECTION_NAMES = {
    "list": "list",
    "List": "list",
    "typing.List": "list",
    "Sequence": "list",
    "java.util.List": "list",
    "collection": "list",
    "Collection": "list",
    "java.util.Collection": "list",
    "set": "set",
    "Set": "set",
    "typing.Set": "set",
    "java.util.Set": "set",
    "frozenset": "frozenset",
    "FrozenSet": "frozenset",
    "tuple": "tuple",
    "Tuple": "tuple",
}


def check_initializer(entry: TypeDescriptor, universe: TypeUniverse) -> None:
    """Check that `entry` may carry a generated initializer.

    Raises EligibilityError on the first violation.
    """
    if entry.kind not in (TypeKind.CLASS, TypeKind.INTERFACE):
        raise EligibilityError(
            "ProtoSchema can only be applied to classes and interfaces.", entry.name
        )

    if entry.nesting in (NestingKind.LOCAL, NestingKind.ANONYMOUS):
        raise EligibilityError(
            "Classes or interfaces annotated with ProtoSchema must not be local or anonymous.",
            entry.name,
        )

    if entry.nesting == NestingKind.MEMBER and not entry.is_interface and not entry.is_static:
        raise EligibilityError(
            "Nested classes annotated with ProtoSchema must be static.", entry.name
        )

    if entry.kind == TypeKind.CLASS and entry.is_final:
        raise EligibilityError("Classes annotated with ProtoSchema must not be final.", entry.name)

    class_name = entry.schema.class_name if entry.schema else None
    if class_name is not None and (not class_name.isidentifier() or keyword.iskeyword(class_name)):
        raise EligibilityError(
            f"ProtoSchema 'className' is not a valid class name : \"{class_name}\"", entry.name
        )

    if not universe.is_subtype(entry, INITIALIZER_INTERFACES):
        raise EligibilityError(
            "Classes annotated with ProtoSchema must implement "
            "protosynth.runtime.SerializationContextInitializer",
            entry.name,
        )


def _unwrap_optional(ref: TypeRef) -> TypeRef:
    while ref.name in OPTIONAL_NAMES and len(ref.args) == 1:
        ref = ref.args[0]
    return ref


def _is_byte_array(ref: TypeRef) -> bool:
    return ref.is_array and ref.args[0].name in BYTE_NAMES and not ref.args[0].args


def _is_container(ref: TypeRef) -> bool:
    return ref.is_array or ref.name in COLLECTION_NAMES or ref.name in MAP_NAMES


class SchemaBuilder:
    """Builds the schema model of one generation unit.

    Definitions are registered before their fields are visited, so mutually
    recursive message types resolve to each other.
    """

    def __init__(
        self,
        universe: TypeUniverse,
        selected: list[TypeDescriptor],
        *,
        file_name: str,
        origin: str,
        package: str | None = None,
        auto_import: bool = True,
    ) -> None:
        self.universe = universe
        self.selected = {td.name: td for td in selected}
        self.auto_import = auto_import
        self.model = ProtoSchemaModel(file_name=file_name, origin=origin, package=package)
        self._auto_imported: list[Definition] = []

    def build(self) -> ProtoSchemaModel:
        for td in self.selected.values():
            self._build_type(td)

        self.model.ordered = [self.model.by_type[name] for name in self.selected]
        self.model.ordered.extend(self._auto_imported)
        return self.model

    def _build_type(self, td: TypeDescriptor) -> Definition:
        existing = self.model.by_type.get(td.name)
        if existing is not None:
            return existing

        self._check_eligibility(td)

        d: Definition
        if td.is_enum:
            d = EnumDef(source=td)
        else:
            d = MessageDef(source=td)

        self.model.by_type[td.name] = d
        if td.name not in self.selected:
            logger.debug("Auto-importing %s into %s", td.name, self.model.file_name)
            self._auto_imported.append(d)

        if isinstance(d, EnumDef):
            self._build_enum(d)
        else:
            self._build_message(d)
        return d

    def _check_eligibility(self, td: TypeDescriptor) -> None:
        if td.nesting in (NestingKind.LOCAL, NestingKind.ANONYMOUS):
            raise EligibilityError("Local or anonymous classes cannot be marshalled.", td.name)

        if td.nesting == NestingKind.MEMBER and td.kind == TypeKind.CLASS and not td.is_static:
            raise EligibilityError("Nested classes must be static to be marshalled.", td.name)

    def _build_enum(self, d: EnumDef) -> None:
        td = d.source
        constants = td.members_of(MemberKind.ENUM_CONSTANT)
        if not constants:
            raise SchemaValidationError("Enums must declare at least one constant.", td.name)

        by_number: dict[int, EnumValueSpec] = {}
        for constant in constants:
            element = f"{td.name}.{constant.name}"
            annotation = constant.enum_value
            if annotation is None or annotation.number is None:
                raise SchemaValidationError(
                    "Enum constants must be annotated with ProtoEnumValue and declare a number.",
                    element,
                )

            number = annotation.number
            if not MIN_ENUM_NUMBER <= number <= MAX_ENUM_NUMBER:
                raise SchemaValidationError(
                    f"Protobuf enum value number {number} is not a valid int32.", element
                )

            if number in by_number:
                raise NumberConflictError(
                    f"Found duplicate definition of Protobuf enum value number {number} "
                    f"on enum constants {by_number[number].element} and {element}",
                    element,
                )

            value = EnumValueSpec(
                number=number,
                constant=constant.name,
                declaring_type=td.name,
                name_override=annotation.name,
            )
            by_number[number] = value
            d.values.append(value)

    def _field_members(self, td: TypeDescriptor) -> list[tuple[TypeDescriptor, MemberDescriptor]]:
        """Annotated members of `td` and its known supertypes, own members first.

        A member redeclared in a subtype hides the inherited declaration.
        """
        result = []
        seen: set[str] = set()
        for owner in [td, *self.universe.supertypes_of(td)]:
            for member in owner.members:
                if member.field is None or member.name in seen:
                    continue
                seen.add(member.name)
                result.append((owner, member))
        return result

    def _build_message(self, d: MessageDef) -> None:
        assert d.source is not None
        by_number: dict[int, FieldSpec] = {}

        for owner, member in self._field_members(d.source):
            f = self._build_field(d, owner, member)
            if f.number in by_number:
                raise NumberConflictError(
                    f"Found duplicate definition of Protobuf field number {f.number} "
                    f"on members {by_number[f.number].element} and {f.element}",
                    f.element,
                )
            by_number[f.number] = f
            d.fields.append(f)

    def _build_field(
        self, d: MessageDef, owner: TypeDescriptor, member: MemberDescriptor
    ) -> FieldSpec:
        annotation = member.field
        assert annotation is not None
        element = f"{owner.name}.{member.name}"

        if member.kind == MemberKind.FIELD:
            if member.is_static:
                raise SchemaValidationError("Static fields cannot be Protobuf fields.", element)
        elif member.kind == MemberKind.METHOD:
            if member.is_static or member.parameters:
                raise SchemaValidationError(
                    "ProtoField can only be applied to non-static getters taking no arguments.",
                    element,
                )
        else:
            raise SchemaValidationError(
                "ProtoField can only be applied to fields and getter methods.", element
            )

        number = annotation.number
        if number is None:
            raise SchemaValidationError("ProtoField must declare a field number.", element)
        if not 1 <= number <= MAX_FIELD_NUMBER:
            raise SchemaValidationError(
                f"Protobuf field number {number} is out of range, "
                f"it must be between 1 and {MAX_FIELD_NUMBER}",
                element,
            )
        if number in RESERVED_FIELD_NUMBERS:
            raise SchemaValidationError(
                f"Protobuf field number {number} is in the reserved range "
                f"{RESERVED_FIELD_NUMBERS.start}-{RESERVED_FIELD_NUMBERS.stop - 1}",
                element,
            )

        if member.type_ref is None:
            if member.type_expr:
                raise UnresolvedTypeError(
                    f"Cannot parse the declared type {member.type_expr!r}", element
                )
            raise UnresolvedTypeError("Member does not declare a type", element)

        ref = _unwrap_optional(member.type_ref)
        collection_implementation = None
        map_implementation = None

        if _is_byte_array(ref):
            field_type = self._resolve_value(owner, ref, element)
            cardinality = Cardinality.OPTIONAL
        elif ref.is_array or ref.name in COLLECTION_NAMES:
            if len(ref.args) != 1:
                raise SchemaValidationError(
                    f"Collection type {ref} must declare exactly one element type", element
                )
            field_type = self._resolve_value(owner, ref.args[0], element)
            cardinality = Cardinality.REPEATED
            collection_implementation = annotation.collection_implementation or (
                "list" if ref.is_array else COLLECTION_NAMES[ref.name]
            )
        elif ref.name in MAP_NAMES:
            field_type = self._resolve_map(owner, member, ref, element)
            cardinality = Cardinality.MAP
            map_implementation = annotation.map_implementation or "dict"
        else:
            field_type = self._resolve_value(owner, ref, element)
            cardinality = Cardinality.OPTIONAL

        if annotation.type is not None:
            override = scalar_kind(annotation.type)
            if override is None:
                raise SchemaValidationError(f"Unknown Protobuf type {annotation.type!r}", element)
            if not isinstance(field_type, ScalarType):
                raise SchemaValidationError(
                    "The Protobuf type can only be overridden for scalar fields.", element
                )
            field_type = ScalarType(override)

        if annotation.required:
            if cardinality in (Cardinality.REPEATED, Cardinality.MAP):
                raise SchemaValidationError("Repeated fields cannot be required.", element)
            cardinality = Cardinality.REQUIRED

        spec = FieldSpec(
            number=number,
            type=field_type,
            cardinality=cardinality,
            property_name=member.property_name,
            member=member,
            declaring_type=owner.name,
            name_override=annotation.name,
            default_value=annotation.default_value,
            collection_implementation=collection_implementation,
            map_implementation=map_implementation,
        )
        self._check_default(spec, element)

        if isinstance(field_type, MapType):
            self._add_map_entry(d, spec, field_type)

        return spec

    def _resolve_map(
        self, owner: TypeDescriptor, member: MemberDescriptor, ref: TypeRef, element: str
    ) -> MapType:
        annotation = member.field
        assert annotation is not None

        key_ref = value_ref = None
        if ref.args:
            if len(ref.args) != 2:
                raise SchemaValidationError(
                    f"Map type {ref} must declare both key and value types", element
                )
            key_ref, value_ref = ref.args

        try:
            if annotation.key_type:
                key_ref = parse_type(annotation.key_type)
            if annotation.value_type:
                value_ref = parse_type(annotation.value_type)
        except TypeExpressionError as e:
            raise SchemaValidationError(str(e), element) from e

        if key_ref is None or value_ref is None:
            raise SchemaValidationError(
                "Map fields must declare both key and value types.", element
            )

        key = self._resolve_value(owner, key_ref, element)
        if not isinstance(key, ScalarType) or key.kind not in MAP_KEY_KINDS:
            raise SchemaValidationError(f"Type {key_ref} cannot be used as a map key", element)

        return MapType(key=key.kind, value=self._resolve_value(owner, value_ref, element))

    def _resolve_value(
        self, owner: TypeDescriptor, ref: TypeRef, element: str
    ) -> ScalarType | MessageType | EnumType:
        """Resolve the type of a single (non-container) value."""
        ref = _unwrap_optional(ref)
        if _is_byte_array(ref):
            return ScalarType(ScalarKind.BYTES)
        if _is_container(ref):
            raise SchemaValidationError(
                f"Nested collections and maps are not supported: {ref}", element
            )
        if ref.args:
            raise UnresolvedTypeError(f"Generic type {ref} cannot be mapped to Protobuf", element)

        kind = scalar_kind(ref.name)
        if kind is not None:
            return ScalarType(kind)

        return self._resolve_reference(owner, ref.name, element)

    def _resolve_reference(
        self, owner: TypeDescriptor, name: str, element: str
    ) -> MessageType | EnumType:
        fqn = self.universe.resolve(name, owner)
        if fqn is None:
            raise UnresolvedTypeError(f"Type {name} is not a known type", element)

        existing = self.model.by_type.get(fqn)
        if existing is not None:
            return EnumType(fqn) if isinstance(existing, EnumDef) else MessageType(fqn)

        if fqn in self.selected:
            return self._reference_to(self._build_type(self.selected[fqn]))

        imported = self.universe.imported.get(fqn)
        if imported is not None:
            if imported.file_name not in self.model.imports:
                self.model.imports.append(imported.file_name)
            self.model.imported[fqn] = imported
            return EnumType(fqn) if imported.is_enum else MessageType(fqn)

        td = self.universe.get(fqn)
        assert td is not None
        if not self.auto_import:
            raise UnresolvedTypeError(
                f"Type {fqn} is not included in the schema and 'autoImportClasses' is disabled",
                element,
            )
        return self._reference_to(self._build_type(td))

    @staticmethod
    def _reference_to(d: Definition) -> MessageType | EnumType:
        assert d.source is not None
        if isinstance(d, EnumDef):
            return EnumType(d.source.name)
        return MessageType(d.source.name)

    def _check_default(self, spec: FieldSpec, element: str) -> None:
        default = spec.default_value
        if default is None:
            return

        if spec.cardinality in (Cardinality.REPEATED, Cardinality.MAP):
            raise SchemaValidationError(
                "Repeated and map fields cannot declare a default value.", element
            )

        t = spec.type
        if isinstance(t, MessageType):
            raise SchemaValidationError(
                "Message fields cannot declare a default value.", element
            )

        if isinstance(t, EnumType):
            enum_def = self.model.by_type.get(t.name)
            # Values of enums from imported schemas are not known here
            if not isinstance(enum_def, EnumDef):
                return
            if default not in [v.preferred_name for v in enum_def.values]:
                raise SchemaValidationError(
                    f"Default value {default!r} is not a value of enum {t.name}", element
                )
            return

        assert isinstance(t, ScalarType)
        try:
            parse_scalar_default(t.kind, default)
        except ValueError as e:
            raise SchemaValidationError(
                f"Default value {default!r} is not a valid {t.kind} value", element
            ) from e

    @staticmethod
    def _add_map_entry(d: MessageDef, spec: FieldSpec, map_type: MapType) -> None:
        entry = MessageDef(source=None, parent=d, map_entry_for=spec)
        entry.fields = [
            FieldSpec(
                number=1,
                type=ScalarType(map_type.key),
                cardinality=Cardinality.OPTIONAL,
                property_name="key",
            ),
            FieldSpec(
                number=2,
                type=map_type.value,
                cardinality=Cardinality.OPTIONAL,
                property_name="value",
            ),
        ]
        spec.map_entry = entry
        d.nested.append(entry)
