"""Selection of the types processed by one schema generation unit."""

import keyword
import logging

from .errors import SelectionError
from .model import SchemaAnnotation, TypeDescriptor, TypeUniverse

logger = logging.getLogger(__name__)


def is_valid_package_name(name: str) -> bool:
    """Check that every dotted part is an identifier and not a keyword."""
    return bool(name) and all(
        part.isidentifier() and not keyword.iskeyword(part) for part in name.split(".")
    )


def is_package_included(packages: set[str] | frozenset[str], package_name: str) -> bool:
    """Check if a package is one of `packages` or a sub-package of one of them."""
    p = package_name

    while True:
        if p in packages:
            return True

        pos = p.rfind(".")
        if pos == -1:
            break
        p = p[:pos]

    return False


def _select_explicit(
    entry: TypeDescriptor, classes: tuple[str, ...], universe: TypeUniverse
) -> list[TypeDescriptor]:
    selected: dict[str, TypeDescriptor] = {}
    for name in classes:
        td = universe.get(name)
        if td is None:
            raise SelectionError(
                f"Class {name} listed in 'classes' is not a known type", entry.name
            )
        selected.setdefault(td.name, td)
    return list(selected.values())


def _select_scan(
    entry: TypeDescriptor, packages: tuple[str, ...], universe: TypeUniverse
) -> list[TypeDescriptor]:
    for p in packages:
        if not is_valid_package_name(p):
            raise SelectionError(
                f"'packages' contains an invalid package name : \"{p}\"", entry.name
            )

    prefixes = frozenset(packages)
    collected: dict[str, TypeDescriptor] = {}

    for td in universe.candidates():
        # Only instantiable types are generation roots when scanning.
        if td.is_interface or td.is_abstract:
            logger.debug("Skipping abstract type %s", td.name)
            continue

        # Types from the unnamed package are only visible to an entry point
        # that is itself in the unnamed package.
        if td.in_unnamed_package and not entry.in_unnamed_package:
            continue

        if prefixes and not is_package_included(prefixes, td.package):
            continue

        collected.setdefault(td.name, td)

    return [collected[name] for name in sorted(collected)]


def select_types(
    entry: TypeDescriptor, config: SchemaAnnotation, universe: TypeUniverse
) -> list[TypeDescriptor]:
    """Gather the message and enum types to generate schema and marshallers for.

    With an explicit class list, the caller's order is kept and duplicates are
    dropped. Otherwise all annotated types are scanned, filtered by package
    and sorted by fully-qualified name.
    """
    if config.classes:
        if config.packages:
            raise SelectionError(
                "'packages' cannot be specified unless 'classes' is empty.", entry.name
            )
        selected = _select_explicit(entry, config.classes, universe)
    else:
        selected = _select_scan(entry, config.packages, universe)

    if not selected:
        raise SelectionError(
            "No annotated classes found matching the criteria. "
            "Please review the 'classes' and 'packages' attributes.",
            entry.name,
        )

    logger.debug("Selected %d type(s) for %s", len(selected), entry.name)
    return selected
