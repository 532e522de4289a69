"""Type expression parser using Lark."""

import os
from functools import lru_cache
from typing import Any

from lark import Lark
from lark.exceptions import LarkError
from lark.visitors import Transformer

from .model import ARRAY, TypeRef

_g_parser: Lark | None = None


class TypeExpressionError(ValueError):
    """Raised when a declared type cannot be parsed."""


class TreeTransformer(Transformer):
    """Transform parse tree into type references."""

    def array_type(self, args: list[Any]) -> TypeRef:
        return TypeRef(name=ARRAY, args=(args[0],))

    def generic_type(self, args: list[Any]) -> TypeRef:
        return TypeRef(name=args[0], args=tuple(args[1]))

    def qualified_name(self, args: list[Any]) -> str:
        return ".".join(str(a) for a in args)

    def simple_type(self, args: list[Any]) -> TypeRef:
        return TypeRef(name=args[0])

    def type_args(self, args: list[Any]) -> list[TypeRef]:
        return list(args)


def _parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/typeexpr.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_parser = Lark(grammar)

    return _g_parser


@lru_cache(maxsize=1024)
def parse_type(text: str) -> TypeRef:
    """Parse a declared element type such as `map<string, int64>`."""
    try:
        tree = _parser().parse(text)
    except LarkError as e:
        raise TypeExpressionError(f"Invalid type expression {text!r}") from e
    return TreeTransformer().transform(tree)
