"""Small GraphQL document builder.

Values, filter conditions and selections are composed as objects and only
turned into text by `render()`. All quoting and escaping decisions live here:
string literals are JSON-escaped and quoted, enum literals are emitted as bare
names and rejected unless they are valid GraphQL names.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from .errors import InvalidArgument

NAME_RE = re.compile(r"^[_A-Za-z][_0-9A-Za-z]*$")
INDENT = "  "


class Value:
    """A GraphQL input value."""

    def render(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class StringLiteral(Value):
    value: str

    def render(self) -> str:
        return json.dumps(str(self.value), ensure_ascii=False)


@dataclass(frozen=True)
class EnumLiteral(Value):
    value: str

    def __post_init__(self):
        if not NAME_RE.match(self.value) or self.value in ("true", "false", "null"):
            raise InvalidArgument(f"{self.value!r} is not a valid enum value")

    def render(self) -> str:
        return self.value


@dataclass(frozen=True)
class IntLiteral(Value):
    value: int

    def render(self) -> str:
        return str(int(self.value))


@dataclass(frozen=True)
class FloatLiteral(Value):
    value: float

    def render(self) -> str:
        return repr(float(self.value))


@dataclass(frozen=True)
class NullLiteral(Value):
    def render(self) -> str:
        return "null"


@dataclass(frozen=True)
class BoolLiteral(Value):
    value: bool

    def render(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Variable(Value):
    name: str

    def render(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class ListValue(Value):
    items: tuple

    def render(self) -> str:
        return "[" + ", ".join(item.render() for item in self.items) + "]"


@dataclass(frozen=True)
class ObjectValue(Value):
    entries: tuple  # ((key, Value), ...)

    def render(self) -> str:
        return "{" + ", ".join(f"{key}: {value.render()}" for key, value in self.entries) + "}"


def obj(**entries: Value) -> ObjectValue:
    """ObjectValue from keyword arguments, keeping their order."""
    return ObjectValue(tuple(entries.items()))


def contains(text: str) -> StringLiteral:
    """Case-insensitive "contains" pattern for `_ilike`."""
    return StringLiteral(f"%{text}%")


def literal(value) -> Value:
    """
    Literal for a plain Python value whose GraphQL type is not schema-driven.

    Strings are always quoted; use EnumLiteral explicitly for enum values.
    """
    if isinstance(value, Value):
        return value
    if value is None:
        return NullLiteral()
    if isinstance(value, bool):
        return BoolLiteral(value)
    if isinstance(value, int):
        return IntLiteral(value)
    if isinstance(value, float):
        return FloatLiteral(value)
    if isinstance(value, (list, tuple)):
        return ListValue(tuple(literal(v) for v in value))
    if isinstance(value, dict):
        return ObjectValue(tuple((k, literal(v)) for k, v in value.items()))
    return StringLiteral(str(value))


# Filter conditions


class Condition:
    """One entry of a `where` object."""

    @property
    def key(self) -> str:
        raise NotImplementedError

    def render_entry(self) -> str:
        raise NotImplementedError


def _wrap(path: Sequence[str], inner: str) -> str:
    text = inner
    for name in reversed(path):
        text = f"{name}: {{{text}}}"
    return text


@dataclass(frozen=True)
class Leaf(Condition):
    """`path: {operator: value}`, nesting one object per path element."""

    path: tuple
    operator: str
    value: Value

    @property
    def key(self) -> str:
        return self.path[0]

    def render_entry(self) -> str:
        *outer, last = self.path
        return _wrap(outer, f"{last}: {{{self.operator}: {self.value.render()}}}")


@dataclass(frozen=True)
class Compare(Condition):
    """Several operators on one path: `path: {_gte: a, _lte: b}`."""

    path: tuple
    operators: tuple  # ((operator, Value), ...)

    @property
    def key(self) -> str:
        return self.path[0]

    def render_entry(self) -> str:
        *outer, last = self.path
        body = ", ".join(f"{op}: {value.render()}" for op, value in self.operators)
        return _wrap(outer, f"{last}: {{{body}}}")


@dataclass(frozen=True)
class Nested(Condition):
    """Several conditions under a shared relation path."""

    path: tuple
    conditions: tuple

    @property
    def key(self) -> str:
        return self.path[0]

    def render_entry(self) -> str:
        return _wrap(self.path, conjunction(self.conditions))


@dataclass(frozen=True)
class Combinator(Condition):
    """`_or` / `_and` over nested conditions."""

    operator: str
    conditions: tuple

    def __post_init__(self):
        if self.operator not in ("_or", "_and"):
            raise ValueError(f"Unsupported combinator {self.operator}")

    @property
    def key(self) -> str:
        return self.operator

    def render_entry(self) -> str:
        return f"{self.operator}: [" + ", ".join("{" + c.render_entry() + "}" for c in self.conditions) + "]"


def any_of(conditions: Sequence[Condition]) -> Condition:
    """`_or` over several conditions; a single condition is returned as is."""
    conditions = tuple(conditions)
    if not conditions:
        raise ValueError("any_of() needs at least one condition")
    if len(conditions) == 1:
        return conditions[0]
    return Combinator("_or", conditions)


def conjunction(conditions: Sequence[Condition]) -> str:
    """
    Body of a where object combining conditions with AND semantics.

    Conditions become sibling entries when their keys are distinct;
    duplicate keys would overwrite each other, so those fall back to `_and`.
    """
    conditions = [c for c in conditions if c is not None]
    keys = [c.key for c in conditions]
    if len(set(keys)) == len(keys):
        return ", ".join(c.render_entry() for c in conditions)
    return Combinator("_and", tuple(conditions)).render_entry()


@dataclass(frozen=True)
class Where(Value):
    conditions: tuple

    def render(self) -> str:
        return "{" + conjunction(self.conditions) + "}"


def where(*conditions: Optional[Condition]) -> Where:
    return Where(tuple(c for c in conditions if c is not None))


# Selections and documents


@dataclass
class Selection:
    """A field with optional arguments and sub-selections."""

    name: str
    arguments: list = field(default_factory=list)  # [(name, Value)]
    children: list = field(default_factory=list)

    def arg(self, name: str, value: Optional[Value]) -> "Selection":
        """Append an argument (skipped when value is None)."""
        if value is not None:
            self.arguments.append((name, value))
        return self

    def add(self, *children: Union["Selection", str]) -> "Selection":
        for child in children:
            self.children.append(child if isinstance(child, Selection) else Selection(child))
        return self

    def render(self, depth: int = 0) -> list[str]:
        pad = INDENT * depth
        head = self.name
        if self.arguments:
            head += "(" + ", ".join(f"{name}: {value.render()}" for name, value in self.arguments) + ")"
        if not self.children:
            return [pad + head]
        lines = [pad + head + " {"]
        for child in self.children:
            lines.extend(child.render(depth + 1))
        lines.append(pad + "}")
        return lines


def select(name: str, *children: Union[Selection, str]) -> Selection:
    return Selection(name).add(*children)


@dataclass(frozen=True)
class VariableDefinition:
    name: str
    type: str
    default: Optional[Value] = None

    def render(self) -> str:
        text = f"${self.name}: {self.type}"
        if self.default is not None:
            text += f" = {self.default.render()}"
        return text


@dataclass
class QueryDocument:
    """A single named query operation."""

    operation_name: str
    selections: list
    variables: list = field(default_factory=list)

    def render(self) -> str:
        head = f"query {self.operation_name}"
        if self.variables:
            head += "(" + ", ".join(v.render() for v in self.variables) + ")"
        lines = [head + " {"]
        for selection in self.selections:
            lines.extend(selection.render(1))
        lines.append("}")
        return "\n".join(lines)
