"""Schema introspection queries and their normalized data model."""

from dataclasses import dataclass, field
from typing import Optional

from graphql import get_introspection_query

from .client import GraphQLClient

# Standard GraphQL introspection query
INTROSPECTION_QUERY = get_introspection_query(descriptions=True)

TYPE_FIELDS_QUERY = """
query GetTypeFields($name: String!) {
  __type(name: $name) {
    name
    kind
    fields(includeDeprecated: false) {
      name
      description
      type { ...TypeRef }
    }
    inputFields {
      name
      description
      type { ...TypeRef }
    }
    enumValues(includeDeprecated: false) {
      name
      description
    }
  }
}

fragment TypeRef on __Type {
  kind
  name
  ofType {
    kind
    name
    ofType {
      kind
      name
      ofType {
        kind
        name
        ofType { kind name }
      }
    }
  }
}
"""

RESERVED_PREFIX = "__"


@dataclass(frozen=True)
class TypeRef:
    """A possibly wrapped reference to a named type."""

    kind: str
    name: Optional[str] = None
    of_type: Optional["TypeRef"] = None

    @classmethod
    def from_json(cls, js: Optional[dict]) -> Optional["TypeRef"]:
        if not js:
            return None
        return cls(kind=js.get("kind") or "", name=js.get("name"), of_type=cls.from_json(js.get("ofType")))

    def named(self) -> "TypeRef":
        """Unwrap NON_NULL/LIST layers down to the named type."""
        ref = self
        while ref.kind in ("NON_NULL", "LIST") and ref.of_type is not None:
            ref = ref.of_type
        return ref

    def is_list(self) -> bool:
        ref = self
        while ref is not None and ref.kind in ("NON_NULL", "LIST"):
            if ref.kind == "LIST":
                return True
            ref = ref.of_type
        return False


@dataclass(frozen=True)
class FieldDescriptor:
    """One field of an object or input type (or one enum value)."""

    name: str
    type: Optional[TypeRef]
    description: Optional[str] = None

    @property
    def named_kind(self) -> Optional[str]:
        return self.type.named().kind if self.type else None

    @property
    def named_type(self) -> Optional[str]:
        return self.type.named().name if self.type else None


@dataclass(frozen=True)
class EnumValue:
    """A single enum value."""

    name: str
    description: Optional[str] = None


@dataclass
class TypeDescriptor:
    """One named type in the schema."""

    name: str
    kind: str
    description: Optional[str] = None
    fields: list[FieldDescriptor] = field(default_factory=list)
    input_fields: list[FieldDescriptor] = field(default_factory=list)
    enum_values: list[EnumValue] = field(default_factory=list)

    @property
    def is_internal(self) -> bool:
        return self.name.startswith(RESERVED_PREFIX)


@dataclass
class SchemaSnapshot:
    """A full introspected schema, replaced wholesale on refresh."""

    types: list[TypeDescriptor]
    query_type: Optional[str] = None
    subscription_type: Optional[str] = None
    raw: dict = field(default_factory=dict)
    fetched_at: float = 0.0


def _fields_from_json(items: Optional[list]) -> list[FieldDescriptor]:
    return [
        FieldDescriptor(name=f["name"], type=TypeRef.from_json(f.get("type")), description=f.get("description"))
        for f in items or []
        if f and f.get("name")
    ]


def type_from_json(js: dict) -> TypeDescriptor:
    """Normalize one `__Type` JSON object."""
    return TypeDescriptor(
        name=js.get("name") or "",
        kind=js.get("kind") or "",
        description=js.get("description"),
        fields=_fields_from_json(js.get("fields")),
        input_fields=_fields_from_json(js.get("inputFields")),
        enum_values=[
            EnumValue(name=v["name"], description=v.get("description"))
            for v in js.get("enumValues") or []
            if v and v.get("name")
        ],
    )


def snapshot_from_introspection(raw: dict, fetched_at: float = 0.0) -> SchemaSnapshot:
    """
    Build a SchemaSnapshot from an introspection result.

    Args:
        raw: Introspection result, either {"__schema": {...}} or {"data": {"__schema": {...}}}
        fetched_at: Clock reading taken when the result was fetched

    Returns:
        SchemaSnapshot preserving the introspection type order
    """
    if "__schema" not in raw and "__schema" in (raw.get("data") or {}):
        raw = raw["data"]

    schema = raw.get("__schema") or {}
    types = [type_from_json(t) for t in schema.get("types") or [] if t]

    return SchemaSnapshot(
        types=types,
        query_type=(schema.get("queryType") or {}).get("name"),
        subscription_type=(schema.get("subscriptionType") or {}).get("name"),
        raw=raw,
        fetched_at=fetched_at,
    )


def fetch_full_schema(client: GraphQLClient) -> dict:
    """
    Introspect the whole schema.

    Args:
        client: GraphQL client

    Returns:
        Raw introspection data ({"__schema": {...}})

    Raises:
        DownstreamUnavailable: If the endpoint cannot be reached
        DownstreamQueryError: If the endpoint rejects the introspection query
    """
    return client.execute(INTROSPECTION_QUERY)


def fetch_type_fields(client: GraphQLClient, type_name: str) -> list[FieldDescriptor]:
    """
    Introspect a single type's fields.

    Object fields come first, then input fields. ENUM values are returned as
    field-like entries typed as the enum itself so callers can check whether
    a field or value exists the same way. An unknown type yields [].

    Args:
        client: GraphQL client
        type_name: Name of the type to introspect

    Returns:
        Ordered list of FieldDescriptor
    """
    data = client.execute(TYPE_FIELDS_QUERY, {"name": type_name})
    t = data.get("__type")
    if not t:
        return []

    descriptor = type_from_json(t)
    if descriptor.kind == "ENUM":
        enum_ref = TypeRef(kind="ENUM", name=descriptor.name)
        return [FieldDescriptor(name=v.name, type=enum_ref, description=v.description) for v in descriptor.enum_values]

    return descriptor.fields + descriptor.input_fields
