"""Type lookup over the cached schema and live single-type introspection."""

import logging
from typing import Iterable, Optional

from .client import GraphQLClient
from .introspection import FieldDescriptor, SchemaSnapshot, TypeDescriptor, TypeRef, fetch_type_fields
from .schema_loader import SchemaCache

logger = logging.getLogger(__name__)


def list_browsable_types(snapshot: SchemaSnapshot) -> list[TypeDescriptor]:
    """
    Filter a snapshot to user-facing object types.

    Keeps kind OBJECT with a name that does not start with the reserved
    double-underscore prefix. Introspection order is preserved.
    """
    return [t for t in snapshot.types if t.kind == "OBJECT" and t.name and not t.is_internal]


def find_type(snapshot: SchemaSnapshot, name: str) -> Optional[TypeDescriptor]:
    """Find a type by exact name, or None."""
    for t in snapshot.types:
        if t.name == name:
            return t
    return None


def format_type_ref(ref: Optional[TypeRef]) -> str:
    """
    Render a type reference for display.

    NON_NULL becomes a trailing "!", LIST becomes surrounding brackets,
    applied recursively. Never raises.
    """
    if ref is None:
        return "Unknown"
    if ref.kind == "NON_NULL":
        return f"{format_type_ref(ref.of_type)}!"
    if ref.kind == "LIST":
        return f"[{format_type_ref(ref.of_type)}]"
    return ref.name or "UnnamedType"


def field_names(fields: Iterable[FieldDescriptor]) -> list[str]:
    return [f.name for f in fields]


class TypeResolver:
    """
    Single entry point for "does this type/field exist" questions.

    Whole-schema questions are answered from the SchemaCache; per-type field
    lists are introspected live so they always reflect the current schema.
    """

    def __init__(self, cache: SchemaCache, client: GraphQLClient):
        self.cache = cache
        self.client = client

    def snapshot(self) -> SchemaSnapshot:
        return self.cache.get_schema()

    def browsable_types(self) -> list[TypeDescriptor]:
        return list_browsable_types(self.snapshot())

    def find_type(self, name: str) -> Optional[TypeDescriptor]:
        return find_type(self.snapshot(), name)

    def fields(self, type_name: str) -> list[FieldDescriptor]:
        """Live field list for a type ([] when the type does not exist)."""
        fields = fetch_type_fields(self.client, type_name)
        logger.debug("Introspected %d fields on %s", len(fields), type_name)
        return fields

    def field(self, type_name: str, name: str) -> Optional[FieldDescriptor]:
        for f in self.fields(type_name):
            if f.name == name:
                return f
        return None

    def has_field(self, type_name: str, name: str) -> bool:
        return self.field(type_name, name) is not None

    def existing(self, type_name: str, candidates: Iterable[str]) -> list[str]:
        """Candidates that exist on the type, in candidate order."""
        names = set(field_names(self.fields(type_name)))
        return [c for c in candidates if c in names]

    def first_existing(self, type_name: str, candidates: Iterable[str]) -> Optional[str]:
        found = self.existing(type_name, candidates)
        return found[0] if found else None

    def root_fields(self, operation: str = "query") -> list[FieldDescriptor]:
        """Fields of the query or subscription root type."""
        snapshot = self.snapshot()
        root_name = snapshot.subscription_type if operation == "subscription" else snapshot.query_type
        if not root_name:
            root_name = "subscription_root" if operation == "subscription" else "query_root"
        root = find_type(snapshot, root_name)
        return root.fields if root else []

    def root_field_for(self, type_name: str) -> Optional[str]:
        """
        Name of the query root field that lists `type_name`.

        Prefers a list-returning field whose name equals the type name, then
        any list-returning field of that type.
        """
        candidates = [
            f for f in self.root_fields("query") if f.type is not None and f.named_type == type_name and f.type.is_list()
        ]
        for f in candidates:
            if f.name == type_name:
                return f.name
        return candidates[0].name if candidates else None
