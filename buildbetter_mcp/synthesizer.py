"""Schema-aware synthesis of read-only GraphQL queries."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from . import utils
from .builder import (
    BoolLiteral,
    Condition,
    EnumLiteral,
    IntLiteral,
    Leaf,
    ListValue,
    Nested,
    QueryDocument,
    Selection,
    StringLiteral,
    Value,
    Variable,
    VariableDefinition,
    any_of,
    contains,
    literal,
    obj,
    select,
    where,
)
from .errors import InvalidArgument, MutationRejected, NoSearchableField, SchemaTypeNotFound
from .introspection import FieldDescriptor, TypeDescriptor
from .resolver import TypeResolver, find_type
from .similarity import rank

logger = logging.getLogger(__name__)

# Field name conventions of the downstream schema, in priority order
TEXT_FIELD_CANDIDATES = ("text", "summary", "context", "exact_quote", "content")
SEARCHABLE_TEXT_FIELDS = ("summary", "exact_quote", "text", "context")
TYPE_JOIN_CANDIDATES = ("extraction_type_joins", "extraction_types", "extraction_type_links", "types")
TIMESTAMP_CANDIDATES = ("display_ts", "created_at")
CALL_RELATION_CANDIDATES = ("interview", "call")
PERSON_NAME_FIELDS = ("first_name", "last_name", "name")
ATTENDANCE_RELATIONS = ("interview_attendees", "attendees")

EXTRACTION = "extraction"
PERSON = "person"
DEFAULT_JOIN_TYPE = "extraction_type_join"
LIST_OPERATORS = ("_in", "_nin")
BOOLEAN_OPERATORS = ("_is_null",)

MUTATION_RE = re.compile(r"\bmutation\b\s*[_A-Za-z0-9]*\s*[({]", re.IGNORECASE)


@dataclass(frozen=True)
class LimitPolicy:
    default: int
    maximum: int


LIMITS = {
    "search-extractions": LimitPolicy(20, 50),
    "build-query": LimitPolicy(10, 100),
    "topic-conversations": LimitPolicy(5, 50),
    "recent-conversation-with": LimitPolicy(1, 20),
    "top-customer-issues": LimitPolicy(10, 50),
}


@dataclass
class SynthesizedQuery:
    """A query ready to send, with its variables and any caveats."""

    operation_name: str
    query: str
    variables: dict = field(default_factory=dict)
    notes: list = field(default_factory=list)


def clamp_limit(value: Any, default: int, maximum: int) -> int:
    """
    Clamp a caller-supplied limit into [1, maximum].

    Missing, non-integer, zero or negative values yield `default`.
    """
    n = utils.coerce_int(value)
    if n is None or n <= 0:
        return default
    return min(n, maximum)


def clamp_days(value: Any, default: int = 30, maximum: int = 365) -> int:
    """Same clamping rule as clamp_limit, for look-back windows in days."""
    return clamp_limit(value, default, maximum)


def since_window(
    days: Any = None, default_days: int = 30, max_days: int = 365, now: Optional[datetime] = None
) -> datetime:
    """Start of a rolling look-back window ending now."""
    return utils.days_ago(clamp_days(days, default_days, max_days), now)


def normalize_enum_literal(value: Any) -> str:
    """Strip whitespace and any surrounding quotes from an enum-like argument."""
    text = str(value).strip()
    while len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"', "`"):
        text = text[1:-1].strip()
    return text


def ensure_read_only(query: str) -> None:
    """
    Reject anything that looks like a mutation.

    This is a textual check, not a parse: it may also reject queries that
    only mention a mutation, which is accepted.

    Raises:
        MutationRejected: If the query starts with or contains a mutation
    """
    text = query.strip().lower()
    if text.startswith("mutation") or "mutation {" in text or MUTATION_RE.search(text):
        logger.warning("Rejected mutation-like query")
        raise MutationRejected()


def literal_for(field_def: Optional[FieldDescriptor], value: Any) -> Value:
    """
    Literal for a value compared against `field_def`.

    ENUM-typed fields get a bare enum literal, everything else follows the
    Python type of the value (strings quoted).
    """
    if field_def is not None and field_def.named_kind == "ENUM" and not isinstance(value, (bool, int, float)):
        return EnumLiteral(normalize_enum_literal(value))
    return literal(value)


def _reject_null(key: str, value: Any) -> None:
    if value is None:
        raise InvalidArgument(f"Filter on '{key}' cannot compare against null; use {{\"_is_null\": true}} instead")


def _persona_ids(values: Iterable[Any]) -> list[int]:
    ids = []
    for v in values:
        n = utils.coerce_int(v)
        if n is None:
            raise InvalidArgument(f"personaIds must be integers, got {v!r}")
        ids.append(n)
    return ids


def _names(fields: Iterable[FieldDescriptor]) -> list[str]:
    return [f.name for f in fields]


def _pick(names: list[str], candidates: Iterable[str]) -> list[str]:
    return [c for c in candidates if c in names]


class QuerySynthesizer:
    """
    Builds queries for the high-level operations.

    Every schema-dependent choice (which text columns exist, which relation
    names are present, whether a field is an enum) is answered by the
    TypeResolver against the live schema.
    """

    def __init__(
        self,
        resolver: TypeResolver,
        default_window_days: int = 30,
        max_lookback_days: int = 365,
        clock: Callable[[], datetime] = utils.now_utc,
    ):
        self.resolver = resolver
        self.default_window_days = default_window_days
        self.max_lookback_days = max_lookback_days
        self.clock = clock

    def since(self, days: Any = None) -> datetime:
        """Start of the configured look-back window, clamped to max_lookback_days."""
        return since_window(days, self.default_window_days, self.max_lookback_days, self.clock())

    # Shared schema probes

    def _require_fields(self, type_name: str) -> list[FieldDescriptor]:
        fields = self.resolver.fields(type_name)
        if not fields:
            raise SchemaTypeNotFound(type_name)
        return fields

    def _relation_selection(
        self, fields: list[FieldDescriptor], candidates: Iterable[str], subfields: Iterable[str]
    ) -> Optional[Selection]:
        """Selection for the first relation present, with whichever subfields exist."""
        names = _names(fields)
        relation = next((c for c in candidates if c in names), None)
        if relation is None:
            return None
        target = next(f for f in fields if f.name == relation).named_type
        existing = self.resolver.existing(target, subfields) if target else []
        return select(relation, *(existing or ["id"]))

    def _enum_value(self, enum_type: Optional[str], raw: Any) -> EnumLiteral:
        """Match a caller value against the enum's values, case-insensitively."""
        value = normalize_enum_literal(raw)
        values = _names(self.resolver.fields(enum_type)) if enum_type else []
        if not values or value in values:
            return EnumLiteral(value)
        for v in values:
            if v.lower() == value.lower():
                return EnumLiteral(v)
        hint = rank(values, value)
        message = f"'{value}' is not a value of enum {enum_type}."
        if hint:
            message += f" Did you mean: {', '.join(hint)}?"
        raise InvalidArgument(message)

    def _join_nested(self, join_type: str) -> Optional[tuple[str, Optional[FieldDescriptor]]]:
        """Which field on the join table carries the extraction type, and its descriptor."""
        join_fields = self.resolver.fields(join_type)
        for name in ("extraction_type", "type"):
            for f in join_fields:
                if f.name == name:
                    return name, f
        return None

    def _join_field(self, fields: list[FieldDescriptor]) -> Optional[FieldDescriptor]:
        names = _names(fields)
        for c in TYPE_JOIN_CANDIDATES:
            if c in names:
                return next(f for f in fields if f.name == c)
        return None

    def type_filter(self, fields: list[FieldDescriptor], type_value: Any) -> Optional[Condition]:
        """
        Condition restricting extractions to one extraction type.

        The join relation must be filterable on `extraction_bool_exp` (or on
        the object itself when no bool_exp type is exposed). The literal form
        follows the join table's declared field type: an ENUM `type` column
        gets a bare enum literal, an object relation is matched on `name`
        with a quoted string.
        """
        bool_exp = self.resolver.fields(f"{EXTRACTION}_bool_exp")
        filterable = _names(bool_exp) if bool_exp else _names(fields)
        join = self._join_field([f for f in fields if f.name in filterable])
        if join is None:
            bool_join = self._join_field(bool_exp)
            if bool_join is None:
                return None
            join_name = bool_join.name
            join_type = (bool_join.named_type or "").replace("_bool_exp", "") or DEFAULT_JOIN_TYPE
        else:
            join_name = join.name
            join_type = join.named_type or DEFAULT_JOIN_TYPE

        nested = self._join_nested(join_type)
        if nested is None:
            return None
        nested_name, nested_field = nested

        if nested_field is not None and nested_field.named_kind == "ENUM":
            return Leaf((join_name, nested_name), "_eq", self._enum_value(nested_field.named_type, type_value))
        if nested_field is not None and nested_field.named_kind in ("OBJECT", "INTERFACE"):
            return Leaf((join_name, nested_name, "name"), "_eq", StringLiteral(normalize_enum_literal(type_value)))
        return Leaf((join_name, nested_name), "_eq", StringLiteral(normalize_enum_literal(type_value)))

    def type_selection(self, fields: list[FieldDescriptor]) -> Optional[Selection]:
        """Selection exposing the human-readable extraction type, when the join exists."""
        join = self._join_field(fields)
        if join is None:
            return None
        nested = self._join_nested(join.named_type or DEFAULT_JOIN_TYPE)
        if nested is None:
            return None
        nested_name, nested_field = nested
        if nested_field is not None and nested_field.named_kind in ("OBJECT", "INTERFACE"):
            return select(join.name, select(nested_name, "name"))
        return select(join.name, nested_name)

    # Operations

    def search_extractions(
        self,
        phrase: str,
        type_name: Optional[str] = None,
        limit: Any = None,
        persona_ids: Optional[list] = None,
    ) -> SynthesizedQuery:
        """
        Keyword search over extractions.

        The phrase is matched with `_ilike` against every conventional text
        column present (OR-ed together), optionally restricted to one
        extraction type and to speakers with the given persona ids.
        """
        policy = LIMITS["search-extractions"]
        fields = self._require_fields(EXTRACTION)
        names = _names(fields)
        notes = []

        text_fields = _pick(names, TEXT_FIELD_CANDIDATES)
        if not text_fields:
            raise NoSearchableField(EXTRACTION)
        text_field = text_fields[0]
        searchable = _pick(names, SEARCHABLE_TEXT_FIELDS) or [text_field]

        conditions: list[Condition] = [any_of([Leaf((f,), "_ilike", contains(phrase)) for f in searchable])]

        if type_name:
            condition = self.type_filter(fields, type_name)
            if condition is None:
                notes.append(f"Type filter '{type_name}' skipped: no extraction type relation in schema.")
            else:
                conditions.append(condition)

        if persona_ids:
            ids = _persona_ids(persona_ids)
            if "speaker" in names:
                conditions.append(Leaf(("speaker", "person", "persona_id"), "_in", ListValue(tuple(IntLiteral(i) for i in ids))))
            else:
                notes.append("personaIds filter skipped: extraction has no speaker relation.")

        timestamp = next(iter(_pick(names, TIMESTAMP_CANDIDATES)), None)
        root = Selection(EXTRACTION).arg("where", where(*conditions))
        if timestamp:
            root.arg("order_by", obj(**{timestamp: EnumLiteral("desc")}))
        root.arg("limit", IntLiteral(clamp_limit(limit, policy.default, policy.maximum)))

        root.add("id", text_field)
        if timestamp:
            root.add(timestamp)
        relation = self._relation_selection(fields, CALL_RELATION_CANDIDATES, ("id", "name", "created_at"))
        if relation is not None:
            root.add(relation)
        type_sel = self.type_selection(fields)
        if type_sel is not None:
            root.add(type_sel)

        doc = QueryDocument("SearchExtractions", [root])
        return SynthesizedQuery("SearchExtractions", doc.render(), notes=notes)

    def build_query(
        self,
        type_name: str,
        fields: list[str],
        limit: Any = None,
        filter: Optional[dict] = None,
    ) -> SynthesizedQuery:
        """
        Query selecting caller-chosen fields of one object type.

        Every field name (selected or filtered on) is checked against the
        schema first; unknown names fail with did-you-mean suggestions.
        """
        snapshot = self.resolver.snapshot()
        descriptor = find_type(snapshot, type_name)
        if descriptor is None or descriptor.kind != "OBJECT":
            raise SchemaTypeNotFound(type_name)

        valid = _names(descriptor.fields)
        invalid = [f for f in fields if f not in valid]
        if invalid:
            parts = []
            for name in invalid:
                hint = rank(valid, name)
                parts.append(f"{name} (did you mean: {', '.join(hint)}?)" if hint else name)
            raise InvalidArgument(f'Invalid fields for "{type_name}": {", ".join(parts)}')

        policy = LIMITS["build-query"]
        root_name = self.resolver.root_field_for(type_name) or type_name
        root = Selection(root_name)
        if filter:
            root.arg("where", where(*self._filter_conditions(descriptor, filter)))
        root.arg("limit", IntLiteral(clamp_limit(limit, policy.default, policy.maximum)))

        by_name = {f.name: f for f in descriptor.fields}
        for name in fields:
            root.add(self._output_selection(by_name[name]))

        operation = f"Get{type_name[:1].upper()}{type_name[1:]}"
        return SynthesizedQuery(operation, QueryDocument(operation, [root]).render())

    def _output_selection(self, field_def: FieldDescriptor) -> Selection:
        """Scalars are selected bare; relations get their id/name subfields."""
        if field_def.named_kind not in ("OBJECT", "INTERFACE"):
            return Selection(field_def.name)
        related = find_type(self.resolver.snapshot(), field_def.named_type or "")
        names = _names(related.fields) if related else []
        picked = _pick(names, ("id", "name")) or ["__typename"]
        return select(field_def.name, *picked)

    def _filter_conditions(self, descriptor: TypeDescriptor, filter_map: dict) -> list[Condition]:
        """Translate a caller filter map into typed conditions."""
        if not isinstance(filter_map, dict):
            raise InvalidArgument("'filter' must be an object mapping field names to values")

        by_name = {f.name: f for f in descriptor.fields}
        conditions: list[Condition] = []
        for key, value in filter_map.items():
            field_def = by_name.get(key)
            if field_def is None:
                hint = rank(list(by_name), key)
                message = f"Unknown filter field '{key}' on {descriptor.name}."
                if hint:
                    message += f" Did you mean: {', '.join(hint)}?"
                raise InvalidArgument(message)

            if isinstance(value, dict) and value and all(str(k).startswith("_") for k in value):
                for op, operand in value.items():
                    conditions.append(Leaf((key,), op, self._operand(field_def, op, operand)))
            elif isinstance(value, dict):
                related = find_type(self.resolver.snapshot(), field_def.named_type or "")
                if related is None:
                    raise InvalidArgument(f"Field '{key}' is not a relation and cannot take a nested filter")
                conditions.append(Nested((key,), tuple(self._filter_conditions(related, value))))
            elif isinstance(value, list):
                conditions.append(Leaf((key,), "_in", self._operand(field_def, "_in", value)))
            else:
                _reject_null(key, value)
                conditions.append(Leaf((key,), "_eq", literal_for(field_def, value)))
        return conditions

    def _operand(self, field_def: FieldDescriptor, op: str, operand: Any) -> Value:
        if op in LIST_OPERATORS:
            items = operand if isinstance(operand, list) else [operand]
            for item in items:
                _reject_null(field_def.name, item)
            return ListValue(tuple(literal_for(field_def, v) for v in items))
        if op in BOOLEAN_OPERATORS:
            return BoolLiteral(bool(operand))
        _reject_null(field_def.name, operand)
        return literal_for(field_def, operand)

    def topic_conversations(self, topic: str, limit: Any = None) -> SynthesizedQuery:
        """Extractions mentioning a topic, with the call they came from."""
        policy = LIMITS["topic-conversations"]
        fields = self._require_fields(EXTRACTION)
        names = _names(fields)
        searchable = _pick(names, SEARCHABLE_TEXT_FIELDS)
        if not searchable:
            raise NoSearchableField(EXTRACTION)

        timestamp = next(iter(_pick(names, TIMESTAMP_CANDIDATES)), None)
        root = Selection(EXTRACTION).arg(
            "where", where(any_of([Leaf((f,), "_ilike", Variable("topic")) for f in searchable]))
        )
        if timestamp:
            root.arg("order_by", obj(**{timestamp: EnumLiteral("desc")}))
        root.arg("limit", Variable("limit"))
        root.add("id", searchable[0])
        if timestamp:
            root.add(timestamp)
        relation = self._relation_selection(
            fields, ("call", "interview"), ("id", "name", "display_ts", "recorded_at")
        )
        if relation is not None:
            root.add(relation)

        doc = QueryDocument(
            "CallsWithTopic",
            [root],
            [VariableDefinition("topic", "String!"), VariableDefinition("limit", "Int!")],
        )
        variables = {"topic": f"%{topic}%", "limit": clamp_limit(limit, policy.default, policy.maximum)}
        return SynthesizedQuery("CallsWithTopic", doc.render(), variables)

    def recent_conversation_with(self, name: str, limit: Any = None) -> SynthesizedQuery:
        """People matching a name and the calls they most recently attended."""
        policy = LIMITS["recent-conversation-with"]
        fields = self._require_fields(PERSON)
        names = _names(fields)
        name_fields = _pick(names, PERSON_NAME_FIELDS)
        if not name_fields:
            raise NoSearchableField(PERSON)

        root = Selection(PERSON).arg(
            "where", where(any_of([Leaf((f,), "_ilike", Variable("name")) for f in name_fields]))
        )
        root.arg("limit", IntLiteral(5))
        root.add("id", *name_fields)

        notes = []
        attendance = next((f for f in fields if f.name in ATTENDANCE_RELATIONS), None)
        if attendance is None:
            notes.append("person has no attendance relation; conversations are not included.")
        else:
            attendee_fields = self.resolver.fields(attendance.named_type or "")
            interview = next((f for f in attendee_fields if f.name in CALL_RELATION_CANDIDATES), None)
            if interview is not None:
                interview_fields = _names(self.resolver.fields(interview.named_type or ""))
                order_field = next(iter(_pick(interview_fields, ("display_ts", "recorded_at", "created_at"))), None)
                attended = Selection(attendance.name)
                if order_field:
                    attended.arg("order_by", obj(**{interview.name: obj(**{order_field: EnumLiteral("desc")})}))
                attended.arg("limit", Variable("limit"))
                subfields = _pick(interview_fields, ("id", "name", "display_ts", "recorded_at", "short_summary"))
                attended.add(select(interview.name, *(subfields or ["id"])))
                root.add(attended)
            else:
                notes.append(f"{attendance.named_type} has no interview relation; conversations are not included.")

        variables = {"name": f"%{name}%"}
        definitions = [VariableDefinition("name", "String!")]
        if any(isinstance(c, Selection) and c.name in ATTENDANCE_RELATIONS for c in root.children):
            definitions.append(VariableDefinition("limit", "Int!"))
            variables["limit"] = clamp_limit(limit, policy.default, policy.maximum)

        doc = QueryDocument("FindPersonConversations", [root], definitions)
        return SynthesizedQuery("FindPersonConversations", doc.render(), variables, notes)

    def top_customer_issues(self, limit: Any = None, days: Any = None, issue_type: str = "issue") -> SynthesizedQuery:
        """Most recent issue-type extractions within a rolling window."""
        policy = LIMITS["top-customer-issues"]
        fields = self._require_fields(EXTRACTION)
        names = _names(fields)

        condition = self.type_filter(fields, issue_type)
        if condition is None:
            raise InvalidArgument("Cannot filter extractions by type: no extraction type relation in schema.")
        conditions: list[Condition] = [condition]

        variables: dict[str, Any] = {"limit": clamp_limit(limit, policy.default, policy.maximum)}
        definitions = [VariableDefinition("limit", "Int!")]

        timestamp = next(iter(_pick(names, TIMESTAMP_CANDIDATES)), None)
        if timestamp:
            since = self.since(days)
            conditions.append(Leaf((timestamp,), "_gte", Variable("since")))
            definitions.append(VariableDefinition("since", "timestamptz!"))
            variables["since"] = since.isoformat()

        root = Selection(EXTRACTION).arg("where", where(*conditions))
        if timestamp:
            root.arg("order_by", obj(**{timestamp: EnumLiteral("desc")}))
        root.arg("limit", Variable("limit"))

        text_field = next(iter(_pick(names, TEXT_FIELD_CANDIDATES)), None)
        root.add("id", *[f for f in (text_field, timestamp) if f], *_pick(names, ("sentiment",)))
        relation = self._relation_selection(fields, ("call", "interview"), ("id", "name"))
        if relation is not None:
            root.add(relation)

        doc = QueryDocument("TopCustomerIssues", [root], definitions)
        return SynthesizedQuery("TopCustomerIssues", doc.render(), variables)
