"""Classification of downstream GraphQL error messages.

The patterns below match the wording of the deployed GraphQL server
(Hasura) and of graphql-js style servers. They are heuristics over free
text: if the downstream server changes its wording, update the rule list.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Literal, Optional

Category = Literal[
    "EnumQuotingError",
    "UnknownField",
    "InvalidSubselection",
    "MutationRejected",
    "Generic",
]

Suggester = Callable[[str, str], list[str]]

DISCOVERY_ADVICE = [
    "Use 'list-types' to see available types.",
    "Use 'find-fields' to check the fields of a type.",
    "Read the 'graphql://guide/context' resource for query patterns.",
]


@dataclass
class Diagnostic:
    """Result of translating one error message."""

    category: Category
    message: str
    suggestions: list[str] = field(default_factory=list)
    advice: list[str] = field(default_factory=list)
    raw: str = ""
    field_name: Optional[str] = None
    type_name: Optional[str] = None
    query: Optional[str] = None

    def render(self) -> str:
        lines = [f"Error ({self.category}): {self.message}"]
        if self.suggestions:
            lines.append(f"Did you mean: {', '.join(self.suggestions)}?")
        lines.extend(f"- {a}" for a in self.advice)
        if self.raw and self.raw not in self.message:
            lines.append(f"Original error: {self.raw}")
        return "\n".join(lines)


@dataclass(frozen=True)
class ErrorRule:
    """One classification rule: any pattern match selects the category."""

    category: Category
    patterns: tuple
    build: Callable[[str, Optional[Suggester]], Diagnostic]

    def matches(self, message: str) -> bool:
        return any(p.search(message) for p in self.patterns)


ENUM_QUOTING_PATTERNS = (
    re.compile(r"cannot represent non-enum value", re.I),
    re.compile(r"expected (?:an? )?enum value", re.I),
    re.compile(r"enum .* but (?:found|got) (?:a )?string", re.I),
    re.compile(r"unexpected value .* for enum", re.I),
)

FIELD_NAME_PATTERNS = (
    re.compile(r"field '([^']+)' not found"),
    re.compile(r"Cannot query field \"([^\"]+)\""),
    re.compile(r"field \"([^\"]+)\" not found"),
)
TYPE_NAME_PATTERNS = (
    re.compile(r"on type ['\"]([^'\"]+)['\"]"),
    re.compile(r"in type: ?['\"]([^'\"]+)['\"]"),
)
UNKNOWN_FIELD_PATTERNS = (
    re.compile(r"field not found", re.I),
    re.compile(r"Cannot query field"),
    re.compile(r"field ['\"][^'\"]+['\"] not found", re.I),
)

SUBSELECTION_PATTERNS = (
    re.compile(r"unexpected subselection", re.I),
    re.compile(r"must not have a selection", re.I),
)
SUBSELECTION_FIELD = re.compile(r"(?:Field|field) ['\"]([^'\"]+)['\"]")

MUTATION_PATTERNS = (
    re.compile(r"no mutations exist", re.I),
    re.compile(r"mutations? (?:are|is) not (?:allowed|supported)", re.I),
    re.compile(r"schema is not configured for mutations", re.I),
)


def _first_group(patterns, message: str) -> Optional[str]:
    for p in patterns:
        m = p.search(message)
        if m:
            return m.group(1)
    return None


def _enum_quoting(message: str, suggest: Optional[Suggester]) -> Diagnostic:
    return Diagnostic(
        category="EnumQuotingError",
        message="An enum value was passed as a quoted string.",
        advice=[
            'Write enum values without quotes, e.g. type: {_eq: issue} instead of type: {_eq: "issue"}.',
            "Use 'find-fields' on the enum type to list its valid values.",
        ],
        raw=message,
    )


def _unknown_field(message: str, suggest: Optional[Suggester]) -> Diagnostic:
    field_name = _first_group(FIELD_NAME_PATTERNS, message) or "unknown"
    type_name = _first_group(TYPE_NAME_PATTERNS, message)

    suggestions = []
    if type_name and suggest is not None and field_name != "unknown":
        suggestions = suggest(type_name, field_name)

    advice = [] if suggestions else ["Use the 'find-fields' tool to check available fields."]
    on_type = f" '{type_name}'" if type_name else ""
    return Diagnostic(
        category="UnknownField",
        message=f"Field '{field_name}' not found or not queryable on the specified type{on_type}.",
        suggestions=suggestions,
        advice=advice,
        raw=message,
        field_name=field_name,
        type_name=type_name,
    )


def _invalid_subselection(message: str, suggest: Optional[Suggester]) -> Diagnostic:
    field_name = _first_group((SUBSELECTION_FIELD,), message)
    subject = f"Field '{field_name}'" if field_name else "A field"
    return Diagnostic(
        category="InvalidSubselection",
        message=f"{subject} was given a nested selection but is a scalar or enum.",
        advice=["Remove the { ... } block after that field.", "Use 'find-fields' to see which fields are objects."],
        raw=message,
        field_name=field_name,
    )


def _mutation_rejected(message: str, suggest: Optional[Suggester]) -> Diagnostic:
    return Diagnostic(
        category="MutationRejected",
        message="Only read-only queries are allowed.",
        raw=message,
    )


def _generic(message: str, suggest: Optional[Suggester]) -> Diagnostic:
    return Diagnostic(
        category="Generic",
        message=f"Error executing query: {message}",
        advice=list(DISCOVERY_ADVICE),
        raw=message,
    )


ERROR_RULES = [
    ErrorRule("EnumQuotingError", ENUM_QUOTING_PATTERNS, _enum_quoting),
    ErrorRule("UnknownField", UNKNOWN_FIELD_PATTERNS, _unknown_field),
    ErrorRule("InvalidSubselection", SUBSELECTION_PATTERNS, _invalid_subselection),
    ErrorRule("MutationRejected", MUTATION_PATTERNS, _mutation_rejected),
]


def translate(raw_message: str, query: Optional[str] = None, suggest: Optional[Suggester] = None) -> Diagnostic:
    """
    Classify a downstream error message.

    Args:
        raw_message: Error text as returned by the GraphQL server
        query: The query that failed, attached to the diagnostic
        suggest: Callable (type_name, field_name) -> similar field names

    Returns:
        Diagnostic from the first matching rule, or a Generic one
    """
    diagnostic = None
    for rule in ERROR_RULES:
        if rule.matches(raw_message):
            diagnostic = rule.build(raw_message, suggest)
            break
    if diagnostic is None:
        diagnostic = _generic(raw_message, suggest)
    diagnostic.query = query
    return diagnostic


def mutation_diagnostic() -> Diagnostic:
    """Diagnostic for a query rejected locally before sending."""
    return Diagnostic(
        category="MutationRejected",
        message="Only read-only queries are allowed.",
        advice=["This server never forwards mutations. Rewrite the request as a query."],
    )
