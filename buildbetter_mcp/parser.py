"""GraphQL parsing and validation of caller-supplied queries."""

import logging
from dataclasses import dataclass, field

from graphql import (
    GraphQLError,
    GraphQLSchema,
    OperationType,
    build_client_schema,
    parse,
    validate,
)

from . import utils
from .errors import BuildBetterMCPError, MutationRejected
from .similarity import rank
from .synthesizer import ensure_read_only

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """Outcome of checking a query without executing it."""

    ok: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.ok = False
        self.errors.append(message)

    def render(self) -> str:
        if self.ok and not self.warnings:
            return "Query is valid."
        lines = ["Query is valid." if self.ok else "Query is invalid."]
        lines.extend(f"- Error: {e}" for e in self.errors)
        lines.extend(f"- Warning: {w}" for w in self.warnings)
        return "\n".join(lines)


def build_schema(schema_json: dict) -> GraphQLSchema:
    """
    Build GraphQL schema from introspection JSON.

    Args:
        schema_json: Introspection result, either {"__schema": {...}} or {"data": {"__schema": {...}}}

    Returns:
        GraphQLSchema object
    """
    if "__schema" not in schema_json and "__schema" in (schema_json.get("data") or {}):
        schema_json = schema_json["data"]
    return build_client_schema(schema_json)


def parse_query(source: str):
    """
    Parse GraphQL query string into AST.

    Raises:
        GraphQLError: If query is syntactically invalid
    """
    return parse(source)


def validate_query(doc, schema: GraphQLSchema) -> list[GraphQLError]:
    """Validate a parsed document against a schema; [] when valid."""
    return validate(schema, doc)


def _check_root_fields(doc, resolver, report: ValidationReport) -> None:
    for op in utils.iter_operations(doc):
        operation = "subscription" if op.operation == OperationType.SUBSCRIPTION else "query"
        known = [f.name for f in resolver.root_fields(operation)]
        if not known:
            report.warnings.append(f"Schema has no {operation} root type to check against.")
            continue
        for node in utils.selection_fields(op.selection_set):
            name = node.name.value
            if name.startswith("__") or name in known:
                continue
            line, col = utils.loc(node)
            message = f"Unknown root field '{name}' (line {line}:{col})."
            hint = rank(known, name)
            if hint:
                message += f" Did you mean: {', '.join(hint)}?"
            report.fail(message)


def validate_query_text(query: str, resolver) -> ValidationReport:
    """
    Check a query without sending it.

    Steps: syntax parse, read-only guard, root field names against the
    cached schema, then full validation against a client schema built from
    the cached introspection result.

    Args:
        query: GraphQL document text
        resolver: TypeResolver used for schema lookups

    Returns:
        ValidationReport
    """
    report = ValidationReport()

    try:
        ensure_read_only(query)
    except MutationRejected as e:
        report.fail(str(e))
        return report

    try:
        doc = parse_query(query)
    except GraphQLError as e:
        report.fail(f"Syntax error: {e.message}")
        return report

    if any(op.operation == OperationType.MUTATION for op in utils.iter_operations(doc)):
        report.fail(str(MutationRejected()))
        return report

    try:
        _check_root_fields(doc, resolver, report)
        snapshot = resolver.snapshot()
    except BuildBetterMCPError as e:
        report.warnings.append(f"Schema unavailable, only syntax was checked: {e}")
        return report

    if not report.ok:
        return report

    try:
        schema = build_schema(snapshot.raw)
    except (GraphQLError, TypeError, KeyError) as e:
        logger.debug("Could not build client schema: %s", e)
        report.warnings.append("Full schema validation skipped: introspection result could not be loaded.")
        return report

    for error in validate_query(doc, schema):
        report.fail(error.message)
    return report
