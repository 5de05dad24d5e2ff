"""Tool descriptors and the dispatcher that runs them."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from . import similarity, utils
from .client import GraphQLClient
from .errors import (
    BuildBetterMCPError,
    DownstreamQueryError,
    DownstreamUnavailable,
    InvalidArgument,
    MissingRequiredArgument,
    MutationRejected,
    UnknownOperation,
)
from .parser import validate_query_text
from .resolver import TypeResolver, format_type_ref
from .resources import RELATIONSHIPS_URI, ResourceCatalog
from .rules import mutation_diagnostic, translate
from .synthesizer import QuerySynthesizer, SynthesizedQuery, ensure_read_only
from .templates import TEMPLATES, query_from_description, render_template

logger = logging.getLogger(__name__)


@dataclass
class TextBlock:
    text: str


@dataclass
class ResourceBlock:
    uri: str
    text: str
    mime_type: str = "text/markdown"


@dataclass
class ToolResult:
    blocks: list = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls([TextBlock(text)])

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        return cls([TextBlock(text)], is_error=True)

    def render(self) -> str:
        """All block texts joined, for logs and the CLI."""
        return "\n\n".join(b.text for b in self.blocks)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_schema: dict


def _schema(properties: Optional[dict] = None, required: Optional[list] = None) -> dict:
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


_STRING = {"type": "string"}
_NUMBER = {"type": "number"}

HELP_TOPICS = {
    "queries": (
        "# Query Help\n"
        "Use `query-template` or `nl-query` to build common queries quickly.\n"
        "Run any read-only query with `run-query`; check it first with `validate-query`."
    ),
    "schema": (
        "# Schema Help\n"
        "List types with `list-types`. Inspect a type with `find-fields` or "
        '`open-resource(uri: "graphql://type/TypeName")`.'
    ),
    "extractions": (
        "# Extractions Help\n"
        "Signals such as issues or feature requests live on the extraction table. "
        "Filter by type through the type join (e.g. `types: {type: {_eq: issue}}`). "
        "`search-extractions` searches their text."
    ),
    "errors": (
        "# Error Help\n"
        "Failed queries come back with a category:\n"
        "- UnknownField: a field name is wrong; close names are suggested.\n"
        "- EnumQuotingError: an enum value was quoted; write it bare.\n"
        "- InvalidSubselection: a scalar was given a `{ ... }` block.\n"
        "- MutationRejected: only read-only queries are allowed."
    ),
}

HELP_OVERVIEW = (
    "# BuildBetter MCP Help\n\n"
    "## Quick start tools\n"
    "- recent-conversation-with\n"
    "- top-customer-issues\n"
    "- topic-conversations\n"
    "- search-extractions\n"
    "- query-template\n"
    "- nl-query\n\n"
    'Use `help(topic: "queries")`, `help(topic: "schema")`, `help(topic: "extractions")` '
    'or `help(topic: "errors")` for focused guidance.'
)

TOOLS = [
    ToolSpec(
        "run-query",
        "Execute a read-only GraphQL query",
        _schema(
            {
                "query": {"type": "string", "description": "The GraphQL query to execute"},
                "variables": {"type": "object", "description": "Optional variables for the query"},
            },
            ["query"],
        ),
    ),
    ToolSpec("list-types", "Get a list of available GraphQL object types (excluding internal ones)", _schema()),
    ToolSpec(
        "build-query",
        "Build a GraphQL query string for a specific type (the query is not executed)",
        _schema(
            {
                "typeName": {"type": "string", "description": "The name of the GraphQL type to query"},
                "fields": {"type": "array", "items": _STRING, "description": "Fields to include in the query"},
                "limit": {"type": "number", "description": "Optional maximum number of rows (clamped to 100)"},
                "filter": {"type": "object", "description": "Optional filter: field name to value or operator map"},
            },
            ["typeName", "fields"],
        ),
    ),
    ToolSpec("schema-overview", "Return a markdown cheat-sheet describing key schema relationships", _schema()),
    ToolSpec(
        "search-extractions",
        "Search extractions (signals) by keyword with optional extraction type and persona filters",
        _schema(
            {
                "phrase": {"type": "string", "description": "Text to search for (case-insensitive)"},
                "type": {"type": "string", "description": "Extraction type to filter by (optional)"},
                "limit": {"type": "number", "description": "Maximum number of results (default 20, max 50)"},
                "personaIds": {
                    "type": "array",
                    "items": _NUMBER,
                    "description": "persona_id values to filter the speaker's person by (optional)",
                },
            },
            ["phrase"],
        ),
    ),
    ToolSpec(
        "find-fields",
        "Return the fields of a GraphQL type (object, input object or enum)",
        _schema({"typeName": {"type": "string", "description": "GraphQL type name"}}, ["typeName"]),
    ),
    ToolSpec(
        "open-resource",
        "Fetch a resource by URI (see the resource list)",
        _schema({"uri": {"type": "string", "description": "Resource URI"}}, ["uri"]),
    ),
    ToolSpec(
        "read-resource",
        "Alias of open-resource",
        _schema({"uri": {"type": "string", "description": "Resource URI"}}, ["uri"]),
    ),
    ToolSpec(
        "recent-conversation-with",
        "Find the most recent conversations with a person by first or last name",
        _schema(
            {
                "name": {"type": "string", "description": "First or last name of the person"},
                "limit": {"type": "number", "description": "Conversations to return (default 1, max 20)"},
            },
            ["name"],
        ),
    ),
    ToolSpec(
        "top-customer-issues",
        "Get the most recent customer issues from extractions",
        _schema(
            {
                "limit": {"type": "number", "description": "Issues to return (default 10, max 50)"},
                "days": {"type": "number", "description": "Only issues from the last N days (default 30)"},
            }
        ),
    ),
    ToolSpec(
        "topic-conversations",
        "Find conversations discussing a topic",
        _schema(
            {
                "topic": {"type": "string", "description": "Topic or keyword to search for"},
                "limit": {"type": "number", "description": "Results to return (default 5, max 50)"},
            },
            ["topic"],
        ),
    ),
    ToolSpec(
        "query-template",
        "Generate a query from a predefined template",
        _schema(
            {
                "template": {"type": "string", "description": f"Template name: {', '.join(TEMPLATES)}"},
                "parameters": {"type": "object", "description": "Template parameters"},
            },
            ["template"],
        ),
    ),
    ToolSpec(
        "validate-query",
        "Check whether a GraphQL query is valid without executing it",
        _schema({"query": {"type": "string", "description": "The GraphQL query to validate"}}, ["query"]),
    ),
    ToolSpec(
        "nl-query",
        "Generate a GraphQL query from a natural language description",
        _schema(
            {"description": {"type": "string", "description": "What you want to query, in plain words"}},
            ["description"],
        ),
    ),
    ToolSpec(
        "help",
        "Get help on using this server",
        _schema({"topic": {"type": "string", "description": "Optional topic: " + ", ".join(HELP_TOPICS)}}),
    ),
]


def _required(arguments: dict, name: str) -> Any:
    value = arguments.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingRequiredArgument(name)
    return value


def _json_object(value: Any, name: str) -> Optional[dict]:
    """Object argument that some clients send as a JSON string."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise InvalidArgument(f"'{name}' must be a JSON object")
    if not isinstance(value, dict):
        raise InvalidArgument(f"'{name}' must be an object")
    return value


def _query_block(query: SynthesizedQuery) -> str:
    text = f"Query:\n```graphql\n{query.query}\n```"
    if query.variables:
        text += f"\n\nVariables:\n{utils.to_json(query.variables)}"
    if query.notes:
        text += "\n\nNotes:\n" + "\n".join(f"- {n}" for n in query.notes)
    return text


class Toolbox:
    """
    Runs tools by name.

    Every BuildBetterMCPError raised by a handler becomes an error result;
    only an unknown tool name escapes as an exception.
    """

    def __init__(
        self,
        client: GraphQLClient,
        resolver: TypeResolver,
        synthesizer: QuerySynthesizer,
        catalog: ResourceCatalog,
    ):
        self.client = client
        self.resolver = resolver
        self.synthesizer = synthesizer
        self.catalog = catalog
        self._handlers: dict[str, Callable[[dict], ToolResult]] = {
            "run-query": self.run_query,
            "list-types": self.list_types,
            "build-query": self.build_query,
            "schema-overview": self.schema_overview,
            "search-extractions": self.search_extractions,
            "find-fields": self.find_fields,
            "open-resource": self.open_resource,
            "read-resource": self.open_resource,
            "recent-conversation-with": self.recent_conversation_with,
            "top-customer-issues": self.top_customer_issues,
            "topic-conversations": self.topic_conversations,
            "query-template": self.query_template,
            "validate-query": self.validate_query,
            "nl-query": self.nl_query,
            "help": self.help,
        }

    def tools(self) -> list[ToolSpec]:
        return list(TOOLS)

    def call(self, name: str, arguments: Optional[dict] = None) -> ToolResult:
        """
        Run one tool.

        Raises:
            UnknownOperation: If no tool has this name
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownOperation("tool", name)

        logger.debug("Calling tool %s", name)
        try:
            return handler(dict(arguments or {}))
        except MutationRejected:
            return ToolResult.error(mutation_diagnostic().render())
        except BuildBetterMCPError as e:
            logger.info("Tool %s failed: %s", name, e)
            return ToolResult.error(f"Error: {e}")

    # Shared execution path

    def _suggest(self, type_name: str, field_name: str) -> list[str]:
        return similarity.suggest(self.resolver, type_name, field_name)

    def _execute(self, query: str, variables: Optional[dict] = None) -> ToolResult:
        """Execute a read-only query, translating downstream errors."""
        ensure_read_only(query)
        try:
            data = self.client.execute(query, variables)
        except DownstreamQueryError as e:
            diagnostic = translate("; ".join(e.messages), query=query, suggest=self._suggest)
            return ToolResult.error(diagnostic.render())
        except DownstreamUnavailable as e:
            return ToolResult.error(f"Error executing query: {e}")
        return ToolResult.text(utils.to_json(data))

    def _execute_synthesized(self, query: SynthesizedQuery) -> ToolResult:
        result = self._execute(query.query, query.variables or None)
        result.blocks.insert(0, TextBlock(_query_block(query)))
        return result

    # Handlers

    def run_query(self, arguments: dict) -> ToolResult:
        query = _required(arguments, "query")
        return self._execute(str(query), _json_object(arguments.get("variables"), "variables"))

    def list_types(self, arguments: dict) -> ToolResult:
        return ToolResult.text(utils.to_json([t.name for t in self.resolver.browsable_types()]))

    def build_query(self, arguments: dict) -> ToolResult:
        type_name = arguments.get("typeName")
        fields = arguments.get("fields")
        if not type_name or not fields:
            raise MissingRequiredArgument("typeName", "'typeName' and 'fields' arguments are required.")
        if isinstance(fields, str):
            fields = [f.strip() for f in fields.split(",") if f.strip()]
        if not isinstance(fields, list) or not all(isinstance(f, str) for f in fields):
            raise InvalidArgument("'fields' must be a list of field names")

        query = self.synthesizer.build_query(
            str(type_name),
            fields,
            limit=arguments.get("limit"),
            filter=_json_object(arguments.get("filter"), "filter"),
        )
        return ToolResult.text(query.query)

    def schema_overview(self, arguments: dict) -> ToolResult:
        content = self.catalog.read(RELATIONSHIPS_URI)
        return ToolResult([ResourceBlock(content.uri, content.text, content.mime_type)])

    def search_extractions(self, arguments: dict) -> ToolResult:
        phrase = _required(arguments, "phrase")
        persona_ids = arguments.get("personaIds")
        if persona_ids is not None and not isinstance(persona_ids, list):
            persona_ids = [persona_ids]
        query = self.synthesizer.search_extractions(
            str(phrase),
            type_name=arguments.get("type") or None,
            limit=arguments.get("limit"),
            persona_ids=persona_ids,
        )
        return self._execute_synthesized(query)

    def find_fields(self, arguments: dict) -> ToolResult:
        type_name = str(_required(arguments, "typeName"))
        fields = self.resolver.fields(type_name)
        if not fields:
            return ToolResult.text(f'No fields found for type "{type_name}". Use \'list-types\' to see available types.')
        return ToolResult.text("\n".join(f"{f.name}: {format_type_ref(f.type)}" for f in fields))

    def open_resource(self, arguments: dict) -> ToolResult:
        content = self.catalog.read(str(_required(arguments, "uri")))
        return ToolResult([ResourceBlock(content.uri, content.text, content.mime_type)])

    def recent_conversation_with(self, arguments: dict) -> ToolResult:
        name = _required(arguments, "name")
        return self._execute_synthesized(self.synthesizer.recent_conversation_with(str(name), arguments.get("limit")))

    def top_customer_issues(self, arguments: dict) -> ToolResult:
        query = self.synthesizer.top_customer_issues(arguments.get("limit"), arguments.get("days"))
        return self._execute_synthesized(query)

    def topic_conversations(self, arguments: dict) -> ToolResult:
        topic = _required(arguments, "topic")
        return self._execute_synthesized(self.synthesizer.topic_conversations(str(topic), arguments.get("limit")))

    def query_template(self, arguments: dict) -> ToolResult:
        name = str(_required(arguments, "template"))
        query = render_template(name, _json_object(arguments.get("parameters"), "parameters"), self.synthesizer.since)
        return ToolResult.text(query.query)

    def validate_query(self, arguments: dict) -> ToolResult:
        report = validate_query_text(str(_required(arguments, "query")), self.resolver)
        return ToolResult.text(report.render())

    def nl_query(self, arguments: dict) -> ToolResult:
        description = str(_required(arguments, "description"))
        match = query_from_description(description, self.synthesizer.since)
        if match.matched:
            intro = f"Based on your description, I've generated this query (template: {match.template}):"
        else:
            intro = (
                "No specific pattern matched, so this searches extraction summaries for your words. "
                "Try phrases like 'last call with [name]', 'customer issues' or 'discussions about [topic]'."
            )
        return ToolResult([TextBlock(intro), TextBlock(match.query.query)])

    def help(self, arguments: dict) -> ToolResult:
        topic = str(arguments.get("topic") or "").strip().lower()
        if not topic:
            return ToolResult.text(HELP_OVERVIEW)
        if topic in HELP_TOPICS:
            return ToolResult.text(HELP_TOPICS[topic])
        return ToolResult.text(f"No help available for topic '{topic}'. Topics: {', '.join(HELP_TOPICS)}")
