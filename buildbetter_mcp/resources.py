"""Read-only documentation and schema resources under the graphql:// scheme."""

import logging
from dataclasses import dataclass

from .errors import UnknownOperation
from .resolver import TypeResolver, find_type, format_type_ref, list_browsable_types

logger = logging.getLogger(__name__)

MARKDOWN = "text/markdown"

SCHEMA_URI = "graphql://schema"
CONTEXT_GUIDE_URI = "graphql://guide/context"
RELATIONSHIPS_URI = "graphql://docs/schema-relationships"
RELATIONSHIPS_ALIAS_URI = "graphql://diagram/schema-relationships"
COMMON_QUERIES_URI = "graphql://examples/common-queries"
PRACTICAL_EXAMPLES_URI = "graphql://guide/practical-examples"
TYPE_URI_PREFIX = "graphql://type/"
TYPE_URI_TEMPLATE = "graphql://type/{name}"

# Persona ids of the deployed workspace
CUSTOMER_PERSONA_ID = 246
TEAM_MEMBER_PERSONA_ID = 247


@dataclass(frozen=True)
class ResourceDescriptor:
    uri: str
    name: str
    description: str
    mime_type: str = MARKDOWN


@dataclass
class ResourceContent:
    uri: str
    text: str
    mime_type: str = MARKDOWN


CONTEXT_GUIDE = f"""# BuildBetter GraphQL Context Guide

## 1. Check the schema first
Confirm that a type and its fields exist before writing a larger query.
The `list-types` and `find-fields` tools do this for you, or run:

```graphql
query SchemaExploration($type: String!) {{
  __type(name: $type) {{ name fields {{ name type {{ name kind }} }} }}
}}
```

## 2. Standard query patterns
- Recent calls: `interview` ordered by `display_ts` or `created_at` descending.
- Call details: `interview_by_pk(id: ...)` with `attendees {{ person {{ ... }} }}`.
- Signals: `extraction` rows, filtered by type through the type join table.

## 3. Building context
1. Chronological: recent calls, then call details, then the signals of each call.
2. Issues: signals of one type, grouped into themes.
3. Customers: company or person, then their calls, then signals.
4. Relationships: connect the same issue across several calls.

## 4. Literals
- Enum values are written bare: `type: {{_eq: issue}}`.
- Strings are quoted: `name: {{_eq: "issue"}}`.
- Keyword search uses `_ilike` with `%` wildcards: `summary: {{_ilike: "%pricing%"}}`.
- Several text columns are searched with `_or`.

## 5. When a query fails
- Unknown field: the error lists close field names. Check with `find-fields`.
- Enum quoting: drop the quotes around enum values.
- Scalar with a selection: remove the `{{ ... }}` block after that field.
- Mutations are never sent; this server is read-only.

## Persona cheat-sheet

| Purpose | persona.name | persona_id |
|---------|--------------|------------|
| Customer | Customer | {CUSTOMER_PERSONA_ID} |
| Team Member | Team Member | {TEAM_MEMBER_PERSONA_ID} |

Filter on the speaker's person to keep only customer voices:

```graphql
query CustomerObjections($start: timestamptz!) {{
  extraction_type_join(
    where: {{
      type: {{_eq: objection}}
      extraction: {{
        created_at: {{_gte: $start}}
        speaker: {{ person: {{ persona_id: {{_in: [{CUSTOMER_PERSONA_ID}]}} }} }}
      }}
    }},
    order_by: {{ extraction: {{ created_at: desc }} }},
    limit: 20
  ) {{
    extraction {{ id summary created_at }}
  }}
}}
```
"""

SCHEMA_RELATIONSHIPS = """# BuildBetter Schema Relationships

```mermaid
flowchart TB
  interview -->|has many| interview_monologue
  interview -->|has many| extraction
  interview -->|has many| interview_attendee
  extraction -->|many-to-many| extraction_type_join
  extraction_type_join --o extraction_type
  extraction -->|many-to-many| extraction_topic_join
  extraction_topic_join --o extraction_topic
  extraction -->|many-to-many| extraction_emotion_join
  extraction_emotion_join --o extraction_emotion
  interview_attendee --> person
  person --> company
  extraction --> interview_monologue
  extraction --> call["interview (also exposed as call)"]
```

## Query paths

### A person's recent calls
`person` -> `interview_attendees` -> `interview`, ordered by `display_ts` descending.

```graphql
query PersonRecentCalls($personId: uuid!) {
  person_by_pk(id: $personId) {
    first_name
    last_name
    interview_attendees(order_by: {interview: {display_ts: desc}}, limit: 5) {
      interview { id name display_ts }
    }
  }
}
```

### Signals of one type
`extraction` -> type join -> `extraction_type.name`.

```graphql
query ExtractionsByType($typeName: String = "Issue") {
  extraction(
    where: {extraction_type_joins: {extraction_type: {name: {_eq: $typeName}}}}
    order_by: {display_ts: desc}
    limit: 10
  ) {
    id
    summary
    display_ts
    extraction_type_joins { extraction_type { name } }
  }
}
```

The join relation name differs between deployments (`types`, `extraction_type_joins`).
Check it with `find-fields` on `extraction`.

### Calls that discuss a topic
`extraction` text columns -> `call` (or `interview`).

```graphql
query InterviewsByTopic($topic: String = "%integration%") {
  extraction(where: {summary: {_ilike: $topic}}, order_by: {display_ts: desc}, limit: 5) {
    summary
    call { id name display_ts }
  }
}
```

### Attendees of a call
`interview` -> `attendees` -> `person`.

```graphql
query InterviewAttendees($interviewId: uuid!) {
  interview_by_pk(id: $interviewId) {
    name
    attendees { person { first_name last_name email } }
  }
}
```

## Field notes
- Extraction text lives in `summary`, `text`, `exact_quote` or `context`.
- `display_ts` is the user-facing timestamp; `created_at` also exists.
- Extractions point back to their call through `call_id` / `interview_id`.
- `interview_attendee` links an `interview` to a `person`; `person` links to `company`.
"""

COMMON_QUERIES = """# Common BuildBetter Queries

## Recent issues

```graphql
query RecentIssues {
  extraction_type_join(
    where: {type: {_eq: issue}},
    order_by: {extraction: {created_at: desc}},
    limit: 20
  ) {
    extraction { id text created_at interview { id name created_at } }
  }
}
```

## Feature requests since a date

```graphql
query RecentFeatureRequests($since: timestamptz!) {
  extraction_type_join(
    where: {type: {_eq: featureRequest}, extraction: {created_at: {_gte: $since}}}
  ) {
    extraction { id text interview { name } }
  }
}
```

## Keyword search over extractions

```graphql
query SearchExtractions($keyword: String!) {
  extraction(where: {_or: [{summary: {_ilike: $keyword}}, {text: {_ilike: $keyword}}]}) {
    id
    summary
    interview { name }
  }
}
```
"""

PRACTICAL_EXAMPLES = """# Practical BuildBetter Query Examples

Replace `%NAME%`, `%TOPIC%` and `YYYY-MM-DD` with real values or variables.

## Last call with a person

```graphql
query FindPersonConversations {
  person(where: {_or: [{first_name: {_ilike: "%NAME%"}}, {last_name: {_ilike: "%NAME%"}}]}, limit: 1) {
    id
    first_name
    last_name
    interview_attendees(order_by: {interview: {display_ts: desc}}, limit: 1) {
      interview { id name display_ts recorded_at short_summary }
    }
  }
}
```

The `recent-conversation-with` tool builds this query for you.

## Top customer issues in the last 30 days

```graphql
query TopCustomerIssues($since: timestamptz!) {
  extraction(
    where: {types: {type: {_eq: issue}}, display_ts: {_gte: $since}},
    order_by: {display_ts: desc},
    limit: 10
  ) {
    id
    summary
    display_ts
    sentiment
    call { name }
  }
}
```

The `top-customer-issues` tool computes `$since` for you.

## Calls that discuss a topic

```graphql
query FindCallsByTopic($topic: String = "%TOPIC%") {
  extraction(where: {summary: {_ilike: $topic}}, order_by: {display_ts: desc}, limit: 5) {
    id
    summary
    display_ts
    call { id name display_ts recorded_at }
  }
}
```

Several extractions can point at the same call; deduplicate on `call.id` if you need unique calls.

## Before running
- Field names above follow the usual schema. Verify them with `list-types` and `find-fields`.
- Keep `limit` small and raise it only when needed.
"""

STATIC_RESOURCES = {
    CONTEXT_GUIDE_URI: CONTEXT_GUIDE,
    RELATIONSHIPS_URI: SCHEMA_RELATIONSHIPS,
    RELATIONSHIPS_ALIAS_URI: SCHEMA_RELATIONSHIPS,
    COMMON_QUERIES_URI: COMMON_QUERIES,
    PRACTICAL_EXAMPLES_URI: PRACTICAL_EXAMPLES,
}

RESOURCES = [
    ResourceDescriptor(SCHEMA_URI, "GraphQL Schema Overview", "List of all available object types in the schema."),
    ResourceDescriptor(
        CONTEXT_GUIDE_URI,
        "BuildBetter Context Guide",
        "Strategies, query patterns and literal rules for building context from BuildBetter data.",
    ),
    ResourceDescriptor(
        RELATIONSHIPS_URI,
        "Schema Relationships Cheat-Sheet",
        "Diagram of the key entities (interview, extraction, extraction_type, joins, person, company) and how they connect.",
    ),
    ResourceDescriptor(
        COMMON_QUERIES_URI, "Common Query Examples", "Ready-to-use GraphQL snippets for frequent BuildBetter data tasks."
    ),
    ResourceDescriptor(
        PRACTICAL_EXAMPLES_URI,
        "Practical Query Examples",
        "Worked examples for the most common questions asked of BuildBetter data.",
    ),
]

TYPE_TEMPLATE = ResourceDescriptor(
    TYPE_URI_TEMPLATE, "GraphQL Type", "Fields of one schema type, with their GraphQL types."
)


def render_schema(resolver: TypeResolver) -> str:
    """Markdown list of browsable types with their descriptions."""
    sections = []
    for t in list_browsable_types(resolver.snapshot()):
        sections.append(f"# {t.name}\n{t.description}\n" if t.description else f"# {t.name}\n")
    return "\n\n".join(sections)


def render_type(resolver: TypeResolver, type_name: str) -> str:
    """Markdown description of one type; not-found is reported as text."""
    if not type_name:
        return "Error: Type name missing in URI."

    t = find_type(resolver.snapshot(), type_name)
    if t is None:
        return f'Type "{type_name}" not found in schema.'

    parts = [f"# {t.name}\n"]
    if t.description:
        parts.append(f"{t.description}\n")

    if t.kind == "ENUM":
        parts.append("## Values\n")
        if not t.enum_values:
            parts.append("No values available.\n")
        for v in t.enum_values:
            parts.append(f"- `{v.name}`" + (f": {v.description}" if v.description else ""))
        return "\n".join(parts) + "\n"

    parts.append("## Fields\n")
    fields = t.fields or t.input_fields
    if not fields:
        parts.append("No fields available.\n")
    for f in fields:
        entry = f"### {f.name}\n**Type:** {format_type_ref(f.type)}\n"
        if f.description:
            entry += f"**Description:** {f.description}\n"
        parts.append(entry)
    return "\n".join(parts)


class ResourceCatalog:
    """Resolves graphql:// URIs to markdown content."""

    def __init__(self, resolver: TypeResolver):
        self.resolver = resolver

    def resources(self) -> list[ResourceDescriptor]:
        return list(RESOURCES)

    def resource_templates(self) -> list[ResourceDescriptor]:
        return [TYPE_TEMPLATE]

    def read(self, uri: str) -> ResourceContent:
        """
        Read one resource.

        Args:
            uri: Resource URI

        Returns:
            ResourceContent

        Raises:
            UnknownOperation: If the URI matches no static or dynamic resource
            DownstreamUnavailable: If a schema-derived resource needs a refresh that fails
        """
        uri = str(uri).strip()
        logger.debug("Reading resource %s", uri)

        if uri.startswith(TYPE_URI_PREFIX):
            return ResourceContent(uri, render_type(self.resolver, uri[len(TYPE_URI_PREFIX):].strip("/")))

        # URL parsers may append a trailing slash to authority-only URIs
        key = uri.rstrip("/")
        if key in STATIC_RESOURCES:
            return ResourceContent(uri, STATIC_RESOURCES[key])
        if key == SCHEMA_URI:
            return ResourceContent(uri, render_schema(self.resolver))

        raise UnknownOperation("resource", uri)
