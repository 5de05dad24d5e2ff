"""Prompt catalog: instructional text plus a suggested query, never executed."""

import json
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Optional

from . import utils
from .builder import (
    Compare,
    EnumLiteral,
    IntLiteral,
    Leaf,
    ListValue,
    Nested,
    QueryDocument,
    Selection,
    StringLiteral,
    Value,
    contains,
    obj,
    select,
    where,
)
from .errors import InvalidArgument, MissingRequiredArgument, UnknownOperation
from .resources import CONTEXT_GUIDE_URI, CUSTOMER_PERSONA_ID, TYPE_URI_TEMPLATE
from .synthesizer import clamp_days, clamp_limit

logger = logging.getLogger(__name__)

SIGNAL_LIMIT = 20


@dataclass(frozen=True)
class PromptArg:
    name: str
    description: str
    required: bool = False


@dataclass(frozen=True)
class PromptSpec:
    name: str
    description: str
    arguments: tuple
    render: Callable[["PromptBook", dict], str]


@dataclass
class PromptReply:
    description: str
    text: str


def _run_query_message(intro: str, query: str) -> str:
    return f"{intro}\n\n```graphql\n{query}\n```"


def _require(args: dict, *names: str) -> None:
    missing = [n for n in names if not str(args.get(n) or "").strip()]
    if len(missing) == 1:
        raise MissingRequiredArgument(missing[0], f"Missing required argument '{missing[0]}'")
    if missing:
        quoted = " and ".join(f"'{n}'" for n in missing)
        raise MissingRequiredArgument(missing[0], f"Arguments {quoted} are required")


def _id_literal(value: Any) -> Value:
    """Numeric ids are sent as Int, anything else (uuids) as a quoted string."""
    n = utils.coerce_int(value)
    return IntLiteral(n) if n is not None else StringLiteral(str(value).strip())


def _day_bounds(start: date, end: date) -> tuple:
    return (
        ("_gte", StringLiteral(f"{start.isoformat()}T00:00:00")),
        ("_lte", StringLiteral(f"{end.isoformat()}T23:59:59")),
    )


def _date_range(args: dict, start_key: str, end_key: str, earliest: Optional[date] = None) -> tuple[date, date]:
    start = utils.parse_day(args[start_key], start_key)
    end = utils.parse_day(args[end_key], end_key)
    if earliest is not None and start < earliest:
        logger.debug("Clamping %s %s to %s", start_key, start, earliest)
        start = earliest
    if start > end:
        raise InvalidArgument(f"'{start_key}' must not be after '{end_key}'")
    return start, end


def parse_persona_ids(value: Any) -> list[int]:
    """
    Persona ids from a prompt argument.

    Prompt arguments arrive as strings, so both a JSON array ("[246, 247]")
    and a comma list ("246,247") are accepted. Empty means the customer persona.
    """
    if value is None or value == "" or value == []:
        return [CUSTOMER_PERSONA_ID]
    items = value
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except ValueError:
                raise InvalidArgument(f"'personaIds' is not a valid JSON array: {value!r}")
        else:
            items = [part for part in text.split(",") if part.strip()]
    if not isinstance(items, list):
        items = [items]

    ids = []
    for item in items:
        n = utils.coerce_int(item)
        if n is None:
            raise InvalidArgument(f"'personaIds' must contain integers, got {item!r}")
        ids.append(n)
    return ids or [CUSTOMER_PERSONA_ID]


def _signal_join(type_value: str, conditions: tuple = (), limit: Optional[int] = None) -> Selection:
    """`extraction_type_join` rows of one extraction type, newest extraction first."""
    root = Selection("extraction_type_join").arg(
        "where", where(Leaf(("type",), "_eq", EnumLiteral(type_value)), *conditions)
    )
    root.arg("order_by", obj(extraction=obj(created_at=EnumLiteral("desc"))))
    if limit is not None:
        root.arg("limit", IntLiteral(limit))
    return root


# Renderers


def _recent_calls(book: "PromptBook", args: dict) -> str:
    limit = clamp_limit(args.get("limit"), 10, 50)
    root = (
        Selection("interview")
        .arg("order_by", obj(created_at=EnumLiteral("desc")))
        .arg("limit", IntLiteral(limit))
        .add(
            "id",
            "name",
            "created_at",
            "recorded_at",
            "completed_at",
            "summary",
            "short_summary",
            "source",
            "transcript_status",
            "summary_state",
        )
    )
    query = QueryDocument("GetRecentCalls", [root]).render()
    return _run_query_message(f"Use the `run-query` tool with the following GraphQL to list the {limit} most recent calls:", query)


def _call_details(book: "PromptBook", args: dict) -> str:
    _require(args, "id")
    root = (
        Selection("interview_by_pk")
        .arg("id", _id_literal(args["id"]))
        .add(
            "id",
            "name",
            "created_at",
            "recorded_at",
            "completed_at",
            "summary",
            "short_summary",
            "asset_duration_seconds",
            "source",
            "transcript_status",
            "summary_state",
            select("attendees", "id", "person_id", select("person", "id", "first_name", "last_name", "email")),
        )
    )
    query = QueryDocument("GetCallDetails", [root]).render()
    return _run_query_message(f"Retrieve details for call **{args['id']}** by running this query via `run-query`:", query)


def _call_transcript(book: "PromptBook", args: dict) -> str:
    _require(args, "id")
    monologues = (
        Selection("monologues")
        .arg("order_by", obj(start_sec=EnumLiteral("asc")))
        .add("id", "speaker", "start_sec", "end_sec", "text")
    )
    root = (
        Selection("interview_by_pk")
        .arg("id", _id_literal(args["id"]))
        .add("id", "name", "created_at", "transcript_status", monologues)
    )
    query = QueryDocument("GetCallTranscript", [root]).render()
    return _run_query_message(f"Fetch the full transcript for call **{args['id']}** with:", query)


def _search_transcript(book: "PromptBook", args: dict) -> str:
    _require(args, "id", "phrase")
    root = (
        Selection("interview_monologue")
        .arg(
            "where",
            where(
                Leaf(("text",), "_ilike", contains(args["phrase"])),
                Leaf(("interview_id",), "_eq", _id_literal(args["id"])),
            ),
        )
        .arg("order_by", obj(start_sec=EnumLiteral("asc")))
        .add("id", "start_sec", "end_sec", "text", select("interview", "id", "name"))
    )
    query = QueryDocument("SearchTranscriptContent", [root]).render()
    return _run_query_message(
        f"Search for **{args['phrase']}** in the transcript of call **{args['id']}** using:", query
    )


def _call_extractions(book: "PromptBook", args: dict) -> str:
    _require(args, "id")
    call_id = _id_literal(args["id"])
    type_name = str(args.get("type") or "").strip()
    monologue = select("monologue", "speaker", "text")

    if type_name:
        root = (
            Selection("extraction")
            .arg(
                "where",
                where(
                    Leaf(("types", "type", "name"), "_eq", StringLiteral(type_name)),
                    Leaf(("interview_id",), "_eq", call_id),
                ),
            )
            .add("id", "text", "start_sec", "end_sec", select("interview", "id", "name"), monologue)
        )
        query = QueryDocument("GetExtractionsByType", [root]).render()
        scope = f"type **{type_name}**"
    else:
        root = (
            Selection("interview_by_pk")
            .arg("id", call_id)
            .add("id", "name", select("extractions", "id", "type_id", "text", "start_sec", "end_sec", monologue))
        )
        query = QueryDocument("GetCallExtractions", [root]).render()
        scope = "all types"
    return _run_query_message(f"Retrieve {scope} extractions for call **{args['id']}** with:", query)


def _signal_frequency(book: "PromptBook", args: dict) -> str:
    root = select("extraction_type", "id", "name", select("extractions_aggregate", select("aggregate", "count")))
    query = QueryDocument("GetExtractionFrequency", [root]).render()
    return _run_query_message("Run this query to see extraction counts per type across all calls:", query)


def _feature_requests_by_date(book: "PromptBook", args: dict) -> str:
    _require(args, "startDate", "endDate")
    start, end = _date_range(args, "startDate", "endDate")
    root = _signal_join(
        "featureRequest", (Compare(("extraction", "interview", "created_at"), _day_bounds(start, end)),)
    ).add(select("extraction", "id", "text", "created_at", select("interview", "id", "name", "created_at")))
    query = QueryDocument("FeatureRequestsByDate", [root]).render()
    return _run_query_message(f"Get feature-request extractions between **{start}** and **{end}** using:", query)


def _explore_schema(book: "PromptBook", args: dict) -> str:
    return (
        "Use the built-in resources and tools to explore the GraphQL schema.\n\n"
        "- List all types: call the `list-types` tool.\n"
        f"- View a type's structure: read the resource `{TYPE_URI_TEMPLATE}`.\n"
        "- Check field names: call `find-fields` with `typeName`.\n"
        "- Build a basic query: call `build-query` with `typeName` and `fields`.\n\n"
        "Ask follow-up questions to dig deeper into specific types or relationships."
    )


def _recent_signals(type_value: str, operation: str) -> Callable[["PromptBook", dict], str]:
    def render(book: "PromptBook", args: dict) -> str:
        root = _signal_join(type_value, limit=SIGNAL_LIMIT).add(
            select("extraction", "id", "text", "created_at", select("interview", "id", "name", "created_at"))
        )
        return _run_query_message("Use `run-query` with:", QueryDocument(operation, [root]).render())

    return render


def _top_customer_issues(book: "PromptBook", args: dict) -> str:
    limit = clamp_limit(args.get("limit"), SIGNAL_LIMIT, 50)
    root = _signal_join("issue", limit=limit).add(
        select(
            "extraction",
            "id",
            "summary",
            "created_at",
            select("interview", "id", "name", select("company", "id", "name")),
        )
    )
    return _run_query_message("Use `run-query` with:", QueryDocument("TopCustomerIssues", [root]).render())


def _recent_objections(book: "PromptBook", args: dict) -> str:
    today = book.today()
    defaults = {
        "startDate": utils.days_ago(book.default_window_days, book.clock()).date().isoformat(),
        "endDate": today.isoformat(),
    }
    resolved = {k: (str(args.get(k) or "").strip() or v) for k, v in defaults.items()}
    earliest = today - timedelta(days=book.max_lookback_days)
    start, end = _date_range(resolved, "startDate", "endDate", earliest)

    root = _signal_join("objection", (Compare(("extraction", "created_at"), _day_bounds(start, end)),)).add(
        select("extraction", "id", "summary", "created_at", select("interview", "id", "name"))
    )
    query = QueryDocument("RecentObjections", [root]).render()
    return _run_query_message(f"Run this query to list objections between **{start}** and **{end}**:", query)


def _last_call_with_person(book: "PromptBook", args: dict) -> str:
    _require(args, "name")
    attended = (
        Selection("interview_attendees")
        .arg("order_by", obj(interview=obj(recorded_at=EnumLiteral("desc"))))
        .arg("limit", IntLiteral(1))
        .add(select("interview", "id", "name", "recorded_at"))
    )
    root = (
        Selection("person")
        .arg("where", where(Leaf(("first_name",), "_ilike", StringLiteral(str(args["name"]).strip()))))
        .arg("limit", IntLiteral(1))
        .add("first_name", "last_name", attended)
    )
    return _run_query_message("Use `run-query` with:", QueryDocument("LastCallWithPerson", [root]).render())


def _context_guide(book: "PromptBook", args: dict) -> str:
    call = json.dumps({"name": "open-resource", "arguments": {"uri": CONTEXT_GUIDE_URI}})
    return f"Open the guide with the `open-resource` tool:\n\n{call}\n"


def _top_objections(book: "PromptBook", args: dict) -> str:
    days = clamp_days(args.get("days"), book.default_window_days, book.max_lookback_days)
    start = utils.days_ago(days, book.clock()).date()
    return _recent_objections(book, {"startDate": start.isoformat(), "endDate": book.today().isoformat()})


def _customer_objections(book: "PromptBook", args: dict) -> str:
    days = clamp_days(args.get("days"), book.default_window_days, book.max_lookback_days)
    persona_ids = parse_persona_ids(args.get("personaIds"))
    start = utils.days_ago(days, book.clock()).date()

    extraction = Nested(
        ("extraction",),
        (
            Leaf(("created_at",), "_gte", StringLiteral(start.isoformat())),
            Leaf(("speaker", "person", "persona_id"), "_in", ListValue(tuple(IntLiteral(i) for i in persona_ids))),
        ),
    )
    root = _signal_join("objection", (extraction,), limit=SIGNAL_LIMIT).add(
        select("extraction", "id", "summary", "created_at", "sentiment")
    )
    query = QueryDocument("CustomerObjections", [root]).render()
    return _run_query_message(
        f"Use the `run-query` tool with this GraphQL to list customer objections from the last {days} days:", query
    )


PROMPTS = {
    p.name: p
    for p in (
        PromptSpec(
            "recent-calls",
            "Generate a GraphQL query to list the most recent calls (interviews)",
            (PromptArg("limit", "Number of calls to return (default 10)"),),
            _recent_calls,
        ),
        PromptSpec(
            "call-details",
            "Retrieve detailed information about a specific call by ID",
            (PromptArg("id", "The interview/call ID", required=True),),
            _call_details,
        ),
        PromptSpec(
            "call-transcript",
            "Retrieve the full transcript for a specific call by ID",
            (PromptArg("id", "The interview/call ID", required=True),),
            _call_transcript,
        ),
        PromptSpec(
            "search-transcript",
            "Search within a call transcript for a specific phrase",
            (
                PromptArg("id", "The interview/call ID", required=True),
                PromptArg("phrase", "Text to search for (case-insensitive)", required=True),
            ),
            _search_transcript,
        ),
        PromptSpec(
            "call-extractions",
            "Retrieve extractions (signals) from a call, optionally filtered by type name",
            (
                PromptArg("id", "The interview/call ID", required=True),
                PromptArg("type", "Extraction type name (e.g. 'Product Feedback')"),
            ),
            _call_extractions,
        ),
        PromptSpec(
            "signal-frequency",
            "Show how many extractions exist for each extraction type across all calls",
            (),
            _signal_frequency,
        ),
        PromptSpec(
            "feature-requests-by-date",
            "List feature-request extractions across calls in a date range",
            (
                PromptArg("startDate", "Start date (YYYY-MM-DD)", required=True),
                PromptArg("endDate", "End date (YYYY-MM-DD)", required=True),
            ),
            _feature_requests_by_date,
        ),
        PromptSpec(
            "explore-schema",
            "Guide the user on how to explore the GraphQL schema using available tools and resources",
            (),
            _explore_schema,
        ),
        PromptSpec(
            "recent-issues",
            "Query the 20 most recent Issue-type extractions across all calls",
            (),
            _recent_signals("issue", "RecentIssues"),
        ),
        PromptSpec(
            "feature-requests",
            "Query the 20 most recent Feature Request extractions",
            (),
            _recent_signals("featureRequest", "RecentFeatureRequests"),
        ),
        PromptSpec(
            "top-customer-issues",
            "Show the most recent Issue-type extractions with the related company name",
            (PromptArg("limit", "Number of rows to return (default 20)"),),
            _top_customer_issues,
        ),
        PromptSpec(
            "recent-objections",
            "List Objection-type extractions in a date range (defaults to the last 30 days)",
            (
                PromptArg("startDate", "Start date (YYYY-MM-DD, defaults to 30 days ago)"),
                PromptArg("endDate", "End date (YYYY-MM-DD, defaults to today)"),
            ),
            _recent_objections,
        ),
        PromptSpec(
            "last-call-with-person",
            "Return the most recent call the specified person attended (searches by first name)",
            (PromptArg("name", "Person first name (case-insensitive)", required=True),),
            _last_call_with_person,
        ),
        PromptSpec(
            "context-guide",
            "Open the BuildBetter GraphQL Context Guide resource",
            (),
            _context_guide,
        ),
        PromptSpec(
            "top-objections",
            "Alias for recent-objections over the past N days (default 30)",
            (PromptArg("days", "Days back (default 30)"),),
            _top_objections,
        ),
        PromptSpec(
            "customer-objections",
            "Objections voiced by customers within a time range (default 30 days)",
            (
                PromptArg("days", "Days back (default 30)"),
                PromptArg("personaIds", f"Persona IDs to include, JSON array or comma list (default [{CUSTOMER_PERSONA_ID}])"),
            ),
            _customer_objections,
        ),
    )
}


class PromptBook:
    """Renders prompts against a clock and the configured look-back window."""

    def __init__(
        self,
        default_window_days: int = 30,
        max_lookback_days: int = 365,
        clock: Callable = utils.now_utc,
    ):
        self.default_window_days = default_window_days
        self.max_lookback_days = max_lookback_days
        self.clock = clock

    def today(self) -> date:
        return self.clock().date()

    def prompts(self) -> list[PromptSpec]:
        return list(PROMPTS.values())

    def get(self, name: str, arguments: Optional[dict] = None) -> PromptReply:
        """
        Render one prompt.

        Args:
            name: Prompt name
            arguments: Prompt arguments (strings as sent by the client)

        Returns:
            PromptReply with the prompt description and message text

        Raises:
            UnknownOperation: If no prompt has this name
            MissingRequiredArgument: If a required argument is absent
            InvalidArgument: If a date or id list cannot be parsed
        """
        prompt = PROMPTS.get(name)
        if prompt is None:
            raise UnknownOperation("prompt", name)
        logger.debug("Rendering prompt %s", name)
        return PromptReply(prompt.description, prompt.render(self, dict(arguments or {})))
