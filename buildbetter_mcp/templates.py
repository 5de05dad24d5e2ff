"""Named query templates and the natural-language rule table that picks them."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from . import utils
from .builder import (
    EnumLiteral,
    IntLiteral,
    Leaf,
    QueryDocument,
    Selection,
    StringLiteral,
    any_of,
    contains,
    obj,
    select,
    where,
)
from .errors import InvalidArgument, MissingRequiredArgument, TemplateNotFound
from .synthesizer import SynthesizedQuery, clamp_limit, since_window


# Maps a requested day count to the start of the look-back window
WindowStart = Callable[[Any], datetime]


@dataclass(frozen=True)
class TemplateParam:
    name: str
    type: str  # "string" | "integer"
    required: bool = False
    default: Any = None
    maximum: Optional[int] = None
    description: str = ""


@dataclass(frozen=True)
class Template:
    name: str
    description: str
    params: tuple
    build: Callable[[dict, WindowStart], SynthesizedQuery]


def _find_person(params: dict, since: WindowStart) -> SynthesizedQuery:
    name = params["name"]
    root = (
        Selection("person")
        .arg("where", where(any_of([Leaf(("first_name",), "_ilike", contains(name)), Leaf(("last_name",), "_ilike", contains(name))])))
        .arg("limit", IntLiteral(params["limit"]))
        .add("id", "first_name", "last_name", "email", "title", select("company", "name"))
    )
    return SynthesizedQuery("FindPerson", QueryDocument("FindPerson", [root]).render())


def _recent_calls(params: dict, since: WindowStart) -> SynthesizedQuery:
    root = (
        Selection("interview")
        .arg("order_by", obj(display_ts=EnumLiteral("desc")))
        .arg("limit", IntLiteral(params["limit"]))
        .add(
            "id",
            "name",
            "display_ts",
            "recorded_at",
            "short_summary",
            select("attendees", select("person", "first_name", "last_name")),
        )
    )
    return SynthesizedQuery("RecentCalls", QueryDocument("RecentCalls", [root]).render())


def _call_with_topic(params: dict, since: WindowStart) -> SynthesizedQuery:
    root = (
        Selection("extraction")
        .arg("where", where(Leaf(("summary",), "_ilike", contains(params["topic"]))))
        .arg("order_by", obj(display_ts=EnumLiteral("desc")))
        .arg("limit", IntLiteral(params["limit"]))
        .add("id", "summary", "display_ts", select("call", "id", "name", "display_ts", "recorded_at"))
    )
    return SynthesizedQuery("CallsWithTopic", QueryDocument("CallsWithTopic", [root]).render())


def _signal_by_type(params: dict, since: WindowStart) -> SynthesizedQuery:
    conditions = [Leaf(("types", "type", "name"), "_eq", StringLiteral(params["type"]))]
    if params.get("days"):
        start = since(params["days"])
        conditions.append(Leaf(("display_ts",), "_gte", StringLiteral(start.isoformat())))
    root = (
        Selection("extraction")
        .arg("where", where(*conditions))
        .arg("order_by", obj(display_ts=EnumLiteral("desc")))
        .arg("limit", IntLiteral(params["limit"]))
        .add("id", "summary", "display_ts", "sentiment", select("call", "name"))
    )
    return SynthesizedQuery("SignalsByType", QueryDocument("SignalsByType", [root]).render())


TEMPLATES = {
    t.name: t
    for t in (
        Template(
            "find-person",
            "Find people by first or last name",
            (
                TemplateParam("name", "string", required=True, description="Name or part of a name"),
                TemplateParam("limit", "integer", default=5, maximum=20),
            ),
            _find_person,
        ),
        Template(
            "recent-calls",
            "Most recent calls with attendees",
            (TemplateParam("limit", "integer", default=10, maximum=50),),
            _recent_calls,
        ),
        Template(
            "call-with-topic",
            "Extractions whose summary mentions a topic, with their call",
            (
                TemplateParam("topic", "string", required=True, description="Topic or keyword"),
                TemplateParam("limit", "integer", default=5, maximum=50),
            ),
            _call_with_topic,
        ),
        Template(
            "signal-by-type",
            "Extractions of one type, newest first",
            (
                TemplateParam("type", "string", default="issue", description="Extraction type name"),
                TemplateParam("limit", "integer", default=10, maximum=50),
                TemplateParam("days", "integer", description="Only the last N days"),
            ),
            _signal_by_type,
        ),
    )
}


def _coerce(param: TemplateParam, value: Any) -> Any:
    if param.type == "integer":
        if param.maximum is not None:
            return clamp_limit(value, param.default, param.maximum)
        n = utils.coerce_int(value)
        if n is None:
            raise InvalidArgument(f"Template parameter '{param.name}' must be an integer")
        return n
    return str(value)


def render_template(name: str, params: Optional[dict] = None, since: WindowStart = since_window) -> SynthesizedQuery:
    """
    Render a named template.

    Args:
        name: Template name
        params: Caller parameters; unknown keys are ignored
        since: Look-back window start for a day count; defaults to 30 days
            against the wall clock

    Returns:
        SynthesizedQuery

    Raises:
        TemplateNotFound: If no template has this name
        MissingRequiredArgument: If a required parameter is absent or blank
    """
    template = TEMPLATES.get(name)
    if template is None:
        raise TemplateNotFound(name, list(TEMPLATES))

    params = params or {}
    if not isinstance(params, dict):
        raise InvalidArgument("'parameters' must be an object")

    resolved = {}
    for param in template.params:
        value = params.get(param.name)
        if value is None or value == "":
            if param.required:
                raise MissingRequiredArgument(param.name, f"Template '{name}' requires parameter '{param.name}'.")
            resolved[param.name] = param.default
            continue
        resolved[param.name] = _coerce(param, value)
    return template.build(resolved, since)


# Natural-language rules


@dataclass(frozen=True)
class NlRule:
    pattern: re.Pattern
    template: str
    extract: Callable[[re.Match], dict] = field(default=lambda m: {})


NL_RULES = [
    NlRule(re.compile(r"(?:conversation|call|meeting)s? with (\w+)", re.I), "find-person", lambda m: {"name": m.group(1)}),
    NlRule(re.compile(r"\b(?:last|recent|latest) (?:calls?|conversations?|meetings?)\b", re.I), "recent-calls"),
    NlRule(re.compile(r"\b(?:customer |top )?issues?\b", re.I), "signal-by-type", lambda m: {"type": "issue"}),
    NlRule(re.compile(r"\bfeature requests?\b", re.I), "signal-by-type", lambda m: {"type": "feature request"}),
    NlRule(re.compile(r"\bobjections?\b", re.I), "signal-by-type", lambda m: {"type": "objection"}),
    NlRule(
        re.compile(r"(?:discussion|talk|conversation|call)s?\s+(?:about|on|regarding)\s+(\w+)", re.I),
        "call-with-topic",
        lambda m: {"topic": m.group(1)},
    ),
]

FALLBACK_TEMPLATE = "call-with-topic"


@dataclass
class NlMatch:
    template: str
    params: dict
    query: SynthesizedQuery
    matched: bool


def query_from_description(description: str, since: WindowStart = since_window) -> NlMatch:
    """
    Pick a template for a natural-language request.

    Rules are tried in order and the first match wins. Without a match the
    topic-search template is seeded with the whole description.
    """
    for rule in NL_RULES:
        match = rule.pattern.search(description)
        if match:
            params = rule.extract(match)
            return NlMatch(rule.template, params, render_template(rule.template, params, since), True)

    params = {"topic": description.strip()}
    return NlMatch(FALLBACK_TEMPLATE, params, render_template(FALLBACK_TEMPLATE, params, since), False)
