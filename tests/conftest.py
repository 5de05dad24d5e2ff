"""Shared test fixtures: a fake GraphQL endpoint and a controllable clock."""

from datetime import datetime, timezone

import pytest

from buildbetter_mcp.client import GraphQLClient
from buildbetter_mcp.prompts import PromptBook
from buildbetter_mcp.resolver import TypeResolver
from buildbetter_mcp.resources import ResourceCatalog
from buildbetter_mcp.schema_loader import SchemaCache
from buildbetter_mcp.synthesizer import QuerySynthesizer
from buildbetter_mcp.tools import Toolbox

ENDPOINT = "https://api.example.test/v1/graphql"
FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


# Introspection JSON builders


def named(kind, name):
    return {"kind": kind, "name": name, "ofType": None}


def non_null(ref):
    return {"kind": "NON_NULL", "name": None, "ofType": ref}


def list_of(ref):
    return {"kind": "LIST", "name": None, "ofType": ref}


def scalar(name):
    return named("SCALAR", name)


def obj_ref(name):
    return named("OBJECT", name)


def many(name):
    return non_null(list_of(non_null(obj_ref(name))))


def arg(name, ref):
    return {"name": name, "description": None, "type": ref, "defaultValue": None}


def fld(name, ref, description=None, args=None):
    return {
        "name": name,
        "description": description,
        "args": args or [],
        "type": ref,
        "isDeprecated": False,
        "deprecationReason": None,
    }


def object_type(name, fields, description=None):
    return {
        "kind": "OBJECT",
        "name": name,
        "description": description,
        "fields": fields,
        "inputFields": None,
        "interfaces": [],
        "enumValues": None,
        "possibleTypes": None,
    }


def scalar_type(name):
    return {
        "kind": "SCALAR",
        "name": name,
        "description": None,
        "fields": None,
        "inputFields": None,
        "interfaces": None,
        "enumValues": None,
        "possibleTypes": None,
    }


def enum_type(name, values):
    return {
        "kind": "ENUM",
        "name": name,
        "description": None,
        "fields": None,
        "inputFields": None,
        "interfaces": None,
        "enumValues": [
            {"name": v, "description": None, "isDeprecated": False, "deprecationReason": None} for v in values
        ],
        "possibleTypes": None,
    }


def build_schema_json():
    """A small Hasura-style schema modelled on the BuildBetter data."""
    types = [
        object_type(
            "query_root",
            [
                fld("interview", many("interview")),
                fld("interview_by_pk", obj_ref("interview"), args=[arg("id", non_null(scalar("Int")))]),
                fld("extraction", many("extraction")),
                fld("person", many("person")),
                fld("extraction_type_join", many("extraction_type_join")),
            ],
        ),
        object_type(
            "interview",
            [
                fld("id", non_null(scalar("Int"))),
                fld("name", scalar("String")),
                fld("display_ts", scalar("timestamptz")),
                fld("created_at", scalar("timestamptz")),
                fld("recorded_at", scalar("timestamptz")),
                fld("short_summary", scalar("String")),
                fld("attendees", many("interview_attendee")),
            ],
            description="A recorded call",
        ),
        object_type(
            "extraction",
            [
                fld("id", non_null(scalar("Int"))),
                fld("summary", scalar("String"), description="Short summary of the signal"),
                fld("text", scalar("String")),
                fld("display_ts", scalar("timestamptz")),
                fld("created_at", scalar("timestamptz")),
                fld("sentiment", scalar("Float")),
                fld("call", obj_ref("interview")),
                fld("types", many("extraction_type_join")),
                fld("speaker", obj_ref("extraction_speaker")),
            ],
            description="A signal extracted from a call",
        ),
        object_type(
            "extraction_type_join",
            [
                fld("extraction_id", non_null(scalar("Int"))),
                fld("type", non_null(named("ENUM", "extraction_type_enum"))),
                fld("extraction", non_null(obj_ref("extraction"))),
            ],
        ),
        object_type("extraction_speaker", [fld("person", obj_ref("person"))]),
        object_type(
            "person",
            [
                fld("id", non_null(scalar("Int"))),
                fld("first_name", scalar("String")),
                fld("last_name", scalar("String")),
                fld("email", scalar("String")),
                fld("persona_id", scalar("Int")),
                fld("company", obj_ref("company")),
                fld("interview_attendees", many("interview_attendee")),
            ],
        ),
        object_type(
            "interview_attendee",
            [
                fld("id", non_null(scalar("Int"))),
                fld("person_id", scalar("Int")),
                fld("person", obj_ref("person")),
                fld("interview", obj_ref("interview")),
            ],
        ),
        object_type("company", [fld("id", non_null(scalar("Int"))), fld("name", scalar("String"))]),
        enum_type("extraction_type_enum", ["Issue", "FeatureRequest", "Objection"]),
        scalar_type("Int"),
        scalar_type("Float"),
        scalar_type("String"),
        scalar_type("Boolean"),
        scalar_type("timestamptz"),
    ]
    return {
        "__schema": {
            "queryType": {"name": "query_root"},
            "mutationType": None,
            "subscriptionType": None,
            "types": types,
            "directives": [],
        }
    }


# Fake transport


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self._payload = payload
        self.status_code = status_code
        self.text = text if text is not None else str(payload)
        self.url = ENDPOINT
        self.headers = {"Content-Type": "application/json"}

    def json(self):
        if self._payload is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """
    Stands in for requests.Session.

    Introspection requests are answered from the schema fixture; every other
    query gets the next queued response (or empty data).
    """

    def __init__(self, schema_json):
        self.schema_json = schema_json
        self.types = {t["name"]: t for t in schema_json["__schema"]["types"]}
        self.calls = []
        self.queued = []

    def queue(self, payload=None, status_code=200, text=None):
        self.queued.append(FakeResponse(payload, status_code, text))

    def queue_errors(self, *messages):
        self.queue({"errors": [{"message": m} for m in messages]}, status_code=200)

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        query = json["query"]
        if "__type(" in query:
            return FakeResponse({"data": {"__type": self.types.get(json["variables"]["name"])}})
        if "__schema" in query:
            return FakeResponse({"data": self.schema_json})
        if self.queued:
            return self.queued.pop(0)
        return FakeResponse({"data": {}})

    @property
    def full_introspections(self):
        return [c for c in self.calls if "__schema" in c["json"]["query"] and "__type(" not in c["json"]["query"]]

    @property
    def data_calls(self):
        return [c for c in self.calls if "__schema" not in c["json"]["query"] and "__type(" not in c["json"]["query"]]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# Fixtures


@pytest.fixture
def schema_json():
    return build_schema_json()


@pytest.fixture
def session(schema_json):
    return FakeSession(schema_json)


@pytest.fixture
def client(session):
    return GraphQLClient(ENDPOINT, api_key="test-key", session=session)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(client, clock):
    return SchemaCache.for_client(client, ttl=1800, clock=clock)


@pytest.fixture
def resolver(cache, client):
    return TypeResolver(cache, client)


@pytest.fixture
def synthesizer(resolver):
    return QuerySynthesizer(resolver, clock=lambda: FIXED_NOW)


@pytest.fixture
def catalog(resolver):
    return ResourceCatalog(resolver)


@pytest.fixture
def toolbox(client, resolver, synthesizer, catalog):
    return Toolbox(client, resolver, synthesizer, catalog)


@pytest.fixture
def prompt_book():
    return PromptBook(clock=lambda: FIXED_NOW)
