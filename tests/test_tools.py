"""End-to-end tests for the tool dispatcher against a fake GraphQL endpoint."""

import json

import pytest
from graphql import parse

from buildbetter_mcp.errors import UnknownOperation
from buildbetter_mcp.tools import TOOLS, ResourceBlock


class TestCatalog:
    def test_tool_names(self, toolbox):
        names = [t.name for t in toolbox.tools()]

        assert len(names) == 15
        assert names[0] == "run-query"
        assert {"open-resource", "read-resource", "validate-query", "help"} <= set(names)

    def test_required_arguments_declared(self):
        schemas = {t.name: t.input_schema for t in TOOLS}

        assert schemas["build-query"]["required"] == ["typeName", "fields"]
        assert "required" not in schemas["list-types"]

    def test_unknown_tool_raises(self, toolbox):
        with pytest.raises(UnknownOperation):
            toolbox.call("drop-tables", {})


# ---------------------------------------------------------------------------
# run-query
# ---------------------------------------------------------------------------


class TestRunQuery:
    def test_success_returns_json(self, toolbox, session):
        session.queue({"data": {"interview": [{"id": 1, "name": "Kickoff"}]}})

        result = toolbox.call("run-query", {"query": "{ interview { id name } }"})

        assert not result.is_error
        assert json.loads(result.render()) == {"interview": [{"id": 1, "name": "Kickoff"}]}

    def test_variables_are_forwarded(self, toolbox, session):
        toolbox.call("run-query", {"query": "query Q($n: Int) { interview(limit: $n) { id } }", "variables": '{"n": 2}'})
        assert session.data_calls[0]["json"]["variables"] == {"n": 2}

    def test_api_key_header_sent(self, toolbox, session):
        toolbox.call("run-query", {"query": "{ interview { id } }"})
        assert session.data_calls[0]["headers"]["x-buildbetter-api-key"] == "test-key"

    def test_mutation_makes_no_http_call(self, toolbox, session):
        result = toolbox.call("run-query", {"query": "mutation { delete_interview { affected_rows } }"})

        assert result.is_error
        assert "MutationRejected" in result.render()
        assert session.calls == []

    def test_unknown_field_diagnostic_suggests_email(self, toolbox, session):
        session.queue_errors("field 'emial' not found in type: 'person'")

        result = toolbox.call("run-query", {"query": "{ person { emial } }"})

        assert result.is_error
        text = result.render()
        assert text.startswith("Error (UnknownField)")
        assert "Did you mean: email?" in text

    def test_enum_quoting_diagnostic(self, toolbox, session):
        session.queue_errors('expected an enum value for type "extraction_type_enum", but found a string')

        result = toolbox.call("run-query", {"query": '{ extraction_type_join(where: {type: {_eq: "Issue"}}) { type } }'})
        assert "EnumQuotingError" in result.render()

    def test_non_json_response(self, toolbox, session):
        session.queue(None, status_code=502, text="<html>Bad Gateway</html>")

        result = toolbox.call("run-query", {"query": "{ interview { id } }"})

        assert result.is_error
        assert result.render().startswith("Error executing query:")
        assert "Status: 502" in result.render()

    def test_missing_query(self, toolbox):
        result = toolbox.call("run-query", {})

        assert result.is_error
        assert result.render() == "Error: 'query' argument is required."

    def test_bad_variables(self, toolbox, session):
        result = toolbox.call("run-query", {"query": "{ interview { id } }", "variables": "{not json"})

        assert result.is_error
        assert session.data_calls == []


# ---------------------------------------------------------------------------
# Schema tools
# ---------------------------------------------------------------------------


class TestSchemaTools:
    def test_list_types(self, toolbox):
        names = json.loads(toolbox.call("list-types").render())

        assert "interview" in names
        assert "extraction_type_enum" not in names

    def test_find_fields(self, toolbox):
        text = toolbox.call("find-fields", {"typeName": "extraction"}).render()

        assert "summary: String" in text.splitlines()
        assert "types: [extraction_type_join!]!" in text.splitlines()

    def test_find_fields_unknown_type_is_not_an_error(self, toolbox):
        result = toolbox.call("find-fields", {"typeName": "people"})

        assert not result.is_error
        assert result.render().startswith('No fields found for type "people".')

    def test_build_query(self, toolbox, session):
        result = toolbox.call("build-query", {"typeName": "interview", "fields": ["id", "name"], "limit": 5})

        assert not result.is_error
        assert "interview(limit: 5)" in result.render()
        assert session.data_calls == []
        parse(result.render())

    def test_build_query_missing_arguments(self, toolbox):
        result = toolbox.call("build-query", {"typeName": "interview", "fields": []})

        assert result.is_error
        assert result.render() == "Error: 'typeName' and 'fields' arguments are required."

    def test_build_query_bad_field(self, toolbox):
        result = toolbox.call("build-query", {"typeName": "person", "fields": ["emial"]})

        assert result.is_error
        assert "did you mean: email?" in result.render()

    def test_validate_query(self, toolbox):
        assert toolbox.call("validate-query", {"query": "{ interview { id } }"}).render() == "Query is valid."


# ---------------------------------------------------------------------------
# Resources through tools
# ---------------------------------------------------------------------------


class TestResourceTools:
    def test_schema_overview(self, toolbox):
        block = toolbox.call("schema-overview").blocks[0]

        assert isinstance(block, ResourceBlock)
        assert block.uri == "graphql://docs/schema-relationships"
        assert block.mime_type == "text/markdown"

    @pytest.mark.parametrize("tool", ["open-resource", "read-resource"])
    def test_open_resource(self, toolbox, tool):
        block = toolbox.call(tool, {"uri": "graphql://type/company"}).blocks[0]

        assert isinstance(block, ResourceBlock)
        assert block.text.startswith("# company")

    def test_unknown_resource(self, toolbox):
        result = toolbox.call("open-resource", {"uri": "graphql://nope"})

        assert result.is_error
        assert "Unknown resource" in result.render()


# ---------------------------------------------------------------------------
# Synthesized and executed tools
# ---------------------------------------------------------------------------


class TestSynthesizedTools:
    def test_search_extractions_executes(self, toolbox, session):
        session.queue({"data": {"extraction": []}})

        result = toolbox.call("search-extractions", {"phrase": "pricing", "type": "issue", "personaIds": [246]})

        assert not result.is_error
        assert len(result.blocks) == 2
        sent = session.data_calls[0]["json"]["query"]
        assert "types: {type: {_eq: Issue}}" in sent
        assert result.blocks[0].text.startswith("Query:\n```graphql\n")
        assert json.loads(result.blocks[1].text) == {"extraction": []}

    def test_search_extractions_requires_phrase(self, toolbox):
        assert toolbox.call("search-extractions", {"phrase": " "}).is_error

    def test_topic_conversations_sends_variables(self, toolbox, session):
        toolbox.call("topic-conversations", {"topic": "pricing"})

        assert session.data_calls[0]["json"]["variables"] == {"topic": "%pricing%", "limit": 5}

    def test_recent_conversation_with(self, toolbox, session):
        result = toolbox.call("recent-conversation-with", {"name": "Ann", "limit": 3})

        assert not result.is_error
        assert session.data_calls[0]["json"]["variables"] == {"name": "%Ann%", "limit": 3}
        assert "Variables:" in result.blocks[0].text

    def test_top_customer_issues(self, toolbox, session):
        toolbox.call("top-customer-issues", {"days": 7})

        assert session.data_calls[0]["json"]["variables"]["since"] == "2026-10-11T12:00:00+00:00"

    def test_downstream_error_keeps_query_block(self, toolbox, session):
        session.queue_errors("database timeout")

        result = toolbox.call("topic-conversations", {"topic": "pricing"})

        assert result.is_error
        assert result.blocks[0].text.startswith("Query:")
        assert "Error (Generic)" in result.blocks[1].text


# ---------------------------------------------------------------------------
# Templates, NL and help
# ---------------------------------------------------------------------------


class TestTextTools:
    def test_query_template(self, toolbox, session):
        result = toolbox.call("query-template", {"template": "find-person", "parameters": {"name": "Ann"}})

        assert "query FindPerson" in result.render()
        assert session.calls == []

    def test_query_template_uses_configured_clock(self, toolbox):
        result = toolbox.call(
            "query-template", {"template": "signal-by-type", "parameters": {"type": "objection", "days": 7}}
        )

        assert "2026-10-11T12:00:00+00:00" in result.render()

    def test_query_template_unknown(self, toolbox):
        result = toolbox.call("query-template", {"template": "nope"})

        assert result.is_error
        assert "Available templates" in result.render()

    def test_nl_query_matched(self, toolbox):
        result = toolbox.call("nl-query", {"description": "recent calls"})

        assert "template: recent-calls" in result.blocks[0].text
        assert result.blocks[1].text.startswith("query RecentCalls")

    def test_nl_query_fallback(self, toolbox):
        result = toolbox.call("nl-query", {"description": "pricing tiers"})

        assert result.blocks[0].text.startswith("No specific pattern matched")
        assert "%pricing tiers%" in result.blocks[1].text

    def test_help_overview_and_topics(self, toolbox):
        assert toolbox.call("help").render().startswith("# BuildBetter MCP Help")
        assert toolbox.call("help", {"topic": "Errors"}).render().startswith("# Error Help")

    def test_help_unknown_topic_is_not_an_error(self, toolbox):
        result = toolbox.call("help", {"topic": "billing"})

        assert not result.is_error
        assert "No help available for topic 'billing'" in result.render()
