"""Tests for the prompt catalog."""

import re

import pytest
from graphql import parse

from buildbetter_mcp.errors import InvalidArgument, MissingRequiredArgument, UnknownOperation
from buildbetter_mcp.prompts import PROMPTS, parse_persona_ids

SAMPLE_ARGS = {
    "id": "42",
    "phrase": "pricing",
    "name": "Ann",
    "startDate": "2026-10-01",
    "endDate": "2026-10-15",
}

GRAPHQL_BLOCK = re.compile(r"```graphql\n(.*?)\n```", re.S)


def _query(text):
    match = GRAPHQL_BLOCK.search(text)
    assert match, text
    return match.group(1)


class TestCatalog:
    def test_all_prompts_registered(self, prompt_book):
        assert len(prompt_book.prompts()) == 16
        assert {"recent-calls", "customer-objections", "top-objections", "context-guide"} <= set(PROMPTS)

    @pytest.mark.parametrize("name", sorted(PROMPTS))
    def test_suggested_queries_parse(self, prompt_book, name):
        reply = prompt_book.get(name, SAMPLE_ARGS)

        assert reply.description == PROMPTS[name].description
        if "```graphql" in reply.text:
            parse(_query(reply.text))

    def test_unknown_prompt(self, prompt_book):
        with pytest.raises(UnknownOperation):
            prompt_book.get("nope")


class TestRequiredArguments:
    def test_single_missing(self, prompt_book):
        with pytest.raises(MissingRequiredArgument, match="Missing required argument 'id'"):
            prompt_book.get("call-details", {})

    def test_blank_counts_as_missing(self, prompt_book):
        with pytest.raises(MissingRequiredArgument):
            prompt_book.get("last-call-with-person", {"name": "  "})

    def test_several_missing(self, prompt_book):
        with pytest.raises(MissingRequiredArgument, match="Arguments 'startDate' and 'endDate' are required"):
            prompt_book.get("feature-requests-by-date", {})


class TestCallPrompts:
    def test_numeric_id_is_int_literal(self, prompt_book):
        assert "interview_by_pk(id: 42)" in prompt_book.get("call-details", {"id": "42"}).text

    def test_uuid_id_is_quoted(self, prompt_book):
        text = prompt_book.get("call-transcript", {"id": "a1b2-c3"}).text
        assert 'interview_by_pk(id: "a1b2-c3")' in text

    def test_recent_calls_limit(self, prompt_book):
        assert "limit: 50" in prompt_book.get("recent-calls", {"limit": "500"}).text
        assert "limit: 10" in prompt_book.get("recent-calls", {}).text

    def test_call_extractions_by_type(self, prompt_book):
        text = prompt_book.get("call-extractions", {"id": "7", "type": "Product Feedback"}).text

        assert "query GetExtractionsByType" in text
        assert 'types: {type: {name: {_eq: "Product Feedback"}}}' in text
        assert "interview_id: {_eq: 7}" in text

    def test_call_extractions_all_types(self, prompt_book):
        assert "query GetCallExtractions" in prompt_book.get("call-extractions", {"id": "7"}).text


class TestDatePrompts:
    def test_feature_requests_by_date_bounds(self, prompt_book):
        text = prompt_book.get("feature-requests-by-date", SAMPLE_ARGS).text

        assert "type: {_eq: featureRequest}" in text
        assert 'created_at: {_gte: "2026-10-01T00:00:00", _lte: "2026-10-15T23:59:59"}' in text

    def test_bad_date(self, prompt_book):
        with pytest.raises(InvalidArgument, match="YYYY-MM-DD"):
            prompt_book.get("feature-requests-by-date", {"startDate": "10/01/2026", "endDate": "2026-10-15"})

    def test_start_after_end(self, prompt_book):
        with pytest.raises(InvalidArgument):
            prompt_book.get("feature-requests-by-date", {"startDate": "2026-10-16", "endDate": "2026-10-15"})

    def test_recent_objections_defaults_to_last_30_days(self, prompt_book):
        text = prompt_book.get("recent-objections", {}).text

        assert "**2026-09-18** and **2026-10-18**" in text
        assert '_gte: "2026-09-18T00:00:00"' in text
        assert "type: {_eq: objection}" in text

    def test_recent_objections_clamps_old_start(self, prompt_book):
        text = prompt_book.get("recent-objections", {"startDate": "2020-01-01", "endDate": "2026-10-18"}).text

        assert '_gte: "2025-10-18T00:00:00"' in text
        assert "**2025-10-18** and **2026-10-18**" in text

    def test_recent_objections_range_entirely_too_old(self, prompt_book):
        with pytest.raises(InvalidArgument, match="must not be after"):
            prompt_book.get("recent-objections", {"startDate": "2020-01-01", "endDate": "2021-01-01"})

    def test_top_objections_forwards_window(self, prompt_book):
        text = prompt_book.get("top-objections", {"days": "7"}).text

        assert "query RecentObjections" in text
        assert "**2026-10-11** and **2026-10-18**" in text

    def test_customer_objections(self, prompt_book):
        text = prompt_book.get("customer-objections", {"days": "14", "personaIds": "246,247"}).text

        assert "last 14 days" in text
        assert 'created_at: {_gte: "2026-10-04"}' in text
        assert "persona_id: {_in: [246, 247]}" in text


class TestTextPrompts:
    def test_context_guide_points_at_resource(self, prompt_book):
        text = prompt_book.get("context-guide").text

        assert '"name": "open-resource"' in text
        assert "graphql://guide/context" in text

    def test_explore_schema_mentions_tools(self, prompt_book):
        text = prompt_book.get("explore-schema").text
        assert "list-types" in text
        assert "graphql://type/{name}" in text


class TestParsePersonaIds:
    @pytest.mark.parametrize(
        "value, expected",
        [(None, [246]), ("", [246]), ("[246, 247]", [246, 247]), ("246, 247", [246, 247]), ([247], [247]), ("7", [7])],
    )
    def test_accepted_forms(self, value, expected):
        assert parse_persona_ids(value) == expected

    @pytest.mark.parametrize("value", ["[246,", "customers", '["a"]'])
    def test_rejected_forms(self, value):
        with pytest.raises(InvalidArgument):
            parse_persona_ids(value)
