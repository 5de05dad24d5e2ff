"""Tests for graphql:// resources."""

import pytest

from buildbetter_mcp.errors import UnknownOperation
from buildbetter_mcp.resources import (
    CONTEXT_GUIDE_URI,
    RELATIONSHIPS_ALIAS_URI,
    RELATIONSHIPS_URI,
    SCHEMA_URI,
    STATIC_RESOURCES,
)


class TestCatalog:
    def test_lists_static_and_schema_resources(self, catalog):
        uris = [r.uri for r in catalog.resources()]

        assert uris[0] == SCHEMA_URI
        assert CONTEXT_GUIDE_URI in uris
        assert all(r.mime_type == "text/markdown" for r in catalog.resources())

    def test_type_template(self, catalog):
        assert [t.uri for t in catalog.resource_templates()] == ["graphql://type/{name}"]


class TestStaticResources:
    @pytest.mark.parametrize("uri", sorted(STATIC_RESOURCES))
    def test_static_content_needs_no_network(self, catalog, session, uri):
        content = catalog.read(uri)

        assert content.text.startswith("# ")
        assert session.calls == []

    def test_alias_has_same_text(self, catalog):
        assert catalog.read(RELATIONSHIPS_ALIAS_URI).text == catalog.read(RELATIONSHIPS_URI).text

    def test_context_guide_mentions_customer_persona(self, catalog):
        text = catalog.read(CONTEXT_GUIDE_URI).text
        assert "persona_id" in text
        assert "246" in text

    def test_trailing_slash_tolerated(self, catalog):
        assert catalog.read(CONTEXT_GUIDE_URI + "/").text == STATIC_RESOURCES[CONTEXT_GUIDE_URI]


class TestSchemaResources:
    def test_schema_lists_types_with_descriptions(self, catalog):
        text = catalog.read(SCHEMA_URI).text

        assert "# interview\nA recorded call\n" in text
        assert "# company\n" in text
        assert "extraction_type_enum" not in text

    def test_type_fields(self, catalog):
        text = catalog.read("graphql://type/extraction").text

        assert text.startswith("# extraction\n")
        assert "### summary\n**Type:** String\n**Description:** Short summary of the signal\n" in text
        assert "### types\n**Type:** [extraction_type_join!]!\n" in text

    def test_enum_values(self, catalog):
        text = catalog.read("graphql://type/extraction_type_enum").text

        assert "## Values" in text
        assert "- `FeatureRequest`" in text

    def test_type_not_found_is_text(self, catalog):
        assert catalog.read("graphql://type/people").text == 'Type "people" not found in schema.'

    def test_type_name_missing(self, catalog):
        assert catalog.read("graphql://type/").text == "Error: Type name missing in URI."

    def test_unknown_uri(self, catalog):
        with pytest.raises(UnknownOperation):
            catalog.read("graphql://nope")
