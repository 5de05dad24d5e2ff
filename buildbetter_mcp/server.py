"""MCP protocol surface: resources, tools and prompts over stdio."""

import asyncio
import logging
from typing import Any, Optional

import mcp.types as types
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError

from .client import GraphQLClient
from .config import Config
from .errors import InvalidArgument, MissingRequiredArgument, ToolCallFailed, UnknownOperation
from .prompts import PromptBook
from .resolver import TypeResolver
from .resources import CONTEXT_GUIDE_URI, ResourceCatalog
from .schema_loader import SchemaCache
from .synthesizer import QuerySynthesizer
from .tools import ResourceBlock, Toolbox, ToolResult

logger = logging.getLogger(__name__)

SERVER_NAME = "buildbetter-graphql"
SERVER_VERSION = "0.1.0"
RESOURCE_NOT_FOUND = -32002

INSTRUCTIONS = (
    "Read-only access to BuildBetter call data over GraphQL. "
    f"Before querying, open the context guide with the `read-resource` tool (uri: {CONTEXT_GUIDE_URI})."
)


def _content(result: ToolResult) -> list:
    blocks = []
    for block in result.blocks:
        if isinstance(block, ResourceBlock):
            blocks.append(
                types.EmbeddedResource(
                    type="resource",
                    resource=types.TextResourceContents(uri=block.uri, mimeType=block.mime_type, text=block.text),
                )
            )
        else:
            blocks.append(types.TextContent(type="text", text=block.text))
    return blocks


def create_server(toolbox: Toolbox, catalog: ResourceCatalog, prompt_book: Optional[PromptBook] = None) -> Server:
    """
    Wire the adapter's components into a low-level MCP server.

    Blocking work (HTTP, introspection) runs in worker threads so the
    event loop keeps serving other requests.
    """
    prompt_book = prompt_book or PromptBook()
    server = Server(SERVER_NAME, version=SERVER_VERSION, instructions=INSTRUCTIONS)

    @server.list_resources()
    async def list_resources() -> list[types.Resource]:
        return [
            types.Resource(uri=r.uri, name=r.name, description=r.description, mimeType=r.mime_type)
            for r in catalog.resources()
        ]

    @server.list_resource_templates()
    async def list_resource_templates() -> list[types.ResourceTemplate]:
        return [
            types.ResourceTemplate(uriTemplate=t.uri, name=t.name, description=t.description, mimeType=t.mime_type)
            for t in catalog.resource_templates()
        ]

    @server.read_resource()
    async def read_resource(uri: Any):
        try:
            content = await asyncio.to_thread(catalog.read, str(uri))
        except UnknownOperation as e:
            raise McpError(
                types.ErrorData(code=RESOURCE_NOT_FOUND, message="Resource not found", data={"uri": str(uri)})
            ) from e
        return [ReadResourceContents(content=content.text, mime_type=content.mime_type)]

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [types.Tool(name=t.name, description=t.description, inputSchema=t.input_schema) for t in toolbox.tools()]

    @server.call_tool()
    async def call_tool(name: str, arguments: Optional[dict]) -> list:
        try:
            result = await asyncio.to_thread(toolbox.call, name, arguments or {})
        except UnknownOperation as e:
            raise McpError(
                types.ErrorData(
                    code=types.METHOD_NOT_FOUND, message="Method not found", data={"method": f"tools/call/{name}"}
                )
            ) from e
        if result.is_error:
            # The low-level server reports a raised exception as an isError result
            raise ToolCallFailed(result.render())
        return _content(result)

    @server.list_prompts()
    async def list_prompts() -> list[types.Prompt]:
        return [
            types.Prompt(
                name=p.name,
                description=p.description,
                arguments=[
                    types.PromptArgument(name=a.name, description=a.description, required=a.required)
                    for a in p.arguments
                ],
            )
            for p in prompt_book.prompts()
        ]

    @server.get_prompt()
    async def get_prompt(name: str, arguments: Optional[dict[str, str]]) -> types.GetPromptResult:
        try:
            reply = prompt_book.get(name, arguments)
        except UnknownOperation as e:
            raise McpError(
                types.ErrorData(code=types.METHOD_NOT_FOUND, message="Prompt not found", data={"name": name})
            ) from e
        except (MissingRequiredArgument, InvalidArgument) as e:
            raise McpError(types.ErrorData(code=types.INVALID_PARAMS, message=str(e))) from e
        return types.GetPromptResult(
            description=reply.description,
            messages=[types.PromptMessage(role="user", content=types.TextContent(type="text", text=reply.text))],
        )

    return server


def build_components(
    cfg: Config, client: Optional[GraphQLClient] = None
) -> tuple[Toolbox, ResourceCatalog, PromptBook]:
    """Assemble client, cache, resolver and dispatchers from configuration."""
    client = client or GraphQLClient.from_config(cfg)
    cache = SchemaCache.for_client(client, ttl=cfg.schema_ttl_seconds)
    resolver = TypeResolver(cache, client)
    synthesizer = QuerySynthesizer(resolver, cfg.default_window_days, cfg.max_lookback_days)
    catalog = ResourceCatalog(resolver)
    toolbox = Toolbox(client, resolver, synthesizer, catalog)
    prompt_book = PromptBook(cfg.default_window_days, cfg.max_lookback_days)
    return toolbox, catalog, prompt_book


async def run_stdio(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def serve(cfg: Config) -> None:
    """Run the MCP server over stdio until the client disconnects."""
    toolbox, catalog, prompt_book = build_components(cfg)
    server = create_server(toolbox, catalog, prompt_book)
    logger.info("Starting %s against %s", SERVER_NAME, cfg.endpoint)
    asyncio.run(run_stdio(server))
