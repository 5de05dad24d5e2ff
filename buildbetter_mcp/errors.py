"""Error taxonomy for the BuildBetter MCP adapter."""

from typing import Optional


class BuildBetterMCPError(Exception):
    """Base class for every error surfaced at the operation boundary."""


class DownstreamUnavailable(BuildBetterMCPError):
    """The GraphQL endpoint could not be reached or answered garbage."""


class DownstreamQueryError(BuildBetterMCPError):
    """The GraphQL endpoint answered with an `errors` payload."""

    def __init__(self, messages: list[str]):
        self.messages = messages or ["Unknown GraphQL error"]
        super().__init__("; ".join(self.messages))


class MutationRejected(BuildBetterMCPError):
    """A caller-supplied query looked like a write operation."""

    def __init__(self, message: str = "Only read-only queries are allowed."):
        super().__init__(message)


class SchemaTypeNotFound(BuildBetterMCPError):
    """A type name is absent from the current schema snapshot."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f'Type "{type_name}" not found in schema.')


class MissingRequiredArgument(BuildBetterMCPError):
    """A required operation argument was not supplied."""

    def __init__(self, argument: str, message: Optional[str] = None):
        self.argument = argument
        super().__init__(message or f"'{argument}' argument is required.")


class InvalidArgument(BuildBetterMCPError):
    """An argument was supplied but could not be used."""


class NoSearchableField(BuildBetterMCPError):
    """No known text field exists on the type being searched."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(
            f"Could not determine a text field on the '{type_name}' type. "
            "Use the 'find-fields' tool to inspect its fields."
        )


class TemplateNotFound(BuildBetterMCPError):
    """A query template name is not registered."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(f"Template '{name}' not found. Available templates: {', '.join(available)}")


class UnknownOperation(BuildBetterMCPError):
    """A tool, prompt or resource name is not known to the dispatcher."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"Unknown {kind}: {name}")


class ToolCallFailed(BuildBetterMCPError):
    """Carries the text of a tool error result up to the protocol layer."""
