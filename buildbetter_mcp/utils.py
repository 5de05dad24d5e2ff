"""Utility functions shared across the adapter."""

import hashlib
import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from graphql import FieldNode, OperationDefinitionNode

from .errors import DownstreamUnavailable, InvalidArgument


# File system utilities
def ensure_dir(path: str) -> None:
    """Ensure directory exists, creating it if necessary."""
    Path(path).mkdir(parents=True, exist_ok=True)


def exists(path: str) -> bool:
    """Check if file exists."""
    return Path(path).exists()


def dirname(path: str) -> str:
    """Get directory name from path."""
    return str(Path(path).parent)


def expand_path(path: str) -> str:
    """Expand ~ in path."""
    return str(Path(path).expanduser())


# File I/O
def read_text(path: str) -> str:
    """Read text file."""
    return Path(path).read_text()


def write_json(path: str, data: Any) -> None:
    """Write JSON file with pretty formatting."""
    with open(path, "w") as f:
        json.dump(data, f, indent=2)


def to_json(data: Any) -> str:
    """Convert data to JSON string."""
    return json.dumps(data, indent=2)


# Hashing & timestamps
def now_utc() -> datetime:
    """Get the current UTC time."""
    return datetime.now(timezone.utc)


def sha256(obj: Any) -> str:
    """Calculate a short SHA-256 hash of a JSON-serializable object."""
    s = json.dumps(obj, sort_keys=True)
    return hashlib.sha256(s.encode()).hexdigest()[:16]


def parse_day(value: str, arg_name: str) -> date:
    """
    Parse a YYYY-MM-DD string.

    Args:
        value: Date string
        arg_name: Argument name used in the error message

    Returns:
        Parsed date

    Raises:
        InvalidArgument: If the string is not a calendar date
    """
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise InvalidArgument(f"'{arg_name}' must be a date in YYYY-MM-DD format, got {value!r}")


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    """Return the instant `days` days before `now`."""
    return (now or now_utc()) - timedelta(days=days)


def coerce_int(value: Any) -> Optional[int]:
    """
    Best-effort integer coercion for loosely typed tool arguments.

    Booleans, fractional floats and unparsable strings yield None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


# GraphQL AST helpers
def iter_operations(doc):
    """Iterate over all operations in document."""
    for definition in doc.definitions:
        if isinstance(definition, OperationDefinitionNode):
            yield definition


def selection_fields(selection_set):
    """Get field nodes from selection set."""
    if selection_set is None:
        return []
    return [s for s in selection_set.selections if isinstance(s, FieldNode)]


def loc(node) -> tuple[int, int]:
    """Get location (line, col) from AST node."""
    if hasattr(node, "loc") and node.loc:
        location = node.loc.source.get_location(node.loc.start)
        return (location.line, location.column)
    return (0, 0)


# HTTP response helpers
def safe_json_response(response, context: str = "GraphQL request") -> dict:
    """
    Safely parse JSON from HTTP response with helpful error messages.

    Args:
        response: requests.Response object
        context: Description of what operation failed

    Returns:
        Parsed JSON as dict

    Raises:
        DownstreamUnavailable: If response is not valid JSON
    """
    try:
        payload = response.json()
    except ValueError as e:
        body_preview = response.text[:300]
        if len(response.text) > 300:
            body_preview += "..."

        error_parts = [
            f"{context} failed - server returned non-JSON response",
            "",
            f"  URL: {response.url}",
            f"  Status: {response.status_code}",
            f"  Content-Type: {response.headers.get('Content-Type', 'unknown')}",
            "",
            "  Response preview:",
            f"  {body_preview}",
            "",
            "  Suggestions:",
            "  - Verify BUILDBETTER_ENDPOINT points to the GraphQL endpoint",
            "  - Authentication may be required - set BUILDBETTER_API_KEY",
            "",
            f"  Original JSON error: {e}",
        ]
        raise DownstreamUnavailable("\n".join(error_parts))

    if not isinstance(payload, dict):
        raise DownstreamUnavailable(f"{context} failed - expected a JSON object, got {type(payload).__name__}")
    return payload
