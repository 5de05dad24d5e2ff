"""HTTP client for the downstream GraphQL endpoint."""

import logging
from typing import Any, Optional

import requests

from . import utils
from .config import Config
from .errors import DownstreamQueryError, DownstreamUnavailable

logger = logging.getLogger(__name__)


class GraphQLClient:
    """
    Minimal read-only GraphQL-over-HTTP client.

    One static credential header is attached when an API key is configured;
    the header is omitted entirely otherwise.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        api_key_header: str = "x-buildbetter-api-key",
        timeout: Optional[float] = 30,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.api_key_header = api_key_header
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, cfg: Config) -> "GraphQLClient":
        """Build a client from configuration."""
        return cls(
            endpoint=cfg.endpoint,
            api_key=cfg.api_key,
            api_key_header=cfg.api_key_header,
            timeout=cfg.request_timeout,
        )

    def headers(self) -> dict[str, str]:
        """Request headers for every call."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers[self.api_key_header] = self.api_key
        return headers

    def execute(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict:
        """
        POST a GraphQL query and return its `data` member.

        Args:
            query: GraphQL document text
            variables: Optional variables map

        Returns:
            The `data` object of the response

        Raises:
            DownstreamUnavailable: On transport failures or unusable responses
            DownstreamQueryError: When the response carries GraphQL errors
        """
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables

        try:
            resp = self.session.post(self.endpoint, json=body, headers=self.headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("GraphQL request to %s failed: %s", self.endpoint, e)
            raise DownstreamUnavailable(f"Could not reach {self.endpoint}: {e}") from e

        payload = utils.safe_json_response(resp, context="GraphQL request")

        if payload.get("errors"):
            messages = [_error_message(err) for err in payload["errors"]]
            logger.debug("GraphQL errors from %s: %s", self.endpoint, messages)
            raise DownstreamQueryError(messages)

        if resp.status_code != 200:
            raise DownstreamUnavailable(f"GraphQL request failed with status {resp.status_code}")

        data = payload.get("data")
        if data is None:
            raise DownstreamUnavailable("GraphQL response contained neither data nor errors")
        return data


def _error_message(err: Any) -> str:
    """Extract the message text from one GraphQL error entry."""
    if isinstance(err, dict):
        return str(err.get("message") or err)
    return str(err)
