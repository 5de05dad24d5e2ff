"""Configuration management for buildbetter-mcp."""

import os
from dataclasses import dataclass
from typing import Optional

import yaml
from dotenv import load_dotenv

from . import utils

DEFAULT_ENDPOINT = "https://api-staging.buildbetter.app/v1/graphql"
DEFAULT_API_KEY_HEADER = "x-buildbetter-api-key"
DEFAULT_CONFIG_DIR = "~/.buildbetter-mcp"


@dataclass
class Config:
    """Configuration for buildbetter-mcp."""

    endpoint: str = DEFAULT_ENDPOINT
    api_key: Optional[str] = None
    api_key_header: str = DEFAULT_API_KEY_HEADER
    schema_ttl_seconds: float = 30 * 60
    request_timeout: Optional[float] = 30
    default_window_days: int = 30
    max_lookback_days: int = 365
    log_level: str = "INFO"
    config_dir: str = DEFAULT_CONFIG_DIR

    def __post_init__(self):
        """Expand paths and normalize blanks after initialization."""
        self.config_dir = utils.expand_path(self.config_dir)
        if not self.api_key:
            self.api_key = None
        self.log_level = str(self.log_level).upper()


def get_default_config_path() -> str:
    """Get default config file path."""
    return utils.expand_path(f"{DEFAULT_CONFIG_DIR}/config.yaml")


def load(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file and environment.

    Environment variables win over the file: BUILDBETTER_ENDPOINT,
    BUILDBETTER_API_KEY and BUILDBETTER_LOG_LEVEL. A `.env` file in the
    working directory is loaded first.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Config object with defaults for missing values.
    """
    load_dotenv()

    if config_path is None:
        config_path = get_default_config_path()

    data = {}
    if utils.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    defaults = Config()
    cfg = Config(
        endpoint=data.get("endpoint", defaults.endpoint),
        api_key=data.get("api_key"),
        api_key_header=data.get("api_key_header", defaults.api_key_header),
        schema_ttl_seconds=data.get("schema_ttl_seconds", defaults.schema_ttl_seconds),
        request_timeout=data.get("request_timeout", defaults.request_timeout),
        default_window_days=data.get("default_window_days", defaults.default_window_days),
        max_lookback_days=data.get("max_lookback_days", defaults.max_lookback_days),
        log_level=data.get("log_level", defaults.log_level),
        config_dir=data.get("config_dir", DEFAULT_CONFIG_DIR),
    )

    # Environment overrides
    if os.getenv("BUILDBETTER_ENDPOINT"):
        cfg.endpoint = os.environ["BUILDBETTER_ENDPOINT"]
    if os.getenv("BUILDBETTER_API_KEY"):
        cfg.api_key = os.environ["BUILDBETTER_API_KEY"]
    if os.getenv("BUILDBETTER_LOG_LEVEL"):
        cfg.log_level = os.environ["BUILDBETTER_LOG_LEVEL"].upper()

    return cfg


def create_example_config(path: Optional[str] = None) -> str:
    """Create an example config file and return its path."""
    if path is None:
        path = get_default_config_path()

    utils.ensure_dir(utils.dirname(path))

    example = {
        "endpoint": DEFAULT_ENDPOINT,
        "api_key_header": DEFAULT_API_KEY_HEADER,
        "schema_ttl_seconds": 1800,
        "request_timeout": 30,
        "default_window_days": 30,
        "max_lookback_days": 365,
        "log_level": "INFO",
    }

    with open(path, "w") as f:
        yaml.dump(example, f, default_flow_style=False, sort_keys=False)

    return path
