"""Configuration loading and Pydantic models for Stowaway."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

# Swift refuses single objects above 5 GiB, larger uploads must be segmented.
DEFAULT_SEGMENTATION_SIZE = 5 * 1024 * 1024 * 1024


class AuthConfig(BaseModel):
    """Credentials and authentication endpoint."""

    username: str = ""
    password: str = ""
    auth_url: str = ""
    tenant_name: str = ""
    tenant_id: str = ""


class ClientConfig(BaseModel):
    """Client runtime behaviour."""

    mock: bool = False
    public_host: str = ""
    prefer_internal: bool = False
    allow_reauthenticate: bool = True
    timeout: float = 30.0
    page_size: int = Field(default=1000, gt=0)
    max_empty_pages: int = Field(default=1, ge=0)
    delimiter: str = "/"
    segmentation_size: int = Field(default=DEFAULT_SEGMENTATION_SIZE, gt=0)


class MockConfig(BaseModel):
    """In-memory backend configuration."""

    users: dict[str, str] = Field(default_factory=dict)
    delete_start_after: int = 1
    delete_interval: int = 1


class LoggingConfig(BaseModel):
    """Log level and output format."""

    level: str = "INFO"
    format: str = "text"


class ObservabilityConfig(BaseModel):
    """Metrics configuration."""

    metrics: bool = False


class StowawayConfig(BaseModel):
    """Top-level Stowaway configuration."""

    auth: AuthConfig = Field(default_factory=AuthConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    mock: MockConfig = Field(default_factory=MockConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_auth(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the auth section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    return {
        "username": data.get("username", ""),
        "password": data.get("password", ""),
        "auth_url": data.get("auth_url", ""),
        "tenant_name": data.get("tenant_name", ""),
        "tenant_id": data.get("tenant_id", ""),
    }


def _parse_client(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the client section from YAML data.

    Handles nested structure: client.listing.page_size -> page_size, etc.
    """
    if data is None:
        return {}

    result: dict[str, Any] = {
        "mock": data.get("mock", False),
        "public_host": data.get("public_host", ""),
        "prefer_internal": data.get("prefer_internal", False),
        "allow_reauthenticate": data.get("allow_reauthenticate", True),
        "timeout": data.get("timeout", 30.0),
        "segmentation_size": data.get("segmentation_size", DEFAULT_SEGMENTATION_SIZE),
    }

    listing_section = data.get("listing")
    if isinstance(listing_section, dict):
        result["page_size"] = listing_section.get("page_size", 1000)
        result["max_empty_pages"] = listing_section.get("max_empty_pages", 1)
        result["delimiter"] = listing_section.get("delimiter", "/")

    return result


def _parse_mock(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the mock section from YAML data.

    Handles nested structure: mock.scheduler.start_after -> delete_start_after
    """
    if data is None:
        return {}
    result: dict[str, Any] = {"users": data.get("users") or {}}
    scheduler_section = data.get("scheduler")
    if isinstance(scheduler_section, dict):
        result["delete_start_after"] = scheduler_section.get("start_after", 1)
        result["delete_interval"] = scheduler_section.get("interval", 1)
    return result


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {"metrics": data.get("metrics", False)}


def load_config(path: Path) -> StowawayConfig:
    """Load a StowawayConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated StowawayConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return StowawayConfig(
        auth=AuthConfig(**_parse_auth(raw.get("auth"))),
        client=ClientConfig(**_parse_client(raw.get("client"))),
        mock=MockConfig(**_parse_mock(raw.get("mock"))),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
