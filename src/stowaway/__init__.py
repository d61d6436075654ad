"""Stowaway - client library for Swift style object stores."""

from stowaway.client import Client
from stowaway.config import StowawayConfig, load_config
from stowaway.errors import (
    AuthenticationError,
    CommandError,
    ConfigurationError,
    Conflict,
    NotFound,
    ServiceError,
    StowawayError,
    TransportError,
    Unauthorized,
)

__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "Client",
    "CommandError",
    "ConfigurationError",
    "Conflict",
    "NotFound",
    "ServiceError",
    "StowawayError",
    "StowawayConfig",
    "TransportError",
    "Unauthorized",
    "load_config",
]
