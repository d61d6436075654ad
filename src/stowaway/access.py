"""Authentication and token lifecycle for Stowaway.

The :class:`AccessManager` owns the single credential shared by every
command.  Callers authenticate once; re-authentication after a rejected
token is requested by the command dispatcher only.  The credential is an
immutable value that is swapped as a whole under a lock, so concurrent
readers always see either the old or the new credential, never a mix.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stowaway import metrics
from stowaway.errors import AuthenticationError, ConfigurationError, TransportError
from stowaway.transport import HttpTransport

logger = logging.getLogger(__name__)

OBJECT_STORE = "object-store"


@dataclass(frozen=True)
class Endpoint:
    """Public and internal base URL of one catalog service."""

    public_url: str
    internal_url: str | None = None


@dataclass(frozen=True)
class Credential:
    """The result of a successful authentication.

    Attributes:
        token: The token sent as ``X-Auth-Token`` on every request.
        expires_at: Token expiry as reported by the auth service, if any.
        endpoints: Service type to endpoint catalog.
        tenant: Tenant (project) name or id the token is scoped to.
    """

    token: str
    expires_at: datetime | None = None
    endpoints: dict[str, Endpoint] = field(default_factory=dict)
    tenant: str | None = None

    def __post_init__(self) -> None:
        if not self.token:
            raise AuthenticationError("Authentication returned an empty token")

    def storage_url(self, internal: bool = False) -> str:
        """Base URL of the object store for this credential.

        Raises:
            ConfigurationError: If the catalog has no object-store entry.
        """
        endpoint = self.endpoints.get(OBJECT_STORE)
        if endpoint is None:
            raise ConfigurationError("Service catalog has no object-store endpoint")
        if internal and endpoint.internal_url:
            return endpoint.internal_url.rstrip("/")
        return endpoint.public_url.rstrip("/")


class Authenticator(Protocol):
    """Exchanges credentials for a :class:`Credential`."""

    def __call__(
        self,
        username: str,
        password: str,
        auth_url: str,
        tenant_name: str | None = None,
        tenant_id: str | None = None,
    ) -> Credential:
        """Authenticate.

        Raises:
            AuthenticationError: On refused credentials or unreachable endpoint.
        """
        ...


# -- Keystone v2 ---------------------------------------------------------------


class _KeystoneEndpoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    public_url: str = Field(alias="publicURL")
    internal_url: str | None = Field(default=None, alias="internalURL")


class _KeystoneService(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    endpoints: list[_KeystoneEndpoint] = Field(default_factory=list)


class _KeystoneTenant(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str | None = None


class _KeystoneToken(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    expires: datetime | None = None
    tenant: _KeystoneTenant | None = None


class _KeystoneAccess(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    token: _KeystoneToken
    service_catalog: list[_KeystoneService] = Field(default_factory=list, alias="serviceCatalog")


class _KeystoneResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access: _KeystoneAccess


class KeystoneAuthenticator:
    """Password authentication against a Keystone v2 ``/tokens`` endpoint."""

    def __init__(self, transport: HttpTransport) -> None:
        self.transport = transport

    def __call__(
        self,
        username: str,
        password: str,
        auth_url: str,
        tenant_name: str | None = None,
        tenant_id: str | None = None,
    ) -> Credential:
        auth: dict = {"passwordCredentials": {"username": username, "password": password}}
        if tenant_name:
            auth["tenantName"] = tenant_name
        if tenant_id:
            auth["tenantId"] = tenant_id

        try:
            response = self.transport.send(
                "POST",
                auth_url,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                body=json.dumps({"auth": auth}).encode("utf-8"),
            )
        except TransportError as exc:
            raise AuthenticationError(f"Auth endpoint unreachable: {exc.message}") from exc

        if response.status in (401, 403):
            raise AuthenticationError(
                f"Credentials refused for user {username!r}", http_status=response.status
            )
        if not 200 <= response.status < 300:
            raise AuthenticationError(
                f"Authentication failed with status {response.status}",
                http_status=response.status,
            )

        try:
            parsed = _KeystoneResponse.model_validate_json(response.body)
        except ValidationError as exc:
            raise AuthenticationError(f"Malformed authentication response: {exc}") from exc

        endpoints: dict[str, Endpoint] = {}
        for service in parsed.access.service_catalog:
            if service.endpoints and service.type not in endpoints:
                first = service.endpoints[0]
                endpoints[service.type] = Endpoint(first.public_url, first.internal_url)

        token = parsed.access.token
        tenant = None
        if token.tenant is not None:
            tenant = token.tenant.name or token.tenant.id
        return Credential(
            token=token.id,
            expires_at=token.expires,
            endpoints=endpoints,
            tenant=tenant or tenant_name or tenant_id,
        )


# -- Access manager ------------------------------------------------------------


@dataclass(frozen=True)
class _AuthParams:
    username: str
    password: str = field(repr=False)
    auth_url: str
    tenant_name: str | None = None
    tenant_id: str | None = None


class AccessManager:
    """Holds the current credential and performs (re-)authentication.

    Attributes:
        authenticator: The authenticator used for every exchange.
    """

    def __init__(self, authenticator: Authenticator) -> None:
        self.authenticator = authenticator
        # Guards the credential reference and the authenticated flag.
        self._lock = threading.Lock()
        # Serializes exchanges so concurrent 401s cause a single refresh.
        self._refresh_lock = threading.Lock()
        self._credential: Credential | None = None
        self._authenticated = False
        self._params: _AuthParams | None = None

    def authenticate(
        self,
        username: str,
        password: str,
        auth_url: str,
        tenant_name: str | None = None,
        tenant_id: str | None = None,
    ) -> Credential:
        """Authenticate and replace the current credential.

        Args:
            username: The user name.
            password: The password.
            auth_url: The authentication endpoint URL.
            tenant_name: Optional tenant name to scope the token to.
            tenant_id: Optional tenant id to scope the token to.

        Returns:
            The new credential.

        Raises:
            AuthenticationError: If the exchange fails; the manager is then
                unauthenticated.
        """
        params = _AuthParams(username, password, auth_url, tenant_name, tenant_id)
        with self._refresh_lock:
            self._params = params
            return self._exchange(params)

    def reauthenticate(self, stale_token: str | None) -> Credential:
        """Replace a rejected token, at most once per stale token.

        If another thread already refreshed ``stale_token`` the current
        credential is returned without a new exchange.

        Args:
            stale_token: The token the service rejected.

        Returns:
            The credential to retry with.

        Raises:
            AuthenticationError: If the exchange fails. The previous
                credential is kept but the manager is unauthenticated.
            ConfigurationError: If :meth:`authenticate` was never called.
        """
        with self._refresh_lock:
            with self._lock:
                current = self._credential
                authenticated = self._authenticated
            if current is not None and authenticated and current.token != stale_token:
                return current
            if self._params is None:
                raise ConfigurationError("Cannot re-authenticate before authenticate()")
            logger.warning("Token rejected, re-authenticating user %s", self._params.username)
            try:
                credential = self._exchange(self._params)
            except AuthenticationError:
                if metrics.reauthentications_total is not None:
                    metrics.reauthentications_total.labels(outcome="failure").inc()
                raise
            if metrics.reauthentications_total is not None:
                metrics.reauthentications_total.labels(outcome="success").inc()
            return credential

    def _exchange(self, params: _AuthParams) -> Credential:
        try:
            credential = self.authenticator(
                params.username,
                params.password,
                params.auth_url,
                params.tenant_name,
                params.tenant_id,
            )
        except AuthenticationError:
            with self._lock:
                self._authenticated = False
            raise
        with self._lock:
            self._credential = credential
            self._authenticated = True
        logger.info("Authenticated user %s against %s", params.username, params.auth_url)
        return credential

    def is_authenticated(self) -> bool:
        """Whether the latest completed (re-)authentication succeeded."""
        with self._lock:
            return self._authenticated

    @property
    def credential(self) -> Credential:
        """The current credential.

        Raises:
            ConfigurationError: If no authentication ever succeeded.
        """
        with self._lock:
            credential = self._credential
        if credential is None:
            raise ConfigurationError("Not authenticated, call authenticate() first")
        return credential
