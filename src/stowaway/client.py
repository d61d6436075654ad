"""Client facade wiring authentication, execution and the entity model."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from stowaway.access import AccessManager, KeystoneAuthenticator
from stowaway.command.dispatcher import CommandDispatcher
from stowaway.command.factory import CommandFactory, HttpCommandFactory
from stowaway.command.results import ObjectInfo
from stowaway.config import StowawayConfig, load_config
from stowaway.errors import ConfigurationError
from stowaway.logging_config import configure_logging
from stowaway.model.account import Account
from stowaway.model.container import Container
from stowaway.model.listing import Paginator
from stowaway.model.stored_object import StoredObject, UploadSource
from stowaway.transport import HttpTransport, HttpxTransport

logger = logging.getLogger(__name__)


class Client:
    """Entry point: authenticate, then work with the account.

    In mock mode everything runs against an in-memory store with a
    background expiry sweeper; otherwise commands are HTTP requests to the
    service found in the Keystone catalog.

    Attributes:
        config: The configuration the client was built from.
        access: Holds the credential shared by all commands.
        factory: Builds the commands for the selected backend.
    """

    def __init__(
        self,
        config: StowawayConfig | None = None,
        transport: HttpTransport | None = None,
    ) -> None:
        """Wire the backend selected by ``config.client.mock``.

        Args:
            config: Client configuration, defaults to a live client with
                default settings.
            transport: HTTP transport for the live backend, mainly for tests;
                defaults to an httpx based one.
        """
        self.config = config or StowawayConfig()
        self._transport: HttpTransport | None = None
        self._deleter = None
        self._account: Account | None = None

        if self.config.observability.metrics:
            from stowaway import metrics

            metrics.init_metrics()

        if self.config.client.mock:
            self.access, self.factory = self._create_mock_backend()
        else:
            self._transport = transport or HttpxTransport(timeout=self.config.client.timeout)
            self.access, self.factory = self._create_http_backend(self._transport)
        logger.info("Client created with %s backend", self.factory.backend)

    @classmethod
    def from_config_file(cls, path: Path | str, setup_logging: bool = True) -> Client:
        """Build a client from a YAML configuration file.

        Args:
            path: Path to the YAML file.
            setup_logging: Also configure root logging from its ``logging``
                section.
        """
        config = load_config(Path(path))
        if setup_logging:
            configure_logging(level=config.logging.level, fmt=config.logging.format)
        return cls(config)

    def _create_http_backend(
        self, transport: HttpTransport
    ) -> tuple[AccessManager, CommandFactory]:
        access = AccessManager(KeystoneAuthenticator(transport))
        dispatcher = CommandDispatcher(
            access,
            transport,
            allow_reauthenticate=self.config.client.allow_reauthenticate,
            prefer_internal=self.config.client.prefer_internal,
        )
        return access, HttpCommandFactory(dispatcher)

    def _create_mock_backend(self) -> tuple[AccessManager, CommandFactory]:
        from stowaway.mock import (
            MemoryAuthenticator,
            MemoryCommandFactory,
            MemoryExecutor,
            MemoryObjectStore,
            ObjectDeleter,
        )

        mock_config = self.config.mock
        store = MemoryObjectStore()
        authenticator = MemoryAuthenticator(mock_config.users)
        self._deleter = ObjectDeleter(
            store,
            start_after=mock_config.delete_start_after,
            interval_in_seconds=mock_config.delete_interval,
        )
        access = AccessManager(authenticator)
        executor = MemoryExecutor(
            store,
            access,
            authenticator,
            deleter=self._deleter,
            allow_reauthenticate=self.config.client.allow_reauthenticate,
        )
        return access, MemoryCommandFactory(executor)

    # -- Session ---------------------------------------------------------------

    def authenticate(
        self,
        username: str | None = None,
        password: str | None = None,
        auth_url: str | None = None,
    ) -> Account:
        """Authenticate and return the account.

        Arguments left out are taken from the ``auth`` configuration.

        Raises:
            AuthenticationError: The credentials were refused.
        """
        auth = self.config.auth
        self.access.authenticate(
            username if username is not None else auth.username,
            password if password is not None else auth.password,
            auth_url if auth_url is not None else auth.auth_url,
            tenant_name=auth.tenant_name or None,
            tenant_id=auth.tenant_id or None,
        )
        self._account = Account(self.factory, self.access, self.config.client)
        return self._account

    def is_authenticated(self) -> bool:
        return self.access.is_authenticated()

    @property
    def account(self) -> Account:
        """The account of the last successful :meth:`authenticate`.

        Raises:
            ConfigurationError: If the client never authenticated.
        """
        if self._account is None:
            raise ConfigurationError("Not authenticated, call authenticate() first")
        return self._account

    @property
    def object_deleter(self):
        """The expiry sweeper of the mock backend, None for a live client."""
        return self._deleter

    def close(self) -> None:
        """Stop the expiry sweeper and release the HTTP transport."""
        if self._deleter is not None:
            self._deleter.stop()
        if self._transport is not None:
            self._transport.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- Shortcuts -------------------------------------------------------------

    def container(self, name: str) -> Container:
        return self.account.get_container(name)

    def list_containers(self, prefix: str | None = None) -> Paginator[Container]:
        return self.account.list_containers(prefix=prefix)

    def create_container(
        self, name: str, headers: Mapping[str, str] | None = None
    ) -> Container:
        return self.container(name).create(headers)

    def delete_container(self, name: str) -> None:
        self.container(name).delete()

    def make_container_public(self, name: str) -> None:
        self.container(name).make_public()

    def make_container_private(self, name: str) -> None:
        self.container(name).make_private()

    def list_objects(
        self, container: str, prefix: str | None = None
    ) -> Paginator[StoredObject]:
        return self.container(container).list(prefix=prefix)

    def upload_object(
        self,
        container: str,
        name: str,
        data: UploadSource,
        content_type: str | None = None,
    ) -> str:
        return self.container(container).get_object(name).upload(data, content_type=content_type)

    def download_object(self, container: str, name: str) -> bytes:
        return self.container(container).get_object(name).download()

    def delete_object(self, container: str, name: str) -> None:
        self.container(container).get_object(name).delete()

    def copy_object(
        self,
        source_container: str,
        source_name: str,
        target_container: str,
        target_name: str,
    ) -> StoredObject:
        """Server-side copy of one object to another container and name."""
        source = self.container(source_container).get_object(source_name)
        target = self.container(target_container).get_object(target_name)
        return source.copy_object(target)

    def get_object_info(self, container: str, name: str) -> ObjectInfo:
        return self.container(container).get_object(name).reload()
