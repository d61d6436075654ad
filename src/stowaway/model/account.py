"""The account: root of the entity model."""

from __future__ import annotations

import urllib.parse
from typing import TYPE_CHECKING, Mapping

from stowaway.command.base import ListInstructions
from stowaway.command.results import AccountInfo
from stowaway.config import ClientConfig
from stowaway.headers import merge_metadata
from stowaway.model.cache import Cached
from stowaway.model.container import Container
from stowaway.model.listing import Paginator

if TYPE_CHECKING:
    from stowaway.access import AccessManager
    from stowaway.command.factory import CommandFactory


class Account:
    """The authenticated account and entry point to its containers.

    Attributes:
        factory: Builds the commands for every entity of this account.
        access: The access manager whose credential the commands use.
        config: Client settings (paging, segmentation, URLs).
    """

    def __init__(
        self,
        factory: CommandFactory,
        access: AccessManager,
        config: ClientConfig | None = None,
    ) -> None:
        self.factory = factory
        self.access = access
        self.config = config or ClientConfig()
        self._info: Cached[AccountInfo] = Cached()

    def __repr__(self) -> str:
        return f"Account({self.factory.backend})"

    # -- Info ------------------------------------------------------------------

    def exists(self) -> bool:
        """An account exists as long as its credential is valid."""
        return self.access.is_authenticated()

    def reload(self) -> AccountInfo:
        """Re-fetch account info from the service."""
        info = self.factory.account_info().call()
        self._info.set(info)
        return info

    def _get_info(self) -> AccountInfo:
        return self._info.get(lambda: self.factory.account_info().call())

    @property
    def info_retrieved(self) -> bool:
        return self._info.retrieved

    @property
    def container_count(self) -> int:
        return self._get_info().container_count

    @property
    def object_count(self) -> int:
        return self._get_info().object_count

    @property
    def bytes_used(self) -> int:
        return self._get_info().bytes_used

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self._get_info().metadata)

    def set_metadata(self, metadata: Mapping[str, str]) -> None:
        """Add or replace account metadata; an empty value removes a key."""
        self.factory.account_metadata(metadata).call()
        self._info.patch(lambda info: merge_metadata(info.metadata, metadata))

    def _container_changed(self) -> None:
        self._info.invalidate()

    # -- Containers ------------------------------------------------------------

    def get_container(self, name: str) -> Container:
        """A handle to a container; nothing is sent to the service."""
        return Container(self, name)

    def list_containers_page(
        self,
        prefix: str | None = None,
        marker: str | None = None,
        page_size: int | None = None,
    ) -> list[Container]:
        """Fetch a single page of containers after ``marker``."""
        instructions = ListInstructions(
            prefix=prefix, marker=marker, limit=page_size or self.config.page_size
        )
        page = self.factory.list_containers(instructions).call()
        return [self.get_container(entry.name) for entry in page.entries]

    def list_containers(
        self, prefix: str | None = None, page_size: int | None = None
    ) -> Paginator[Container]:
        """Every container, fetched lazily page by page."""
        return Paginator(
            lambda marker, limit: self.list_containers_page(prefix, marker, limit),
            page_size or self.config.page_size,
            self.config.max_empty_pages,
        )

    # -- URLs ------------------------------------------------------------------

    @property
    def public_url(self) -> str:
        """Storage URL as seen from outside, honouring ``public_host``."""
        url = self.access.credential.storage_url(internal=False)
        if not self.config.public_host:
            return url
        parts = urllib.parse.urlsplit(url)
        host = urllib.parse.urlsplit(self.config.public_host)
        if host.netloc:
            parts = parts._replace(scheme=host.scheme or parts.scheme, netloc=host.netloc)
        else:
            parts = parts._replace(netloc=self.config.public_host)
        return urllib.parse.urlunsplit(parts)

    @property
    def private_url(self) -> str:
        """Storage URL on the internal network, if the catalog has one."""
        return self.access.credential.storage_url(internal=True)
