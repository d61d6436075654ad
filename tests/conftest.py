"""Shared pytest fixtures for Stowaway tests.

The live backend is tested against ``FakeSwift``: a small Swift and
Keystone v2 emulation served through ``httpx.MockTransport``, so requests
run through the real ``HttpxTransport`` and ``CommandDispatcher`` without
a network.  FakeSwift keeps its objects in a ``MemoryObjectStore``.

The mock backend clients are created with a sweeper whose first tick is an
hour away; tests drive expiry by calling ``tick()`` explicitly.
"""

import hashlib
import json
import urllib.parse
import uuid
from datetime import datetime, timezone

import httpx
import pytest

from stowaway import headers as codec
from stowaway.client import Client
from stowaway.config import AuthConfig, ClientConfig, MockConfig, StowawayConfig
from stowaway.errors import StowawayError
from stowaway.mock.store import MemoryObjectStore
from stowaway.transport import HttpxTransport

AUTH_URL = "http://keystone.test/v2.0/tokens"
STORAGE_URL = "http://swift.test/v1/AUTH_demo"
INTERNAL_URL = "http://swift-internal.test/v1/AUTH_demo"
STORAGE_PATH = "/v1/AUTH_demo"

USERNAME = "demo"
PASSWORD = "demo-secret"


def _swift_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat(timespec="microseconds")


class FakeSwift:
    """Swift and Keystone emulation for ``httpx.MockTransport``.

    Attributes:
        store: Backing store for containers and objects.
        users: Accepted username/password pairs.
        tokens: Tokens currently accepted by the storage endpoint.
        requests: Every request received, in order.
        auth_status: Status forced on the next authentications (None: normal).
        empty_listing_pages: Number of upcoming listing GETs answered with [].
        queued: Responses returned (in order) instead of handling requests.
        reject_tokens: Answer every storage request with 401.
    """

    def __init__(self) -> None:
        self.store = MemoryObjectStore()
        self.users = {USERNAME: PASSWORD}
        self.tokens: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.auth_status: int | None = None
        self.empty_listing_pages = 0
        self.queued: list[httpx.Response] = []
        self.reject_tokens = False

    # -- Introspection ---------------------------------------------------------

    @property
    def auth_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "keystone.test"]

    @property
    def storage_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host != "keystone.test"]

    def revoke_tokens(self) -> None:
        self.tokens.clear()

    # -- Dispatch --------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "keystone.test":
            return self._authenticate(request)
        if self.reject_tokens or request.headers.get("x-auth-token") not in self.tokens:
            return httpx.Response(401)
        if self.queued:
            return self.queued.pop(0)

        rest = request.url.path[len(STORAGE_PATH):].lstrip("/")
        container, _, name = rest.partition("/")
        try:
            if not container:
                return self._account(request)
            if not name:
                return self._container(request, container)
            return self._object(request, container, name)
        except StowawayError as exc:
            return httpx.Response(exc.http_status or 500)

    def _authenticate(self, request: httpx.Request) -> httpx.Response:
        if self.auth_status is not None:
            return httpx.Response(self.auth_status)
        auth = json.loads(request.read())["auth"]
        credentials = auth["passwordCredentials"]
        if self.users.get(credentials["username"]) != credentials["password"]:
            return httpx.Response(401)
        token = uuid.uuid4().hex
        self.tokens.add(token)
        return httpx.Response(
            200,
            json={
                "access": {
                    "token": {
                        "id": token,
                        "expires": "2030-01-01T00:00:00Z",
                        "tenant": {"id": "t-1", "name": auth.get("tenantName", "demo")},
                    },
                    "serviceCatalog": [
                        {"type": "identity", "endpoints": [{"publicURL": AUTH_URL}]},
                        {
                            "type": "object-store",
                            "endpoints": [
                                {"publicURL": STORAGE_URL, "internalURL": INTERNAL_URL}
                            ],
                        },
                    ],
                }
            },
        )

    # -- Account ---------------------------------------------------------------

    def _account(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        if request.method == "HEAD":
            info = self.store.account_info()
            headers = {
                "X-Account-Container-Count": str(info.container_count),
                "X-Account-Object-Count": str(info.object_count),
                "X-Account-Bytes-Used": str(info.bytes_used),
            }
            headers.update(codec.metadata_headers("Account", info.metadata))
            return httpx.Response(204, headers=headers)
        if request.method == "POST" and "bulk-delete" in params:
            return self._bulk_delete(request)
        if request.method == "POST":
            self.store.set_account_metadata(codec.parse_metadata("Account", request.headers))
            return httpx.Response(204)
        if request.method == "GET":
            page = self.store.list_containers(
                prefix=params.get("prefix"),
                marker=params.get("marker"),
                limit=int(params["limit"]) if "limit" in params else None,
            )
            rows = [
                {"name": entry.name, "count": entry.object_count, "bytes": entry.size}
                for entry in page.entries
            ]
            return httpx.Response(200, json=rows)
        return httpx.Response(405)

    def _bulk_delete(self, request: httpx.Request) -> httpx.Response:
        deleted = not_found = 0
        for line in request.read().decode("utf-8").splitlines():
            container, _, name = urllib.parse.unquote(line.strip()).partition("/")
            if not self.store.object_exists(container, name):
                not_found += 1
                continue
            self.store.delete_object(container, name)
            deleted += 1
        return httpx.Response(
            200,
            json={
                "Number Deleted": deleted,
                "Number Not Found": not_found,
                "Response Status": "200 OK",
                "Errors": [],
            },
        )

    # -- Container -------------------------------------------------------------

    def _container(self, request: httpx.Request, container: str) -> httpx.Response:
        if request.method == "PUT":
            created = self.store.create_container(container)
            self._update_container(request, container)
            return httpx.Response(201 if created else 202)
        if request.method == "DELETE":
            self.store.delete_container(container)
            return httpx.Response(204)
        if request.method == "HEAD":
            info = self.store.container_info(container)
            headers = {
                "X-Container-Object-Count": str(info.object_count),
                "X-Container-Bytes-Used": str(info.bytes_used),
            }
            if info.read_permission:
                headers["X-Container-Read"] = info.read_permission
            if info.write_permission:
                headers["X-Container-Write"] = info.write_permission
            headers.update(codec.metadata_headers("Container", info.metadata))
            return httpx.Response(204, headers=headers)
        if request.method == "POST":
            self.store.container_info(container)
            self._update_container(request, container)
            return httpx.Response(204)
        if request.method == "GET":
            return self._list_objects(request, container)
        return httpx.Response(405)

    def _update_container(self, request: httpx.Request, container: str) -> None:
        metadata = codec.parse_metadata("Container", request.headers)
        if metadata:
            self.store.set_container_metadata(container, metadata)
        read = request.headers.get("x-container-read")
        write = request.headers.get("x-container-write")
        if "x-remove-container-read" in request.headers:
            read = ""
        if "x-remove-container-write" in request.headers:
            write = ""
        self.store.set_container_rights(container, read, write)

    def _list_objects(self, request: httpx.Request, container: str) -> httpx.Response:
        self.store.container_info(container)
        if self.empty_listing_pages > 0:
            self.empty_listing_pages -= 1
            return httpx.Response(200, json=[])
        params = request.url.params
        page = self.store.list_objects(
            container,
            prefix=params.get("prefix"),
            marker=params.get("marker"),
            limit=int(params["limit"]) if "limit" in params else None,
            delimiter=params.get("delimiter"),
        )
        rows = []
        for entry in page.entries:
            if entry.is_directory:
                rows.append({"subdir": entry.name})
                continue
            rows.append(
                {
                    "name": entry.name,
                    "bytes": entry.size,
                    "hash": entry.etag,
                    "content_type": entry.content_type,
                    "last_modified": _swift_timestamp(entry.last_modified),
                }
            )
        return httpx.Response(200, json=rows)

    # -- Object ----------------------------------------------------------------

    def _object_headers(self, container: str, name: str) -> dict[str, str]:
        info = self.store.object_info(container, name)
        headers = {
            "Content-Length": str(info.size),
            "Content-Type": info.content_type,
            "ETag": f'"{info.etag}"' if info.manifest else info.etag,
            "Last-Modified": codec.format_http_date(info.last_modified),
        }
        if info.delete_at is not None:
            headers["X-Delete-At"] = str(codec.to_epoch(info.delete_at))
        if info.manifest:
            headers["X-Object-Manifest"] = info.manifest
        headers.update(codec.metadata_headers("Object", info.metadata))
        return headers

    def _object(self, request: httpx.Request, container: str, name: str) -> httpx.Response:
        if request.method == "PUT" and "x-copy-from" in request.headers:
            source = urllib.parse.unquote(request.headers["x-copy-from"]).lstrip("/")
            source_container, _, source_name = source.partition("/")
            self.store.copy_object(source_container, source_name, container, name)
            return httpx.Response(201)
        if request.method == "PUT":
            body = request.read()
            etag = hashlib.md5(body).hexdigest()
            if request.headers.get("etag", etag) != etag:
                return httpx.Response(422)
            self.store.put_object(
                container,
                name,
                body,
                content_type=request.headers.get("content-type"),
                metadata=codec.parse_metadata("Object", request.headers),
                delete_at=codec.from_epoch(request.headers.get("x-delete-at")),
                manifest=request.headers.get("x-object-manifest"),
            )
            return httpx.Response(201, headers={"ETag": etag})
        if request.method == "HEAD":
            return httpx.Response(200, headers=self._object_headers(container, name))
        if request.method == "GET":
            headers = self._object_headers(container, name)
            data = self.store.get_object(container, name)
            headers["Content-Length"] = str(len(data))
            return httpx.Response(200, headers=headers, content=data)
        if request.method == "POST":
            self.store.set_object_metadata(
                container,
                name,
                codec.parse_metadata("Object", request.headers),
                content_type=request.headers.get("content-type"),
            )
            # Swift drops the expiry when a POST omits X-Delete-At.
            self.store.set_delete_at(
                container, name, codec.from_epoch(request.headers.get("x-delete-at"))
            )
            return httpx.Response(202)
        if request.method == "DELETE":
            self.store.delete_object(container, name)
            return httpx.Response(204)
        return httpx.Response(405)


# -- Fixtures ------------------------------------------------------------------


@pytest.fixture
def swift() -> FakeSwift:
    """A fresh fake Swift service."""
    return FakeSwift()


@pytest.fixture
def transport(swift: FakeSwift):
    """An HttpxTransport routed to the fake Swift service."""
    http = HttpxTransport(transport=httpx.MockTransport(swift.handler))
    yield http
    http.close()


def live_config(**client_settings) -> StowawayConfig:
    return StowawayConfig(
        auth=AuthConfig(username=USERNAME, password=PASSWORD, auth_url=AUTH_URL),
        client=ClientConfig(**client_settings),
    )


def mock_config(**client_settings) -> StowawayConfig:
    return StowawayConfig(
        auth=AuthConfig(username=USERNAME, password=PASSWORD, auth_url="memory://"),
        client=ClientConfig(mock=True, **client_settings),
        mock=MockConfig(users={USERNAME: PASSWORD}, delete_start_after=3600),
    )


@pytest.fixture
def http_client(transport):
    """An authenticated client on the live backend (fake Swift)."""
    client = Client(live_config(), transport=transport)
    client.authenticate()
    yield client
    client.close()


@pytest.fixture
def memory_client():
    """An authenticated client on the in-memory backend."""
    client = Client(mock_config())
    client.authenticate()
    yield client
    client.close()


@pytest.fixture(params=["http", "memory"])
def any_client(request):
    """An authenticated client, once per backend."""
    if request.param == "http":
        return request.getfixturevalue("http_client")
    return request.getfixturevalue("memory_client")


@pytest.fixture
def account(any_client):
    return any_client.account
