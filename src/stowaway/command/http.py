"""Request construction and response decoding for each command kind.

``build_request`` turns a :class:`Command` into an :class:`HttpRequest`
relative to the storage URL; ``parse_response`` turns a successful
response into the command's result type.
"""

import hashlib
import json
import logging
import urllib.parse
from datetime import datetime, timezone
from typing import Any, Callable

from stowaway import headers as codec
from stowaway.command.base import Command, CommandKind, ListInstructions
from stowaway.command.results import ListEntry, ListPage
from stowaway.errors import ServiceError
from stowaway.transport import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


def container_path(container: str) -> str:
    return "/" + urllib.parse.quote(container, safe="")


def object_path(container: str, name: str) -> str:
    return container_path(container) + "/" + urllib.parse.quote(name, safe="/")


def _listing_params(listing: ListInstructions | None) -> dict[str, str | None]:
    listing = listing or ListInstructions()
    return {
        "format": "json",
        "prefix": listing.prefix or None,
        "marker": listing.marker or None,
        "limit": str(listing.limit) if listing.limit is not None else None,
        "delimiter": listing.delimiter or None,
    }


def _object_headers(command: Command) -> dict[str, str]:
    headers = dict(codec.metadata_headers("Object", command.metadata))
    if command.content_type:
        headers["Content-Type"] = command.content_type
    if command.delete_at is not None:
        headers[codec.DELETE_AT] = str(codec.to_epoch(command.delete_at))
    headers.update(command.headers)
    return headers


# -- Request builders ----------------------------------------------------------


def build_request(command: Command) -> HttpRequest:
    """Build the HTTP request for a command.

    Args:
        command: The command to translate.

    Returns:
        The request, with a path relative to the storage URL.
    """
    kind = command.kind

    if kind is CommandKind.ACCOUNT_INFO:
        return HttpRequest("HEAD")
    if kind is CommandKind.ACCOUNT_METADATA:
        return HttpRequest("POST", headers=codec.metadata_headers("Account", command.metadata))
    if kind is CommandKind.LIST_CONTAINERS:
        return HttpRequest("GET", params=_listing_params(command.listing))
    if kind is CommandKind.DELETE_OBJECTS:
        lines = [
            urllib.parse.quote(f"{command.container}/{name}", safe="/")
            for name in command.object_names
        ]
        return HttpRequest(
            "POST",
            headers={"Content-Type": "text/plain", "Accept": "application/json"},
            params={"bulk-delete": ""},
            body="\n".join(lines).encode("utf-8"),
        )

    path = container_path(command.container or "")

    if kind is CommandKind.CONTAINER_CREATE:
        headers = dict(codec.metadata_headers("Container", command.metadata))
        headers.update(command.headers)
        return HttpRequest("PUT", path, headers=headers)
    if kind is CommandKind.CONTAINER_DELETE:
        return HttpRequest("DELETE", path)
    if kind is CommandKind.CONTAINER_INFO:
        return HttpRequest("HEAD", path)
    if kind is CommandKind.CONTAINER_METADATA:
        return HttpRequest("POST", path, headers=codec.metadata_headers("Container", command.metadata))
    if kind is CommandKind.CONTAINER_RIGHTS:
        return HttpRequest(
            "POST",
            path,
            headers=codec.rights_headers(command.read_permission, command.write_permission),
        )
    if kind in (CommandKind.LIST_OBJECTS, CommandKind.LIST_DIRECTORY):
        return HttpRequest("GET", path, params=_listing_params(command.listing))

    path = object_path(command.container or "", command.object_name or "")

    if kind is CommandKind.OBJECT_UPLOAD:
        body = command.body or b""
        headers = _object_headers(command)
        headers.setdefault("ETag", hashlib.md5(body).hexdigest())
        return HttpRequest("PUT", path, headers=headers, body=body)
    if kind is CommandKind.OBJECT_DELETE:
        return HttpRequest("DELETE", path)
    if kind is CommandKind.OBJECT_INFO:
        return HttpRequest("HEAD", path)
    if kind is CommandKind.OBJECT_METADATA:
        return HttpRequest("POST", path, headers=_object_headers(command))
    if kind is CommandKind.OBJECT_COPY:
        source = object_path(command.source_container or "", command.source_object or "")
        return HttpRequest(
            "PUT",
            path,
            headers={codec.COPY_FROM: source, "Content-Length": "0"},
        )
    if kind is CommandKind.OBJECT_DOWNLOAD:
        return HttpRequest("GET", path)

    raise ValueError(f"Unsupported command kind: {kind}")


# -- Response parsers ----------------------------------------------------------


def _parse_json_rows(response: HttpResponse) -> list[dict[str, Any]]:
    if response.status == 204 or not response.body.strip():
        return []
    rows = json.loads(response.body)
    if not isinstance(rows, list):
        raise ServiceError("Listing response is not a JSON array", http_status=response.status)
    return rows


def _parse_last_modified(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_object_rows(response: HttpResponse) -> ListPage:
    entries = []
    for row in _parse_json_rows(response):
        if "subdir" in row:
            entries.append(ListEntry(name=row["subdir"], is_directory=True))
            continue
        entries.append(
            ListEntry(
                name=row["name"],
                size=int(row.get("bytes", 0)),
                etag=row.get("hash", ""),
                content_type=row.get("content_type", ""),
                last_modified=_parse_last_modified(row.get("last_modified")),
            )
        )
    return ListPage(entries)


def _parse_container_rows(response: HttpResponse) -> ListPage:
    return ListPage(
        [
            ListEntry(
                name=row["name"],
                size=int(row.get("bytes", 0)),
                object_count=int(row.get("count", 0)),
            )
            for row in _parse_json_rows(response)
        ]
    )


def _parse_bulk_delete(response: HttpResponse) -> int:
    if not response.body.strip():
        return 0
    result = json.loads(response.body)
    if not isinstance(result, dict):
        raise ServiceError("Bulk delete response is not a JSON object", http_status=response.status)
    errors = result.get("Errors") or []
    if errors:
        logger.warning("Bulk delete reported %d errors: %s", len(errors), errors)
    return int(result.get("Number Deleted", 0))


def _parse_download(response: HttpResponse) -> bytes:
    etag = (response.header("etag") or "").strip('"')
    # Manifest downloads carry the hash of the segment hashes, not of the body.
    if etag and response.header("x-object-manifest") is None:
        if hashlib.md5(response.body).hexdigest() != etag:
            raise ServiceError(
                "Downloaded content does not match its ETag", http_status=response.status
            )
    return response.body


def _none(response: HttpResponse) -> None:
    return None


_PARSERS: dict[CommandKind, Callable[[HttpResponse], Any]] = {
    CommandKind.ACCOUNT_INFO: lambda r: codec.parse_account_info(r.headers),
    CommandKind.ACCOUNT_METADATA: _none,
    CommandKind.LIST_CONTAINERS: _parse_container_rows,
    CommandKind.CONTAINER_CREATE: _none,
    CommandKind.CONTAINER_DELETE: _none,
    CommandKind.CONTAINER_INFO: lambda r: codec.parse_container_info(r.headers),
    CommandKind.CONTAINER_METADATA: _none,
    CommandKind.CONTAINER_RIGHTS: _none,
    CommandKind.LIST_OBJECTS: _parse_object_rows,
    CommandKind.LIST_DIRECTORY: _parse_object_rows,
    CommandKind.DELETE_OBJECTS: _parse_bulk_delete,
    CommandKind.OBJECT_UPLOAD: lambda r: (r.header("etag") or "").strip('"'),
    CommandKind.OBJECT_DELETE: _none,
    CommandKind.OBJECT_INFO: lambda r: codec.parse_object_info(r.headers),
    CommandKind.OBJECT_METADATA: _none,
    CommandKind.OBJECT_COPY: _none,
    CommandKind.OBJECT_DOWNLOAD: _parse_download,
}


def parse_response(command: Command, response: HttpResponse) -> Any:
    """Decode a 2xx response into the result type of ``command.kind``.

    Raises:
        ServiceError: The body is not what the command expects, e.g. an HTML
            page from a proxy where a JSON listing was due.
    """
    try:
        return _PARSERS[command.kind](response)
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise ServiceError(
            f"Malformed {command.kind.value} response: {exc}", http_status=response.status
        ) from exc
