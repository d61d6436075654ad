"""Header codec: metadata maps and entity info to and from Swift headers.

Header names are handled lower-cased throughout; metadata keys are
lower-cased as well so that both backends report identical keys.
"""

import email.utils
from datetime import datetime, timezone
from typing import Any, Mapping

from stowaway.command.results import AccountInfo, ContainerInfo, ObjectInfo

# Read ACL that grants anonymous access and listing.
PUBLIC_READ_ACL = ".r:*,.rlistings"

AUTH_TOKEN = "X-Auth-Token"
CONTAINER_READ = "X-Container-Read"
CONTAINER_WRITE = "X-Container-Write"
COPY_FROM = "X-Copy-From"
DELETE_AT = "X-Delete-At"
OBJECT_MANIFEST = "X-Object-Manifest"
REMOVE_CONTAINER_READ = "X-Remove-Container-Read"
REMOVE_CONTAINER_WRITE = "X-Remove-Container-Write"


def _meta_prefix(scope: str) -> str:
    return f"x-{scope.lower()}-meta-"


def normalize_metadata(metadata: Mapping[str, Any] | None) -> dict[str, str]:
    """Lower-case keys and stringify values."""
    if not metadata:
        return {}
    return {str(k).lower(): str(v) for k, v in metadata.items()}


def metadata_headers(scope: str, metadata: Mapping[str, Any] | None) -> dict[str, str]:
    """Encode a metadata map as ``X-<Scope>-Meta-*`` headers.

    Args:
        scope: "Account", "Container" or "Object".
        metadata: The metadata to encode.

    Returns:
        Header name to value mapping.
    """
    return {
        f"X-{scope}-Meta-{key}": value
        for key, value in normalize_metadata(metadata).items()
    }


def parse_metadata(scope: str, headers: Mapping[str, str]) -> dict[str, str]:
    """Extract the metadata map from ``X-<Scope>-Meta-*`` headers."""
    prefix = _meta_prefix(scope)
    return {
        name.lower()[len(prefix):]: value
        for name, value in headers.items()
        if name.lower().startswith(prefix)
    }


def format_http_date(value: datetime) -> str:
    """Format a datetime as an RFC 7231 HTTP date."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return email.utils.format_datetime(value.astimezone(timezone.utc), usegmt=True)


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an RFC 7231 HTTP date, returning None when absent or malformed."""
    if not value:
        return None
    try:
        return email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def to_epoch(value: datetime) -> int:
    """Whole seconds since the epoch, as used by ``X-Delete-At``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def from_epoch(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(float(value)), tz=timezone.utc)
    except ValueError:
        return None


def _int_header(headers: Mapping[str, str], name: str) -> int:
    try:
        return int(headers.get(name, 0) or 0)
    except ValueError:
        return 0


def parse_account_info(headers: Mapping[str, str]) -> AccountInfo:
    """Decode HEAD account response headers."""
    return AccountInfo(
        container_count=_int_header(headers, "x-account-container-count"),
        object_count=_int_header(headers, "x-account-object-count"),
        bytes_used=_int_header(headers, "x-account-bytes-used"),
        metadata=parse_metadata("Account", headers),
    )


def parse_container_info(headers: Mapping[str, str]) -> ContainerInfo:
    """Decode HEAD container response headers."""
    return ContainerInfo(
        object_count=_int_header(headers, "x-container-object-count"),
        bytes_used=_int_header(headers, "x-container-bytes-used"),
        read_permission=headers.get("x-container-read") or None,
        write_permission=headers.get("x-container-write") or None,
        metadata=parse_metadata("Container", headers),
    )


def parse_object_info(headers: Mapping[str, str]) -> ObjectInfo:
    """Decode HEAD object response headers."""
    return ObjectInfo(
        size=_int_header(headers, "content-length"),
        content_type=headers.get("content-type", "application/octet-stream"),
        last_modified=parse_http_date(headers.get("last-modified")),
        etag=headers.get("etag", "").strip('"'),
        metadata=parse_metadata("Object", headers),
        delete_at=from_epoch(headers.get("x-delete-at")),
        manifest=headers.get("x-object-manifest") or None,
    )


def rights_headers(read: str | None, write: str | None) -> dict[str, str]:
    """Container ACL headers.

    None leaves an ACL unchanged, an empty string removes it.
    """
    headers: dict[str, str] = {}
    if read:
        headers[CONTAINER_READ] = read
    elif read is not None:
        headers[REMOVE_CONTAINER_READ] = "x"
    if write:
        headers[CONTAINER_WRITE] = write
    elif write is not None:
        headers[REMOVE_CONTAINER_WRITE] = "x"
    return headers


def merge_metadata(current: dict[str, str], update: Mapping[str, Any]) -> None:
    """Account and container POST semantics, applied in place.

    Keys are added or replaced; an empty value removes the key.
    """
    for key, value in normalize_metadata(update).items():
        if value == "":
            current.pop(key, None)
        else:
            current[key] = value
