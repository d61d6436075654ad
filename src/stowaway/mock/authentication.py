"""Token issuing for the in-memory backend."""

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Mapping

from stowaway.access import OBJECT_STORE, Credential, Endpoint
from stowaway.errors import AuthenticationError

MOCK_STORAGE_URL = "http://localhost:8080/v1/AUTH_mock"
MOCK_INTERNAL_URL = "http://127.0.0.1:8080/v1/AUTH_mock"
TOKEN_LIFETIME = timedelta(hours=24)


class MemoryAuthenticator:
    """Issues random tokens and remembers which ones are valid.

    With an empty user table any username and password are accepted.

    Attributes:
        users: Username to password table.
        reject_all: Refuse every authentication attempt (for tests).
    """

    def __init__(self, users: Mapping[str, str] | None = None) -> None:
        self.users = dict(users or {})
        self.reject_all = False
        self._lock = threading.Lock()
        self._tokens: set[str] = set()

    def __call__(
        self,
        username: str,
        password: str,
        auth_url: str,
        tenant_name: str | None = None,
        tenant_id: str | None = None,
    ) -> Credential:
        if self.reject_all:
            raise AuthenticationError("Authentication is disabled", http_status=401)
        if self.users and self.users.get(username) != password:
            raise AuthenticationError(f"Credentials refused for user {username!r}", http_status=401)

        token = uuid.uuid4().hex
        with self._lock:
            self._tokens.add(token)
        return Credential(
            token=token,
            expires_at=datetime.now(timezone.utc) + TOKEN_LIFETIME,
            endpoints={OBJECT_STORE: Endpoint(MOCK_STORAGE_URL, MOCK_INTERNAL_URL)},
            tenant=tenant_name or tenant_id,
        )

    def is_valid(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def revoke(self, token: str | None = None) -> None:
        """Invalidate one token, or every issued token when None."""
        with self._lock:
            if token is None:
                self._tokens.clear()
            else:
                self._tokens.discard(token)
