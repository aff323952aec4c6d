"""
Holder identity for locks: an authenticated user id or an anonymous session token, never both.

Passed explicitly through every engine call; there is no process-wide "current session".
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass

from slotkeeper.core.constants import SESSION_TOKEN_BYTES
from slotkeeper.core.errors import InvalidHolder


@dataclass(frozen=True)
class HolderIdentity:
    user_id: str | None = None
    session_token: str | None = None

    def __post_init__(self) -> None:
        user_id = (self.user_id or "").strip() or None
        session_token = (self.session_token or "").strip() or None
        if (user_id is None) == (session_token is None):
            raise InvalidHolder(user_id=self.user_id, session_token_set=bool(self.session_token))
        object.__setattr__(self, "user_id", user_id)
        object.__setattr__(self, "session_token", session_token)

    @classmethod
    def anonymous(cls) -> HolderIdentity:
        """New anonymous holder with a fresh session token."""
        return cls(session_token=secrets.token_urlsafe(SESSION_TOKEN_BYTES))

    @classmethod
    def from_request(cls, user_id: str | None = None, session_token: str | None = None) -> HolderIdentity | None:
        """Authenticated user wins when both are sent. None when the caller sent neither."""
        if (user_id or "").strip():
            return cls(user_id=user_id)
        if (session_token or "").strip():
            return cls(session_token=session_token)
        return None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    def __str__(self) -> str:
        if self.user_id:
            return f"user:{self.user_id}"
        return f"session:{self.session_token[:6]}…"
