"""Client entity for the trainer's roster."""

from datetime import date, datetime
from typing import Optional

from ..exceptions import ValidationError
from ..value_objects.pin import Pin


class Client:
    """Client entity holding a prepaid pack of training sessions."""

    def __init__(
        self,
        name: str,
        sessions_remaining: int = 0,
        pin: Optional[Pin] = None,
        sessions_expires_at: Optional[date] = None,
        client_id: Optional[int] = None,
        created_at: Optional[datetime] = None
    ):
        self._name = self._validate_name(name)
        self._sessions_remaining = self._validate_sessions(sessions_remaining)
        self._pin = pin or Pin()
        self._sessions_expires_at = sessions_expires_at
        self._id = client_id
        self._created_at = created_at or datetime.utcnow()

    @staticmethod
    def _validate_name(name: str) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name is required")
        return name.strip()

    @staticmethod
    def _validate_sessions(sessions: int) -> int:
        if isinstance(sessions, bool) or not isinstance(sessions, int) or sessions < 0:
            raise ValidationError("Invalid sessions count")
        return sessions

    @property
    def id(self) -> Optional[int]:
        """Get client ID (None until persisted)."""
        return self._id

    @property
    def name(self) -> str:
        """Get display name."""
        return self._name

    @property
    def sessions_remaining(self) -> int:
        """Get number of prepaid sessions left."""
        return self._sessions_remaining

    @property
    def pin(self) -> Pin:
        """Get client PIN."""
        return self._pin

    @property
    def sessions_expires_at(self) -> Optional[date]:
        """Get advisory pack expiry date."""
        return self._sessions_expires_at

    @property
    def created_at(self) -> datetime:
        """Get creation timestamp."""
        return self._created_at

    def is_pack_expired(self, today: date) -> bool:
        """Check whether the pack expiry date has passed.

        The engine never enforces expiry; this is for display only.
        """
        return self._sessions_expires_at is not None and self._sessions_expires_at < today

    def assign_id(self, client_id: int) -> None:
        """Attach the surrogate ID issued by the store."""
        self._id = client_id

    def set_sessions(self, sessions_remaining: int) -> None:
        """Manually adjust the session balance."""
        self._sessions_remaining = self._validate_sessions(sessions_remaining)

    def consume_session(self) -> None:
        """Deduct one session, never going below zero."""
        self._sessions_remaining = max(self._sessions_remaining - 1, 0)

    def change_pin(self, pin: Pin) -> None:
        """Replace the client's PIN."""
        self._pin = pin

    def set_expiry(self, sessions_expires_at: Optional[date]) -> None:
        """Set or clear the pack expiry date."""
        self._sessions_expires_at = sessions_expires_at

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Client):
            return False
        if self._id is None or other._id is None:
            return self is other
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id) if self._id is not None else id(self)

    def __str__(self) -> str:
        return f"Client({self._id}, {self._name}, sessions={self._sessions_remaining})"
