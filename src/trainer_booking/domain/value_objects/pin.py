"""Client PIN value object."""

import re
import secrets
from dataclasses import dataclass

from ..exceptions import ValidationError

DEFAULT_PIN = "0000"

_PIN_PATTERN = re.compile(r"^[0-9]{4}$")


@dataclass(frozen=True)
class Pin:
    """Value object for a 4-digit client PIN."""
    value: str = DEFAULT_PIN

    def __post_init__(self) -> None:
        """Validate PIN format."""
        if not isinstance(self.value, str) or not _PIN_PATTERN.match(self.value):
            raise ValidationError("PIN must be a 4-digit number")

    def matches(self, candidate: str) -> bool:
        """Compare a candidate PIN in constant time."""
        if not isinstance(candidate, str):
            return False
        return secrets.compare_digest(self.value.encode(), candidate.encode())

    def __str__(self) -> str:
        return self.value
