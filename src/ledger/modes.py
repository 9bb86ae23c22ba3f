"""Session modes."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Mode(str, Enum):
    """Where the receipt collection lives."""

    AUTHENTICATED = "authenticated"
    GUEST = "guest"
    UNAUTHENTICATED = "unauthenticated"
    BACKEND_UNREACHABLE = "backend_unreachable"


@dataclass(frozen=True)
class SessionState:
    """Active mode, with the owner for authenticated sessions."""

    mode: Mode
    user_id: Optional[str] = None

    @classmethod
    def authenticated(cls, user_id: str) -> 'SessionState':
        return cls(Mode.AUTHENTICATED, user_id)

    @classmethod
    def guest(cls) -> 'SessionState':
        return cls(Mode.GUEST)

    @classmethod
    def unauthenticated(cls) -> 'SessionState':
        return cls(Mode.UNAUTHENTICATED)

    @classmethod
    def unreachable(cls) -> 'SessionState':
        return cls(Mode.BACKEND_UNREACHABLE)

    @property
    def is_authenticated(self) -> bool:
        return self.mode == Mode.AUTHENTICATED

    @property
    def is_guest(self) -> bool:
        return self.mode == Mode.GUEST

    @property
    def can_edit(self) -> bool:
        """Whether receipts can be created or changed in this mode."""
        return self.mode in (Mode.AUTHENTICATED, Mode.GUEST)
