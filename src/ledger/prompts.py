"""User decision boundary for blocking dialogs."""

from abc import ABC, abstractmethod


class UserPrompter(ABC):
    """
    Blocking dialogs shown to the user.

    Each call suspends only the awaiting operation until the user answers.
    """

    @abstractmethod
    async def confirm(self, message: str) -> bool:
        """Ask a yes/no question."""

    @abstractmethod
    async def alert(self, message: str) -> None:
        """Show a notification the user must acknowledge."""
