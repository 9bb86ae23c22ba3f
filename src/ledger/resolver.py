"""Session/mode resolution."""

import logging
from typing import Optional

from shared.local_store import LocalStore
from shared.exceptions import ConnectivityError, ModeTransitionError
from auth.session import AuthSessionProvider, Session
from ledger.modes import Mode, SessionState

logger = logging.getLogger(__name__)


class SessionResolver:
    """Decides which mode is active from the auth session and the guest flag."""

    def __init__(self, auth: AuthSessionProvider, local_store: LocalStore):
        self.auth = auth
        self.local_store = local_store
        self.state = SessionState.unauthenticated()

    async def resolve_startup(self) -> SessionState:
        """
        Resolve the mode at startup.

        A connectivity failure yields BACKEND_UNREACHABLE instead of
        falling through to the login screen.
        """
        try:
            session = await self.auth.get_session()
        except ConnectivityError as e:
            logger.error(f"Session check failed: {e.message}")
            self.state = SessionState.unreachable()
            return self.state

        return self.route(session)

    def route(self, session: Optional[Session]) -> SessionState:
        """Apply the routing rules for a session (or its absence). Idempotent."""
        if session:
            self.local_store.set_guest(False)
            self.state = SessionState.authenticated(session.user_id)
        elif self.local_store.is_guest():
            self.state = SessionState.guest()
        else:
            self.state = SessionState.unauthenticated()

        logger.info(f"Session mode: {self.state.mode.value}")
        return self.state

    def continue_as_guest(self) -> SessionState:
        """
        Enter guest mode from the login screen.

        Raises:
            ModeTransitionError: If a user is signed in
        """
        if self.state.mode == Mode.AUTHENTICATED:
            raise ModeTransitionError("Sign out is required before using guest mode")

        self.local_store.set_guest(True)
        self.state = SessionState.guest()
        return self.state

    def leave_guest(self) -> SessionState:
        """Leave guest mode for the login screen. Guest data stays on the device."""
        if self.state.mode != Mode.GUEST:
            return self.state

        self.local_store.set_guest(False)
        self.state = SessionState.unauthenticated()
        return self.state
