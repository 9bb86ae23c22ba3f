"""Auth session provider: session restore, sign-in/out and change notifications."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

from shared.local_store import LocalStore
from shared.exceptions import AuthenticationError, ConnectivityError
from auth.cognito_utils import CognitoClient

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    """Auth state change notifications."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


@dataclass(frozen=True)
class Session:
    """An authenticated user session."""

    user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    provider: str = 'email'


AuthListener = Callable[[AuthEvent, Optional[Session]], Awaitable[None]]


class AuthSessionProvider:
    """Keeps the current Cognito session and tells subscribers when it changes."""

    def __init__(self, cognito: CognitoClient, local_store: LocalStore):
        self.cognito = cognito
        self.local_store = local_store
        self.session: Optional[Session] = None
        self._listeners: List[AuthListener] = []

    async def get_session(self) -> Optional[Session]:
        """
        Return the current session, restoring a stored one if present.

        Returns:
            The session, or None when nobody is signed in

        Raises:
            ConnectivityError: If Cognito cannot be reached
        """
        if self.session:
            return self.session

        stored = self.local_store.get(LocalStore.AUTH_SESSION_KEY) or {}
        refresh_token = stored.get('refresh_token')
        if not refresh_token:
            return None

        try:
            self.session = await self._open_session(refresh_token=refresh_token)
        except AuthenticationError as e:
            logger.info(f"Stored session is no longer valid: {e.message}")
            self.local_store.remove(LocalStore.AUTH_SESSION_KEY)
            return None

        return self.session

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        """
        Sign in with email and password.

        Raises:
            AuthenticationError: If the credentials are rejected
            ConnectivityError: If Cognito cannot be reached
        """
        tokens = await asyncio.to_thread(self.cognito.sign_in, email, password)
        session = await self._open_session(tokens=tokens)
        await self._set_session(session, AuthEvent.SIGNED_IN)
        return session

    async def complete_oauth_redirect(self, callback_url: str) -> Session:
        """
        Finish a hosted UI sign-in from the redirect URL.

        Args:
            callback_url: Redirect URL carrying tokens in its fragment

        Raises:
            AuthenticationError: If the redirect carries an error or no token
        """
        parts = urlsplit(callback_url)
        params = {k: v[0] for k, v in parse_qs(parts.fragment or parts.query).items()}

        if 'error' in params:
            raise AuthenticationError(
                f"OAuth sign in failed: {params.get('error_description', params['error'])}"
            )
        if 'access_token' not in params:
            raise AuthenticationError("OAuth redirect did not include an access token")

        session = await self._open_session(tokens=params)
        await self._set_session(session, AuthEvent.SIGNED_IN)
        return session

    def authorize_url(self, identity_provider: str, redirect_uri: str) -> str:
        return self.cognito.build_authorize_url(identity_provider, redirect_uri)

    async def sign_up(self, email: str, password: str, name: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.cognito.sign_up, email, password, name)

    async def confirm_sign_up(self, email: str, confirmation_code: str) -> None:
        await asyncio.to_thread(self.cognito.confirm_sign_up, email, confirmation_code)

    async def refresh_session(self) -> Optional[Session]:
        """
        Exchange the refresh token for new tokens.

        A rejected refresh token ends the session.

        Raises:
            AuthenticationError: If the refresh token is no longer valid
            ConnectivityError: If Cognito cannot be reached
        """
        if not self.session or not self.session.refresh_token:
            return None

        try:
            session = await self._open_session(refresh_token=self.session.refresh_token)
        except AuthenticationError as e:
            logger.info(f"Refresh token rejected, signing out: {e.message}")
            self.local_store.remove(LocalStore.AUTH_SESSION_KEY)
            await self._set_session(None, AuthEvent.SIGNED_OUT)
            raise

        await self._set_session(session, AuthEvent.TOKEN_REFRESHED)
        return session

    async def sign_out(self) -> None:
        """Sign out locally; remote token revocation is best effort."""
        if self.session:
            try:
                await self._with_access_token(self.cognito.global_sign_out)
            except (AuthenticationError, ConnectivityError) as e:
                logger.error(f"Remote sign out failed: {e.message}")

        self.local_store.remove(LocalStore.AUTH_SESSION_KEY)
        await self._set_session(None, AuthEvent.SIGNED_OUT)

    async def get_user(self) -> Optional[Dict[str, Any]]:
        """Profile of the signed-in user from the identity provider."""
        if not self.session:
            return None
        return await self._with_access_token(self.cognito.get_user)

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """
        Subscribe to auth state changes.

        Returns:
            Callable that removes the subscription
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _with_access_token(self, call: Callable[[str], Any]) -> Any:
        """Run a Cognito call with the access token, refreshing it once if rejected."""
        try:
            return await asyncio.to_thread(call, self.session.access_token)
        except AuthenticationError as e:
            if not self.session.refresh_token:
                raise
            logger.info(f"Access token rejected, refreshing: {e.message}")

        session = await self.refresh_session()
        return await asyncio.to_thread(call, session.access_token)

    async def _open_session(
        self,
        tokens: Optional[Dict[str, Any]] = None,
        refresh_token: Optional[str] = None
    ) -> Session:
        if tokens is None:
            tokens = await asyncio.to_thread(self.cognito.refresh_token, refresh_token)

        user = await asyncio.to_thread(self.cognito.get_user, tokens['access_token'])

        return Session(
            user_id=user['user_sub'],
            access_token=tokens['access_token'],
            refresh_token=tokens.get('refresh_token') or refresh_token,
            email=user.get('email'),
            name=user.get('name'),
            provider=user.get('provider', 'email')
        )

    async def _set_session(self, session: Optional[Session], event: AuthEvent) -> None:
        self.session = session

        if session and session.refresh_token:
            self.local_store.set(LocalStore.AUTH_SESSION_KEY, {'refresh_token': session.refresh_token})

        for listener in list(self._listeners):
            await listener(event, session)
