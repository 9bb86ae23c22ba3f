"""User settings storage and first sign-in bootstrap."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel

from shared.config import AppConfig
from shared.dynamodb import DynamoDBClient

logger = logging.getLogger(__name__)

# Returns the identity provider's profile for the signed-in user
ProfileLoader = Callable[[], Awaitable[Optional[Dict[str, Any]]]]


class UserSettings(BaseModel):
    """Per-user preferences."""

    user_id: str
    preferred_currency: str = 'EUR'
    full_name: Optional[str] = None


class BootstrapResult(BaseModel):
    """Outcome of the settings bootstrap."""

    currency: str
    name: str = ''
    name_prompt_required: bool = False


class UserSettingsRepository:
    """Settings rows keyed by user ID."""

    def __init__(self, config: AppConfig, table: Optional[DynamoDBClient] = None):
        self.settings_table = table or DynamoDBClient(
            config.settings_table,
            endpoint_url=config.endpoint_url,
            region_name=config.aws_region
        )

    def get_settings(self, user_id: str) -> Optional[UserSettings]:
        item = self.settings_table.get_item({'user_id': user_id})
        if not item:
            return None
        return UserSettings(**item)

    def save_settings(self, settings: UserSettings) -> UserSettings:
        """Insert or replace the user's settings row."""
        self.settings_table.put_item(settings.model_dump(exclude_none=True))
        logger.info(f"Saved settings for user {settings.user_id}")
        return settings


class SettingsBootstrap:
    """Makes sure a signed-in user has a currency and a display name."""

    def __init__(
        self,
        repository: UserSettingsRepository,
        load_profile: ProfileLoader,
        default_currency: str = 'EUR'
    ):
        self.repository = repository
        self.load_profile = load_profile
        self.default_currency = default_currency

    async def bootstrap(self, user_id: str) -> BootstrapResult:
        """
        Resolve the user's currency and name, creating settings lazily.

        Args:
            user_id: Signed-in user

        Returns:
            Currency, name and whether the forced name prompt is needed
        """
        settings = await asyncio.to_thread(self.repository.get_settings, user_id)

        if settings and settings.full_name:
            return BootstrapResult(currency=settings.preferred_currency, name=settings.full_name)

        currency = settings.preferred_currency if settings else self.default_currency
        profile_name = await self._profile_name()

        if not profile_name:
            return BootstrapResult(currency=currency, name_prompt_required=True)

        # Name comes from the identity provider; remember it
        await asyncio.to_thread(
            self.repository.save_settings,
            UserSettings(user_id=user_id, preferred_currency=currency, full_name=profile_name)
        )
        return BootstrapResult(currency=currency, name=profile_name)

    async def _profile_name(self) -> Optional[str]:
        profile = await self.load_profile()
        if not profile:
            return None
        name = (profile.get('name') or '').strip()
        return name or None
