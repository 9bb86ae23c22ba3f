"""Application configuration loaded from the environment."""

import os
import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_EXCHANGE_RATE_URL = 'https://open.er-api.com/v6/latest/EUR'

# Backend settings that cached setup credentials may override
OVERRIDABLE_SETTINGS = {
    'cognito_client_id': 'COGNITO_CLIENT_ID',
    'cognito_user_pool_id': 'COGNITO_USER_POOL_ID',
    'cognito_domain': 'COGNITO_DOMAIN',
    'aws_region': 'AWS_REGION',
    'receipts_bucket': 'RECEIPTS_BUCKET',
}


class AppConfig(BaseModel):
    """Runtime configuration."""

    receipts_table: str = 'tallylens-receipts'
    settings_table: str = 'tallylens-user-settings'
    feedback_table: str = 'tallylens-feedback'
    receipts_bucket: str = 'tallylens-receipts'
    cognito_client_id: Optional[str] = None
    cognito_user_pool_id: Optional[str] = None
    cognito_domain: Optional[str] = None
    aws_region: str = 'eu-north-1'
    endpoint_url: Optional[str] = None
    exchange_rate_url: str = DEFAULT_EXCHANGE_RATE_URL
    default_currency: str = 'EUR'
    gemini_api_key: Optional[str] = None
    gemini_model: str = 'gemini-2.5-flash'
    signed_url_ttl: int = Field(default=3600, gt=0)
    donation_prompt_delay: float = Field(default=1.5, ge=0)
    local_store_path: str = '~/.tallylens/local_store.json'
    log_level: str = 'INFO'


def _is_usable(value: Optional[str]) -> bool:
    """Check that an environment value is set and not a placeholder."""
    return bool(value) and value != 'undefined' and 'placeholder' not in value


def load_config(
    env: Optional[Mapping[str, str]] = None,
    setup_credentials: Optional[Dict[str, Any]] = None
) -> AppConfig:
    """
    Build the configuration.

    Backend settings resolve environment first, then cached setup
    credentials, then defaults.

    Args:
        env: Environment mapping (default: os.environ)
        setup_credentials: Optional credentials cached in the local store

    Returns:
        Application configuration
    """
    env = os.environ if env is None else env
    setup_credentials = setup_credentials or {}
    values: Dict[str, Any] = {}

    simple_settings = {
        'receipts_table': 'RECEIPTS_TABLE',
        'settings_table': 'USER_SETTINGS_TABLE',
        'feedback_table': 'FEEDBACK_TABLE',
        'exchange_rate_url': 'EXCHANGE_RATE_URL',
        'default_currency': 'DEFAULT_CURRENCY',
        'gemini_api_key': 'GEMINI_API_KEY',
        'gemini_model': 'GEMINI_MODEL',
        'signed_url_ttl': 'SIGNED_URL_TTL',
        'donation_prompt_delay': 'DONATION_PROMPT_DELAY',
        'local_store_path': 'LOCAL_STORE_PATH',
        'log_level': 'LOG_LEVEL',
    }
    for field_name, env_name in simple_settings.items():
        if env.get(env_name):
            values[field_name] = env[env_name]

    for field_name, env_name in OVERRIDABLE_SETTINGS.items():
        env_value = env.get(env_name)
        if _is_usable(env_value):
            values[field_name] = env_value
        elif setup_credentials.get(field_name):
            logger.info(f"Using cached setup credential for {field_name}")
            values[field_name] = setup_credentials[field_name]

    # Support for LocalStack
    endpoint_url = env.get('LOCALSTACK_ENDPOINT')
    if endpoint_url and env.get('USE_LOCALSTACK', 'false').lower() == 'true':
        values['endpoint_url'] = endpoint_url

    if 'default_currency' in values:
        values['default_currency'] = values['default_currency'].strip().upper()

    return AppConfig(**values)


def configure_logging(level: str = 'INFO') -> None:
    """Configure root logging for the application."""
    logging.basicConfig(
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
