"""Cognito utilities for authentication."""

import json
import boto3
from typing import Dict, Any, Optional
from urllib.parse import urlencode
from botocore.exceptions import BotoCoreError, ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError
import logging

from shared.config import AppConfig
from shared.exceptions import AuthenticationError, ConnectivityError, ValidationError

logger = logging.getLogger(__name__)

# Transport failures: endpoint unreachable, timeouts, dropped connections
CONNECTION_ERRORS = (BotoConnectionError, HTTPClientError)


class CognitoClient:
    """AWS Cognito client wrapper."""

    def __init__(self, config: AppConfig):
        """Initialize Cognito client."""
        self.client_id = config.cognito_client_id
        self.user_pool_id = config.cognito_user_pool_id
        self.domain = config.cognito_domain

        kwargs = {'region_name': config.aws_region}
        if config.endpoint_url:
            kwargs['endpoint_url'] = config.endpoint_url
        self.client = boto3.client('cognito-idp', **kwargs)

    def sign_up(self, email: str, password: str, name: str) -> Dict[str, Any]:
        """
        Register a new user.

        Args:
            email: User email
            password: User password
            name: User name

        Returns:
            Registration response

        Raises:
            AuthenticationError: If registration fails
        """
        try:
            response = self.client.sign_up(
                ClientId=self.client_id,
                Username=email,
                Password=password,
                UserAttributes=[
                    {'Name': 'email', 'Value': email},
                    {'Name': 'name', 'Value': name}
                ]
            )

            logger.info(f"User registered successfully: {email}")
            return {
                'user_sub': response['UserSub'],
                'user_confirmed': response['UserConfirmed'],
                'code_delivery_details': response.get('CodeDeliveryDetails')
            }
        except CONNECTION_ERRORS as e:
            raise ConnectivityError(f"Registration failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Registration failed: {e}")
            raise AuthenticationError(f"Registration failed: {str(e)}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            logger.error(f"Sign up failed: {error_code}")

            if error_code == 'UsernameExistsException':
                raise AuthenticationError("User already exists")
            elif error_code == 'InvalidPasswordException':
                raise AuthenticationError("Password does not meet requirements")
            elif error_code == 'InvalidParameterException':
                raise AuthenticationError("Invalid parameters provided")
            else:
                raise AuthenticationError(f"Registration failed: {e.response['Error']['Message']}")

    def confirm_sign_up(self, email: str, confirmation_code: str) -> None:
        """
        Confirm user registration.

        Args:
            email: User email
            confirmation_code: Confirmation code

        Raises:
            AuthenticationError: If confirmation fails
        """
        try:
            self.client.confirm_sign_up(
                ClientId=self.client_id,
                Username=email,
                ConfirmationCode=confirmation_code
            )
            logger.info(f"User confirmed successfully: {email}")
        except CONNECTION_ERRORS as e:
            raise ConnectivityError(f"Confirmation failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Confirmation failed: {e}")
            raise AuthenticationError(f"Confirmation failed: {str(e)}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            logger.error(f"Confirmation failed: {error_code}")
            raise AuthenticationError(f"Confirmation failed: {e.response['Error']['Message']}")

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """
        Sign in a user.

        Args:
            email: User email
            password: User password

        Returns:
            Authentication tokens

        Raises:
            AuthenticationError: If sign in fails
            ConnectivityError: If Cognito cannot be reached
        """
        try:
            response = self.client.initiate_auth(
                ClientId=self.client_id,
                AuthFlow='USER_PASSWORD_AUTH',
                AuthParameters={
                    'USERNAME': email,
                    'PASSWORD': password
                }
            )

            auth_result = response['AuthenticationResult']

            logger.info(f"User signed in successfully: {email}")
            return {
                'access_token': auth_result['AccessToken'],
                'id_token': auth_result['IdToken'],
                'refresh_token': auth_result['RefreshToken'],
                'expires_in': auth_result['ExpiresIn'],
                'token_type': auth_result['TokenType']
            }
        except CONNECTION_ERRORS as e:
            raise ConnectivityError(f"Sign in failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Sign in failed: {e}")
            raise AuthenticationError(f"Sign in failed: {str(e)}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            logger.error(f"Sign in failed: {error_code}")

            if error_code == 'NotAuthorizedException':
                raise AuthenticationError("Invalid email or password")
            elif error_code == 'UserNotConfirmedException':
                raise AuthenticationError("User not confirmed")
            elif error_code == 'UserNotFoundException':
                raise AuthenticationError("User not found")
            else:
                raise AuthenticationError(f"Sign in failed: {e.response['Error']['Message']}")

    def refresh_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Refresh authentication tokens.

        Args:
            refresh_token: Refresh token

        Returns:
            New authentication tokens

        Raises:
            AuthenticationError: If the refresh token is rejected
            ConnectivityError: If Cognito cannot be reached
        """
        try:
            response = self.client.initiate_auth(
                ClientId=self.client_id,
                AuthFlow='REFRESH_TOKEN_AUTH',
                AuthParameters={
                    'REFRESH_TOKEN': refresh_token
                }
            )

            auth_result = response['AuthenticationResult']

            logger.info("Token refreshed successfully")
            return {
                'access_token': auth_result['AccessToken'],
                'id_token': auth_result['IdToken'],
                'expires_in': auth_result['ExpiresIn'],
                'token_type': auth_result['TokenType']
            }
        except CONNECTION_ERRORS as e:
            logger.error(f"Cannot reach Cognito: {e}")
            raise ConnectivityError(f"Token refresh failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Token refresh failed: {e}")
            raise AuthenticationError(f"Token refresh failed: {str(e)}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            logger.error(f"Token refresh failed: {error_code}")
            raise AuthenticationError(f"Token refresh failed: {e.response['Error']['Message']}")

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """
        Get user information from access token.

        Args:
            access_token: Access token

        Returns:
            User information

        Raises:
            AuthenticationError: If the token is rejected
            ConnectivityError: If Cognito cannot be reached
        """
        try:
            response = self.client.get_user(AccessToken=access_token)

            user_attributes = {attr['Name']: attr['Value'] for attr in response['UserAttributes']}

            return {
                'username': response['Username'],
                'user_attributes': user_attributes,
                'email': user_attributes.get('email'),
                'name': user_attributes.get('name'),
                'user_sub': user_attributes.get('sub'),
                'provider': _identity_provider(user_attributes)
            }
        except CONNECTION_ERRORS as e:
            raise ConnectivityError(f"Get user failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Get user failed: {e}")
            raise AuthenticationError(f"Get user failed: {str(e)}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            logger.error(f"Get user failed: {error_code}")
            raise AuthenticationError(f"Get user failed: {e.response['Error']['Message']}")

    def global_sign_out(self, access_token: str) -> None:
        """
        Invalidate every token issued to the user.

        Args:
            access_token: Access token

        Raises:
            AuthenticationError: If sign out fails
        """
        try:
            self.client.global_sign_out(AccessToken=access_token)
            logger.info("User signed out")
        except CONNECTION_ERRORS as e:
            raise ConnectivityError(f"Sign out failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Sign out failed: {e}")
            raise AuthenticationError(f"Sign out failed: {str(e)}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            logger.error(f"Sign out failed: {error_code}")
            raise AuthenticationError(f"Sign out failed: {e.response['Error']['Message']}")

    def build_authorize_url(self, identity_provider: str, redirect_uri: str, state: Optional[str] = None) -> str:
        """
        Build the hosted UI URL for an OAuth redirect sign-in.

        Args:
            identity_provider: Federated provider name (e.g. 'Google')
            redirect_uri: Where the hosted UI sends the tokens
            state: Optional opaque state echoed back

        Returns:
            Authorize URL (implicit flow)

        Raises:
            ValidationError: If no hosted UI domain is configured
        """
        if not self.domain:
            raise ValidationError("COGNITO_DOMAIN is required for OAuth sign-in")

        params = {
            'identity_provider': identity_provider,
            'redirect_uri': redirect_uri,
            'response_type': 'token',
            'client_id': self.client_id,
            'scope': 'openid email profile',
        }
        if state:
            params['state'] = state

        domain = self.domain.rstrip('/')
        if not domain.startswith('http'):
            domain = f"https://{domain}"
        return f"{domain}/oauth2/authorize?{urlencode(params)}"


def _identity_provider(user_attributes: Dict[str, str]) -> str:
    """Name of the provider the user signed in with ('email' for native users)."""
    identities = user_attributes.get('identities')
    if not identities:
        return 'email'

    try:
        linked = json.loads(identities)
    except json.JSONDecodeError:
        logger.warning("Unreadable identities attribute")
        return 'email'

    if linked and isinstance(linked, list) and isinstance(linked[0], dict):
        return str(linked[0].get('providerName', 'email')).lower()
    return 'email'
