"""Authentication for the Confluence HTTP client.

Builds an httpx AsyncClient authenticated with a bearer token, basic
username + token, or OAuth 1.0 RSA-SHA1 signatures.
"""

from pathlib import Path

import httpx
from authlib.integrations.httpx_client import OAuth1Auth
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from confpub.config import ConfluenceConfig
from confpub.errors import ConfigurationError


def read_private_key(path: str | Path) -> bytes:
    """Load and validate the PEM key used for OAuth signatures.

    Args:
        path: Key file location

    Returns:
        The PEM bytes, unchanged

    Raises:
        FileNotFoundError: If key file doesn't exist
        ConfigurationError: If key format is invalid
    """
    key_path = Path(path)
    if not key_path.exists():
        raise FileNotFoundError(f'Private key file not found: {path}')

    data = key_path.read_bytes()

    try:
        load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f'Invalid private key format: {e}') from e

    return data


def create_oauth1_auth(
    consumer_key: str,
    private_key: bytes,
    access_token: str,
    access_secret: str,
) -> OAuth1Auth:
    """Sign requests with OAuth 1.0 RSA-SHA1 in the Authorization header."""
    return OAuth1Auth(
        client_id=consumer_key,
        token=access_token,
        token_secret=access_secret,
        signature_method='RSA-SHA1',
        signature_type='HEADER',
        rsa_key=private_key.decode('utf-8'),
    )


def build_auth(config: ConfluenceConfig) -> tuple[httpx.Auth | None, dict[str, str]]:
    """Resolve credentials into an httpx auth object and extra headers.

    Args:
        config: Confluence configuration

    Returns:
        Tuple of (auth, headers)

    Raises:
        ConfigurationError: If credentials for the selected auth type are missing
    """
    if config.auth_type == 'oauth1':
        if not config.access_token or not config.access_secret:
            raise ConfigurationError(
                'OAuth access_token and access_secret are required for oauth1 authentication'
            )
        if config.private_key is None:
            raise ConfigurationError('private_key is required for oauth1 authentication')
        private_key = read_private_key(config.private_key)
        auth = create_oauth1_auth(
            config.consumer_key, private_key, config.access_token, config.access_secret
        )
        return auth, {}

    token = config.resolve_token()
    if config.auth_type == 'basic':
        if not config.username or not token:
            raise ConfigurationError(
                'Username and API token/password are required for basic authentication'
            )
        return httpx.BasicAuth(config.username, token), {}

    if not token:
        raise ConfigurationError('API token not configured')
    return None, {'Authorization': f'Bearer {token}'}


def create_confluence_client(
    config: ConfluenceConfig, timeout: float | None = 30.0
) -> httpx.AsyncClient:
    """Create an authenticated Confluence HTTP client.

    Args:
        config: Confluence configuration
        timeout: Request timeout in seconds (None disables it)

    Returns:
        Authenticated httpx AsyncClient
    """
    auth, headers = build_auth(config)
    headers['Accept'] = 'application/json'
    return httpx.AsyncClient(auth=auth, headers=headers, timeout=timeout)
