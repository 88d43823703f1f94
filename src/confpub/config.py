"""Configuration management for confpub.

Supports TOML configuration format for Confluence credentials,
publishing defaults and diagram rendering.
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, cast

from confpub.errors import ConfigurationError

CONFIG_FILENAME = 'confpub.toml'

AuthType = Literal['bearer', 'basic', 'oauth1']
AUTH_TYPES: tuple[str, ...] = ('bearer', 'basic', 'oauth1')
DIAGRAM_FORMATS: tuple[str, ...] = ('svg', 'png')


@dataclass
class ConfluenceConfig:
    """Confluence connection configuration."""

    base_url: str
    auth_type: AuthType = 'bearer'
    token: str | None = None
    token_env: str | None = None
    username: str | None = None
    access_token: str | None = None
    access_secret: str | None = None
    consumer_key: str = 'confpub'
    private_key: Path | None = None

    def resolve_token(self) -> str | None:
        """Return the API token, preferring the configured environment variable.

        Returns:
            Token string or None if neither source provides one
        """
        if self.token_env:
            value = os.environ.get(self.token_env)
            if value:
                return value
        return self.token


@dataclass
class PublishConfig:
    """Publishing defaults."""

    space_key: str | None = None
    parent_id: str | None = None
    state_file: Path = field(default_factory=lambda: Path('.confpub-state.json'))


@dataclass
class DiagramsConfig:
    """Diagram rendering configuration."""

    enabled: bool = True
    language: str = 'mermaid'
    kroki_url: str = 'https://kroki.io'
    format: str = 'svg'


@dataclass
class Config:
    """Application configuration."""

    confluence: ConfluenceConfig
    publish: PublishConfig
    diagrams: DiagramsConfig
    config_path: Path | None = None

    @classmethod
    def from_toml(cls, path: str | Path) -> 'Config':
        """Load configuration from TOML file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ConfigurationError: If configuration is invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f'Configuration file not found: {path}')

        with config_path.open('rb') as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f'Invalid TOML in {path}: {e}') from e

        config_dir = config_path.parent
        return cls(
            confluence=cls._parse_confluence(data.get('confluence'), config_dir),
            publish=cls._parse_publish(data.get('publish'), config_dir),
            diagrams=cls._parse_diagrams(data.get('diagrams')),
            config_path=config_path,
        )

    @classmethod
    def _parse_confluence(cls, data: object, config_dir: Path) -> ConfluenceConfig:
        """Parse the confluence section.

        Args:
            data: Raw confluence section data
            config_dir: Directory containing config file (for relative paths)

        Returns:
            ConfluenceConfig instance
        """
        if not isinstance(data, dict):
            raise ConfigurationError('confluence section is required and must be a dictionary')

        base_url = data.get('base_url')
        if not isinstance(base_url, str) or not base_url:
            raise ConfigurationError('confluence.base_url must be a non-empty string')

        auth_type = data.get('auth_type', 'bearer')
        if auth_type not in AUTH_TYPES:
            raise ConfigurationError(
                f'confluence.auth_type must be one of {", ".join(AUTH_TYPES)}'
            )

        for key in ('token', 'token_env', 'username', 'access_token', 'access_secret'):
            _require_optional_str(data, key, 'confluence')

        consumer_key = data.get('consumer_key', 'confpub')
        if not isinstance(consumer_key, str):
            raise ConfigurationError('confluence.consumer_key must be a string')

        private_key = data.get('private_key')
        if private_key is not None and not isinstance(private_key, str):
            raise ConfigurationError('confluence.private_key must be a string')

        return ConfluenceConfig(
            base_url=base_url.rstrip('/'),
            auth_type=cast(AuthType, auth_type),
            token=data.get('token'),
            token_env=data.get('token_env'),
            username=data.get('username'),
            access_token=data.get('access_token'),
            access_secret=data.get('access_secret'),
            consumer_key=consumer_key,
            private_key=config_dir / private_key if private_key else None,
        )

    @classmethod
    def _parse_publish(cls, data: object, config_dir: Path) -> PublishConfig:
        """Parse the publish section.

        Args:
            data: Raw publish section data
            config_dir: Directory containing config file (for relative paths)

        Returns:
            PublishConfig instance
        """
        if data is None:
            return PublishConfig(state_file=config_dir / '.confpub-state.json')

        if not isinstance(data, dict):
            raise ConfigurationError('publish section must be a dictionary')

        _require_optional_str(data, 'space_key', 'publish')
        _require_optional_str(data, 'parent_id', 'publish')

        state_file = data.get('state_file', '.confpub-state.json')
        if not isinstance(state_file, str):
            raise ConfigurationError('publish.state_file must be a string')

        return PublishConfig(
            space_key=data.get('space_key'),
            parent_id=data.get('parent_id'),
            state_file=config_dir / state_file,
        )

    @classmethod
    def _parse_diagrams(cls, data: object) -> DiagramsConfig:
        """Parse the diagrams section.

        Args:
            data: Raw diagrams section data

        Returns:
            DiagramsConfig instance
        """
        if data is None:
            return DiagramsConfig()

        if not isinstance(data, dict):
            raise ConfigurationError('diagrams section must be a dictionary')

        enabled = data.get('enabled', True)
        if not isinstance(enabled, bool):
            raise ConfigurationError('diagrams.enabled must be a boolean')

        language = data.get('language', 'mermaid')
        if not isinstance(language, str) or not language:
            raise ConfigurationError('diagrams.language must be a non-empty string')

        kroki_url = data.get('kroki_url', 'https://kroki.io')
        if not isinstance(kroki_url, str):
            raise ConfigurationError('diagrams.kroki_url must be a string')

        fmt = data.get('format', 'svg')
        if fmt not in DIAGRAM_FORMATS:
            raise ConfigurationError(
                f'diagrams.format must be one of {", ".join(DIAGRAM_FORMATS)}'
            )

        return DiagramsConfig(
            enabled=enabled,
            language=language,
            kroki_url=kroki_url,
            format=fmt,
        )


def _require_optional_str(data: dict[str, object], key: str, section: str) -> None:
    """Ensure an optional key is either absent or a string."""
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(f'{section}.{key} must be a string')
