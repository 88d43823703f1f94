"""Shared test fixtures."""

from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from confpub.convert import ConversionContext


@pytest.fixture
def context() -> ConversionContext:
    """Fresh per-run conversion context."""
    return ConversionContext()


@pytest.fixture
def private_key_file(tmp_path: Path) -> Path:
    """Write a throwaway RSA private key in PEM format."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    key_file = tmp_path / "private_key.pem"
    key_file.write_bytes(pem)
    return key_file


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a minimal bearer-token configuration file."""
    config_file = tmp_path / "confpub.toml"
    config_file.write_text("""
[confluence]
base_url = "https://confluence.example.com"
token = "secret-token"

[publish]
space_key = "DOCS"
""")
    return config_file
