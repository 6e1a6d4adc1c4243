"""Global test configuration and fixtures."""

from typing import Any, Dict, Iterator
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from snowflake_dbplugin.config import configure_settings


@pytest.fixture(autouse=True)
def reset_settings() -> Iterator[None]:
    """Give every test the default process settings."""
    configure_settings()
    yield
    configure_settings()


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def traditional_private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    """The same key as a PKCS1 ``RSA PRIVATE KEY`` block."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture(scope="session")
def ec_private_key_pem() -> bytes:
    return ec.generate_private_key(ec.SECP256R1()).private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def password_config() -> Dict[str, Any]:
    return {
        "connection_url": "{{username}}:{{password}}@account/db",
        "username": "vault",
        "password": "p@ss/word",
    }


@pytest.fixture
def mock_engine() -> MagicMock:
    """An engine whose ``connect()`` context yields ``mock_engine.connection``."""
    engine = MagicMock()
    connection = MagicMock()
    engine.connect.return_value.__enter__.return_value = connection
    engine.connection = connection
    return engine
