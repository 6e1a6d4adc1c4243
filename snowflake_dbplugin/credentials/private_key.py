"""Key material parsing for key-pair (JWT) authentication.

The connection producer authenticates with an RSA private key supplied as a
PKCS8 PEM block. Credential requests for ``rsa_private_key`` users carry the
matching public key as a PKIX PEM block, which Snowflake expects as a bare
base64 body in ``RSA_PUBLIC_KEY``.
"""

import base64
import binascii
import os
import re
from typing import Tuple, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from snowflake_dbplugin.constants import PRIVATE_KEY_PEM_TYPE
from snowflake_dbplugin.credentials.exceptions import PrivateKeyError

PUBLIC_KEY_PEM_TYPE = "PUBLIC KEY"

_PEM_BLOCK_REGEX = re.compile(
    r"-----BEGIN (?P<type>[^-\r\n]+)-----(?P<body>.*?)-----END (?P=type)-----",
    re.DOTALL,
)


def decode_pem_block(data: Union[str, bytes]) -> Tuple[str, bytes]:
    """
    Decode the first PEM block found in ``data``.

    Literal ``\\n`` escape sequences are collapsed to line breaks first, so a
    key pasted as a single escaped line decodes the same as multi-line text.

    Returns:
        Tuple[str, bytes]: The declared block type and the decoded DER bytes.

    Raises:
        ValueError: If no complete block is found or its body is not base64.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    text = data.replace("\\r\\n", "\n").replace("\\n", "\n")

    match = _PEM_BLOCK_REGEX.search(text)
    if not match:
        raise ValueError("no PEM block found")

    body = "".join(match.group("body").split())
    try:
        der = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"PEM block body is not valid base64: {e}") from e
    if not der:
        raise ValueError("PEM block body is empty")
    return match.group("type").strip(), der


def read_private_key_material(provided_private_key: Union[str, bytes]) -> bytes:
    """
    Resolve the configured ``private_key`` value to PEM bytes.

    The legacy configuration form accepts a path to a key file; anything that
    is not an existing file is treated as the key itself.
    """
    if isinstance(provided_private_key, bytes):
        return provided_private_key

    candidate = provided_private_key.strip()
    if candidate and "-----BEGIN" not in candidate and os.path.isfile(candidate):
        with open(candidate, "rb") as key_file:
            return key_file.read()
    return provided_private_key.encode("utf-8")


def parse_private_key(provided_private_key: Union[str, bytes]) -> rsa.RSAPrivateKey:
    """
    Decode and validate an RSA private key in PKCS8 PEM form.

    Args:
        provided_private_key: PEM bytes, PEM text (optionally with escaped
            newlines), or a path to a PEM file.

    Returns:
        rsa.RSAPrivateKey: The parsed key.

    Raises:
        PrivateKeyError: If no PEM block is present, the block type is not
            ``PRIVATE KEY``, PKCS8 parsing fails, or the key is not RSA.
    """
    if not provided_private_key:
        raise PrivateKeyError("failed to read provided private_key")

    try:
        block_type, der = decode_pem_block(
            read_private_key_material(provided_private_key)
        )
    except (OSError, ValueError) as e:
        raise PrivateKeyError("failed to read provided private_key") from e

    if block_type != PRIVATE_KEY_PEM_TYPE:
        raise PrivateKeyError(
            f"unexpected private key type, expected type '{PRIVATE_KEY_PEM_TYPE}', "
            f"got '{block_type}'"
        )

    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise PrivateKeyError(f"failed to parse private key to PKCS8: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise PrivateKeyError("private key was parsed into an unexpected type")
    return key


def private_key_to_der(private_key: rsa.RSAPrivateKey) -> bytes:
    """Serialize a private key to unencrypted PKCS8 DER, the form the driver expects."""
    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def normalize_public_key(public_key: Union[str, bytes]) -> str:
    """
    Convert a PKIX ``PUBLIC KEY`` PEM block to the single-line base64 body
    accepted by ``ALTER USER ... SET RSA_PUBLIC_KEY``.

    Raises:
        ValueError: If the value is not an RSA public key PEM block.
    """
    block_type, der = decode_pem_block(public_key)
    if block_type != PUBLIC_KEY_PEM_TYPE:
        raise ValueError(
            f"unexpected public key type, expected type '{PUBLIC_KEY_PEM_TYPE}', "
            f"got '{block_type}'"
        )
    try:
        key = serialization.load_der_public_key(der)
    except UnsupportedAlgorithm as e:
        raise ValueError(f"unsupported public key: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise ValueError("public key was parsed into an unexpected type")
    return base64.b64encode(der).decode("ascii")
