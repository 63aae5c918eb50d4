"""GitHub App private key loading and JWT generation."""

import base64
import binascii
import logging
import re
import time
from pathlib import Path

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from gha.errors import (
    ConfigError,
    KeyDecodeError,
    KeyFormatError,
    KeyReadError,
    SigningError,
)

log = logging.getLogger("gha.auth")

# Backdate iat to tolerate clock skew between us and GitHub.
CLOCK_SKEW_SECONDS = 30
# GitHub rejects App JWTs that live longer than 10 minutes.
JWT_LIFETIME_SECONDS = 10 * 60

PRIVATE_KEY_TYPES = ("RSA PRIVATE KEY", "PRIVATE KEY")
PEM_BLOCK_RE = re.compile(
    r"-----BEGIN ([A-Z0-9 ]+)-----(.*?)-----END \1-----", re.DOTALL,
)


def _pem_blocks(text: str):
    """Yield ``(type, der_bytes, decode_error)`` for each PEM block in file order.

    Exactly one of ``der_bytes`` and ``decode_error`` is None.
    """
    for m in PEM_BLOCK_RE.finditer(text):
        body = "".join(m.group(2).split())
        try:
            der = base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            yield m.group(1), None, e
            continue
        yield m.group(1), der, None


def _parse_pkcs1_or_pkcs8(der: bytes, path):
    """Parse *der* as either PKCS#1 or PKCS#8.

    Key generators do not label the encoding reliably, so the PEM type is
    not trusted to pick the parser; the DER loader accepts both.
    """
    try:
        return serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyDecodeError(
            f"parsing private key {path} (tried PKCS1 and PKCS8): {e}"
        ) from e


def load_private_key(path) -> RSAPrivateKey:
    """Read a PEM file and return the first RSA private key in it.

    Files holding several blocks (e.g. a certificate bundled with the key)
    are scanned in order; only ``RSA PRIVATE KEY`` and ``PRIVATE KEY`` blocks
    are considered.
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise KeyReadError(f"reading private key {path}: {e}") from e

    blocks = list(_pem_blocks(data.decode("utf-8", errors="replace")))
    if not blocks:
        raise KeyDecodeError(f"failed to decode PEM block from {path}")

    for block_type, der, decode_error in blocks:
        if block_type not in PRIVATE_KEY_TYPES:
            log.debug(f"Skipping PEM block {block_type!r} in {path}")
            continue
        if der is None:
            raise KeyDecodeError(
                f"invalid base64 in {block_type} block of {path}: {decode_error}"
            ) from decode_error
        key = _parse_pkcs1_or_pkcs8(der, path)
        if not isinstance(key, RSAPrivateKey):
            raise KeyFormatError(
                f"PKCS8 key in {path} is not RSA ({type(key).__name__})"
            )
        return key

    found = ", ".join(t for t, _, _ in blocks)
    raise KeyFormatError(f"no private key block in {path} (found: {found})")


def generate_jwt(app_id: int, key: RSAPrivateKey, now: float | None = None) -> str:
    """Sign an RS256 JWT identifying the App itself.

    ``iat`` is backdated by CLOCK_SKEW_SECONDS and ``exp`` is exactly
    JWT_LIFETIME_SECONDS after ``iat``.
    """
    if app_id <= 0:
        raise ConfigError(f"app_id must be a positive integer, got {app_id}")

    issued_at = int(now if now is not None else time.time()) - CLOCK_SKEW_SECONDS
    # exp counts from the backdated iat, so it lands at now + 9m30s.
    payload = {
        "iat": issued_at,
        "exp": issued_at + JWT_LIFETIME_SECONDS,
        "iss": str(app_id),
    }
    try:
        return jwt.encode(payload, key, algorithm="RS256")
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise SigningError(f"signing JWT: {e}") from e


def jwt_from_file(app_id: int, private_key_path) -> str:
    return generate_jwt(app_id, load_private_key(private_key_path))
