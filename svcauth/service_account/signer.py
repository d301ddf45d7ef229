"""
RSA signing key for service account tokens.

Background for newcomers:
    A service account proves who it is by signing a JWT with its private key.
    The key arrives either as a PEM ``PRIVATE KEY`` block (the ``private_key``
    field of a JSON key file) or bundled with its X.509 certificate in a
    PKCS#12 (``.p12`` / ``.pfx``) file. Both are parsed with ``cryptography``;
    the actual RS256 signature is computed with PyJWT's ``RSAAlgorithm`` so we
    produce exactly what any JWT verifier expects.

    PKCS#1 v1.5 signatures are deterministic: the same key and the same bytes
    always give the same signature. Tests rely on that to compare tokens
    against fixed reference strings.
"""

from __future__ import annotations

import logging

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from jwt.algorithms import RSAAlgorithm

from .errors import KeyFormatError

logger = logging.getLogger(__name__)


class RsaSigner:
    """Signs byte strings with RS256 (RSASSA-PKCS1-v1_5 over SHA-256)."""

    algorithm = "RS256"

    def __init__(self, private_key: rsa.RSAPrivateKey) -> None:
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise KeyFormatError("Service account key must be an RSA private key")
        self._key = private_key
        self._algorithm = RSAAlgorithm(RSAAlgorithm.SHA256)

    @property
    def key_size(self) -> int:
        return self._key.key_size

    def sign(self, data: bytes) -> bytes:
        return self._algorithm.sign(data, self._key)

    def __repr__(self) -> str:
        return f"RsaSigner(algorithm={self.algorithm!r}, key_size={self.key_size})"


def load_private_key(pem: str | bytes) -> RsaSigner:
    """
    Parse an unencrypted PEM private key (PKCS#8 ``PRIVATE KEY`` or PKCS#1
    ``RSA PRIVATE KEY``) and return a signer for it.

    Raises KeyFormatError if the data is not a usable RSA private key.
    """
    data = pem.encode("utf-8") if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_private_key(data.strip(), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        logger.debug("Private key parse failed: %s", type(e).__name__)
        raise KeyFormatError("Invalid service account private key") from e
    return RsaSigner(key)


def load_certificate(data: bytes, password: str | bytes | None = None) -> RsaSigner:
    """
    Load the private key embedded in a PKCS#12 bundle.

    The bundle must carry a private key. When it also carries the certificate,
    the certificate's public key must match the private key.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    try:
        key, cert, _additional = pkcs12.load_key_and_certificates(data, password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        logger.debug("PKCS#12 parse failed: %s", type(e).__name__)
        raise KeyFormatError("Invalid service account certificate") from e

    if key is None:
        raise KeyFormatError("Certificate bundle has no private key")
    if cert is not None and cert.public_key().public_numbers() != key.public_key().public_numbers():
        raise KeyFormatError("Certificate does not match its private key")
    return RsaSigner(key)
