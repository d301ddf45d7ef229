"""Compact JWS encoding: ``b64url(header).b64url(claims).b64url(signature)``."""

from __future__ import annotations

import json
from typing import Any, Mapping, Protocol

from jwt.utils import base64url_decode, base64url_encode

JWT_HEADER: Mapping[str, str] = {"alg": "RS256", "typ": "JWT"}


class Signer(Protocol):
    def sign(self, data: bytes) -> bytes: ...


def _segment(obj: Mapping[str, Any]) -> bytes:
    # Key order is kept as given: it is part of the signed bytes. Non-ASCII is sent as raw UTF-8.
    return base64url_encode(json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


def encode(header: Mapping[str, Any], claims: Mapping[str, Any], signer: Signer) -> str:
    """Build a compact token. Base64url segments carry no padding."""
    signing_input = _segment(header) + b"." + _segment(claims)
    signature = base64url_encode(signer.sign(signing_input))
    return (signing_input + b"." + signature).decode("ascii")


def decode_payload(token: str) -> dict[str, Any]:
    """Return the claims of a compact token without verifying its signature."""
    try:
        _header, payload, _signature = token.split(".")
    except ValueError:
        raise ValueError("Not a compact JWT") from None
    return json.loads(base64url_decode(payload))
