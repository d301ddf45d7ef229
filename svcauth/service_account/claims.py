"""JWT claim sets minted by a service account."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence


@dataclass(frozen=True)
class JwtClaims:
    """
    One claim set per minted token.

    ``to_dict`` emits keys in a fixed order (iss, sub, aud, scope, exp, iat,
    target_audience) so the encoded token is reproducible. ``sub`` is always
    written, even when it equals ``iss``.
    """

    issuer: str
    subject: str
    issued_at: int
    expires_at: int
    audience: str | None = None
    scope: str | None = None
    target_audience: str | None = None

    @classmethod
    def self_signed(
        cls,
        issuer: str,
        issued_at: int,
        lifetime_seconds: int,
        *,
        audience: str | None = None,
        scopes: Sequence[str] | None = None,
        subject: str | None = None,
    ) -> JwtClaims:
        """Claims for a locally minted access token: exactly one of ``aud`` or ``scope``."""
        if (audience is None) == (scopes is None):
            raise ValueError("Self-signed claims need exactly one of audience or scopes")
        return cls(
            issuer=issuer,
            subject=subject or issuer,
            issued_at=issued_at,
            expires_at=issued_at + lifetime_seconds,
            audience=audience,
            scope=" ".join(scopes) if scopes is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"iss": self.issuer, "sub": self.subject}
        if self.audience is not None:
            out["aud"] = self.audience
        if self.scope is not None:
            out["scope"] = self.scope
        out["exp"] = self.expires_at
        out["iat"] = self.issued_at
        if self.target_audience is not None:
            out["target_audience"] = self.target_audience
        return out
