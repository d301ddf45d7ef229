"""
Immutable service account configuration (the credential's identity).

Background for newcomers:
    A service account is identified by an id (usually an e-mail address such
    as ``robot@project.iam.gserviceaccount.com``) and owns an RSA private key.
    The id goes into the ``iss`` and ``sub`` claims of every JWT it signs.

    Optional settings change *which* token is produced:

    * ``scopes``: OAuth scopes. Supplying scopes (even an empty list) makes
      ``has_explicit_scopes`` true. Unless ``use_jwt_access_with_scopes`` is
      also set, explicit scopes force a server-side OAuth2 access token.
      Self-signed scoped JWTs need at least one scope.
    * ``user``: a user to impersonate (domain-wide delegation). Always
      requires a server-side token.

    Configs are frozen. ``replace()`` returns a new config that shares the
    signer, clock and HTTP session with the original. Configs built without
    a session share one process-wide ``requests.Session``.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

import pydantic
import requests
from pydantic import BaseModel, ConfigDict

from svcauth.settings import get_settings

from .clock import Clock, SystemClock
from .errors import ConfigurationError
from .retry import DEFAULT_BACKOFF_POLICY, BackOffPolicy
from .signer import RsaSigner, load_certificate, load_private_key

logger = logging.getLogger(__name__)


class ServiceAccountInfo(BaseModel):
    """The fields of a JSON service account key file that we use."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    client_email: str
    private_key: str
    private_key_id: str | None = None
    project_id: str | None = None
    token_uri: str | None = None


def _normalize_scopes(scopes: Iterable[str] | str | None) -> tuple[str, ...] | None:
    if scopes is None:
        return None
    if isinstance(scopes, str):
        return (scopes,)
    return tuple(scopes)


@lru_cache
def default_session() -> requests.Session:
    """Session shared by every config that was not given its own."""
    return requests.Session()


@dataclass(frozen=True)
class ServiceAccountConfig:
    service_account_id: str
    signer: RsaSigner
    token_server_url: str = field(default_factory=lambda: get_settings().token_server_url)
    oidc_token_url: str = field(default_factory=lambda: get_settings().oidc_token_url)
    user: str | None = None
    project_id: str | None = None
    scopes: tuple[str, ...] | None = None
    use_jwt_access_with_scopes: bool = False
    clock: Clock = field(default_factory=SystemClock)
    session: Any = field(default_factory=default_session, repr=False)
    backoff_policy: BackOffPolicy = DEFAULT_BACKOFF_POLICY
    http_timeout_seconds: float = field(default_factory=lambda: get_settings().http_timeout_seconds)

    def __post_init__(self) -> None:
        if not self.service_account_id or not self.service_account_id.strip():
            raise ConfigurationError("service_account_id must be set")
        if self.signer is None:
            raise ConfigurationError("A signing key is required")
        if not self.token_server_url:
            raise ConfigurationError("token_server_url must be set")
        object.__setattr__(self, "scopes", _normalize_scopes(self.scopes))
        if self.use_jwt_access_with_scopes and self.scopes == ():
            raise ConfigurationError("use_jwt_access_with_scopes needs at least one scope")

    @property
    def has_explicit_scopes(self) -> bool:
        """True when scopes were supplied at all, even an empty set."""
        return self.scopes is not None

    def replace(self, **changes: Any) -> ServiceAccountConfig:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_private_key(cls, service_account_id: str, private_key: str | bytes, **options: Any) -> ServiceAccountConfig:
        return cls(service_account_id=service_account_id, signer=load_private_key(private_key), **options)

    @classmethod
    def from_certificate(
        cls,
        service_account_id: str,
        pkcs12_data: bytes,
        password: str | bytes | None = None,
        **options: Any,
    ) -> ServiceAccountConfig:
        return cls(service_account_id=service_account_id, signer=load_certificate(pkcs12_data, password), **options)

    @classmethod
    def from_service_account_info(cls, info: Mapping[str, Any], **options: Any) -> ServiceAccountConfig:
        """Build a config from the parsed contents of a JSON key file."""
        try:
            parsed = ServiceAccountInfo.model_validate(info)
        except pydantic.ValidationError as e:
            raise ConfigurationError("Invalid service account key file") from e
        return cls._from_info(parsed, options)

    @classmethod
    def from_service_account_file(cls, path: str | Path, **options: Any) -> ServiceAccountConfig:
        raw_text = Path(path).read_text(encoding="utf-8")
        try:
            parsed = ServiceAccountInfo.model_validate_json(raw_text)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid service account key file: {path}") from e
        return cls._from_info(parsed, options)

    @classmethod
    def _from_info(cls, info: ServiceAccountInfo, options: Mapping[str, Any]) -> ServiceAccountConfig:
        if info.type is not None and info.type != "service_account":
            raise ConfigurationError(f"Unsupported credential type: {info.type!r}")
        kwargs: dict[str, Any] = {"project_id": info.project_id}
        if info.token_uri:
            kwargs["token_server_url"] = info.token_uri
        kwargs.update(options)
        logger.debug("Loaded service account key file project_id=%s", info.project_id)
        return cls.from_private_key(info.client_email, info.private_key, **kwargs)
