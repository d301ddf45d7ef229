"""``requests`` integration: attach service account bearer tokens to outgoing requests."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import requests
from requests.auth import AuthBase

from .credential import ServiceAccountCredential

logger = logging.getLogger(__name__)


def audience_for_url(url: str) -> str:
    """Self-signed JWT audience for a request URL: ``scheme://host/``."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}/"


class ServiceAccountAuth(AuthBase):
    """
    Usage::

        session.auth = ServiceAccountAuth(credential)

    A 401 response is reported to the credential so a server-issued token can
    be replaced before the caller retries. The request itself is not re-sent.
    """

    def __init__(self, credential: ServiceAccountCredential) -> None:
        self.credential = credential

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        token = self.credential.get_access_token(audience_for_url(r.url or ""))
        r.headers["Authorization"] = f"Bearer {token}"
        r.register_hook("response", self._make_response_hook(token))
        return r

    def _make_response_hook(self, token: str):
        def _on_response(resp: requests.Response, *args, **kwargs) -> requests.Response:
            if resp.status_code == 401:
                handled = self.credential.handle_unsuccessful_response(401, request_token=token)
                logger.info("Request unauthorized url=%s handled=%s", resp.url, handled)
            return resp

        return _on_response
