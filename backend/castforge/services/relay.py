"""Proxy relay: one credentialed HTTP call against a named vendor.

The relay is the only place that attaches vendor secrets to outbound
requests. It is stateless per call:

  envelope {endpoint, method, payload, apiKey} → vendor HTTP call → RelayResponse

Vendor-side failures (4xx/5xx, HTML error pages, network errors) never raise;
they come back as a RelayResponse carrying a vendor-shaped error body so the
caller decides whether to retry.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from castforge.config import Settings
from castforge.errors import TransportError, ValidationError
from castforge.schemas.jobs import Vendor
from castforge.schemas.relay import RelayRequest
from castforge.services.credentials import CredentialResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayTarget:
    """How to reach and authenticate against one vendor."""

    vendor: Vendor
    label: str
    base_url_setting: str
    auth_headers: Callable[[str], dict[str, str]]
    error_body: Callable[[str], dict[str, Any]]


@dataclass
class RelayResponse:
    """Result of one relayed call.

    ``status_code`` is the vendor's status when >= 400, else 200.
    ``transport_error`` is set when the body was synthesized because the
    vendor could not be reached or did not answer with JSON.
    """

    status_code: int
    body: Any
    transport_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_transport(self) -> None:
        if self.transport_error:
            raise TransportError(self.transport_error, status_code=self.status_code)


def get_relay_target(vendor: Vendor) -> RelayTarget:
    from castforge.services.vendors import RELAY_TARGETS

    return RELAY_TARGETS[vendor]


class ProxyRelay:
    """Forward envelopes to vendors with the right auth header attached."""

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialResolver | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings
        self.credentials = credentials or CredentialResolver(settings)
        self._http_client = http_client
        self._own_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._settings.RELAY_TIMEOUT)
            self._own_client = True
        return self._http_client

    async def aclose(self) -> None:
        if self._own_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def call(
        self,
        vendor: Vendor,
        endpoint: str,
        method: str = "GET",
        payload: Any | None = None,
        api_key: str | None = None,
    ) -> RelayResponse:
        """Shorthand for in-process callers (vendor clients)."""
        return await self.forward(
            vendor,
            RelayRequest(endpoint=endpoint, method=method, payload=payload, api_key=api_key),
        )

    async def forward(self, vendor: Vendor, request: RelayRequest) -> RelayResponse:
        """Execute one relayed call.

        Raises:
            ConfigurationError: no key supplied and none configured.
            ValidationError: endpoint is not a vendor-relative path.
        """
        target = get_relay_target(vendor)
        api_key = self.credentials.resolve(vendor, request.api_key)

        if not request.endpoint.startswith("/"):
            raise ValidationError(f"endpoint must be a vendor-relative path: {request.endpoint!r}")

        # A custom base URL is only honoured with the caller's own key so the
        # server-side key is never sent to an arbitrary host.
        if request.base_url and request.api_key:
            base_url = request.base_url
        else:
            base_url = getattr(self._settings, target.base_url_setting)
        url = f"{base_url.rstrip('/')}{request.endpoint}"

        headers = {**target.auth_headers(api_key), "Content-Type": "application/json"}
        kwargs: dict[str, Any] = {"headers": headers}
        if request.method != "GET" and request.payload is not None:
            kwargs["json"] = request.payload

        logger.info("%s relay: %s %s", target.label, request.method, request.endpoint)

        try:
            response = await self._get_client().request(request.method, url, **kwargs)
        except httpx.HTTPError as e:
            msg = f"{target.label} request failed: {type(e).__name__}: {e}"
            logger.error("%s relay transport error: %s", target.label, msg)
            return RelayResponse(502, target.error_body(msg), transport_error=msg)

        text = response.text
        if not text.strip() and response.status_code < 400:
            data: Any = {}
        else:
            try:
                data = json.loads(text)
            except ValueError:
                snippet = text[: self._settings.RELAY_SNIPPET_CHARS]
                logger.error(
                    "%s returned non-JSON (status %d): %s",
                    target.label, response.status_code, snippet,
                )
                msg = f"{target.label} returned non-JSON response (HTTP {response.status_code})"
                body = target.error_body(msg)
                body["snippet"] = snippet
                return RelayResponse(502, body, transport_error=msg)

        status = response.status_code if response.status_code >= 400 else 200
        logger.info("%s relay response: status=%d", target.label, response.status_code)
        return RelayResponse(status, data)
