"""Source adapter contract and helpers shared by every adapter.

Adapters normalize heterogeneous paginated source APIs behind one
interface. Each adapter is an independent class implementing
:class:`SourceAdapter`; the HTTP adapters share :class:`HTTPSourceAdapter` for
connection handling. The helpers in this module read the parts of an
:class:`~asset_bridge.models.IntegrationConfig` every adapter needs.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from asset_bridge.client.base_client import BaseAPIClient
from asset_bridge.client.exceptions import NotAuthenticatedError
from asset_bridge.models import IntegrationConfig
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100


@dataclass
class AssetPage:
    """One page of source records."""

    records: list[dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    total_count: int | None = None


@dataclass(frozen=True)
class Credentials:
    """Resolved source-system credentials."""

    username: str | None = None
    password: str | None = None
    api_token: str | None = None

    def __repr__(self) -> str:
        return (
            f"Credentials(username={self.username!r}, "
            f"password={'***' if self.password else None}, "
            f"api_token={'***' if self.api_token else None})"
        )


@runtime_checkable
class SourceAdapter(Protocol):
    """Capabilities every source adapter provides.

    ``authenticate`` must succeed before any fetch; fetching earlier raises
    :class:`NotAuthenticatedError`.
    """

    name: str

    @property
    def page_size(self) -> int: ...

    async def authenticate(self) -> bool:
        """Authenticate with the source system.

        Returns:
            True on success. Failure returns False and has no other effect.
        """
        ...

    async def get_assets(self, page_size: int, page_number: int) -> AssetPage:
        """Fetch one 0-based page of records."""
        ...

    async def get_asset_by_id(self, asset_id: str) -> dict[str, Any]:
        """Fetch one record.

        Raises:
            AssetNotFoundError: If the source has no matching record
        """
        ...

    def describe(self) -> dict[str, Any]:
        """Non-secret summary for logging."""
        ...

    async def close(self) -> None: ...


def resolve_credentials(config: IntegrationConfig) -> Credentials:
    """Resolve credentials from an integration config.

    The structured ``Username``/``Password``/``ApiToken`` fields are read
    first. The deprecated ``Credentials`` JSON blob, when present, overrides
    them and a deprecation warning is logged on every use.
    """
    values: dict[str, str | None] = {
        "username": config.username,
        "password": config.password,
        "api_token": config.api_token,
    }

    if config.credentials:
        try:
            legacy = (
                config.credentials
                if isinstance(config.credentials, dict)
                else json.loads(config.credentials)
            )
            if not isinstance(legacy, dict):
                raise ValueError("Credentials JSON must be an object")
        except ValueError as e:
            logger.error("credentials_json_invalid", error=str(e))
        else:
            for key in ("username", "password"):
                if legacy.get(key):
                    values[key] = str(legacy[key])
            token = legacy.get("apiToken") or legacy.get("token") or legacy.get("api_token")
            if token:
                values["api_token"] = str(token)
            logger.warning(
                "deprecated_credentials_field",
                message=(
                    "Using deprecated Credentials JSON field. "
                    "Migrate to the Username, Password and ApiToken fields."
                ),
            )

    return Credentials(**values)


def endpoint_url(config: IntegrationConfig) -> str:
    """Source endpoint: ``EndpointUrl``, else the legacy ``BaseUrl``."""
    return (config.endpoint_url or config.base_url or "").rstrip("/")


def configured_page_size(config: IntegrationConfig, default: int = DEFAULT_PAGE_SIZE) -> int:
    return config.page_size or default


def ensure_authenticated(adapter_name: str, authenticated: bool) -> None:
    """Raise if a fetch is attempted before a successful authenticate()."""
    if not authenticated:
        raise NotAuthenticatedError(
            f"{adapter_name} adapter used before successful authentication"
        )


class HTTPSourceAdapter:
    """Connection settings and the lazily built client shared by HTTP adapters.

    Subclasses implement ``authenticate``, ``get_assets`` and
    ``get_asset_by_id``, and mark a successful login by setting
    ``_authenticated``.
    """

    name = "HTTP source"

    def __init__(
        self,
        config: IntegrationConfig,
        verify_ssl: bool = True,
        timeout: float = 60,
        transport: httpx.AsyncBaseTransport | None = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.config = config
        self.base_url = endpoint_url(config)
        self.credentials = resolve_credentials(config)
        self._page_size = configured_page_size(config, default_page_size)
        self._verify_ssl = verify_ssl
        self._timeout = timeout
        self._transport = transport
        self._client: BaseAPIClient | None = None
        self._authenticated = False

    @property
    def page_size(self) -> int:
        return self._page_size

    def _client_headers(self) -> dict[str, str] | None:
        """Headers sent with every request to the source."""
        return None

    def _get_client(self) -> BaseAPIClient:
        if self._client is None:
            self._client = BaseAPIClient(
                base_url=self.base_url,
                headers=self._client_headers(),
                verify_ssl=self._verify_ssl,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _ensure_authenticated(self) -> None:
        ensure_authenticated(self.name, self._authenticated)

    def describe(self) -> dict[str, Any]:
        return {"source": self.name, "endpoint": self.base_url, "page_size": self.page_size}

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
