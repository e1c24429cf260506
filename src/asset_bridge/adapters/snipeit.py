"""Snipe-IT asset management source adapter."""

from typing import Any

from asset_bridge.adapters.base import AssetPage, HTTPSourceAdapter
from asset_bridge.client.exceptions import AssetNotFoundError, NotFoundError, TransportError
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

PROFILE_ENDPOINT = "api/v1/users/me"
HARDWARE_ENDPOINT = "api/v1/hardware"


def _is_error_body(data: Any) -> bool:
    """Snipe-IT reports some failures as HTTP 200 with ``status: error``."""
    return not isinstance(data, dict) or data.get("status") == "error"


class SnipeITAdapter(HTTPSourceAdapter):
    """Reads hardware assets from Snipe-IT with offset/limit paging."""

    name = "Snipe-IT"

    def _client_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credentials.api_token}"}

    async def authenticate(self) -> bool:
        """Verify the API token against the current-user endpoint."""
        if not self.base_url or not self.credentials.api_token:
            logger.error(
                "source_configuration_incomplete",
                source=self.name,
                required="EndpointUrl, ApiToken",
            )
            return False

        try:
            await self._get_client().get(PROFILE_ENDPOINT)
        except TransportError as e:
            logger.error("source_authentication_failed", source=self.name, error=str(e))
            return False

        self._authenticated = True
        logger.info("source_authenticated", source=self.name)
        return True

    async def get_assets(self, page_size: int, page_number: int) -> AssetPage:
        self._ensure_authenticated()

        offset = page_number * page_size
        data = await self._get_client().get(
            HARDWARE_ENDPOINT, params={"limit": page_size, "offset": offset}
        )
        if not isinstance(data, dict):
            data = {}
        records = data.get("rows") or []
        total = int(data.get("total") or 0)

        logger.info(
            "source_page_fetched",
            source=self.name,
            page=page_number + 1,
            records=len(records),
            total=total,
        )
        return AssetPage(records=records, has_more=offset + page_size < total, total_count=total)

    async def get_asset_by_id(self, asset_id: str) -> dict[str, Any]:
        """Look an asset up by numeric id, then by asset tag."""
        self._ensure_authenticated()
        client = self._get_client()

        if str(asset_id).isdigit():
            try:
                data = await client.get(f"{HARDWARE_ENDPOINT}/{asset_id}")
            except NotFoundError:
                data = None
            if data is not None and not _is_error_body(data):
                return data
            logger.debug("snipeit_id_lookup_missed", asset_id=asset_id)

        try:
            data = await client.get(f"{HARDWARE_ENDPOINT}/bytag/{asset_id}")
        except NotFoundError as e:
            raise AssetNotFoundError(asset_id, self.name) from e

        if _is_error_body(data):
            raise AssetNotFoundError(asset_id, self.name)
        return data
