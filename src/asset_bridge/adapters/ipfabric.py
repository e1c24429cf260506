"""IP Fabric network discovery source adapter."""

from typing import Any

from asset_bridge.adapters.base import AssetPage, HTTPSourceAdapter
from asset_bridge.client.exceptions import AssetNotFoundError, TransportError
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

LOGIN_ENDPOINT = "api/v1/auth/login"
DEVICES_ENDPOINT = "api/v1/tables/inventory/devices"
TOKEN_HEADER = "X-API-Token"
LATEST_SNAPSHOT = "$last"

DEVICE_COLUMNS = [
    "hostname",
    "sn",
    "vendor",
    "platform",
    "model",
    "version",
    "siteName",
    "loginIp",
    "loginType",
]


class IPFabricAdapter(HTTPSourceAdapter):
    """Reads the device inventory table of the latest IP Fabric snapshot."""

    name = "IP Fabric"

    async def authenticate(self) -> bool:
        """Use the configured API token, or log in with username and password."""
        credentials = self.credentials
        if not self.base_url or not (
            credentials.api_token or (credentials.username and credentials.password)
        ):
            logger.error(
                "source_configuration_incomplete",
                source=self.name,
                required="EndpointUrl and ApiToken or Username/Password",
            )
            return False

        client = self._get_client()
        token = credentials.api_token

        if token:
            logger.info("ipfabric_using_api_token")
        else:
            try:
                data = await client.post(
                    LOGIN_ENDPOINT,
                    json_data={
                        "username": credentials.username,
                        "password": credentials.password,
                    },
                )
            except TransportError as e:
                logger.error("source_authentication_failed", source=self.name, error=str(e))
                return False

            token = data.get("token") if isinstance(data, dict) else None
            if not token:
                logger.error("source_authentication_failed", source=self.name, error="no token")
                return False

        client.set_header(TOKEN_HEADER, str(token))
        self._authenticated = True
        logger.info("source_authenticated", source=self.name)
        return True

    async def _query_devices(self, body: dict[str, Any]) -> dict[str, Any]:
        data = await self._get_client().post(
            DEVICES_ENDPOINT,
            json_data={"columns": DEVICE_COLUMNS, "snapshot": LATEST_SNAPSHOT, **body},
        )
        return data if isinstance(data, dict) else {}

    async def get_assets(self, page_size: int, page_number: int) -> AssetPage:
        self._ensure_authenticated()

        data = await self._query_devices(
            {"pagination": {"limit": page_size, "start": page_number * page_size}}
        )
        records = data.get("data") or []
        total = int((data.get("_meta") or {}).get("count") or 0)

        logger.info(
            "source_page_fetched",
            source=self.name,
            page=page_number + 1,
            records=len(records),
            total=total,
        )
        return AssetPage(
            records=records,
            has_more=(page_number + 1) * page_size < total,
            total_count=total,
        )

    async def get_asset_by_id(self, asset_id: str) -> dict[str, Any]:
        """Look a device up by serial number or hostname."""
        self._ensure_authenticated()

        data = await self._query_devices(
            {
                "filters": {"or": [{"sn": ["eq", asset_id]}, {"hostname": ["eq", asset_id]}]},
                "pagination": {"limit": 1, "start": 0},
            }
        )
        records = data.get("data") or []
        if not records:
            raise AssetNotFoundError(asset_id, self.name)
        return records[0]
