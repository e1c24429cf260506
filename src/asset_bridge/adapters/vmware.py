"""VMware vCenter source adapter (vSphere Automation REST API)."""

from typing import Any

import httpx

from asset_bridge.adapters.base import AssetPage, HTTPSourceAdapter
from asset_bridge.client.exceptions import AssetNotFoundError, NotFoundError, TransportError
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

SESSION_ENDPOINT = "rest/com/vmware/cis/session"
VM_LIST_ENDPOINT = "rest/vcenter/vm"
SESSION_HEADER = "vmware-api-session-id"


class VMwareAdapter(HTTPSourceAdapter):
    """Reads virtual machines from vCenter.

    The list endpoint returns every VM at once, so pages are sliced locally
    and each VM on the page is enriched with its detail record.
    """

    name = "VMware vCenter"

    async def authenticate(self) -> bool:
        """Open a vCenter session with HTTP basic authentication."""
        username, password = self.credentials.username, self.credentials.password
        if not self.base_url or not username or not password:
            logger.error(
                "source_configuration_incomplete",
                source=self.name,
                required="EndpointUrl, Username, Password",
            )
            return False

        client = self._get_client()
        try:
            data = await client.post(SESSION_ENDPOINT, auth=httpx.BasicAuth(username, password))
        except TransportError as e:
            logger.error("source_authentication_failed", source=self.name, error=str(e))
            return False

        session_id = data.get("value") if isinstance(data, dict) else None
        if not session_id:
            logger.error("source_authentication_failed", source=self.name, error="no session id")
            return False

        client.set_header(SESSION_HEADER, str(session_id))
        self._authenticated = True
        logger.info("source_authenticated", source=self.name)
        return True

    async def get_assets(self, page_size: int, page_number: int) -> AssetPage:
        self._ensure_authenticated()
        client = self._get_client()

        data = await client.get(VM_LIST_ENDPOINT)
        all_vms = data.get("value", []) if isinstance(data, dict) else []
        total = len(all_vms)

        start = page_number * page_size
        end = start + page_size

        records: list[dict[str, Any]] = []
        for vm in all_vms[start:end]:
            vm_id = vm.get("vm")
            try:
                detail = await client.get(f"{VM_LIST_ENDPOINT}/{vm_id}")
            except TransportError as e:
                logger.warning("vm_detail_failed", vm_id=vm_id, error=str(e))
                continue

            detail_value = detail.get("value", detail) if isinstance(detail, dict) else {}
            records.append(
                {
                    "id": vm_id,
                    "name": vm.get("name"),
                    "powerState": vm.get("power_state"),
                    **detail_value,
                }
            )

        logger.info(
            "source_page_fetched",
            source=self.name,
            page=page_number + 1,
            records=len(records),
            total=total,
        )
        return AssetPage(records=records, has_more=end < total, total_count=total)

    async def get_asset_by_id(self, asset_id: str) -> dict[str, Any]:
        self._ensure_authenticated()
        try:
            data = await self._get_client().get(f"{VM_LIST_ENDPOINT}/{asset_id}")
        except NotFoundError as e:
            raise AssetNotFoundError(asset_id, self.name) from e

        detail = data.get("value", data) if isinstance(data, dict) else {}
        return {"id": asset_id, **detail}
