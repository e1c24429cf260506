"""Synthetic source adapter.

Generates records shaped like the real adapters' output without touching
the network, and sleeps on every fetch to simulate source latency. Useful
for exercising the import pipeline end to end.

Configured through the integration's ``EndpointUrl``::

    mock://vmware?count=50
    synthetic://snipeit?count=25&latency_ms=0&seed=7
"""

import asyncio
import random
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import parse_qs, urlsplit

from asset_bridge.adapters.base import AssetPage, ensure_authenticated
from asset_bridge.client.exceptions import AssetNotFoundError, ConfigurationError
from asset_bridge.models import IntegrationConfig
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMES = ("mock", "synthetic")
DEFAULT_FLAVOR = "vmware"
DEFAULT_COUNT = 10
DEFAULT_PAGE_SIZE = 50
DEFAULT_LATENCY_MS = 100

LOOKUP_FIELDS = ("id", "asset_tag", "hostname", "sn", "name")


class SyntheticDataGenerator:
    """Builds fixed-shape records with randomized content."""

    def __init__(self, seed: int | None = None):
        self.random = random.Random(seed)

    def _uuid(self) -> str:
        return str(uuid.UUID(int=self.random.getrandbits(128), version=4))

    def _ip(self) -> str:
        return ".".join(str(self.random.randint(1, 254)) for _ in range(4))

    def _mac(self) -> str:
        return ":".join(f"{self.random.randint(0, 255):02x}" for _ in range(6))

    def _alnum(self, length: int) -> str:
        alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
        return "".join(self.random.choice(alphabet) for _ in range(length))

    def _recent(self, days: int) -> str:
        moment = datetime.now(UTC) - timedelta(seconds=self.random.randint(0, days * 86400))
        return moment.replace(microsecond=0).isoformat()

    def _domain(self) -> str:
        word = self.random.choice(["alpha", "bravo", "delta", "orion", "vega", "atlas"])
        return f"{word}{self.random.randint(1, 99)}.example.com"

    def vmware_vms(self, count: int) -> list[dict[str, Any]]:
        vms = []
        for i in range(count):
            product = self.random.choice(["Billing", "Payroll", "Web", "Cache", "Search", "Mail"])
            name = f"{product}-VM-{i + 1}"
            vms.append(
                {
                    "id": f"vm-{self._uuid()}",
                    "name": name,
                    "hardware": {
                        "numCPU": self.random.choice([2, 4, 8, 16]),
                        "memoryMB": self.random.choice([4096, 8192, 16384, 32768]),
                        "numCoresPerSocket": 2,
                        "version": "vmx-17",
                    },
                    "guest": {
                        "guestFullName": self.random.choice(
                            [
                                "Microsoft Windows Server 2019 (64-bit)",
                                "Microsoft Windows Server 2016 (64-bit)",
                                "Red Hat Enterprise Linux 8 (64-bit)",
                                "Ubuntu Linux (64-bit)",
                                "CentOS 7 (64-bit)",
                            ]
                        ),
                        "guestId": self.random.choice(
                            ["windows9Server64Guest", "rhel8_64Guest", "ubuntu64Guest"]
                        ),
                        "hostName": self._domain(),
                        "ipAddress": self._ip(),
                    },
                    "runtime": {
                        "powerState": self.random.choice(
                            ["poweredOn", "poweredOn", "poweredOn", "poweredOff"]
                        ),
                        "bootTime": self._recent(30),
                        "maxCpuUsage": self.random.randint(4000, 16000),
                        "maxMemoryUsage": self.random.randint(4096, 32768),
                    },
                    "config": {
                        "uuid": self._uuid(),
                        "instanceUuid": self._uuid(),
                        "annotation": f"Synthetic VM {i + 1}",
                        "template": False,
                    },
                    "summary": {
                        "config": {
                            "name": name,
                            "vmPathName": f"[datastore1] {name}/{name}.vmx",
                            "memorySizeMB": self.random.choice([4096, 8192, 16384]),
                            "numCpu": self.random.choice([2, 4, 8]),
                        },
                        "runtime": {
                            "powerState": "poweredOn",
                            "host": f"host-{self.random.randint(1, 10)}",
                        },
                        "guest": {"ipAddress": self._ip(), "hostName": self._domain()},
                    },
                }
            )
        return vms

    def ipfabric_devices(self, count: int) -> list[dict[str, Any]]:
        devices = []
        for i in range(count):
            device_type = self.random.choice(["switch", "router", "firewall", "load-balancer"])
            tier = self.random.choice(["core", "dist", "access"])
            devices.append(
                {
                    "id": self._uuid(),
                    "sn": f"SN{self._alnum(10)}",
                    "hostname": f"{device_type}-{tier}-{i + 1}",
                    "loginIp": self._ip(),
                    "loginType": self.random.choice(["ssh", "telnet"]),
                    "vendor": self.random.choice(["Cisco", "Juniper", "Arista", "HPE", "Dell"]),
                    "platform": self.random.choice(
                        ["Catalyst 9300", "Nexus 9000", "ASR 1000", "MX Series"]
                    ),
                    "family": self.random.choice(["catalyst", "nexus", "asr", "mx"]),
                    "model": f"{self._alnum(4)}-{self._alnum(4)}",
                    "version": f"{self.random.randint(12, 17)}.{self.random.randint(0, 9)}",
                    "siteName": self.random.choice(["HQ", "Branch-1", "Branch-2", "DC-East"]),
                    "memoryUtilization": self.random.randint(20, 80),
                    "cpuUtilization": self.random.randint(10, 90),
                    "uptime": self.random.randint(86400, 31536000),
                    "lastChange": self._recent(30),
                    "lastCheck": self._recent(1),
                    "stpDomain": self.random.choice([None, "domain-1", "domain-2"]),
                    "devType": device_type,
                    "snHw": f"HW{self._alnum(10)}",
                }
            )
        return devices

    def snipeit_assets(self, count: int) -> list[dict[str, Any]]:
        assets = []
        for i in range(count):
            asset_type = self.random.choice(["laptop", "desktop", "server", "tablet", "phone"])
            assigned = self.random.random() < 0.5
            user_number = self.random.randint(1, 500)
            assets.append(
                {
                    "id": 1000 + i,
                    "name": f"ACME-{asset_type.upper()}-{i + 1}",
                    "asset_tag": f"AT{self._alnum(8)}",
                    "serial": f"SN{self._alnum(12)}",
                    "model": {
                        "id": self.random.randint(1, 100),
                        "name": self.random.choice(
                            [
                                "Dell Latitude 7420",
                                "HP EliteBook 840",
                                "Lenovo ThinkPad X1",
                                'MacBook Pro 16"',
                                "Dell PowerEdge R640",
                            ]
                        ),
                    },
                    "category": {
                        "id": self.random.randint(1, 20),
                        "name": self.random.choice(["Laptop", "Desktop", "Server", "Mobile Device"]),
                    },
                    "manufacturer": {
                        "id": self.random.randint(1, 50),
                        "name": self.random.choice(["Dell", "HP", "Lenovo", "Apple", "Cisco"]),
                    },
                    "status_label": {
                        "id": self.random.randint(1, 10),
                        "name": self.random.choice(
                            ["Ready to Deploy", "Deployed", "In Storage", "Broken"]
                        ),
                    },
                    "assigned_to": (
                        {
                            "id": user_number,
                            "username": f"user{user_number}",
                            "name": f"User {user_number}",
                            "email": f"user{user_number}@example.com",
                        }
                        if assigned
                        else None
                    ),
                    "location": {
                        "id": self.random.randint(1, 30),
                        "name": self.random.choice(
                            ["HQ - Floor 1", "HQ - Floor 2", "Remote", "Data Center", "Warehouse"]
                        ),
                    },
                    "purchase_date": {"date": self._recent(3 * 365)[:10]},
                    "purchase_cost": round(self.random.uniform(500, 5000), 2),
                    "warranty_months": self.random.choice([12, 24, 36, 60]),
                    "notes": f"Synthetic {asset_type} & accessories <{i + 1}>",
                    "custom_fields": {
                        "IP Address": {"value": self._ip()},
                        "MAC Address": {"value": self._mac()},
                        "OS Version": {
                            "value": self.random.choice(
                                ["Windows 11", "Windows 10", "macOS 13", "Ubuntu 22.04"]
                            )
                        },
                    },
                    "created_at": {"datetime": self._recent(2 * 365)},
                    "updated_at": {"datetime": self._recent(30)},
                }
            )
        return assets

    def generate(self, flavor: str, count: int) -> list[dict[str, Any]]:
        generators = {
            "vmware": self.vmware_vms,
            "ipfabric": self.ipfabric_devices,
            "snipeit": self.snipeit_assets,
        }
        generator = generators.get(flavor.lower())
        if generator is None:
            raise ConfigurationError(
                f"Unknown synthetic flavor '{flavor}'. Available: {', '.join(generators)}"
            )
        return generator(count)


def _int_param(params: dict[str, list[str]], name: str, default: int | None) -> int | None:
    values = params.get(name)
    if not values:
        return default
    try:
        return int(values[0])
    except ValueError as e:
        raise ConfigurationError(f"Synthetic endpoint parameter '{name}' must be an integer") from e


class SyntheticAdapter:
    """Serves generated records from memory."""

    name = "Synthetic"

    def __init__(self, config: IntegrationConfig):
        self.config = config
        url = config.endpoint_url or f"mock://{DEFAULT_FLAVOR}?count={DEFAULT_COUNT}"
        parts = urlsplit(url)
        if parts.scheme not in SCHEMES:
            raise ConfigurationError(
                f"Synthetic endpoint must use one of {', '.join(SCHEMES)}:// (got '{url}')"
            )

        params = parse_qs(parts.query)
        self.flavor = (parts.netloc or parts.path.strip("/") or DEFAULT_FLAVOR).lower()
        self.record_count = max(0, _int_param(params, "count", DEFAULT_COUNT) or 0)
        latency_ms = _int_param(params, "latency_ms", DEFAULT_LATENCY_MS) or 0
        self.page_latency = max(0, latency_ms) / 1000
        self.lookup_latency = self.page_latency / 2
        self.seed = _int_param(params, "seed", None)

        self._page_size = config.page_size or DEFAULT_PAGE_SIZE
        self._records: list[dict[str, Any]] = []
        self._authenticated = False

        logger.info(
            "synthetic_adapter_configured",
            flavor=self.flavor,
            records=self.record_count,
            page_size=self._page_size,
        )

    @property
    def page_size(self) -> int:
        return self._page_size

    async def authenticate(self) -> bool:
        """Generate the record set."""
        try:
            self._records = SyntheticDataGenerator(self.seed).generate(
                self.flavor, self.record_count
            )
        except ConfigurationError as e:
            logger.error("source_authentication_failed", source=self.name, error=str(e))
            return False

        self._authenticated = True
        logger.info("synthetic_records_generated", flavor=self.flavor, count=len(self._records))
        return True

    async def get_assets(self, page_size: int, page_number: int) -> AssetPage:
        ensure_authenticated(self.name, self._authenticated)

        start = page_number * page_size
        end = start + page_size
        records = self._records[start:end]

        await asyncio.sleep(self.page_latency)

        logger.debug(
            "source_page_fetched", source=self.name, page=page_number + 1, records=len(records)
        )
        return AssetPage(
            records=records, has_more=end < len(self._records), total_count=len(self._records)
        )

    async def get_asset_by_id(self, asset_id: str) -> dict[str, Any]:
        ensure_authenticated(self.name, self._authenticated)

        await asyncio.sleep(self.lookup_latency)

        wanted = str(asset_id)
        for record in self._records:
            if any(
                record.get(key) is not None and str(record.get(key)) == wanted
                for key in LOOKUP_FIELDS
            ):
                return record
        raise AssetNotFoundError(asset_id, self.name)

    def describe(self) -> dict[str, Any]:
        return {
            "source": self.name,
            "flavor": self.flavor,
            "records": self.record_count,
            "page_size": self.page_size,
        }

    async def close(self) -> None:
        self._records = []
        self._authenticated = False
