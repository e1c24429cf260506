"""Source adapter registry.

Maps a source-type identifier to the adapter class implementing it. Every
adapter has one canonical key and any number of aliases; lookups are
case-insensitive.
"""

from collections.abc import Callable
from typing import Any

from asset_bridge.adapters.base import SourceAdapter
from asset_bridge.adapters.ipfabric import IPFabricAdapter
from asset_bridge.adapters.snipeit import SnipeITAdapter
from asset_bridge.adapters.synthetic import SyntheticAdapter
from asset_bridge.adapters.vmware import VMwareAdapter
from asset_bridge.client.exceptions import UnsupportedSourceError
from asset_bridge.models import IntegrationConfig
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

AdapterFactory = Callable[..., SourceAdapter]

ADAPTERS: dict[str, AdapterFactory] = {
    "vmware": VMwareAdapter,
    "ipfabric": IPFabricAdapter,
    "snipeit": SnipeITAdapter,
    "synthetic": SyntheticAdapter,
}

ALIASES: dict[str, str] = {
    "vmware": "vmware",
    "vcenter": "vmware",
    "vmware-vcenter": "vmware",
    "ipfabric": "ipfabric",
    "ip-fabric": "ipfabric",
    "ipf": "ipfabric",
    "snipeit": "snipeit",
    "snipe-it": "snipeit",
    "snipe": "snipeit",
    "synthetic": "synthetic",
    "mock": "synthetic",
    "test": "synthetic",
}

# Keyword arguments only the network adapters accept
_NETWORK_OPTIONS = ("verify_ssl", "timeout", "transport", "default_page_size")


def canonical_source_type(source_type: str) -> str:
    """Resolve an identifier or alias to its canonical key.

    Raises:
        UnsupportedSourceError: If the identifier is unknown
    """
    key = (source_type or "").strip().lower()
    canonical = ALIASES.get(key)
    if canonical is None:
        raise UnsupportedSourceError(source_type, supported_source_types())
    return canonical


def supported_source_types() -> list[str]:
    """All accepted identifiers, canonical keys and aliases."""
    return sorted(ALIASES)


def is_supported(source_type: str) -> bool:
    return (source_type or "").strip().lower() in ALIASES


def create_adapter(source_type: str, config: IntegrationConfig, **options: Any) -> SourceAdapter:
    """Create the adapter for a source type.

    Args:
        source_type: Source-type identifier or alias
        config: Integration configuration the adapter reads
        **options: ``verify_ssl``, ``timeout``, ``transport`` and
            ``default_page_size`` for network adapters; ignored by the
            synthetic adapter

    Returns:
        An unauthenticated adapter

    Raises:
        UnsupportedSourceError: If the identifier is unknown
    """
    canonical = canonical_source_type(source_type)
    factory = ADAPTERS[canonical]

    if canonical == "synthetic":
        adapter = factory(config)
    else:
        adapter = factory(config, **{k: v for k, v in options.items() if k in _NETWORK_OPTIONS})

    logger.info("adapter_created", source_type=source_type, adapter=adapter.name)
    return adapter
