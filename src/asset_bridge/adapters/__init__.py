"""Source adapters and their registry."""

from asset_bridge.adapters.base import (
    AssetPage,
    Credentials,
    SourceAdapter,
    endpoint_url,
    resolve_credentials,
)
from asset_bridge.adapters.registry import create_adapter, is_supported, supported_source_types

__all__ = [
    "AssetPage",
    "Credentials",
    "SourceAdapter",
    "create_adapter",
    "endpoint_url",
    "is_supported",
    "resolve_credentials",
    "supported_source_types",
]
