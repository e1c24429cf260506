"""Field mapping and target document serialization."""

from asset_bridge.payload.document import (
    build_document,
    compress_and_encode,
    decode_and_decompress,
    escape_xml,
)
from asset_bridge.payload.mapping import (
    build_record_sections,
    get_nested_value,
    resolve_mapping,
    resolve_template,
)

__all__ = [
    "build_document",
    "build_record_sections",
    "compress_and_encode",
    "decode_and_decompress",
    "escape_xml",
    "get_nested_value",
    "resolve_mapping",
    "resolve_template",
]
