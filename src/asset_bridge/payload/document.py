"""Serialization of mapped records into the target queue document."""

import base64
import binascii
import gzip
import zlib
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any
from xml.sax.saxutils import escape

from asset_bridge.models import FieldMapping
from asset_bridge.payload.mapping import Sections, build_record_sections
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'
SCHEMA_VERSION = "0.2"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

_QUOTE_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(value: Any) -> str:
    """Escape ``& < > " '`` for use in element content or attribute values."""
    if value is None:
        return ""
    return escape(str(value), _QUOTE_ENTITIES)


def document_timestamp(now: datetime | None = None) -> str:
    """Second-precision UTC timestamp used in the audit block."""
    now = now or datetime.now(UTC)
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S")


def render_asset_data(sections: Sections, timestamp: str) -> str:
    """Render one record's audit block and property sections."""
    lines = [
        "  <AssetData>",
        "    <Audit>",
        f"      <TimeStamp>{timestamp}</TimeStamp>",
        "      <RequestId>0</RequestId>",
        "      <FirstSequence>0</FirstSequence>",
        "      <LastSequence>1</LastSequence>",
        "      <Type>Full</Type>",
        "    </Audit>",
    ]
    for section, properties in sections.items():
        lines.append(f"    <{section}>")
        for name, value in properties:
            lines.append(
                f'      <Property Name="{escape_xml(name)}">{escape_xml(value)}</Property>'
            )
        lines.append(f"    </{section}>")
    lines.append("  </AssetData>")
    return "\n".join(lines)


def wrap_document(asset_blocks: Iterable[str]) -> str:
    """Wrap rendered records in the declaration and outer envelope."""
    body = "\n".join(asset_blocks)
    return (
        f"{XML_DECLARATION}\n"
        f'<AssetDataSequence SchemaVersion="{SCHEMA_VERSION}" xmlns:xsi="{XSI_NAMESPACE}">\n'
        f"{body}\n"
        "</AssetDataSequence>"
    )


def build_document(
    records: Sequence[Any],
    mappings: Sequence[FieldMapping],
    type_code: str,
    timestamp: str | None = None,
) -> str:
    """Build the document for one batch of source records.

    Args:
        records: Source records of the batch
        mappings: Field mappings of the record type, in declared order
        type_code: Record-type code emitted as the ``CIType`` property
        timestamp: Audit timestamp shared by all records (defaults to now)

    Returns:
        The complete document text
    """
    timestamp = timestamp or document_timestamp()
    blocks = [
        render_asset_data(build_record_sections(record, mappings, type_code), timestamp)
        for record in records
    ]
    document = wrap_document(blocks)
    logger.debug(
        "document_built", type_code=type_code, records=len(records), size=len(document)
    )
    return document


def compress_and_encode(text: str) -> str:
    """gzip then base64-encode a document."""
    compressed = gzip.compress(text.encode("utf-8"))
    encoded = base64.b64encode(compressed).decode("ascii")
    logger.debug(
        "document_compressed",
        original_size=len(text),
        compressed_size=len(compressed),
        encoded_size=len(encoded),
    )
    return encoded


def decode_and_decompress(encoded: str) -> str:
    """Reverse :func:`compress_and_encode`.

    Raises:
        ValueError: If the input is not base64-encoded gzip data
    """
    try:
        compressed = base64.b64decode(encoded, validate=True)
        return gzip.decompress(compressed).decode("utf-8")
    except (binascii.Error, OSError, EOFError, zlib.error, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid compressed document: {e}") from e
