"""Resolution of declarative field mappings against source records.

Every function here is pure. Resolution never fails on a missing path: a
missing value is simply absent and absent values are dropped from the output.
"""

import json
import re
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime
from typing import Any

from asset_bridge.client.exceptions import MappingResolutionError
from asset_bridge.models import DEFAULT_SECTION, FieldMapping, MappingKind
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

TYPE_CODE_FIELD = "CIType"

PLACEHOLDER_PATTERN = re.compile(r"\{([^}]+)\}")
XML_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9._-]*$")

# Ordered (property name, value) pairs per section name
Sections = dict[str, list[tuple[str, str]]]


def get_nested_value(record: Any, path: str | None) -> Any:
    """Look up a dotted path in a source record.

    Numeric segments index into lists. Missing keys, out-of-range indexes,
    ``None`` and the empty string all resolve to ``None``.
    """
    if not path or not isinstance(path, str) or record is None:
        return None

    value = record
    for segment in path.strip().split("."):
        if isinstance(value, Mapping):
            if segment not in value:
                return None
            value = value[segment]
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            try:
                value = value[int(segment)]
            except (ValueError, IndexError):
                return None
        else:
            return None

        if value is None:
            return None

    return None if value == "" else value


def stringify_value(value: Any) -> str:
    """Convert a resolved value to its document text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.strftime("%Y-%m-%dT%H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def resolve_template(template: str, record: Any) -> str:
    """Replace ``{path}`` placeholders with values from the record."""

    def substitute(match: re.Match[str]) -> str:
        value = get_nested_value(record, match.group(1))
        return "" if value is None else stringify_value(value)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def resolve_mapping(mapping: FieldMapping, record: Any) -> str | None:
    """Resolve one mapping to its output text.

    Returns:
        The text to emit, or None when the value is absent or blank

    Raises:
        MappingResolutionError: If the mapping itself is unusable
    """
    if not mapping.target_field or not mapping.target_field.strip():
        raise MappingResolutionError(str(mapping.target_field), "target field is empty")

    expression = mapping.source_expression

    if mapping.kind is MappingKind.FIXED:
        value: Any = expression
    elif mapping.kind is MappingKind.TEMPLATE:
        value = resolve_template(expression, record) if expression else None
    else:
        value = get_nested_value(record, expression)

    if value is None:
        return None

    try:
        text = stringify_value(value)
    except (TypeError, ValueError) as e:
        raise MappingResolutionError(mapping.target_field, str(e)) from e

    return text if text.strip() else None


def build_record_sections(
    record: Any, mappings: Sequence[FieldMapping], type_code: str
) -> Sections:
    """Resolve all mappings for one record, grouped by section.

    A failing mapping is logged and skipped. The type-code field is appended
    to the Identity section after every mapping.
    """
    sections: Sections = {}

    for mapping in mappings:
        try:
            if not XML_NAME_PATTERN.match(mapping.section):
                raise MappingResolutionError(
                    mapping.target_field, f"invalid section name '{mapping.section}'"
                )
            text = resolve_mapping(mapping, record)
        except MappingResolutionError as e:
            logger.error(
                "mapping_resolution_failed",
                target_field=mapping.target_field,
                section=mapping.section,
                error=e.reason,
            )
            continue

        if text is None:
            continue

        sections.setdefault(mapping.section, []).append((mapping.target_field, text))

    sections.setdefault(DEFAULT_SECTION, []).append((TYPE_CODE_FIELD, type_code))
    return sections
