"""Data models for integration records stored in the target system.

The target system exposes these records as OData business objects with
PascalCase field names. The models accept those wire names and expose
snake_case attributes.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SECTION = "Identity"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class IntegrationConfig(BaseModel):
    """One source integration as configured in the target system.

    Unknown keys are preserved so adapters and the encrypted-config merge
    never lose data the model does not name.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    rec_id: str | None = Field(default=None, alias="RecId")
    integration_source_type: str | None = Field(default=None, alias="IntegrationSourceType")
    integration_name: str | None = Field(default=None, alias="IntegrationName")
    is_active: bool | None = Field(default=None, alias="IsActive")

    endpoint_url: str | None = Field(default=None, alias="EndpointUrl")
    base_url: str | None = Field(default=None, alias="BaseUrl")
    username: str | None = Field(default=None, alias="Username")
    password: str | None = Field(default=None, alias="Password")
    api_token: str | None = Field(default=None, alias="ApiToken")
    credentials: str | dict[str, Any] | None = Field(
        default=None,
        alias="Credentials",
        description="Deprecated JSON credential blob; overrides the structured fields",
    )

    tenant_id: str | None = Field(default=None, alias="TenantId")
    client_authentication_key: str | None = Field(default=None, alias="ClientAuthenticationKey")

    page_size: int | None = Field(default=None, alias="PageSize")
    batch_size: int | None = Field(default=None, alias="BatchSize")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")

    encrypted_config: str | None = Field(default=None, alias="EncryptedConfig")

    @field_validator("rec_id", "tenant_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        """Accept numeric identifiers and treat blanks as absent."""
        v = _blank_to_none(v)
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator(
        "integration_source_type",
        "integration_name",
        "endpoint_url",
        "base_url",
        "username",
        "password",
        "api_token",
        "credentials",
        "client_authentication_key",
        "log_level",
        "encrypted_config",
        mode="before",
    )
    @classmethod
    def blank_as_absent(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("page_size", "batch_size", mode="before")
    @classmethod
    def positive_or_absent(cls, v: Any) -> Any:
        """Blank, zero, negative and non-numeric sizes mean "use the default"."""
        v = _blank_to_none(v)
        if v is None:
            return None
        try:
            size = int(v)
        except (TypeError, ValueError):
            logger.warning("size_not_numeric_ignored", value=repr(v))
            return None
        return size if size > 0 else None

    @property
    def has_encrypted_blob(self) -> bool:
        return bool(self.encrypted_config)

    @property
    def display_name(self) -> str:
        return self.integration_name or self.integration_source_type or "unnamed integration"

    def to_wire(self) -> dict[str, Any]:
        """Dump using the target system's field names, omitting absent values."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def merge_decrypted(self, values: Mapping[str, Any]) -> "IntegrationConfig":
        """Return a copy with decrypted values layered over the plaintext fields.

        Decrypted values always win. Keys may use either the wire name or the
        attribute name. The encrypted blob is not carried over.
        """
        data = self.to_wire()
        data.pop("EncryptedConfig", None)
        for key, value in values.items():
            data[self._wire_key(key)] = value
        data.pop("EncryptedConfig", None)
        return IntegrationConfig.model_validate(data)

    def without_encrypted_blob(self) -> "IntegrationConfig":
        """Return a copy with the encrypted blob stripped."""
        data = self.to_wire()
        data.pop("EncryptedConfig", None)
        return IntegrationConfig.model_validate(data)

    @classmethod
    def _wire_key(cls, key: str) -> str:
        field = cls.model_fields.get(key)
        if field is not None and field.alias:
            return field.alias
        return key


class RecordTypeSpec(BaseModel):
    """A target schema (record type) configured for one integration."""

    model_config = ConfigDict(extra="ignore")

    rec_id: str = Field(validation_alias=AliasChoices("RecId", "rec_id"))
    type_code: str = Field(validation_alias=AliasChoices("CIType", "type_code"))
    name: str | None = Field(default=None, validation_alias=AliasChoices("CITypeName", "name"))
    parent_ref: str | None = Field(
        default=None, validation_alias=AliasChoices("ParentLink_RecID", "parent_ref")
    )

    @field_validator("rec_id", "type_code", "name", "parent_ref", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class MappingKind(str, Enum):
    """How a field mapping's source expression is interpreted."""

    DIRECT = "Direct"  # dotted path into the source record
    FIXED = "Fixed"  # literal value
    TEMPLATE = "Template"  # string with {path} placeholders

    @classmethod
    def parse(cls, value: Any) -> "MappingKind":
        """Parse a wire value case-insensitively; anything unknown is Direct."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for kind in cls:
            if kind.value.lower() == text:
                return kind
        return cls.DIRECT


class FieldMapping(BaseModel):
    """One declarative rule producing a single target property."""

    model_config = ConfigDict(extra="ignore")

    target_field: str = Field(
        validation_alias=AliasChoices("IvantiField", "TargetField", "target_field")
    )
    source_expression: str | None = Field(
        default=None, validation_alias=AliasChoices("SourceField", "source_expression")
    )
    kind: MappingKind = Field(
        default=MappingKind.DIRECT, validation_alias=AliasChoices("MappingType", "kind")
    )
    section: str = Field(default=DEFAULT_SECTION, validation_alias=AliasChoices("Section", "section"))

    @field_validator("target_field", mode="before")
    @classmethod
    def require_target_field(cls, v: Any) -> Any:
        """A blank target field is treated as missing."""
        return _blank_to_none(v)

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, v: Any) -> MappingKind:
        return MappingKind.parse(v)

    @field_validator("section", mode="before")
    @classmethod
    def default_section(cls, v: Any) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_SECTION
        return str(v).strip()

    @field_validator("source_expression", mode="before")
    @classmethod
    def stringify_expression(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)
