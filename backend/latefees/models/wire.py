"""
External record shapes returned by the reporting (V2) and transactional (V0) APIs.

Responses are parsed into these models at the client boundary so the
reconciliation code works with typed, trimmed strings instead of raw JSON.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_text(value: Any) -> str:
    """Coerce ids/names to a trimmed string; None becomes empty."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


class WireModel(BaseModel):
    """Base for API records: accepts wire names or field names, ignores extras."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class DelinquencyRow(WireModel):
    """One tenant balance from the aged receivables detail report."""
    prop_name: str = Field("", alias="property_name")
    unit_name: str = ""
    payer_name: str = ""  # "Last, First"
    occ_id_v2: str = Field("", alias="occupancy_id")
    zero_to_30: Any = Field(0, alias="0_to30")  # raw currency, normalized later
    total_amount: Any = 0
    v2_unit_id: str = Field("", alias="unit_id")
    v2_prop_id: str = Field("", alias="property_id")
    posting_date_raw: str = Field("", alias="posting_date")
    charge_date_raw: str = Field("", alias="invoice_occurred_on")
    account_number: str = ""

    @field_validator(
        "prop_name", "unit_name", "payer_name", "occ_id_v2", "v2_unit_id",
        "v2_prop_id", "posting_date_raw", "charge_date_raw", "account_number",
        mode="before",
    )
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("zero_to_30", "total_amount", mode="before")
    @classmethod
    def _amount(cls, v):
        return 0 if v is None else v


class TenantDirectoryEntry(WireModel):
    """Reporting-system tenant directory row."""
    occupancy_import_uid: str = ""
    tenant_integration_id: str = ""
    status: str = ""
    property_name: str = ""
    property_label: str = Field("", alias="property")
    unit: str = ""
    unit_name: str = ""
    occupancy_id: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @property
    def display_property(self) -> str:
        return self.property_name or self.property_label

    @property
    def display_unit(self) -> str:
        return self.unit or self.unit_name


class TransactionalTenant(WireModel):
    """Transactional-system tenant record."""
    tenant_id: str = Field("", alias="Id")
    integration_id: str = Field("", alias="IntegrationId")
    external_id: str = Field("", alias="ExternalId")
    occupancy_id: str = Field("", alias="OccupancyId")
    status: str = Field("", alias="Status")
    unit_id: str = Field("", alias="UnitId")

    @field_validator(
        "tenant_id", "integration_id", "external_id", "occupancy_id", "status", "unit_id",
        mode="before",
    )
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @property
    def integration_key(self) -> str:
        """IntegrationId, falling back to ExternalId."""
        return self.integration_id or self.external_id
