"""
Pydantic models for charge rows, bulk submissions and pipeline results.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from latefees.config import EnvMode


class ChargeRow(BaseModel):
    """
    One late-fee charge candidate, built from a delinquency row.

    Display fields mirror the charges table; the internal fields carry the
    resolution metadata later stages need (submission, widen retry, filters).
    """
    model_config = ConfigDict(frozen=True)

    property_name: str
    unit_name: str
    occupancy_uid: str
    tenant_name: str
    occupancy_id: str  # reporting-system occupancy id
    amount: float
    charge_date: str  # raw, as reported
    posting_date: str  # raw, as reported
    gl_account_number: str
    description: str

    # Internal resolution metadata
    charge_date_iso: str
    posting_date_iso: str
    tenant_integration_id: str = ""
    v0_occupancy_id: str = ""  # empty = unresolved
    v2_unit_id: str = ""
    v2_property_id: str = ""
    zero_to_30: float = 0.0
    total_amount: float = 0.0

    @property
    def is_resolved(self) -> bool:
        return bool(self.v0_occupancy_id)

    @property
    def is_valid_for_submission(self) -> bool:
        return bool(self.v0_occupancy_id.strip()) and self.amount > 0


class BulkChargeItem(BaseModel):
    """One entry of the transactional API bulk charge payload."""
    AmountDue: str
    ChargedOn: str
    Description: str
    GlAccountId: str
    OccupancyId: str
    ReferenceId: str


class PipelineStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    DRY_RUN = "dry-run"


class PipelineResult(BaseModel):
    """Structured outcome of one scheduler pipeline run. Always returned, never raised."""
    model_config = ConfigDict(populate_by_name=True)

    status: PipelineStatus
    total_rows: int = Field(0, alias="totalRows")
    valid_rows: int = Field(0, alias="validRows")
    submitted_rows: int = Field(0, alias="submittedRows")
    skipped_rows: int = Field(0, alias="skippedRows")
    missing_v0_count: int = Field(0, alias="missingV0Count")
    total_amount: float = Field(0.0, alias="totalAmount")
    duration: int = 0  # milliseconds
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    mode: EnvMode
    timestamp: str


class SchedulerRun(PipelineResult):
    """A pipeline result as recorded in the scheduler run history."""
    id: str
    trigger: str  # "cron" | "manual"
