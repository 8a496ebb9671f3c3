"""
Late fee pipeline - fetch, reconcile, price and (optionally) submit charges.

Stages:
1. Aged receivables from the reporting API (failure aborts the run)
2. Tenant directory + transactional tenants, concurrently (failures become warnings)
3. Charge rows with late fees for the current month
4. Wide tenant retry when some, but not all, rows are unresolved
5. Valid rows: resolved V0 occupancy id and a positive amount
6. Dry run, or one bulk submission of the valid rows

`run_pipeline` always returns a PipelineResult; it never raises.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from latefees.clients.reporting_client import ReportingClient
from latefees.clients.transactional_client import TransactionalClient
from latefees.config import EnvMode, Settings, get_gl_config, get_settings
from latefees.models import BulkChargeItem, ChargeRow, PipelineResult, PipelineStatus
from latefees.property_config.jurisdictions import build_jurisdictions
from latefees.services.charge_rows import build_charge_rows
from latefees.services.normalize import today_ymd
from latefees.services.occupancy_mapping import build_occupancy_maps, retry_mapping_with_wide_tenants

logger = logging.getLogger(__name__)

NO_AGED_RECEIVABLES = "No aged receivables found"
NO_VALID_ROWS = "No valid rows to submit"
WIDE_RETRY_FAILED = "Wide tenant retry failed"


@dataclass
class ChargeLoad:
    """Charge rows for one mode plus the warnings collected while loading them."""
    rows: List[ChargeRow] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def missing_v0_count(self) -> int:
        return sum(1 for r in self.rows if not r.is_resolved)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _message(error: BaseException) -> str:
    return str(error) or type(error).__name__


async def load_charge_rows(
    mode: EnvMode,
    reporting: ReportingClient,
    transactional: TransactionalClient,
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
) -> ChargeLoad:
    """
    Stages 1-4: build current-month charge rows with V0 occupancy ids resolved.

    Raises only when the aged receivables fetch fails.
    """
    s = settings or get_settings()
    load = ChargeLoad()

    aged = await reporting.fetch_aged_receivables(today=today)
    if not aged:
        load.warnings.append(NO_AGED_RECEIVABLES)
        return load

    directory, v0_tenants = await asyncio.gather(
        reporting.fetch_tenant_directory(),
        transactional.fetch_tenants(),
        return_exceptions=True,
    )
    if isinstance(directory, Exception):
        logger.warning(f"[PIPELINE] Tenant directory failed: {directory}")
        load.warnings.append(f"Tenant directory: {_message(directory)}")
        directory = []
    if isinstance(v0_tenants, Exception):
        logger.warning(f"[PIPELINE] V0 tenants failed: {v0_tenants}")
        load.warnings.append(f"V0 tenants: {_message(v0_tenants)}")
        v0_tenants = []

    maps = build_occupancy_maps(v0_tenants, directory)
    load.rows = build_charge_rows(
        aged,
        maps,
        get_gl_config(mode, s).table_gl_account_number,
        description_prefix=s.late_fee_description_prefix,
        jurisdictions=build_jurisdictions(s),
        today=today,
    )

    missing = load.missing_v0_count
    if 0 < missing < len(load.rows):
        logger.info(f"[PIPELINE] {missing}/{len(load.rows)} rows unresolved, retrying with wide tenant lookback")
        try:
            wide_tenants = await transactional.fetch_tenants(wide=True)
        except Exception as e:
            logger.warning(f"[PIPELINE] Wide tenant retry failed: {e}")
            load.warnings.append(WIDE_RETRY_FAILED)
        else:
            load.rows = retry_mapping_with_wide_tenants(load.rows, wide_tenants)

    return load


def build_bulk_payload(
    rows: List[ChargeRow],
    gl_account_id: str,
    today: Optional[date] = None,
    description_prefix: Optional[str] = None,
) -> List[BulkChargeItem]:
    """
    Bulk charge entries for the submittable rows.

    Rows without a V0 occupancy id or with a non-positive amount are skipped
    here as well, whatever the caller already filtered. Every entry gets a
    fresh ReferenceId.
    """
    today_iso = today_ymd(today)
    prefix = description_prefix or get_settings().late_fee_description_prefix
    items: List[BulkChargeItem] = []

    for row in rows:
        if not row.is_valid_for_submission:
            continue
        charged_on = row.charge_date_iso or today_iso
        items.append(BulkChargeItem(
            AmountDue=f"{row.amount:.2f}",
            ChargedOn=charged_on,
            Description=row.description or f"{prefix} - {charged_on}",
            GlAccountId=gl_account_id,
            OccupancyId=row.v0_occupancy_id.strip(),
            ReferenceId=str(uuid.uuid4()),
        ))

    return items


async def submit_bulk_charges(
    client: TransactionalClient,
    rows: List[ChargeRow],
    gl_account_id: str,
    today: Optional[date] = None,
    description_prefix: Optional[str] = None,
) -> int:
    """Submit valid rows in one bulk request. Returns the number of charges sent."""
    items = build_bulk_payload(rows, gl_account_id, today=today, description_prefix=description_prefix)
    if not items:
        return 0
    await client.create_bulk_charges(items)
    return len(items)


async def run_pipeline(
    mode: EnvMode,
    auto_submit: bool,
    reporting: Optional[ReportingClient] = None,
    transactional: Optional[TransactionalClient] = None,
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
) -> PipelineResult:
    """
    Run the whole pipeline for one environment.

    Args:
        mode: Credential set to use (live or test)
        auto_submit: Submit valid rows; otherwise report what would be sent
        reporting / transactional: Clients to use (built from settings when omitted)
        settings: Settings override
        today: Reference date for the current-month filter

    Returns:
        PipelineResult with status success, dry-run or error
    """
    started = time.monotonic()
    timestamp = _utc_timestamp()
    warnings: List[str] = []

    def elapsed_ms() -> int:
        return int((time.monotonic() - started) * 1000)

    logger.info(f"[PIPELINE] Starting run: mode={mode.value}, auto_submit={auto_submit}")

    try:
        s = settings or get_settings()
        reporting = reporting or ReportingClient.for_mode(mode, s)
        transactional = transactional or TransactionalClient.for_mode(mode, s)

        load = await load_charge_rows(mode, reporting, transactional, settings=s, today=today)
        warnings.extend(load.warnings)
        rows = load.rows

        if not rows and NO_AGED_RECEIVABLES in load.warnings:
            logger.info("[PIPELINE] No aged receivables, nothing to do")
            return PipelineResult(
                status=PipelineStatus.SUCCESS if auto_submit else PipelineStatus.DRY_RUN,
                duration=elapsed_ms(),
                warnings=warnings,
                mode=mode,
                timestamp=timestamp,
            )

        valid_rows = [r for r in rows if r.is_valid_for_submission]
        missing = load.missing_v0_count
        total_amount = round(sum(r.amount for r in valid_rows), 2)

        if missing:
            warnings.append(f"{missing} rows missing V0 occupancy ID")

        result = PipelineResult(
            status=PipelineStatus.DRY_RUN,
            total_rows=len(rows),
            valid_rows=len(valid_rows),
            skipped_rows=len(rows) - len(valid_rows),
            missing_v0_count=missing,
            total_amount=total_amount,
            warnings=warnings,
            mode=mode,
            timestamp=timestamp,
        )

        if not auto_submit:
            logger.info(
                f"[PIPELINE] Dry run: {len(valid_rows)}/{len(rows)} valid rows, ${total_amount:,.2f}"
            )
            return result.model_copy(update={"duration": elapsed_ms()})

        if not valid_rows:
            logger.info("[PIPELINE] No valid rows to submit")
            return result.model_copy(update={
                "status": PipelineStatus.SUCCESS,
                "warnings": [*warnings, NO_VALID_ROWS],
                "total_amount": 0.0,
                "duration": elapsed_ms(),
            })

        gl_account_id = get_gl_config(mode, s).bulk_gl_account_id
        submitted = await submit_bulk_charges(
            transactional,
            valid_rows,
            gl_account_id,
            today=today,
            description_prefix=s.late_fee_description_prefix,
        )

        logger.info(f"[PIPELINE] Submitted {submitted} charges, ${total_amount:,.2f}")
        return result.model_copy(update={
            "status": PipelineStatus.SUCCESS,
            "submitted_rows": submitted,
            "duration": elapsed_ms(),
        })

    except Exception as e:
        logger.error(f"[PIPELINE] Run failed: {e}")
        return PipelineResult(
            status=PipelineStatus.ERROR,
            duration=elapsed_ms(),
            warnings=warnings,
            error=_message(e),
            mode=mode,
            timestamp=timestamp,
        )
