"""
API Routes - late fee charges.

Raw report passthroughs (V2/V0), the charges table load and CSV export, and
manual bulk charge submission. The environment (live/test) comes from the
X-Env-Mode header.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from latefees.api.deps import ClientFactory, get_client_factory, get_env_mode
from latefees.clients.http_client import APIError
from latefees.config import EnvMode, Settings, get_gl_config, get_settings, get_v0_config, is_dry_run
from latefees.models import ChargeRow
from latefees.services.charge_table import DEFAULT_DESCRIPTION_TEMPLATE, ChargeFilters, ChargeTable, rows_to_csv
from latefees.services.normalize import format_description, to_ymd, today_ymd
from latefees.services.pipeline import build_bulk_payload, load_charge_rows

logger = logging.getLogger(__name__)

router = APIRouter()


class ChargeRowsRequest(BaseModel):
    rows: List[ChargeRow] = Field(default_factory=list)


class BulkChargeRequest(ChargeRowsRequest):
    """
    Manual submission. When charge_date is given it overrides every row's
    charge date, and the description template ({date} -> MM/DD/YYYY)
    replaces every row's description.
    """
    charge_date: Optional[str] = None
    description_template: Optional[str] = None


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


# =========================================================================
# Raw reports
# =========================================================================

@router.get("/v2/aged-receivables")
async def get_aged_receivables(
    mode: EnvMode = Depends(get_env_mode),
    clients: ClientFactory = Depends(get_client_factory),
):
    """GET: Aged receivables detail (GL-filtered when configured)."""
    logger.info(f"[V2] aged-receivables mode={mode.value}")
    try:
        rows = await clients.reporting(mode).fetch_aged_receivables()
    except Exception as e:
        logger.error(f"[V2] aged-receivables failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {
        "data": [r.model_dump(by_alias=True) for r in rows],
        "count": len(rows),
        "mode": mode.value,
    }


@router.get("/v2/tenant-directory")
async def get_tenant_directory(
    mode: EnvMode = Depends(get_env_mode),
    clients: ClientFactory = Depends(get_client_factory),
):
    """GET: Reporting tenant directory."""
    logger.info(f"[V2] tenant-directory mode={mode.value}")
    try:
        entries = await clients.reporting(mode).fetch_tenant_directory()
    except Exception as e:
        logger.error(f"[V2] tenant-directory failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {
        "data": [e.model_dump(by_alias=True) for e in entries],
        "count": len(entries),
        "mode": mode.value,
    }


@router.get("/v0/tenants")
async def get_v0_tenants(
    wide: bool = Query(False, description="Five-year lookback instead of one year"),
    mode: EnvMode = Depends(get_env_mode),
    clients: ClientFactory = Depends(get_client_factory),
    settings: Settings = Depends(get_settings),
):
    """GET: Transactional tenants for all configured properties, de-duplicated by Id."""
    if not get_v0_config(mode, settings).property_ids:
        return {"error": "No V0 property IDs configured", "data": [], "count": 0, "mode": mode.value}

    logger.info(f"[V0] tenants mode={mode.value} wide={wide}")
    try:
        tenants = await clients.transactional(mode).fetch_tenants(wide=wide)
    except Exception as e:
        logger.error(f"[V0] tenants failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {
        "data": [t.model_dump(by_alias=True) for t in tenants],
        "count": len(tenants),
        "mode": mode.value,
    }


# =========================================================================
# Charges table
# =========================================================================

@router.get("/charges")
async def get_charges(
    property: str = Query("", description="Property name contains (case-insensitive)"),
    min_amount: float = Query(0.0, description="Minimum 0-30 day balance"),
    max_amount: float = Query(0.0, description="Maximum 0-30 day balance (0 = no limit)"),
    show_zero_amount: bool = Query(True),
    show_missing_occupancy: bool = Query(True),
    only_missing_occupancy: bool = Query(False),
    only_duplicates: bool = Query(False),
    mode: EnvMode = Depends(get_env_mode),
    clients: ClientFactory = Depends(get_client_factory),
    settings: Settings = Depends(get_settings),
):
    """
    GET: Current-month charge rows for review.

    Runs the fetch/reconcile/price stages (including the wide tenant retry),
    applies the filters and reports duplicate groups. Nothing is submitted.
    """
    try:
        load = await load_charge_rows(
            mode,
            clients.reporting(mode),
            clients.transactional(mode),
            settings=settings,
        )
    except Exception as e:
        logger.error(f"[CHARGES] load failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    table = ChargeTable()
    table.set_env_mode(mode)
    table.prefs.filters = ChargeFilters(
        property=property,
        min_amount=min_amount,
        max_amount=max_amount,
        show_zero_amount=show_zero_amount,
        show_missing_occupancy=show_missing_occupancy,
        only_missing_occupancy=only_missing_occupancy,
        only_duplicates=only_duplicates,
    )
    table.set_rows(load.rows, load.warnings)

    return {
        "rows": [r.model_dump() for r in table.filtered_rows],
        "count": len(table.filtered_rows),
        "totalRows": len(table.rows),
        "missingV0Count": load.missing_v0_count,
        "warnings": table.warnings,
        "duplicateExcludedRows": sorted(table.duplicates.excluded_positions),
        "duplicateGroupRows": sorted(table.duplicates.group_positions),
        "mode": mode.value,
    }


@router.post("/charges/export")
async def export_charges(request: ChargeRowsRequest):
    """POST: CSV download of the given rows."""
    if not request.rows:
        raise HTTPException(status_code=400, detail="No rows to export")

    filename = f"bulk-charges-{today_ymd()}.csv"
    return Response(
        content=rows_to_csv(request.rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def apply_manual_overrides(
    rows: List[ChargeRow],
    charge_date: Optional[str],
    description_template: Optional[str],
) -> List[ChargeRow]:
    """Pin every row to the user's charge date and description."""
    charge_iso = to_ymd(charge_date)
    if not charge_iso:
        return rows
    description = format_description(description_template or DEFAULT_DESCRIPTION_TEMPLATE, charge_iso)
    return [
        r.model_copy(update={"charge_date_iso": charge_iso, "description": description})
        for r in rows
    ]


@router.post("/v0/charges/bulk")
async def create_bulk_charges(
    request: BulkChargeRequest,
    mode: EnvMode = Depends(get_env_mode),
    clients: ClientFactory = Depends(get_client_factory),
    settings: Settings = Depends(get_settings),
):
    """
    POST: Create charges for the given rows in one bulk request.

    Rows without a V0 occupancy id or with a non-positive amount are
    skipped. In test mode with TEST_DRY_RUN=1 the payload is returned
    without being sent.
    """
    if not request.rows:
        raise HTTPException(status_code=400, detail="No rows provided")

    rows = apply_manual_overrides(request.rows, request.charge_date, request.description_template)
    items = build_bulk_payload(
        rows,
        get_gl_config(mode, settings).bulk_gl_account_id,
        description_prefix=settings.late_fee_description_prefix,
    )
    if not items:
        raise HTTPException(status_code=400, detail="No valid rows to send. Check OccupancyId and Amount.")

    logger.info(f"[V0] bulk charges mode={mode.value} rows={len(items)}/{len(request.rows)}")

    if is_dry_run(mode, settings):
        return {
            "dryRun": True,
            "data": [item.model_dump() for item in items],
            "count": len(items),
            "mode": mode.value,
        }

    try:
        result = await clients.transactional(mode).create_bulk_charges(items)
    except APIError as e:
        logger.error(f"[V0] bulk charges failed: {e}")
        raise HTTPException(status_code=e.status_code or 500, detail=str(e))
    except Exception as e:
        logger.error(f"[V0] bulk charges failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {**result, "mode": mode.value}
