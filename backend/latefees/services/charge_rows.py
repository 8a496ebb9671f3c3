"""
Charge row builder: delinquency rows -> late fee charge rows for the current month.
"""
import logging
from collections import Counter
from datetime import date
from typing import Iterable, List, Optional

from latefees.models import ChargeRow, DelinquencyRow
from latefees.property_config.jurisdictions import JurisdictionTable
from latefees.services.late_fee import compute_late_fee, get_late_fee_params, get_property_group
from latefees.services.normalize import (
    last_comma_first_to_first_last,
    late_fee_description,
    parse_currency_or_number,
    to_ymd,
    today_ymd,
)
from latefees.services.occupancy_mapping import (
    OccupancyMaps,
    pick_integration_id,
    resolve_occupancy_uid,
    resolve_v0_occupancy_id,
)

logger = logging.getLogger(__name__)


def is_current_month(date_iso: str, today: Optional[date] = None) -> bool:
    """True when a YYYY-MM-DD date falls in the calendar month of `today`."""
    if not date_iso:
        return False
    reference = today or date.today()
    try:
        year = int(date_iso[0:4])
        month = int(date_iso[5:7])
    except ValueError:
        return False
    return year == reference.year and month == reference.month


def build_charge_row(
    row: DelinquencyRow,
    maps: OccupancyMaps,
    gl_account_number: str,
    description_prefix: Optional[str] = None,
    jurisdictions: Optional[JurisdictionTable] = None,
    today: Optional[date] = None,
) -> ChargeRow:
    """Resolve, price and normalize a single delinquency row (no month filter)."""
    today_iso = today_ymd(today)

    occ_uid = resolve_occupancy_uid(row, maps)
    integration_id = pick_integration_id(maps.occ_uid_to_candidates.get(occ_uid))
    v0_occ_id = resolve_v0_occupancy_id(maps.transactional, integration_id, row.v2_unit_id)

    zero_to_30 = parse_currency_or_number(row.zero_to_30)
    total = parse_currency_or_number(row.total_amount)
    params = get_late_fee_params(row.v2_prop_id, jurisdictions)
    amount = max(0.0, compute_late_fee(total, zero_to_30, params))

    charge_iso = to_ymd(row.charge_date_raw) or today_iso
    posting_iso = to_ymd(row.posting_date_raw) or today_iso

    return ChargeRow(
        property_name=row.prop_name,
        unit_name=row.unit_name,
        occupancy_uid=occ_uid,
        tenant_name=last_comma_first_to_first_last(row.payer_name),
        occupancy_id=row.occ_id_v2,
        amount=round(amount, 2),
        charge_date=row.charge_date_raw,
        posting_date=row.posting_date_raw,
        gl_account_number=gl_account_number,
        description=late_fee_description(charge_iso, description_prefix),
        charge_date_iso=charge_iso,
        posting_date_iso=posting_iso,
        tenant_integration_id=integration_id,
        v0_occupancy_id=v0_occ_id,
        v2_unit_id=row.v2_unit_id,
        v2_property_id=row.v2_prop_id,
        zero_to_30=zero_to_30,
        total_amount=total,
    )


def build_charge_rows(
    delinquencies: Iterable[DelinquencyRow],
    maps: OccupancyMaps,
    gl_account_number: str,
    description_prefix: Optional[str] = None,
    jurisdictions: Optional[JurisdictionTable] = None,
    today: Optional[date] = None,
) -> List[ChargeRow]:
    """
    Build charge rows with computed late fees.

    Rows whose charge date is outside the current calendar month are dropped.
    """
    reference = today or date.today()
    rows: List[ChargeRow] = []
    dropped = 0

    for delinquency in delinquencies:
        charge_row = build_charge_row(
            delinquency,
            maps,
            gl_account_number,
            description_prefix=description_prefix,
            jurisdictions=jurisdictions,
            today=reference,
        )
        if not is_current_month(charge_row.charge_date_iso, reference):
            dropped += 1
            continue
        rows.append(charge_row)

    if dropped:
        logger.info(f"[CHARGES] Skipped {dropped} rows outside {reference:%Y-%m}")
    if rows:
        groups = Counter(get_property_group(r.v2_property_id, jurisdictions) for r in rows)
        summary = ", ".join(f"{name}={count}" for name, count in sorted(groups.items()))
        logger.info(f"[CHARGES] {len(rows)} rows for {reference:%Y-%m} ({summary})")
    return rows
