"""
Late fee calculation.

Implements the jurisdiction late-fee rule exactly:
- no balance in the 0-30 bucket -> no fee, whatever the total
- total above threshold -> (total - threshold) * percent + base
- otherwise -> base
"""
from typing import Any, Optional

from latefees.property_config.jurisdictions import (
    JurisdictionTable,
    LateFeeParams,
    get_jurisdictions,
)
from latefees.services.normalize import parse_currency_or_number

ZERO_EPS = 1e-6


def _property_key(property_id: Any) -> str:
    if property_id is None:
        return ""
    return str(property_id).strip()


def get_late_fee_params(
    property_id: Any,
    jurisdictions: Optional[JurisdictionTable] = None,
) -> LateFeeParams:
    """Fee rule for a property: Group A, Group B, or the configured default."""
    table = jurisdictions or get_jurisdictions()
    jurisdiction = table.lookup(_property_key(property_id))
    if jurisdiction is not None:
        return jurisdiction.params
    return table.default


def get_property_group(
    property_id: Any,
    jurisdictions: Optional[JurisdictionTable] = None,
) -> str:
    """Jurisdiction display name for a property."""
    table = jurisdictions or get_jurisdictions()
    jurisdiction = table.lookup(_property_key(property_id))
    return jurisdiction.name if jurisdiction is not None else "Unknown"


def compute_late_fee(total_amount: Any, zero_to_30: Any, params: LateFeeParams) -> float:
    """Late fee for one tenant balance. Callers clamp to >= 0 and round."""
    total = parse_currency_or_number(total_amount)
    recent = parse_currency_or_number(zero_to_30)

    if recent <= ZERO_EPS:
        return 0.0

    if total > params.threshold:
        return (total - params.threshold) * params.percent + params.base

    return params.base
