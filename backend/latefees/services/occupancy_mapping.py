"""
Occupancy identity reconciliation between the reporting (V2) and
transactional (V0) systems.

The two systems key a tenancy differently. Resolution for one delinquency row:

1. Occupancy UID: the row's own V2 occupancy id when it is a known UID,
   else the property+unit fallback, else the occupancy-id -> UID map.
2. Integration id: first current/notice candidate under that UID,
   else the first candidate.
3. V0 occupancy id: tenant-id map, then integration-id map, then the
   unit-id map (current/notice tenants only, first wins). Empty when all
   three miss; that is a normal "unresolved" outcome.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from latefees.models import ChargeRow, DelinquencyRow, TenantDirectoryEntry, TransactionalTenant

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("current", "notice")


@dataclass(frozen=True)
class TenantCandidate:
    """One tenant record under a reporting occupancy UID."""
    integration_id: str
    status: str


@dataclass
class TransactionalIndex:
    """Lookups into transactional (V0) occupancy ids."""
    tenant_id_to_occ: Dict[str, str] = field(default_factory=dict)
    integration_id_to_occ: Dict[str, str] = field(default_factory=dict)
    unit_id_to_occ: Dict[str, str] = field(default_factory=dict)


@dataclass
class OccupancyMaps:
    """Everything needed to resolve a delinquency row to a V0 occupancy id."""
    transactional: TransactionalIndex = field(default_factory=TransactionalIndex)
    occ_uid_to_candidates: Dict[str, List[TenantCandidate]] = field(default_factory=dict)
    occ_uid_by_prop_unit: Dict[str, str] = field(default_factory=dict)
    occ_id_to_occ_uid: Dict[str, str] = field(default_factory=dict)


def prop_unit_key(prop: Optional[str], unit: Optional[str]) -> str:
    """Case-insensitive property+unit fallback key."""
    return f"{(prop or '').strip().lower()}||{(unit or '').strip().lower()}"


def build_transactional_index(tenants: Iterable[TransactionalTenant]) -> TransactionalIndex:
    """Index V0 tenants by tenant id, integration id and unit id."""
    index = TransactionalIndex()

    for tenant in tenants:
        occ = tenant.occupancy_id
        if not occ:
            continue

        if tenant.tenant_id:
            index.tenant_id_to_occ[tenant.tenant_id] = occ

        integration_id = tenant.integration_key
        if integration_id:
            index.integration_id_to_occ[integration_id] = occ

        # Unit fallback: active tenants only, first one per unit wins
        if (
            tenant.unit_id
            and tenant.status.lower() in ACTIVE_STATUSES
            and tenant.unit_id not in index.unit_id_to_occ
        ):
            index.unit_id_to_occ[tenant.unit_id] = occ

    return index


def build_occupancy_maps(
    v0_tenants: Iterable[TransactionalTenant],
    tenant_directory: Iterable[TenantDirectoryEntry],
) -> OccupancyMaps:
    """Build V0 and V2 lookup maps for one pipeline run."""
    maps = OccupancyMaps(transactional=build_transactional_index(v0_tenants))

    for entry in tenant_directory:
        occ_uid = entry.occupancy_import_uid
        integration_id = entry.tenant_integration_id
        status = entry.status.lower()

        if occ_uid and integration_id:
            maps.occ_uid_to_candidates.setdefault(occ_uid, []).append(
                TenantCandidate(integration_id=integration_id, status=status)
            )

        prop = entry.display_property
        unit = entry.display_unit
        if occ_uid and (prop or unit):
            maps.occ_uid_by_prop_unit[prop_unit_key(prop, unit)] = occ_uid

        occ_id = entry.occupancy_id
        if occ_id and occ_uid and occ_id not in maps.occ_id_to_occ_uid:
            maps.occ_id_to_occ_uid[occ_id] = occ_uid

    logger.info(
        f"[MAPPING] Indexed {len(maps.transactional.tenant_id_to_occ)} V0 tenants, "
        f"{len(maps.occ_uid_to_candidates)} V2 occupancies"
    )
    return maps


def pick_integration_id(candidates: Optional[List[TenantCandidate]]) -> str:
    """Prefer the first current/notice candidate; otherwise take the first one."""
    if not candidates:
        return ""

    for candidate in candidates:
        if candidate.status in ACTIVE_STATUSES:
            return candidate.integration_id.strip()

    return candidates[0].integration_id.strip()


def resolve_occupancy_uid(row: DelinquencyRow, maps: OccupancyMaps) -> str:
    """Step 1: reporting occupancy UID for a delinquency row."""
    occ_v2 = row.occ_id_v2
    if occ_v2 in maps.occ_uid_to_candidates:
        return occ_v2

    return (
        maps.occ_uid_by_prop_unit.get(prop_unit_key(row.prop_name, row.unit_name))
        or maps.occ_id_to_occ_uid.get(occ_v2)
        or ""
    )


def resolve_v0_occupancy_id(
    index: TransactionalIndex,
    integration_id: str,
    unit_id: str,
) -> str:
    """Step 3: fixed-priority fallback to a V0 occupancy id ("" when unresolved)."""
    return (
        index.tenant_id_to_occ.get(integration_id)
        or index.integration_id_to_occ.get(integration_id)
        or (index.unit_id_to_occ.get(unit_id) if unit_id else "")
        or ""
    )


def retry_mapping_with_wide_tenants(
    rows: List[ChargeRow],
    wide_tenants: Iterable[TransactionalTenant],
) -> List[ChargeRow]:
    """
    Second resolution pass over a broader tenant set.

    Only unresolved rows are retried, and only step 3 is re-run using the
    integration id chosen in the first pass. Rows that already have a V0
    occupancy id are returned as-is, even if the wider data disagrees.
    """
    index = build_transactional_index(wide_tenants)
    updated: List[ChargeRow] = []
    filled = 0

    for row in rows:
        if row.is_resolved:
            updated.append(row)
            continue

        v0_occ_id = resolve_v0_occupancy_id(
            index, row.tenant_integration_id.strip(), row.v2_unit_id
        )
        if v0_occ_id:
            filled += 1
        updated.append(row.model_copy(update={"v0_occupancy_id": v0_occ_id}))

    logger.info(f"[MAPPING] Wide retry resolved {filled} additional rows")
    return updated
