"""Test occupancy identity reconciliation between the reporting and transactional systems."""
from latefees.services.occupancy_mapping import (
    TenantCandidate,
    build_occupancy_maps,
    build_transactional_index,
    pick_integration_id,
    prop_unit_key,
    resolve_occupancy_uid,
    resolve_v0_occupancy_id,
    retry_mapping_with_wide_tenants,
)
from tests.conftest import charge_row, delinquency, directory_entry, v0_tenant


# ── Transactional index ────────────────────────────────────────────────

def test_index_skips_tenants_without_occupancy():
    index = build_transactional_index([v0_tenant(Id="T9", OccupancyId="")])
    assert index.tenant_id_to_occ == {}
    assert index.unit_id_to_occ == {}


def test_index_integration_id_falls_back_to_external_id():
    index = build_transactional_index([v0_tenant(Id="T1", ExternalId="EXT-1")])
    assert index.integration_id_to_occ == {"EXT-1": "OCC-V0-1"}


def test_unit_fallback_only_active_and_first_wins():
    index = build_transactional_index([
        v0_tenant(Id="T1", OccupancyId="OCC-PAST", Status="Evict", UnitId="U1"),
        v0_tenant(Id="T2", OccupancyId="OCC-FIRST", Status="Notice", UnitId="U1"),
        v0_tenant(Id="T3", OccupancyId="OCC-SECOND", Status="Current", UnitId="U1"),
    ])
    assert index.unit_id_to_occ == {"U1": "OCC-FIRST"}


# ── Resolution ─────────────────────────────────────────────────────────

def test_tenant_id_match_beats_integration_id_match():
    index = build_transactional_index([
        v0_tenant(Id="OTHER", IntegrationId="T1", OccupancyId="OCC-BY-INTEGRATION", UnitId="U7"),
        v0_tenant(Id="T1", OccupancyId="OCC-BY-TENANT", UnitId="U8"),
    ])
    assert resolve_v0_occupancy_id(index, "T1", "U7") == "OCC-BY-TENANT"


def test_unit_fallback_used_last():
    index = build_transactional_index([v0_tenant(Id="T5", OccupancyId="OCC-UNIT", UnitId="U1")])
    assert resolve_v0_occupancy_id(index, "NO-MATCH", "U1") == "OCC-UNIT"
    assert resolve_v0_occupancy_id(index, "NO-MATCH", "") == ""
    assert resolve_v0_occupancy_id(index, "", "U404") == ""


def test_pick_integration_id_prefers_active_candidate():
    candidates = [
        TenantCandidate(integration_id="PAST", status="past"),
        TenantCandidate(integration_id=" NOTICE ", status="notice"),
        TenantCandidate(integration_id="CURRENT", status="current"),
    ]
    assert pick_integration_id(candidates) == "NOTICE"


def test_pick_integration_id_falls_back_to_first():
    candidates = [
        TenantCandidate(integration_id="A", status="past"),
        TenantCandidate(integration_id="B", status="evict"),
    ]
    assert pick_integration_id(candidates) == "A"
    assert pick_integration_id([]) == ""
    assert pick_integration_id(None) == ""


def test_occupancy_uid_direct_match():
    maps = build_occupancy_maps([], [directory_entry()])
    assert resolve_occupancy_uid(delinquency(occupancy_id="UID-1"), maps) == "UID-1"


def test_occupancy_uid_property_unit_fallback_is_case_insensitive():
    maps = build_occupancy_maps([], [directory_entry(property_name="MAPLE COURT", unit="1a")])
    row = delinquency(occupancy_id="SOMETHING-ELSE", property_name="Maple Court ", unit_name="1A")
    assert resolve_occupancy_uid(row, maps) == "UID-1"


def test_occupancy_uid_via_occupancy_id_map():
    maps = build_occupancy_maps([], [
        directory_entry(property_name="", unit="", occupancy_id="OCC-V2-9"),
    ])
    row = delinquency(occupancy_id="OCC-V2-9", property_name="Elsewhere", unit_name="9")
    assert resolve_occupancy_uid(row, maps) == "UID-1"


def test_directory_uses_alternate_property_and_unit_columns():
    entry = directory_entry(property_name="", unit="", **{"property": "Oak Flats", "unit_name": "2B"})
    maps = build_occupancy_maps([], [entry])
    assert maps.occ_uid_by_prop_unit == {prop_unit_key("Oak Flats", "2B"): "UID-1"}


def test_unresolvable_row_gets_empty_uid():
    maps = build_occupancy_maps([], [])
    assert resolve_occupancy_uid(delinquency(), maps) == ""


# ── Wide retry ─────────────────────────────────────────────────────────

def test_wide_retry_never_overwrites_resolved_rows():
    resolved = charge_row(v0_occupancy_id="OCC-ORIGINAL", tenant_integration_id="T1")
    wide = [v0_tenant(Id="T1", OccupancyId="OCC-DIFFERENT")]

    [row] = retry_mapping_with_wide_tenants([resolved], wide)

    assert row.v0_occupancy_id == "OCC-ORIGINAL"
    assert row is resolved


def test_wide_retry_fills_unresolved_rows():
    rows = [
        charge_row(tenant_name="A", v0_occupancy_id="", tenant_integration_id="T7", v2_unit_id="U7"),
        charge_row(tenant_name="B", v0_occupancy_id="", tenant_integration_id="", v2_unit_id="U8"),
        charge_row(tenant_name="C", v0_occupancy_id="", tenant_integration_id="NOPE", v2_unit_id="U9"),
    ]
    wide = [
        v0_tenant(Id="T7", OccupancyId="OCC-7", UnitId="U70"),
        v0_tenant(Id="T8", OccupancyId="OCC-8", UnitId="U8", Status="Current"),
    ]

    updated = retry_mapping_with_wide_tenants(rows, wide)

    assert [r.v0_occupancy_id for r in updated] == ["OCC-7", "OCC-8", ""]
    assert [r.tenant_name for r in updated] == ["A", "B", "C"]
