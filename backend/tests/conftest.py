"""
Test fixtures for the late fee backend tests.

Builds an isolated Settings object (no .env), an explicit jurisdiction
table, in-memory fake API clients, and an ASGI client with the client
factory and settings dependencies overridden so tests never reach a real API.
"""
from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport

from latefees.api.deps import get_client_factory
from latefees.api.scheduler import run_history
from latefees.config import EnvMode, Settings, get_settings
from latefees.main import app
from latefees.models import (
    BulkChargeItem,
    ChargeRow,
    DelinquencyRow,
    TenantDirectoryEntry,
    TransactionalTenant,
)
from latefees.property_config.jurisdictions import build_jurisdictions


# ── Test data ──────────────────────────────────────────────────────────

TODAY = date(2026, 3, 15)
THIS_MONTH = "2026-03-01"
LAST_MONTH = "2026-02-01"

GROUP_A_PROPERTY = "101"
GROUP_B_PROPERTY = "202"
UNKNOWN_PROPERTY = "999"

V2_BASE = "https://acme.example.com/api/v2/reports"
V0_BASE = "https://api.example.com/api/v0"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        v2_base=V2_BASE,
        v2_user="v2user",
        v2_pass="v2pass",
        v2_property_ids="101,202",
        v0_base=V0_BASE,
        v0_dev_id="dev-123",
        v0_client_id="client",
        v0_client_secret="secret",
        v0_property_ids="p1,p2,p3",
        bulk_gl_account_id="GL-LIVE",
        test_v2_base="https://sandbox.example.com/api/v2/reports",
        test_v0_base="https://sandbox-api.example.com/api/v0",
        test_v0_property_ids="tp1",
        test_bulk_gl_account_id="GL-TEST",
        late_fee_group_a_property_ids=GROUP_A_PROPERTY,
        late_fee_group_b_property_ids=GROUP_B_PROPERTY,
        cron_secret="cron-secret",
        scheduler_enabled=True,
        scheduler_env_mode=EnvMode.LIVE,
        scheduler_auto_submit=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def delinquency(**overrides: Any) -> DelinquencyRow:
    """Aged receivables row in wire format; overrides use wire names."""
    record: Dict[str, Any] = {
        "property_name": "Maple Court",
        "unit_name": "1A",
        "payer_name": "Doe, Jane",
        "occupancy_id": "UID-1",
        "0_to30": "100.00",
        "total_amount": "1,200.00",
        "unit_id": "U1",
        "property_id": GROUP_A_PROPERTY,
        "posting_date": THIS_MONTH,
        "invoice_occurred_on": THIS_MONTH,
        "account_number": "4000",
    }
    record.update(overrides)
    return DelinquencyRow.model_validate(record)


def directory_entry(**overrides: Any) -> TenantDirectoryEntry:
    record: Dict[str, Any] = {
        "occupancy_import_uid": "UID-1",
        "tenant_integration_id": "T1",
        "status": "current",
        "property_name": "Maple Court",
        "unit": "1A",
    }
    record.update(overrides)
    return TenantDirectoryEntry.model_validate(record)


def v0_tenant(**overrides: Any) -> TransactionalTenant:
    record: Dict[str, Any] = {
        "Id": "T1",
        "OccupancyId": "OCC-V0-1",
        "Status": "Current",
        "UnitId": "U1",
    }
    record.update(overrides)
    return TransactionalTenant.model_validate(record)


def charge_row(**overrides: Any) -> ChargeRow:
    values: Dict[str, Any] = dict(
        property_name="Maple Court",
        unit_name="1A",
        occupancy_uid="UID-1",
        tenant_name="Jane Doe",
        occupancy_id="UID-1",
        amount=20.0,
        charge_date=THIS_MONTH,
        posting_date=THIS_MONTH,
        gl_account_number="4815-000",
        description="IL Custom Late Fee - 03/01/2026",
        charge_date_iso=THIS_MONTH,
        posting_date_iso=THIS_MONTH,
        tenant_integration_id="T1",
        v0_occupancy_id="OCC-V0-1",
        v2_unit_id="U1",
        v2_property_id=GROUP_A_PROPERTY,
        zero_to_30=100.0,
        total_amount=1200.0,
    )
    values.update(overrides)
    return ChargeRow(**values)


# ── Fake API clients ───────────────────────────────────────────────────

class FakeReportingClient:
    def __init__(
        self,
        aged: Optional[List[DelinquencyRow]] = None,
        directory: Optional[List[TenantDirectoryEntry]] = None,
        aged_error: Optional[Exception] = None,
        directory_error: Optional[Exception] = None,
    ):
        self.aged = aged or []
        self.directory = directory or []
        self.aged_error = aged_error
        self.directory_error = directory_error

    async def fetch_aged_receivables(self, today: Optional[date] = None) -> List[DelinquencyRow]:
        if self.aged_error:
            raise self.aged_error
        return list(self.aged)

    async def fetch_tenant_directory(self) -> List[TenantDirectoryEntry]:
        if self.directory_error:
            raise self.directory_error
        return list(self.directory)


class FakeTransactionalClient:
    def __init__(
        self,
        tenants: Optional[List[TransactionalTenant]] = None,
        wide_tenants: Optional[List[TransactionalTenant]] = None,
        error: Optional[Exception] = None,
        wide_error: Optional[Exception] = None,
        submit_error: Optional[Exception] = None,
    ):
        self.tenants = tenants or []
        self.wide_tenants = wide_tenants or []
        self.error = error
        self.wide_error = wide_error
        self.submit_error = submit_error
        self.fetch_calls: List[bool] = []
        self.submissions: List[List[BulkChargeItem]] = []

    async def fetch_tenants(self, wide: bool = False) -> List[TransactionalTenant]:
        self.fetch_calls.append(wide)
        if wide:
            if self.wide_error:
                raise self.wide_error
            return list(self.wide_tenants)
        if self.error:
            raise self.error
        return list(self.tenants)

    async def create_bulk_charges(self, items: List[BulkChargeItem]) -> Dict[str, Any]:
        if self.submit_error:
            raise self.submit_error
        self.submissions.append(list(items))
        return {"message": f"Created {len(items)} charges"}


class FakeClientFactory:
    def __init__(self, reporting: FakeReportingClient, transactional: FakeTransactionalClient):
        self._reporting = reporting
        self._transactional = transactional
        self.modes: List[EnvMode] = []

    def reporting(self, mode: EnvMode) -> FakeReportingClient:
        self.modes.append(mode)
        return self._reporting

    def transactional(self, mode: EnvMode) -> FakeTransactionalClient:
        return self._transactional


# ── Fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def jurisdictions(settings):
    return build_jurisdictions(settings)


@pytest.fixture
def reporting():
    return FakeReportingClient(aged=[delinquency()], directory=[directory_entry()])


@pytest.fixture
def transactional():
    return FakeTransactionalClient(tenants=[v0_tenant()])


@pytest.fixture
def client_factory(reporting, transactional):
    return FakeClientFactory(reporting, transactional)


@pytest.fixture
async def client(settings, client_factory):
    """Async HTTP client against the app with fake API clients injected."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_client_factory] = lambda: client_factory
    run_history.clear()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    run_history.clear()
