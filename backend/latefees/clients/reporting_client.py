"""
Reporting API (V2) client - aged receivables and tenant directory reports.

Both reports are POSTed with a JSON filter body and returned either as a
plain list or as {results, next_page_url} pages. READ-ONLY: reports only.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from latefees.clients.http_client import APIError, JsonHttpClient, RetryPolicy
from latefees.config import (
    EnvMode,
    GlConfig,
    Settings,
    V2Config,
    auth_basic,
    get_gl_config,
    get_settings,
    get_v2_config,
)
from latefees.models import DelinquencyRow, TenantDirectoryEntry
from latefees.services.normalize import today_ymd

logger = logging.getLogger(__name__)

AGED_RECEIVABLES_PATH = "aged_receivables_detail.json"
TENANT_DIRECTORY_PATH = "tenant_directory.json"

# Current, notice and evict tenants
TENANT_STATUSES = ["0", "4", "3"]

AGED_RECEIVABLES_COLUMNS = [
    "property_name", "unit_name", "payer_name", "occupancy_id",
    "0_to30", "total_amount", "account_number",
    "unit_id", "property_id", "posting_date", "invoice_occurred_on",
]

# Tenant directory column sets, tried in order. Some accounts reject the
# default set or know the unit column under a different name.
TENANT_DIRECTORY_COLUMN_VARIANTS: List[Optional[List[str]]] = [
    None,
    ["property_name", "unit", "occupancy_import_uid", "tenant_integration_id", "status"],
    ["property_name", "unit_name", "occupancy_import_uid", "tenant_integration_id", "status"],
]


class ReportingClient:
    """
    Client for the reporting API.

    Usage:
        client = ReportingClient.for_mode(EnvMode.LIVE)
        rows = await client.fetch_aged_receivables()
    """

    def __init__(
        self,
        config: V2Config,
        gl: GlConfig,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **http_kwargs: Any,
    ):
        self.config = config
        self.gl = gl
        self.http = JsonHttpClient(
            config.base,
            headers={"Authorization": auth_basic(config.user, config.password)},
            policy=policy,
            transport=transport,
            **http_kwargs,
        )

    @classmethod
    def for_mode(
        cls,
        mode: EnvMode,
        settings: Optional[Settings] = None,
        **kwargs: Any,
    ) -> "ReportingClient":
        """Build a client from the live or test credential set."""
        s = settings or get_settings()
        kwargs.setdefault("policy", RetryPolicy(timeout=s.http_timeout_seconds))
        return cls(get_v2_config(mode, s), get_gl_config(mode, s), **kwargs)

    def _require_base(self) -> None:
        if not self.config.base:
            raise APIError("Reporting API base URL is not configured")

    def _property_filter(self) -> Dict[str, Any]:
        return {
            "property_visibility": "active",
            "properties": {"properties_ids": list(self.config.property_ids)},
        }

    async def fetch_aged_receivables(self, today: Optional[date] = None) -> List[DelinquencyRow]:
        """
        Aged receivables detail as of today.

        When a filter GL account is configured, only rows posted to that
        account are kept.
        """
        self._require_base()
        body = {
            "occurred_on_to": today_ymd(today),
            "tenant_statuses": list(TENANT_STATUSES),
            **self._property_filter(),
            "columns": list(AGED_RECEIVABLES_COLUMNS),
        }

        raw_rows = await self.http.follow_next_page_url(AGED_RECEIVABLES_PATH, body)
        rows = [DelinquencyRow.model_validate(r) for r in raw_rows]

        filter_gl = self.gl.filter_gl_account.strip()
        if filter_gl:
            rows = [r for r in rows if r.account_number == filter_gl]

        logger.info(f"[V2] Aged receivables: {len(rows)} rows ({len(raw_rows)} before GL filter)")
        return rows

    async def fetch_tenant_directory(self) -> List[TenantDirectoryEntry]:
        """
        Tenant directory, trying each column variant until one succeeds.

        If every variant fails the last error is raised.
        """
        self._require_base()
        last_error: Optional[Exception] = None

        for columns in TENANT_DIRECTORY_COLUMN_VARIANTS:
            body: Dict[str, Any] = {
                "tenant_visibility": "active",
                "tenant_statuses": list(TENANT_STATUSES),
                "tenant_types": ["all"],
                **self._property_filter(),
            }
            if columns:
                body["columns"] = list(columns)

            try:
                raw_rows = await self.http.follow_next_page_url(TENANT_DIRECTORY_PATH, body)
            except Exception as e:
                logger.warning(f"[V2] Tenant directory request failed (columns={columns}): {e}")
                last_error = e
                continue

            entries = [TenantDirectoryEntry.model_validate(r) for r in raw_rows]
            logger.info(f"[V2] Tenant directory: {len(entries)} rows")
            return entries

        raise last_error or APIError("All tenant directory requests failed")
