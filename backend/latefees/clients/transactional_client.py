"""
Transactional API (V0) client - tenant lookups and bulk charge creation.

Tenants are queried per batch of property ids with page[number]/page[size]
pagination. Charge creation is the only write this service performs and is
never retried automatically.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from latefees.clients.http_client import NO_RETRY, APIError, JsonHttpClient, RetryPolicy
from latefees.config import EnvMode, Settings, V0Config, auth_basic, get_settings, get_v0_config
from latefees.models import BulkChargeItem, TransactionalTenant
from latefees.services.normalize import iso_days_ago

logger = logging.getLogger(__name__)

TENANTS_PATH = "tenants"
BULK_CHARGES_PATH = "charges/bulk"

PAGE_SIZE = 1000
PROPERTY_BATCH_SIZE = 20
MAX_CONCURRENT_BATCHES = 5

DEFAULT_LOOKBACK_DAYS = 365
WIDE_LOOKBACK_DAYS = 1825


def chunk(items: List[str], size: int) -> List[List[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class TransactionalClient:
    """
    Client for the transactional API.

    Usage:
        client = TransactionalClient.for_mode(EnvMode.TEST)
        tenants = await client.fetch_tenants(wide=True)
    """

    def __init__(
        self,
        config: V0Config,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **http_kwargs: Any,
    ):
        self.config = config
        self.http = JsonHttpClient(
            config.base,
            headers={
                "Authorization": auth_basic(config.client_id, config.client_secret),
                "X-AppFolio-Developer-ID": config.dev_id,
            },
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
    ) -> "TransactionalClient":
        """Build a client from the live or test credential set."""
        s = settings or get_settings()
        kwargs.setdefault("policy", RetryPolicy(timeout=s.http_timeout_seconds))
        return cls(get_v0_config(mode, s), **kwargs)

    async def fetch_tenants(
        self,
        wide: bool = False,
        now: Optional[datetime] = None,
    ) -> List[TransactionalTenant]:
        """
        Current, notice and evicted tenants for every configured property.

        Args:
            wide: Look back five years instead of one (second-pass mapping retry)
            now: Reference time for the LastUpdatedAtFrom filter

        Raises:
            APIError: no property ids configured, or any batch failed
        """
        property_ids = list(self.config.property_ids)
        if not property_ids:
            raise APIError("No V0 property IDs configured")

        lookback = WIDE_LOOKBACK_DAYS if wide else DEFAULT_LOOKBACK_DAYS
        base_filters = {
            "filters[Status]": "Current,Notice,Evict",
            "filters[IncludeUnassigned]": "false",
            "filters[LastUpdatedAtFrom]": iso_days_ago(lookback, now),
        }

        batches = chunk(property_ids, PROPERTY_BATCH_SIZE)
        raw: List[Dict[str, Any]] = []

        # At most MAX_CONCURRENT_BATCHES property batches in flight at once
        for start in range(0, len(batches), MAX_CONCURRENT_BATCHES):
            group = batches[start:start + MAX_CONCURRENT_BATCHES]
            results = await asyncio.gather(*[
                self.http.fetch_numbered_pages(
                    TENANTS_PATH,
                    {**base_filters, "filters[PropertyId]": ",".join(batch)},
                    page_size=PAGE_SIZE,
                )
                for batch in group
            ])
            for result in results:
                raw.extend(result)

        # Batches can overlap on shared tenants; first occurrence wins
        seen = set()
        tenants: List[TransactionalTenant] = []
        for record in raw:
            tenant = TransactionalTenant.model_validate(record)
            if tenant.tenant_id in seen:
                continue
            seen.add(tenant.tenant_id)
            tenants.append(tenant)

        logger.info(
            f"[V0] Tenants: {len(tenants)} unique across {len(batches)} batches "
            f"(lookback {lookback}d, {len(raw)} raw)"
        )
        return tenants

    async def create_bulk_charges(self, items: List[BulkChargeItem]) -> Dict[str, Any]:
        """POST charges in one bulk request. Returns the decoded response body."""
        if not items:
            raise APIError("No charges to submit")

        payload = {"data": [item.model_dump() for item in items]}
        logger.info(f"[V0] Submitting {len(items)} charges")
        try:
            result = await self.http.request_json(
                "POST",
                self.http.url_for(BULK_CHARGES_PATH),
                json=payload,
                policy=NO_RETRY,
            )
        except APIError as e:
            raise APIError(f"Bulk create failed: {e}", status_code=e.status_code) from e

        return result if isinstance(result, dict) else {"data": result}
