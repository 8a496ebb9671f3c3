"""
Shared route dependencies: environment mode and API client construction.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException

from latefees.clients.reporting_client import ReportingClient
from latefees.clients.transactional_client import TransactionalClient
from latefees.config import EnvMode, Settings, env_mode_from_header, get_settings


class ClientFactory:
    """Builds reporting/transactional clients for a mode. Tests swap this out."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings

    def reporting(self, mode: EnvMode) -> ReportingClient:
        return ReportingClient.for_mode(mode, self.settings)

    def transactional(self, mode: EnvMode) -> TransactionalClient:
        return TransactionalClient.for_mode(mode, self.settings)


def get_client_factory() -> ClientFactory:
    return ClientFactory()


def get_env_mode(x_env_mode: Optional[str] = Header(None)) -> EnvMode:
    """X-Env-Mode: test selects the test credential set; anything else is live."""
    return env_mode_from_header(x_env_mode)


def require_cron_secret(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Bearer token check for scheduler endpoints. No configured secret = locked."""
    secret = settings.cron_secret
    if not secret or authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")
