"""
Configuration settings for the Late Fee Charges service.

Live and test credential sets are both read from the environment (or .env);
the X-Env-Mode header / scheduler setting picks which one a request uses.
"""
import base64
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings

DEFAULT_V0_BASE = "https://api.appfolio.com/api/v0"


class EnvMode(str, Enum):
    """Which credential set a run uses."""
    LIVE = "live"
    TEST = "test"


class Settings(BaseSettings):
    # Reporting API (V2) - live
    v2_base: str = ""
    v2_user: str = ""
    v2_pass: str = ""
    v2_property_ids: str = ""

    # Reporting API (V2) - test
    test_v2_base: str = ""
    test_v2_user: str = ""
    test_v2_pass: str = ""
    test_v2_property_ids: str = ""

    # Transactional API (V0) - live
    v0_base: str = DEFAULT_V0_BASE
    v0_dev_id: str = ""
    v0_client_id: str = ""
    v0_client_secret: str = ""
    v0_property_ids: str = ""

    # Transactional API (V0) - test
    test_v0_base: str = DEFAULT_V0_BASE
    test_v0_dev_id: str = ""
    test_v0_client_id: str = ""
    test_v0_client_secret: str = ""
    test_v0_property_ids: str = ""

    # GL accounts
    bulk_gl_account_id: str = ""
    table_gl_account_number: str = "4815-000"
    filter_gl_account: str = ""
    test_bulk_gl_account_id: str = ""
    test_table_gl_account_number: str = "4815-000"
    test_filter_gl_account: str = ""

    # "1" forces test-mode submissions to return the payload without posting
    test_dry_run: str = ""

    # Late fee jurisdictions (comma-separated property ids)
    late_fee_group_a_property_ids: str = ""
    late_fee_group_b_property_ids: str = ""
    default_late_fee_threshold: float = 1000.0
    default_late_fee_percent: float = 0.05
    default_late_fee_base: float = 10.0
    late_fee_description_prefix: str = "IL Custom Late Fee"

    # Scheduler
    cron_secret: str = ""
    scheduler_enabled: bool = True
    scheduler_env_mode: EnvMode = EnvMode.LIVE
    scheduler_auto_submit: bool = False

    # HTTP
    http_timeout_seconds: float = 60.0
    frontend_url: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@dataclass(frozen=True)
class V2Config:
    base: str
    user: str
    password: str
    property_ids: List[str]


@dataclass(frozen=True)
class V0Config:
    base: str
    dev_id: str
    client_id: str
    client_secret: str
    property_ids: List[str]


@dataclass(frozen=True)
class GlConfig:
    bulk_gl_account_id: str
    table_gl_account_number: str
    filter_gl_account: str


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def split_ids(value: str) -> List[str]:
    """Split a comma-separated id list, dropping blanks."""
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def env_mode_from_header(value: Optional[str]) -> EnvMode:
    """Anything other than an explicit 'test' runs against live."""
    return EnvMode.TEST if (value or "").strip().lower() == "test" else EnvMode.LIVE


def get_v2_config(mode: EnvMode, settings: Optional[Settings] = None) -> V2Config:
    s = settings or get_settings()
    if mode == EnvMode.TEST:
        return V2Config(
            base=s.test_v2_base.rstrip("/"),
            user=s.test_v2_user,
            password=s.test_v2_pass,
            property_ids=split_ids(s.test_v2_property_ids),
        )
    return V2Config(
        base=s.v2_base.rstrip("/"),
        user=s.v2_user,
        password=s.v2_pass,
        property_ids=split_ids(s.v2_property_ids),
    )


def get_v0_config(mode: EnvMode, settings: Optional[Settings] = None) -> V0Config:
    s = settings or get_settings()
    if mode == EnvMode.TEST:
        return V0Config(
            base=(s.test_v0_base or DEFAULT_V0_BASE).rstrip("/"),
            dev_id=s.test_v0_dev_id,
            client_id=s.test_v0_client_id,
            client_secret=s.test_v0_client_secret,
            property_ids=split_ids(s.test_v0_property_ids),
        )
    return V0Config(
        base=(s.v0_base or DEFAULT_V0_BASE).rstrip("/"),
        dev_id=s.v0_dev_id,
        client_id=s.v0_client_id,
        client_secret=s.v0_client_secret,
        property_ids=split_ids(s.v0_property_ids),
    )


def get_gl_config(mode: EnvMode, settings: Optional[Settings] = None) -> GlConfig:
    s = settings or get_settings()
    if mode == EnvMode.TEST:
        return GlConfig(
            bulk_gl_account_id=s.test_bulk_gl_account_id,
            table_gl_account_number=s.test_table_gl_account_number,
            filter_gl_account=s.test_filter_gl_account,
        )
    return GlConfig(
        bulk_gl_account_id=s.bulk_gl_account_id,
        table_gl_account_number=s.table_gl_account_number,
        filter_gl_account=s.filter_gl_account,
    )


def is_dry_run(mode: EnvMode, settings: Optional[Settings] = None) -> bool:
    """Live mode is never a dry run."""
    s = settings or get_settings()
    return mode == EnvMode.TEST and s.test_dry_run.strip() == "1"


def auth_basic(user: str, password: str) -> str:
    """Build an HTTP Basic Authorization header value."""
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
