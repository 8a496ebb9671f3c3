"""Test settings, per-mode credential sets and helpers."""
import base64

from latefees.config import (
    DEFAULT_V0_BASE,
    EnvMode,
    auth_basic,
    env_mode_from_header,
    get_gl_config,
    get_v0_config,
    get_v2_config,
    is_dry_run,
    split_ids,
)
from tests.conftest import V0_BASE, V2_BASE, make_settings


def test_env_mode_from_header():
    assert env_mode_from_header("test") == EnvMode.TEST
    assert env_mode_from_header(" TEST ") == EnvMode.TEST
    assert env_mode_from_header("live") == EnvMode.LIVE
    assert env_mode_from_header("staging") == EnvMode.LIVE
    assert env_mode_from_header(None) == EnvMode.LIVE


def test_split_ids():
    assert split_ids(" 101, 202 ,,303 ") == ["101", "202", "303"]
    assert split_ids("") == []
    assert split_ids(None) == []


def test_v2_config_per_mode():
    settings = make_settings(v2_base=V2_BASE + "/", test_v2_user="tu", test_v2_pass="tp")

    live = get_v2_config(EnvMode.LIVE, settings)
    assert live.base == V2_BASE
    assert live.user == "v2user"
    assert live.property_ids == ["101", "202"]

    test = get_v2_config(EnvMode.TEST, settings)
    assert test.base == "https://sandbox.example.com/api/v2/reports"
    assert (test.user, test.password) == ("tu", "tp")
    assert test.property_ids == []


def test_v0_config_per_mode():
    settings = make_settings()

    live = get_v0_config(EnvMode.LIVE, settings)
    assert live.base == V0_BASE
    assert live.dev_id == "dev-123"
    assert live.property_ids == ["p1", "p2", "p3"]

    test = get_v0_config(EnvMode.TEST, settings)
    assert test.property_ids == ["tp1"]


def test_v0_base_falls_back_to_default():
    settings = make_settings(v0_base="", test_v0_base="")
    assert get_v0_config(EnvMode.LIVE, settings).base == DEFAULT_V0_BASE
    assert get_v0_config(EnvMode.TEST, settings).base == DEFAULT_V0_BASE


def test_gl_config_per_mode():
    settings = make_settings(filter_gl_account="4815-000", test_table_gl_account_number="9999")

    live = get_gl_config(EnvMode.LIVE, settings)
    assert live.bulk_gl_account_id == "GL-LIVE"
    assert live.table_gl_account_number == "4815-000"
    assert live.filter_gl_account == "4815-000"

    test = get_gl_config(EnvMode.TEST, settings)
    assert test.bulk_gl_account_id == "GL-TEST"
    assert test.table_gl_account_number == "9999"
    assert test.filter_gl_account == ""


def test_dry_run_only_in_test_mode():
    settings = make_settings(test_dry_run="1")
    assert is_dry_run(EnvMode.TEST, settings) is True
    assert is_dry_run(EnvMode.LIVE, settings) is False
    assert is_dry_run(EnvMode.TEST, make_settings(test_dry_run="true")) is False
    assert is_dry_run(EnvMode.TEST, make_settings()) is False


def test_auth_basic():
    header = auth_basic("user", "p:ss")
    assert header.startswith("Basic ")
    assert base64.b64decode(header[len("Basic "):]).decode() == "user:p:ss"


def test_defaults():
    settings = make_settings()
    assert settings.late_fee_description_prefix == "IL Custom Late Fee"
    assert settings.default_late_fee_threshold == 1000.0
    assert settings.scheduler_auto_submit is False
