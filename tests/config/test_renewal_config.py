from __future__ import annotations

from pathlib import Path

import pytest

from renewsync.config import (
    ConfigurationError,
    get_database_config,
    get_renewal_config,
    get_stripe_config,
)

_RENEWAL_VARS = (
    "RENEWAL_HORIZON_DAYS",
    "RENEWAL_ALLOW_LOCAL_FALLBACK",
    "RENEWAL_CHUNK_SIZE",
    "RENEWAL_MAX_RECORDS",
    "RENEWAL_TENANT_DELAY_SECONDS",
    "RENEWAL_STALE_RUN_HOURS",
    "RENEWAL_SCHEDULE_ENABLED",
    "RENEWAL_SCHEDULE_CRON",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _RENEWAL_VARS:
        monkeypatch.delenv(name, raising=False)


def test_renewal_defaults() -> None:
    config = get_renewal_config()

    assert config.horizon_days == 7
    assert config.allow_local_fallback is False
    assert config.chunk_size == 100
    assert config.max_records == 10_000
    assert config.tenant_delay_seconds == 1.0
    assert config.schedule_enabled is True
    assert config.schedule_cron == "0 0 */6 * * *"


def test_renewal_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENEWAL_HORIZON_DAYS", "14")
    monkeypatch.setenv("RENEWAL_ALLOW_LOCAL_FALLBACK", "yes")
    monkeypatch.setenv("RENEWAL_CHUNK_SIZE", " 25 ")
    monkeypatch.setenv("RENEWAL_TENANT_DELAY_SECONDS", "0")
    monkeypatch.setenv("RENEWAL_SCHEDULE_ENABLED", "off")

    config = get_renewal_config()

    assert config.horizon_days == 14
    assert config.allow_local_fallback is True
    assert config.chunk_size == 25
    assert config.tenant_delay_seconds == 0.0
    assert config.schedule_enabled is False


def test_blank_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RENEWAL_HORIZON_DAYS", "   ")

    assert get_renewal_config().horizon_days == 7


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("RENEWAL_HORIZON_DAYS", "seven"),
        ("RENEWAL_HORIZON_DAYS", "-1"),
        ("RENEWAL_CHUNK_SIZE", "0"),
        ("RENEWAL_ALLOW_LOCAL_FALLBACK", "maybe"),
        ("RENEWAL_TENANT_DELAY_SECONDS", "soon"),
    ],
)
def test_invalid_values_are_rejected(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError) as exc:
        get_renewal_config()

    assert name in str(exc.value)


def test_stripe_config_uses_base_url_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STRIPE_API_BASE_URL", "http://localhost:12111/v1/")

    config = get_stripe_config()

    assert config.resilience.base_url == "http://localhost:12111/v1/"
    assert config.resilience.ratelimit is not None
    assert config.provider_name == "STRIPE"


def test_database_uri_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://db/renewals")

    assert get_database_config().uri == "postgresql+psycopg://db/renewals"


def test_database_uri_defaults_to_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("RENEWSYNC_DATA_DIR", str(tmp_path / "data"))

    uri = get_database_config().uri

    assert uri == f"sqlite+pysqlite:///{(tmp_path / 'data').resolve() / 'renewsync.db'}"
    assert (tmp_path / "data").is_dir()
