from decimal import Decimal

import pytest

from ledgerpost.core.config import Settings, load_settings
from ledgerpost.core.database import _connect_args

STRONG_KEY = "a-long-enough-secret-key-for-production-use-0123"


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.CURRENCY_DECIMAL_PLACES == 2
    assert settings.minor_unit == Decimal("0.01")
    assert settings.BALANCE_TOLERANCE == Decimal("0.01")
    assert settings.TRANSACTION_TIMEOUT_SECONDS == 30.0
    assert not settings.is_production


def test_database_url_normalisation():
    assert Settings(_env_file=None, DATABASE_URL="file:/tmp/ledger.db").database_url == "sqlite:////tmp/ledger.db"
    assert Settings(_env_file=None, DATABASE_URL="postgres://u:p@db/ledger").database_url == "postgresql://u:p@db/ledger"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TRANSACTION_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("CURRENCY_DECIMAL_PLACES", "3")

    settings = Settings(_env_file=None)

    assert settings.TRANSACTION_TIMEOUT_SECONDS == 5.0
    assert settings.minor_unit == Decimal("0.001")


def test_connect_args_bound_transaction_time():
    sqlite = Settings(_env_file=None, TRANSACTION_TIMEOUT_SECONDS=7)
    assert _connect_args(sqlite) == {"check_same_thread": False, "timeout": 7}

    postgres = Settings(_env_file=None, DATABASE_URL="postgresql://u:p@db/ledger", TRANSACTION_TIMEOUT_SECONDS=2.5)
    options = _connect_args(postgres)["options"]
    assert "statement_timeout=2500" in options
    assert "idle_in_transaction_session_timeout=2500" in options


def test_default_secret_key_warns_in_development():
    with pytest.warns(UserWarning):
        load_settings(_env_file=None, ENVIRONMENT="development")


def test_default_secret_key_is_fatal_in_production():
    with pytest.raises(ValueError):
        load_settings(_env_file=None, ENVIRONMENT="production")


def test_debug_is_fatal_in_production():
    with pytest.raises(ValueError):
        load_settings(_env_file=None, ENVIRONMENT="production", SECRET_KEY=STRONG_KEY, DEBUG=True)


def test_production_settings_with_strong_key():
    settings = load_settings(_env_file=None, ENVIRONMENT="production", SECRET_KEY=STRONG_KEY)
    assert settings.is_production
