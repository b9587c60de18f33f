import pytest

from clinic_backend.core import config


def test_validate_runtime_config_rejects_default_key_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'change-me')

    with pytest.raises(RuntimeError, match='JWT_SECRET_KEY'):
        config.validate_runtime_config()


def test_validate_runtime_config_accepts_explicit_key_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'a-real-signing-key')

    config.validate_runtime_config()


def test_get_time_and_list_parsers() -> None:
    assert config._get_time('08:30', None).strftime('%H:%M') == '08:30'
    assert config._get_list(' a, b ,,c ', []) == ['a', 'b', 'c']
    assert config._get_bool('Yes') is True
    assert config._get_bool(None, default=True) is True
