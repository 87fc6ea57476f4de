"""
Environment-driven configuration.
"""
from config.settings import (
    DevelopmentConfig, ProductionConfig, TestingConfig, _env_bool, _env_list, get_config
)


def test_get_config_by_name():
    assert get_config('development') is DevelopmentConfig
    assert get_config('Testing') is TestingConfig


def test_get_config_falls_back_to_app_env(monkeypatch):
    monkeypatch.setenv('APP_ENV', 'development')
    assert get_config() is DevelopmentConfig

    monkeypatch.delenv('APP_ENV')
    assert get_config() is ProductionConfig
    assert get_config('staging') is ProductionConfig


def test_env_bool(monkeypatch):
    monkeypatch.setenv('FLAG', 'Yes')
    assert _env_bool('FLAG') is True

    monkeypatch.setenv('FLAG', '0')
    assert _env_bool('FLAG', True) is False

    monkeypatch.delenv('FLAG')
    assert _env_bool('FLAG', True) is True


def test_env_list(monkeypatch):
    monkeypatch.setenv('RECIPIENTS', ' a@example.com, ,b@example.com ')

    assert _env_list('RECIPIENTS', '') == ['a@example.com', 'b@example.com']
    assert _env_list('UNSET_LIST_VAR', 'x@example.com') == ['x@example.com']


def test_defaults():
    assert ProductionConfig.RATELIMIT_HEADERS_ENABLED is True
    assert ProductionConfig.RATELIMIT_STRATEGY == 'fixed-window'
    assert ProductionConfig.MAX_CONTENT_LENGTH == 10 * 1024 * 1024
    assert DevelopmentConfig.DEBUG is True


def test_app_reads_testing_config(app):
    assert app.config['ENV_NAME'] == 'testing'
    assert app.config['CONTACT_RECIPIENTS'] == ['contact@test.example', 'sales@test.example']
    assert app.contact_renderer.company_name == 'Test Company'
