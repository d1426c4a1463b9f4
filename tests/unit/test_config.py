"""Configuration loading tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from tests.helpers import config_values, write_config
from writeflow_service.config import (
    REDACTION_MARKER,
    ConfigurationError,
    Settings,
    get_safe_config,
    get_settings,
)


@pytest.mark.unit
class TestConfigLoading:
    """Standard config loading tests."""

    def test_valid_config_loads(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path)))
        settings = get_settings()
        assert isinstance(settings, Settings)
        assert settings.service.name == "writeflow"
        assert settings.database.busy_timeout_ms == 5000
        assert settings.notifications.admin_recipients == ["admin-1"]
        assert settings.pagination.max_limit == 50

    def test_settings_are_cached(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path)))
        assert get_settings() is get_settings()

    def test_missing_file_fails_startup(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "absent.yaml"))
        with pytest.raises(ConfigurationError):
            get_settings()

    def test_non_mapping_file_fails_startup(self, tmp_path, monkeypatch) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- just\n- a\n- list\n")
        monkeypatch.setenv("CONFIG_PATH", str(config_path))
        with pytest.raises(ConfigurationError):
            get_settings()

    def test_extra_fields_rejected(self, tmp_path, monkeypatch) -> None:
        values = config_values(tmp_path)
        values["database"]["pool_size"] = 4
        monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path, values)))
        with pytest.raises(PydanticValidationError):
            get_settings()

    def test_missing_section_rejected(self, tmp_path, monkeypatch) -> None:
        values = config_values(tmp_path)
        del values["pagination"]
        monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path, values)))
        with pytest.raises(PydanticValidationError):
            get_settings()


@pytest.mark.unit
class TestConfigValidators:
    """Field-level startup checks."""

    def test_empty_jwt_secret_rejected(self, tmp_path, monkeypatch) -> None:
        values = config_values(tmp_path)
        values["auth"]["jwt_secret"] = "   "
        monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path, values)))
        with pytest.raises(PydanticValidationError):
            get_settings()

    def test_non_positive_busy_timeout_rejected(self, tmp_path, monkeypatch) -> None:
        values = config_values(tmp_path)
        values["database"]["busy_timeout_ms"] = 0
        monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path, values)))
        with pytest.raises(PydanticValidationError):
            get_settings()

    @pytest.mark.parametrize("default_limit", [0, 51])
    def test_default_page_size_must_fit_maximum(self, tmp_path, monkeypatch, default_limit) -> None:
        values = config_values(tmp_path)
        values["pagination"]["default_limit"] = default_limit
        monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path, values)))
        with pytest.raises(PydanticValidationError):
            get_settings()


@pytest.mark.unit
def test_safe_config_redacts_secret(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path)))
    safe = get_safe_config()
    assert safe["auth"]["jwt_secret"] == REDACTION_MARKER
    assert safe["auth"]["algorithm"] == "HS256"
    assert safe["database"]["busy_timeout_ms"] == 5000
