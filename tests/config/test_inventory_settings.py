"""Settings loading, validation and the settings -> kernel bridges."""

import logging
from decimal import Decimal

import pytest
import yaml

from inventory_config import DEFAULT_SETTINGS_PATH, get_settings
from inventory_config import bridges
from inventory_config.bridges import (
    build_material_create,
    build_role_policy,
    configure_logging_from_settings,
    init_engine_from_settings,
)
from inventory_config.loader import DATABASE_URL_ENV, load_yaml_file, parse_settings
from inventory_config.schema import InventorySettings, RoleSettings
from inventory_kernel.domain.roles import DEFAULT_ROLE_POLICY
from inventory_kernel.domain.values import ActorRole
from inventory_kernel.exceptions import InvalidEnumValueError


@pytest.fixture(autouse=True)
def _no_url_override(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


def _write(tmp_path, data) -> str:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestGetSettings:

    def test_packaged_defaults(self):
        settings = get_settings()

        assert DEFAULT_SETTINGS_PATH.exists()
        assert settings.log_level == "INFO"
        assert settings.database.url == "sqlite:///inventory.db"
        assert settings.database.lock_timeout_ms == 5000
        assert settings.stock.default_min_stock_level == 10

    def test_packaged_roles_match_kernel_defaults(self):
        assert build_role_policy(get_settings()) == DEFAULT_ROLE_POLICY

    def test_environment_overrides_url(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://inv:inv@db/inventory")

        settings = get_settings()

        assert settings.database.url == "postgresql://inv:inv@db/inventory"
        assert settings.database.pool_size == 20

    def test_partial_file_uses_defaults(self, tmp_path):
        path = _write(tmp_path, {"stock": {"default_min_stock_level": 25}, "log_level": "debug"})

        settings = get_settings(path)

        assert settings.stock.default_min_stock_level == 25
        assert settings.log_level == "DEBUG"
        assert settings.database == InventorySettings().database

    def test_load_logged(self, captured_logs):
        get_settings()

        (record,) = [r for r in captured_logs() if r["message"] == "inventory_settings_loaded"]
        assert record["dialect"] == "sqlite"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_settings(tmp_path / "absent.yaml")


class TestValidation:

    def test_unknown_top_level_key(self):
        with pytest.raises(ValueError, match="reporting"):
            parse_settings({"reporting": {}}, environ={})

    def test_unknown_section_key(self):
        with pytest.raises(ValueError, match="pool"):
            parse_settings({"database": {"pool": 3}}, environ={})

    def test_bad_log_level(self):
        with pytest.raises(ValueError, match="log_level"):
            parse_settings({"log_level": "LOUD"}, environ={})

    def test_negative_integer_rejected(self):
        with pytest.raises(ValueError, match="default_min_stock_level"):
            parse_settings({"stock": {"default_min_stock_level": -1}}, environ={})

    def test_empty_role_list_rejected(self):
        with pytest.raises(ValueError, match="roles.deleters"):
            parse_settings({"roles": {"deleters": []}}, environ={})

    def test_single_role_name_accepted(self):
        settings = parse_settings({"roles": {"deleters": "manager"}}, environ={})
        assert settings.roles.deleters == ("manager",)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(path)


class TestBridges:

    def test_custom_role_policy(self):
        settings = InventorySettings(
            roles=RoleSettings(bom_releasers=("admin",), stock_operators=("operator",)),
        )

        policy = build_role_policy(settings)

        assert policy.bom_releasers == frozenset({ActorRole.ADMIN})
        assert policy.stock_operators == frozenset({ActorRole.OPERATOR})
        assert policy.deleters == DEFAULT_ROLE_POLICY.deleters

    def test_unknown_role_name(self):
        settings = InventorySettings(roles=RoleSettings(deleters=("superuser",)))
        with pytest.raises(InvalidEnumValueError):
            build_role_policy(settings)

    def test_material_create_uses_configured_minimum(self, tmp_path):
        settings = get_settings(_write(tmp_path, {"stock": {"default_min_stock_level": 40}}))

        command = build_material_create(
            settings, name="Gasket", category="Mechanical Parts", unit="pcs",
            unit_price=Decimal("1.20"),
        )

        assert command.min_stock_level == 40

    def test_material_create_explicit_minimum_wins(self):
        command = build_material_create(
            InventorySettings(), name="Gasket", category="Mechanical Parts", unit="pcs",
            min_stock_level=3,
        )
        assert command.min_stock_level == 3

    def test_engine_built_from_database_section(self, monkeypatch, tmp_path):
        calls = []
        monkeypatch.setattr(
            bridges, "init_engine_from_url", lambda url, **kwargs: calls.append((url, kwargs)),
        )
        settings = get_settings(_write(tmp_path, {"database": {"url": "sqlite:///x.db", "lock_timeout_ms": 750}}))

        init_engine_from_settings(settings)

        ((url, kwargs),) = calls
        assert url == "sqlite:///x.db"
        assert kwargs["lock_timeout_ms"] == 750
        assert kwargs["pool_size"] == 20

    def test_logging_level_from_settings(self, monkeypatch):
        calls = []
        monkeypatch.setattr(bridges, "configure_logging", lambda **kwargs: calls.append(kwargs))

        configure_logging_from_settings(parse_settings({"log_level": "warning"}, environ={}))

        assert calls == [{"level": logging.WARNING}]
