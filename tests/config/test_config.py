"""
Tests for mandi_config: loading, environment overrides and the bridges
that turn a MandiConfig into kernel inputs.
"""

import logging
from decimal import Decimal

import pytest
import yaml

from mandi_config import get_active_config
from mandi_config.bridges import (
    apply_logging,
    build_catalog,
    build_default_charges,
    init_database,
)
from mandi_config.loader import compute_checksum, parse_config
from mandi_kernel.db import engine as engine_module
from mandi_kernel.domain.catalog import DEFAULT_CATALOG
from mandi_kernel.exceptions import ValidationError
from mandi_kernel.logging_config import configure_logging, reset_logging


def _base_document() -> dict:
    return {
        "config_id": "mandi-test",
        "version": 3,
        "database": {"url": "sqlite:///test.db"},
        "catalog": {
            "crops": [
                {"name": "Potato", "prefix": "POT"},
                {"name": "Ginger", "prefix": "GIN"},
            ],
            "sizes": ["Large", "Small"],
            "default_grade": "Small",
        },
        "payment_modes": ["Cash", "Online", "Cheque"],
        "default_charges": {"aadhat_buyer_percent": "2.5", "hammali_farmer_per_bag": "4"},
    }


@pytest.fixture
def config_file(tmp_path):
    def _write(document: dict):
        path = tmp_path / "mandi.yaml"
        path.write_text(yaml.safe_dump(document))
        return path

    return _write


@pytest.fixture(autouse=True)
def _no_env_overrides(monkeypatch):
    monkeypatch.delenv("MANDI_CONFIG_PATH", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


class TestDefaults:

    def test_packaged_defaults_match_kernel_catalog(self):
        config = get_active_config()

        assert config.config_id == "mandi-default"
        catalog = build_catalog(config)
        assert dict(catalog.crop_prefixes) == dict(DEFAULT_CATALOG.crop_prefixes)
        assert catalog.sizes == DEFAULT_CATALOG.sizes
        assert catalog.default_charges == DEFAULT_CATALOG.default_charges

    def test_trace_logged(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "MANDI_CONFIG_TRACE"]
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["crop_count"] == 3


class TestOverrides:

    def test_explicit_path(self, config_file):
        config = get_active_config(config_file(_base_document()))

        assert config.config_id == "mandi-test"
        assert config.version == 3
        catalog = build_catalog(config)
        assert catalog.prefix_for("Ginger") == "GIN"
        assert catalog.default_grade == "Small"

    def test_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("MANDI_CONFIG_PATH", str(config_file(_base_document())))
        assert get_active_config().config_id == "mandi-test"

    def test_database_url_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://mandi@db/mandi")
        config = get_active_config(config_file(_base_document()))
        assert config.database.url == "postgresql://mandi@db/mandi"

    def test_default_charges_bridge(self, config_file):
        charges = build_default_charges(get_active_config(config_file(_base_document())))

        assert charges.aadhat_buyer_percent == Decimal("2.5")
        assert charges.hammali_farmer_per_bag == Decimal("4")
        assert charges.mandi_buyer_percent == Decimal("0")


class TestRejection:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_unknown_charge_key_fails_fast(self, config_file):
        document = _base_document()
        document["default_charges"]["freight_per_bag"] = "3"
        with pytest.raises(ValidationError):
            get_active_config(config_file(document))

    def test_missing_section(self):
        document = _base_document()
        del document["catalog"]
        with pytest.raises(KeyError):
            parse_config(document)

    def test_default_grade_must_be_a_size(self):
        document = _base_document()
        document["catalog"]["default_grade"] = "Jumbo"
        with pytest.raises(ValueError):
            parse_config(document)

    def test_duplicate_crops_rejected(self):
        document = _base_document()
        document["catalog"]["crops"].append({"name": "Potato", "prefix": "PTT"})
        with pytest.raises(ValueError):
            parse_config(document)


class TestChecksumAndLogging:

    def test_checksum_is_key_order_independent(self):
        document = _base_document()
        reordered = dict(reversed(list(document.items())))
        assert compute_checksum(document) == compute_checksum(reordered)

    def test_checksum_changes_with_content(self):
        changed = _base_document()
        changed["version"] = 4
        assert compute_checksum(changed) != compute_checksum(_base_document())

    def test_apply_logging_sets_level(self, config_file):
        document = _base_document()
        document["logging"] = {"level": "error"}
        reset_logging()
        try:
            apply_logging(get_active_config(config_file(document)))
            assert logging.getLogger("mandi_kernel").level == logging.ERROR
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG)

    def test_init_database_installs_engine(self, config_file, tmp_path, monkeypatch):
        monkeypatch.setattr(engine_module, "_engine", None)
        monkeypatch.setattr(engine_module, "_SessionFactory", None)
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'configured.db'}")

        engine = init_database(get_active_config(config_file(_base_document())))
        try:
            assert engine is engine_module.get_engine()
            assert engine.url.database.endswith("configured.db")
        finally:
            engine.dispose()
