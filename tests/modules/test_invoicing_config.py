"""
Tests for invoicing configuration.

Covers:
- InvoicingConfig defaults and validation
- from_dict parsing
- YAML loading and the active configuration entrypoint
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from billing_config import get_active_config
from billing_config.loader import (
    compute_checksum,
    load_invoicing_config,
    load_yaml_file,
    parse_invoicing_section,
)
from billing_engines.client_financials import HealthThresholds
from billing_kernel.domain.values import Currency
from billing_kernel.exceptions import InvalidCurrencyError
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.models import PaymentTerms


class TestInvoicingConfigDefaults:

    def test_defaults(self):
        config = InvoicingConfig.with_defaults()
        assert config.currency == Currency("USD")
        assert config.default_payment_terms == PaymentTerms.NET_30
        assert config.allow_partial_payment is True
        assert config.allow_overpayment is False
        assert config.recurrence_trigger == "paid"
        assert config.aging_buckets == (30, 60, 90)
        assert config.health == HealthThresholds()

    def test_terms_coerced_from_string(self):
        assert InvoicingConfig(default_payment_terms="net_60").default_payment_terms == PaymentTerms.NET_60


class TestInvoicingConfigValidation:

    def test_unknown_currency(self):
        with pytest.raises(InvalidCurrencyError):
            InvoicingConfig(default_currency="ZZZ")

    def test_unknown_terms(self):
        with pytest.raises(ValueError):
            InvoicingConfig(default_payment_terms="net_45")

    def test_unknown_trigger(self):
        with pytest.raises(ValueError, match="recurrence_trigger"):
            InvoicingConfig(recurrence_trigger="viewed")

    def test_bad_aging_buckets(self):
        with pytest.raises(ValueError):
            InvoicingConfig(aging_buckets=(60, 30))


class TestFromDict:

    def test_health_section_converted(self):
        config = InvoicingConfig.from_dict(
            {"health": {"good_max_ratio": "0.2", "warning_max_ratio": "0.4"}}
        )
        assert config.health.good_max_ratio == Decimal("0.2")
        assert config.health.warning_max_days == Decimal("60")

    def test_aging_list_becomes_tuple(self):
        assert InvoicingConfig.from_dict({"aging_buckets": [15, 45]}).aging_buckets == (15, 45)

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown"):
            InvoicingConfig.from_dict({"late_fee": "5.00"})


class TestYamlLoading:

    def _write(self, tmp_path: Path, data) -> Path:
        path = tmp_path / "invoicing.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    def test_load_section(self, tmp_path):
        path = self._write(
            tmp_path,
            {"invoicing": {"default_currency": "EUR", "recurrence_trigger": "sent"}},
        )
        loaded = load_invoicing_config(path)
        assert loaded.config.currency == Currency("EUR")
        assert loaded.config.recurrence_trigger == "sent"
        assert loaded.source == path
        assert len(loaded.checksum) == 64

    def test_missing_section(self, tmp_path):
        path = self._write(tmp_path, {"other": {}})
        with pytest.raises(ValueError, match="no 'invoicing' section"):
            load_invoicing_config(path)

    def test_section_not_mapping(self):
        with pytest.raises(ValueError, match="mapping"):
            parse_invoicing_section({"invoicing": [1, 2]})

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_invoicing_config(tmp_path / "absent.yaml")

    def test_checksum_key_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestGetActiveConfig:

    def test_default_set(self):
        config = get_active_config()
        assert config.default_currency == "USD"
        assert config.health.good_max_ratio == Decimal("0.1")
        assert config.aging_buckets == (30, 60, 90)

    def test_override_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump({"invoicing": {"allow_overpayment": True}}))
        assert get_active_config(path).allow_overpayment is True

    def test_emits_config_trace(self, captured_logs):
        get_active_config()
        trace = next(r for r in captured_logs() if r["message"] == "BILLING_CONFIG_TRACE")
        assert trace["trace_type"] == "BILLING_CONFIG_TRACE"
        assert trace["source"].endswith("invoicing.yaml")
        assert trace["recurrence_trigger"] == "paid"
