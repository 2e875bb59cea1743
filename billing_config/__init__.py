"""
billing_config -- single public entrypoint for invoicing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``. Services receive the returned
    ``InvoicingConfig``; no other component reads configuration files.

Architecture position:
    Configuration -- sits above ``billing_kernel`` and the invoicing
    module, below ``billing_services``. The kernel MUST NEVER import from
    ``billing_config``.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``BILLING_CONFIG_TRACE`` log entry with the source path, checksum and
    the policy switches in force.
"""

from __future__ import annotations

from pathlib import Path

from billing_config.loader import (
    LoadedConfig,
    compute_checksum,
    load_invoicing_config,
    load_yaml_file,
)
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.config import InvoicingConfig

_logger = get_logger("config")

# Default configuration set shipped with the package
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "invoicing.yaml"


def get_active_config(path: Path | None = None) -> InvoicingConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override path to a YAML configuration file. Defaults to
            billing_config/sets/invoicing.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the invoicing section fails validation.
    """
    loaded = load_invoicing_config(path or _DEFAULT_CONFIG_PATH)
    config = loaded.config

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "source": str(loaded.source),
            "checksum": loaded.checksum,
            "default_currency": config.default_currency,
            "allow_partial_payment": config.allow_partial_payment,
            "allow_overpayment": config.allow_overpayment,
            "recurrence_trigger": config.recurrence_trigger,
        },
    )
    return config


__all__ = [
    "InvoicingConfig",
    "LoadedConfig",
    "compute_checksum",
    "get_active_config",
    "load_invoicing_config",
    "load_yaml_file",
]
