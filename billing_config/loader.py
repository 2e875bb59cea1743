"""
YAML loading for invoicing configuration (``billing_config.loader``).

Responsibility:
    Read a YAML configuration file, pull out its ``invoicing`` section and
    build an ``InvoicingConfig`` from it. Build/test tooling; runtime
    callers go through ``billing_config.get_active_config()``.

Failure modes:
    - FileNotFoundError if the file does not exist.
    - yaml.YAMLError on invalid YAML.
    - ValueError when the ``invoicing`` section is missing, is not a
      mapping, or fails ``InvoicingConfig`` validation.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from billing_modules.invoicing.config import InvoicingConfig

SECTION = "invoicing"


@dataclass(frozen=True)
class LoadedConfig:
    """A validated config together with the checksum of its source section."""
    config: InvoicingConfig
    checksum: str
    source: Path | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization; deterministic."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_invoicing_section(data: dict[str, Any]) -> dict[str, Any]:
    section = data.get(SECTION)
    if section is None:
        raise ValueError(f"Configuration has no '{SECTION}' section")
    if not isinstance(section, dict):
        raise ValueError(f"'{SECTION}' section must be a mapping, got {type(section).__name__}")
    return section


def load_invoicing_config(path: Path) -> LoadedConfig:
    """Load and validate the invoicing section of the YAML file at ``path``."""
    section = parse_invoicing_section(load_yaml_file(path))
    return LoadedConfig(
        config=InvoicingConfig.from_dict(section),
        checksum=compute_checksum(section),
        source=Path(path),
    )
