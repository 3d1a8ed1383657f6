"""
Configuration Loader (``freight_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``freight_config.schema`` types.  The runtime entry point is
``freight_config.get_active_config()``; services never call this module.

Invariants enforced
-------------------
* Unknown top-level sections raise ``ValueError``; typos never silently
  fall back to defaults.
* ``compute_checksum`` is deterministic for identical content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ValueError`` from the schema ``__post_init__`` checks.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from freight_config.schema import (
    AgingBucketDef,
    AgingConfig,
    LedgerConfig,
    NumberingConfig,
    SettlementPolicy,
)

_SECTIONS = {"config_id", "version", "numbering", "aging", "settlement"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_numbering(data: dict[str, Any]) -> NumberingConfig:
    return NumberingConfig(**data)


def parse_aging(data: dict[str, Any]) -> AgingConfig:
    if "buckets" not in data:
        return AgingConfig()
    buckets = tuple(
        AgingBucketDef(
            name=str(b["name"]),
            min_days=int(b["min_days"]),
            max_days=int(b["max_days"]) if b.get("max_days") is not None else None,
        )
        for b in data["buckets"]
    )
    return AgingConfig(buckets=buckets)


def parse_settlement_policy(data: dict[str, Any]) -> SettlementPolicy:
    return SettlementPolicy(**data)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_ledger_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a configuration mapping into a LedgerConfig.

    Raises:
        ValueError: on unknown sections or invalid values.
    """
    unknown = set(data) - _SECTIONS
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")
    return LedgerConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        numbering=parse_numbering(data.get("numbering") or {}),
        aging=parse_aging(data.get("aging") or {}),
        settlement=parse_settlement_policy(data.get("settlement") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> LedgerConfig:
    return parse_ledger_config(load_yaml_file(path))
