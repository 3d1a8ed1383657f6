"""
freight_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration.
    Returns a frozen ``LedgerConfig`` parsed from YAML.

Architecture position:
    Configuration -- sits above ``freight_kernel`` and below
    ``freight_modules``.  The kernel MUST NEVER import from
    ``freight_config``; ``bridges`` translates config into engine inputs.

Failure modes:
    - ``FileNotFoundError`` -- the requested config file does not exist.
    - ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FREIGHT_CONFIG_TRACE`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from freight_config.loader import load_config
from freight_config.schema import (
    AgingBucketDef,
    AgingConfig,
    LedgerConfig,
    NumberingConfig,
    SettlementPolicy,
)

_logger = logging.getLogger("freight_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``defaults.yaml``.

    Returns:
        LedgerConfig.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path)

    _logger.info(
        "FREIGHT_CONFIG_TRACE",
        extra={
            "trace_type": "FREIGHT_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
        },
    )
    return config


__all__ = [
    "AgingBucketDef",
    "AgingConfig",
    "LedgerConfig",
    "NumberingConfig",
    "SettlementPolicy",
    "get_active_config",
]
