"""
Config -> Engine Bridges.

Functions that convert LedgerConfig sections into engine inputs.  These
live in freight_config (the producer) so engines never import config.

Usage:
    config = get_active_config()
    buckets = build_aging_buckets(config)
"""

from __future__ import annotations

import re

from freight_config.schema import LedgerConfig, NumberingConfig
from freight_engines.aging import AgeBucket


def build_aging_buckets(config: LedgerConfig) -> tuple[AgeBucket, ...]:
    return tuple(
        AgeBucket(b.name, b.min_days, b.max_days) for b in config.aging.buckets
    )


def format_document_number(
    numbering: NumberingConfig, prefix: str, year: int, sequence: int
) -> str:
    """``<prefix>-<yyyy>-<sequence>``, left-padded when configured."""
    seq = str(sequence).zfill(numbering.sequence_padding) if numbering.sequence_padding else str(sequence)
    return f"{prefix}-{year:04d}-{seq}"


def parse_document_number(prefix: str, number: str) -> tuple[int, int] | None:
    """
    ``(year, sequence)`` when *number* has the minted ``<prefix>-<yyyy>-<digits>``
    shape, else None.  Padding is ignored: ``INV-2024-0007`` parses as 7.
    """
    match = re.fullmatch(rf"{re.escape(prefix)}-(\d{{4}})-(\d+)", number)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))
