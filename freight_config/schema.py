"""
LedgerConfig schema.

The human-authored YAML is parsed by the loader into these frozen types.
Defaults here match ``defaults.yaml``; the YAML file is the source of
truth at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Document numbering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NumberingConfig:
    """Prefixes and counter floors for minted document numbers."""

    invoice_prefix: str = "INV"
    settlement_prefix: str = "SET"
    invoice_floor: int = 1000
    settlement_floor: int = 1000
    sequence_padding: int = 0  # 0 = no left padding

    def __post_init__(self) -> None:
        for name in ("invoice_prefix", "settlement_prefix"):
            if not getattr(self, name).strip():
                raise ValueError(f"{name} cannot be empty")
        for name in ("invoice_floor", "settlement_floor"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if self.sequence_padding < 0:
            raise ValueError("sequence_padding cannot be negative")


# ---------------------------------------------------------------------------
# AR aging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgingBucketDef:
    name: str
    min_days: int
    max_days: int | None = None


@dataclass(frozen=True)
class AgingConfig:
    buckets: tuple[AgingBucketDef, ...] = (
        AgingBucketDef("0-30", 0, 30),
        AgingBucketDef("31-60", 31, 60),
        AgingBucketDef("61-90", 61, 90),
        AgingBucketDef("90+", 91, None),
    )

    def __post_init__(self) -> None:
        if not self.buckets:
            raise ValueError("at least one aging bucket is required")
        if self.buckets[0].min_days != 0:
            raise ValueError("first aging bucket must start at day 0")
        for prev, nxt in zip(self.buckets, self.buckets[1:]):
            if prev.max_days is None or nxt.min_days != prev.max_days + 1:
                raise ValueError(
                    f"aging buckets {prev.name!r} and {nxt.name!r} are not contiguous"
                )
        if self.buckets[-1].max_days is not None:
            raise ValueError("last aging bucket must be unbounded")


# ---------------------------------------------------------------------------
# Settlement policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettlementPolicy:
    """
    What the settlement service refuses to commit.

    Negative net pay is always committed verbatim with a warning; it is
    not configurable.
    """

    reject_undelivered_loads: bool = False
    reject_already_settled_loads: bool = True


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    config_id: str = "default"
    version: int = 1
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    aging: AgingConfig = field(default_factory=AgingConfig)
    settlement: SettlementPolicy = field(default_factory=SettlementPolicy)
    checksum: str = ""
