"""Kernel services (imperative shell infrastructure)."""

from freight_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = ["SequenceCounter", "SequenceService"]
