"""Retrieval cost estimates for a manifest."""
from __future__ import annotations

from dataclasses import dataclass

from .manifest import ManifestStats

__all__ = ["RetrievalCostEstimate", "estimate_retrieval_costs"]

# USD, S3 Glacier Flexible Retrieval list prices
STANDARD_RESTORE_PER_1000 = 0.03
BULK_RESTORE_PER_1000 = 0.025
GET_REQUEST_PER_1000 = 0.0004
TRANSFER_PER_GB = 0.09

GIB = 1024 ** 3


@dataclass(frozen=True)
class RetrievalCostEstimate:
    standard: float
    bulk: float


def estimate_retrieval_costs(stats: ManifestStats) -> RetrievalCostEstimate:
    """Restore requests + GET requests + transfer, for both speed classes."""
    files = float(stats.file_count)
    transfer = (stats.total_size / GIB) * TRANSFER_PER_GB
    gets = files * GET_REQUEST_PER_1000 / 1000

    return RetrievalCostEstimate(
        standard=files * STANDARD_RESTORE_PER_1000 / 1000 + gets + transfer,
        bulk=files * BULK_RESTORE_PER_1000 / 1000 + gets + transfer,
    )
