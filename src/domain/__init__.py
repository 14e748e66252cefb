"""Domain models and engines for the crypto gains calculator.

This package holds the in-memory models (records, normalized transactions,
lots, gain buckets) and the grouping, normalization and FIFO ledger logic.
They are independent from persistence models so that business logic and
testing can evolve without DB coupling.
"""

__all__ = [
    "gains",
    "grouping",
    "inventory",
    "ledger",
    "normalizer",
    "records",
]
