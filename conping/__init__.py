"""conping - connection latency prober."""

__version__ = "0.1.0"
